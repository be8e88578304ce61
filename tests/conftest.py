from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import MongoConnector, get_database
from main import create_app
from orders import OrderService

JWT_SECRET = "test-secret"


@pytest.fixture
def settings():
    return Settings(database_url="mongodb://localhost:27017", database_name="shop_test", jwt_secret=JWT_SECRET)


@pytest.fixture
def db():
    return mongomock.MongoClient()["shop_test"]


@pytest.fixture
def app(settings, db):
    application = create_app(settings, connector=MongoConnector(settings.database_url, settings.database_name))
    application.dependency_overrides[get_database] = lambda: db
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def service(db):
    return OrderService(db)


@pytest.fixture
def user(db):
    result = db["user"].insert_one(
        {"name": "Asha Rao", "email": "asha@example.com", "phone": "+91 98450 00000", "role": "user"}
    )
    return str(result.inserted_id)


@pytest.fixture
def product(db):
    result = db["product"].insert_one(
        {
            "name": "Pixel 7A",
            "brand": "Google",
            "description": "Phone",
            "price": 349.5,
            "category": "Mobiles",
            "images": ["https://img.example.com/pixel.jpg", "https://img.example.com/pixel-2.jpg"],
        }
    )
    return str(result.inserted_id)


def make_payload(**overrides):
    payload = {
        "items": [{"product": "p1", "quantity": 2, "price": 10}],
        "shippingAddress": {
            "fullName": "A",
            "address": "1 St",
            "city": "X",
            "postalCode": "000",
            "country": "IN",
        },
        "paymentMethod": "COD",
    }
    payload.update(overrides)
    return payload


def insert_order(db, created_at=None, **fields):
    doc = {
        "orderNumber": "ORD-TEST",
        "items": [{"product": "p1", "quantity": 1, "price": 5}],
        "shippingAddress": {"fullName": "Guest Buyer", "address": "9 Lane", "city": "Pune", "postalCode": "411001", "country": "IN"},
        "paymentMethod": "COD",
        "paymentStatus": "pending",
        "status": "pending",
        "totalAmount": 5,
        "createdAt": created_at or datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    doc.update(fields)
    return str(db["order"].insert_one(doc).inserted_id)


def days_ago(n):
    return datetime.now(timezone.utc) - timedelta(days=n)
