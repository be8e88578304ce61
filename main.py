import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import Settings, configure_logging
from database import MongoConnector, create_document, get_database, parse_object_id, serialize_doc
from directory import ProductCatalog
from errors import ShopError
from orders import OrderService
from schemas import Product as ProductSchema, StatusUpdateBody
from session import get_session_user_id

logger = logging.getLogger(__name__)


def get_order_service(db: Database = Depends(get_database)) -> OrderService:
    return OrderService(db)


def error_body(message: str, details=None) -> dict:
    body = {"success": False, "error": message}
    if details:
        body["details"] = details
    return body


# ----------------------- Error handlers -----------------------
async def handle_shop_error(request: Request, exc: ShopError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.details))


async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    logger.warning("%s %s rejected: %s", request.method, request.url.path, details)
    return JSONResponse(status_code=400, content=error_body("Validation error", details))


async def handle_store_error(request: Request, exc: PyMongoError):
    logger.error("%s %s database error", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=error_body("Database error"))


def create_app(settings: Optional[Settings] = None, connector: Optional[MongoConnector] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.connector.close()

    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.settings = settings
    app.state.connector = connector or MongoConnector.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ShopError, handle_shop_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(PyMongoError, handle_store_error)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    # ----------------------- Health -----------------------
    @app.get("/")
    def root():
        return {"message": "Storefront API running"}

    @app.get("/test")
    def test_database(request: Request):
        connector = request.app.state.connector
        response = {
            "backend": "Running",
            "database": "Not Available",
            "database_url": "Set" if connector.url else "Not Set",
            "database_name": connector.name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            db = connector.connect()
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "Connected & Working"
            response["connection_status"] = "Connected"
        except (ShopError, PyMongoError) as e:
            logger.warning("Database check failed: %s", e)
            response["database"] = f"Error: {str(e)[:80]}"
        return response

    # ----------------------- Orders -----------------------
    @app.get("/orders")
    def list_orders(service: OrderService = Depends(get_order_service)):
        return {"orders": [o.model_dump() for o in service.list_orders()]}

    @app.get("/orders/{order_id}")
    def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
        return {"order": service.get_order(order_id).model_dump()}

    @app.post("/orders", status_code=201)
    def create_order(
        payload: Any = Body(...),
        session_user_id: Optional[str] = Depends(get_session_user_id),
        service: OrderService = Depends(get_order_service),
    ):
        ref = service.create_order(payload, session_user_id)
        return {"success": True, "order": ref.model_dump()}

    @app.patch("/orders")
    def update_order_status(body: Optional[StatusUpdateBody] = None, service: OrderService = Depends(get_order_service)):
        body = body or StatusUpdateBody()
        if not body.orderId or not body.status:
            return JSONResponse(status_code=400, content=error_body("Order ID and status are required"))
        ref = service.update_status(body.orderId, body.status)
        return {"success": True, "order": ref.model_dump()}

    @app.patch("/orders/{order_id}")
    def update_order_status_by_id(
        order_id: str, body: Optional[StatusUpdateBody] = None, service: OrderService = Depends(get_order_service)
    ):
        body = body or StatusUpdateBody()
        if not body.status:
            return JSONResponse(status_code=400, content=error_body("Status is required"))
        ref = service.update_status(order_id, body.status)
        return {"success": True, "order": ref.model_dump()}

    # ----------------------- Products -----------------------
    @app.get("/products")
    def list_products(q: Optional[str] = None, category: Optional[str] = None, db: Database = Depends(get_database)):
        return [serialize_doc(p) for p in ProductCatalog(db).list(q, category)]

    @app.get("/products/{product_id}")
    def get_product(product_id: str, db: Database = Depends(get_database)):
        if parse_object_id(product_id) is None:
            raise HTTPException(status_code=400, detail="Invalid product ID format")
        item = ProductCatalog(db).get(product_id)
        if not item:
            raise HTTPException(status_code=404, detail="Product not found")
        return serialize_doc(item)

    # ----------------------- Seed Demo Data -----------------------
    @app.post("/seed")
    def seed(db: Database = Depends(get_database)):
        if db["product"].count_documents({}) > 0:
            return {"seeded": False, "message": "Products already exist"}
        for p in DEMO_PRODUCTS:
            create_document(db, "product", ProductSchema(**p))
        logger.info("Seeded %d demo products", len(DEMO_PRODUCTS))
        return {"seeded": True, "products": db["product"].count_documents({})}


DEMO_PRODUCTS = [
    {
        "name": "Pixel 7A",
        "brand": "Google",
        "description": "Powerful camera and smooth Android experience.",
        "price": 34999,
        "category": "Mobiles",
        "rating": 4.4,
        "images": [
            "https://images.unsplash.com/photo-1511707171634-5f897ff02aa9",
        ],
        "specs": {"storage": "128GB", "ram": "8GB"},
        "stock": 25,
    },
    {
        "name": "ThinkPad X1",
        "brand": "Lenovo",
        "description": "Business-class laptop with legendary keyboard.",
        "price": 119999,
        "category": "Laptops",
        "rating": 4.5,
        "images": [
            "https://images.unsplash.com/photo-1517336714731-489689fd1ca8",
        ],
        "specs": {"cpu": "i7", "ram": "16GB", "storage": "512GB SSD"},
        "stock": 10,
    },
    {
        "name": "Noise Cancelling Headphones",
        "brand": "Sony",
        "description": "Immerse in music with ANC.",
        "price": 19999,
        "category": "Accessories",
        "rating": 4.7,
        "images": [
            "https://images.unsplash.com/photo-1518443248587-30bdc8f94f04",
        ],
        "specs": {"battery": "30h"},
        "stock": 40,
    },
    {
        "name": "Casual Sneakers",
        "brand": "Nike",
        "description": "Comfortable everyday wear.",
        "price": 4999,
        "category": "Fashion",
        "rating": 4.2,
        "images": [
            "https://images.unsplash.com/photo-1525966222134-fcfa99b8ae77",
        ],
        "specs": {"size": "7-11"},
        "stock": 50,
    },
]


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
