import pytest
from pydantic import ValidationError

from schemas import ORDER_STATUSES, ORDER_TRANSITIONS, Order, can_transition


@pytest.mark.parametrize(
    "current, new, allowed",
    [
        ("pending", "processing", True),
        ("pending", "cancelled", True),
        ("pending", "shipped", False),
        ("processing", "shipped", True),
        ("processing", "pending", False),
        ("shipped", "delivered", True),
        ("shipped", "cancelled", False),
        ("delivered", "cancelled", False),
        ("cancelled", "pending", False),
        ("delivered", "delivered", True),
    ],
)
def test_can_transition(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_every_status_has_a_transition_entry():
    assert set(ORDER_TRANSITIONS) == set(ORDER_STATUSES)
    for targets in ORDER_TRANSITIONS.values():
        assert targets <= set(ORDER_STATUSES)


def order_fields(**overrides):
    fields = {
        "orderNumber": "ORD-1",
        "items": [{"product": "p1", "quantity": 1, "price": 3}],
        "shippingAddress": {"fullName": "A", "address": "1 St", "city": "X", "postalCode": "000", "country": "IN"},
        "paymentMethod": "UPI",
    }
    fields.update(overrides)
    return fields


def test_order_defaults():
    order = Order(**order_fields())
    assert order.status == "pending"
    assert order.paymentStatus == "pending"
    assert order.paymentDetails.transactionId is None
    assert order.user is None
    assert order.createdAt.tzinfo is not None


@pytest.mark.parametrize(
    "overrides",
    [
        {"items": []},
        {"items": [{"product": "p1", "quantity": 0, "price": 3}]},
        {"items": [{"product": "p1", "quantity": 1, "price": -1}]},
        {"paymentMethod": ""},
        {"status": "lost"},
        {"totalAmount": -5},
    ],
)
def test_order_rejects_invalid_fields(overrides):
    with pytest.raises(ValidationError):
        Order(**order_fields(**overrides))
