"""
Order workflow: intake, status transitions and reads.

Handlers in ``main`` stay thin; everything that validates, persists or
reshapes an order lives here so it can be exercised without HTTP.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo.database import Database

from database import create_document, get_documents, parse_object_id, to_utc
from directory import ProductCatalog, UserDirectory
from errors import NotFoundError, ValidationError
from schemas import (
    ORDER_STATUSES,
    REQUIRED_ADDRESS_FIELDS,
    CustomerDTO,
    Order,
    OrderDTO,
    OrderItemDTO,
    OrderRef,
    PaymentDTO,
    ShippingDTO,
    can_transition,
)

logger = logging.getLogger(__name__)

GUEST_ID = "guest"
GUEST_NAME = "Guest Customer"
GUEST_EMAIL = "guest@example.com"
UNKNOWN_PRODUCT_NAME = "Product"


def generate_order_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def find_missing_fields(payload: Dict[str, Any]) -> List[str]:
    """Every missing piece of an intake payload, in a stable order."""
    missing = []
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        missing.append("items")

    address = payload.get("shippingAddress")
    if not address or not isinstance(address, dict):
        missing.append("shippingAddress")
    else:
        absent = [f for f in REQUIRED_ADDRESS_FIELDS if not address.get(f)]
        if absent:
            missing.append(f"shippingAddress fields: {', '.join(absent)}")

    if not payload.get("paymentMethod"):
        missing.append("paymentMethod")
    return missing


def _pydantic_messages(exc: PydanticValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return messages


def to_order_dto(
    order: Dict[str, Any],
    user: Optional[Dict[str, Any]],
    products: Dict[str, Dict[str, Any]],
) -> OrderDTO:
    shipping = order.get("shippingAddress") or {}
    payment = order.get("paymentDetails") or {}
    user = user or {}

    items = []
    for item in order.get("items") or []:
        product = products.get(str(item.get("product")))
        images = (product or {}).get("images") or []
        items.append(
            OrderItemDTO(
                id=str(product["_id"]) if product else "",
                name=(product or {}).get("name") or UNKNOWN_PRODUCT_NAME,
                quantity=item.get("quantity") or 1,
                price=item.get("price") or 0,
                image=images[0] if images else "",
            )
        )

    created = order.get("createdAt")
    date = to_utc(created) if isinstance(created, datetime) else datetime.now(timezone.utc)
    street = " ".join(part for part in (shipping.get("address"), shipping.get("addressLine2")) if part)

    return OrderDTO(
        id=str(order["_id"]),
        orderNumber=order.get("orderNumber") or "",
        customer=CustomerDTO(
            id=str(user["_id"]) if user.get("_id") else GUEST_ID,
            name=user.get("name") or shipping.get("fullName") or GUEST_NAME,
            email=user.get("email") or GUEST_EMAIL,
            phone=user.get("phone") or shipping.get("phone") or "",
        ),
        date=date.isoformat(),
        status=order.get("status") or "pending",
        total=order.get("totalAmount") or 0,
        items=items,
        shipping=ShippingDTO(
            address=street,
            city=shipping.get("city") or "",
            state=shipping.get("state") or "",
            postalCode=shipping.get("postalCode") or "",
            country=shipping.get("country") or "",
        ),
        payment=PaymentDTO(
            method=order.get("paymentMethod") or "Unknown",
            transactionId=payment.get("transactionId") or "",
            status=order.get("paymentStatus") or "pending",
        ),
    )


class OrderService:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db["order"]
        self.users = UserDirectory(db)
        self.products = ProductCatalog(db)

    # ----------------------- Intake -----------------------
    def create_order(self, payload: Any, session_user_id: Optional[str] = None) -> OrderRef:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")

        user_id = payload.get("user") or session_user_id
        if not user_id:
            logger.warning("Rejected order without a user id")
            raise ValidationError("User ID is required")

        missing = find_missing_fields(payload)
        if missing:
            logger.warning("Rejected order, missing fields: %s", missing)
            raise ValidationError(f"Missing required order data: {', '.join(missing)}", missing)

        items, total = self._price_items(payload["items"])
        try:
            order = Order(
                orderNumber=payload.get("orderNumber") or generate_order_number(),
                user=parse_object_id(user_id) or str(user_id),
                items=items,
                shippingAddress=payload["shippingAddress"],
                paymentMethod=payload["paymentMethod"],
                paymentDetails=payload.get("paymentDetails") or {},
                paymentStatus=payload.get("paymentStatus") or "pending",
                totalAmount=total,
            )
        except PydanticValidationError as e:
            details = _pydantic_messages(e)
            logger.warning("Rejected order, invalid fields: %s", details)
            raise ValidationError("Validation error", details) from e

        order_id = create_document(self.db, "order", order)
        logger.info("Created order %s (%s) for user %s", order_id, order.orderNumber, user_id)
        return OrderRef(id=order_id, status=order.status)

    def _price_items(self, raw_items: List[Any]):
        """Charge catalog prices where the product is known; total is always recomputed."""
        product_ids = [item.get("product") for item in raw_items if isinstance(item, dict)]
        catalog = self.products.get_many(product_ids)

        items = []
        total = 0.0
        for raw in raw_items:
            if not isinstance(raw, dict):
                # left for the schema to reject
                items.append(raw)
                continue
            item = dict(raw)
            product = catalog.get(str(item.get("product")))
            if product is not None:
                item["price"] = float(product.get("price", 0))
                item.setdefault("name", product.get("name"))
            try:
                total += float(item.get("price") or 0) * int(item.get("quantity") or 0)
            except (TypeError, ValueError):
                pass  # reported by the schema
            items.append(item)
        return items, round(total, 2)

    # ----------------------- Status -----------------------
    def update_status(self, order_id: Any, status: Any) -> OrderRef:
        oid = parse_object_id(order_id)
        if oid is None:
            raise ValidationError("Invalid order ID format")
        if not isinstance(status, str) or not status.strip():
            raise ValidationError("Status is required")

        new_status = status.strip().lower()
        if new_status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Allowed: {', '.join(ORDER_STATUSES)}")

        order = self.collection.find_one({"_id": oid}, {"status": 1})
        if not order:
            raise NotFoundError("Order not found")

        current = str(order.get("status") or "pending").lower()
        if not can_transition(current, new_status):
            raise ValidationError(f"Cannot change order status from {current} to {new_status}")

        if current != new_status:
            # only write if nobody changed the status since it was read
            result = self.collection.update_one(
                {"_id": oid, "status": order.get("status")},
                {"$set": {"status": new_status, "updatedAt": datetime.now(timezone.utc)}},
            )
            if result.matched_count == 0:
                latest = self.collection.find_one({"_id": oid}, {"status": 1})
                if not latest:
                    raise NotFoundError("Order not found")
                current = str(latest.get("status") or "pending").lower()
                logger.warning("Order %s status changed concurrently to %s", oid, current)
                raise ValidationError(f"Cannot change order status from {current} to {new_status}")
            logger.info("Order %s status %s -> %s", oid, current, new_status)
        return OrderRef(id=str(oid), status=new_status)

    # ----------------------- Reads -----------------------
    def get_order(self, order_id: Any) -> OrderDTO:
        oid = parse_object_id(order_id)
        if oid is None:
            raise ValidationError("Invalid order ID format")
        order = self.collection.find_one({"_id": oid})
        if not order:
            raise NotFoundError("Order not found")
        user = self.users.get(order.get("user"))
        products = self.products.get_many(
            item.get("product") for item in (order.get("items") or []) if isinstance(item, dict)
        )
        return to_order_dto(order, user, products)

    def list_orders(self) -> List[OrderDTO]:
        orders = get_documents(self.db, "order", sort=[("createdAt", -1)])
        users = self.users.get_many(o.get("user") for o in orders)
        products = self.products.get_many(
            item.get("product") for o in orders for item in (o.get("items") or []) if isinstance(item, dict)
        )
        return [to_order_dto(o, users.get(str(o.get("user"))), products) for o in orders]
