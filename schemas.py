"""
Database Schemas for the Storefront

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name:
- User -> "user"
- Product -> "product"
- Order -> "order"

The *DTO models at the bottom are response shapes only and are never stored.
"""
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Literal, Optional, get_args

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
ORDER_STATUSES = get_args(OrderStatus)

ORDER_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "pending": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

REQUIRED_ADDRESS_FIELDS = ("fullName", "address", "city", "postalCode", "country")


def can_transition(current: str, new: str) -> bool:
    if current == new:
        return True
    # records written before statuses were enforced can move to any known status
    if current not in ORDER_TRANSITIONS:
        return True
    return new in ORDER_TRANSITIONS[current]


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    phone: Optional[str] = None
    role: str = Field("user", description="Account role: user or admin")


class Product(BaseModel):
    name: str
    brand: str
    description: str
    price: float = Field(..., ge=0)
    category: Literal["Mobiles", "Laptops", "Accessories", "Fashion"]
    rating: float = Field(4.0, ge=0, le=5)
    images: List[str] = []
    specs: dict = {}
    stock: int = 10


class OrderItem(BaseModel):
    product: Any = Field(..., description="Product ID; ObjectId when well-formed")
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price charged")
    name: Optional[str] = Field(None, description="Snapshot of product name at purchase time")
    image: Optional[str] = None

    @field_validator("product")
    @classmethod
    def product_reference(cls, value):
        if isinstance(value, ObjectId):
            return value
        if not isinstance(value, str) or not value:
            raise ValueError("must be a non-empty string")
        return ObjectId(value) if ObjectId.is_valid(value) else value


class ShippingAddress(BaseModel):
    # postal codes and phone numbers often arrive as JSON numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)

    fullName: str
    address: str
    addressLine2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postalCode: str
    country: str
    phone: Optional[str] = None


class PaymentDetails(BaseModel):
    transactionId: Optional[str] = None


class Order(BaseModel):
    orderNumber: str
    user: Optional[Any] = Field(None, description="User ID; ObjectId when well-formed")
    items: List[OrderItem] = Field(..., min_length=1)
    shippingAddress: ShippingAddress
    paymentMethod: str = Field(..., min_length=1)
    paymentDetails: PaymentDetails = Field(default_factory=PaymentDetails)
    paymentStatus: str = "pending"
    status: OrderStatus = "pending"
    totalAmount: float = Field(0, ge=0)
    createdAt: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# ----------------------- Request bodies -----------------------
class StatusUpdateBody(BaseModel):
    orderId: Optional[str] = None
    status: Optional[str] = None


# ----------------------- Response DTOs -----------------------
class OrderRef(BaseModel):
    id: str
    status: str


class CustomerDTO(BaseModel):
    id: str
    name: str
    email: str
    phone: str


class OrderItemDTO(BaseModel):
    id: str
    name: str
    quantity: int
    price: float
    image: str


class ShippingDTO(BaseModel):
    address: str
    city: str
    state: str
    postalCode: str
    country: str


class PaymentDTO(BaseModel):
    method: str
    transactionId: str
    status: str


class OrderDTO(BaseModel):
    id: str
    orderNumber: str
    customer: CustomerDTO
    date: str
    status: str
    total: float
    items: List[OrderItemDTO]
    shipping: ShippingDTO
    payment: PaymentDTO
