"""
Database Schemas for the Storefront API

Collections:
- user: customers and admins
- product: catalog entries
- order: customer orders with line snapshots

Request payloads accept both snake_case and camelCase keys.
"""

from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "admin"]
Category = Literal["Electronics", "Clothing", "Books", "Home", "Sports", "Other"]
OrderStatus = Literal["pending", "paid", "processing", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["credit_card", "debit_card", "paypal"]
SortField = Literal["created_at", "updated_at", "price", "name", "quantity"]

CANCELLABLE_STATUSES = ("pending", "paid")
MAX_PAGE_SIZE = 100
MAX_PAGE = 10_000


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


# ---------------------- Collections ----------------------

class User(BaseModel):
    """
    Users collection schema
    Collection: "user"
    """
    username: str = Field(..., min_length=3, max_length=30)
    email: Optional[str] = Field(None, max_length=255, description="Lowercased email address")
    password_hash: str = Field(..., description="bcrypt hash, never returned by the API")
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    role: Role = Field("user", description="role: user or admin")
    profile_image: Optional[str] = None
    last_login: Optional[datetime] = None


class Product(BaseModel):
    """
    Products collection schema
    Collection: "product"
    """
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    price: float = Field(..., ge=0)
    category: Category
    quantity: int = Field(0, ge=0)
    in_stock: bool = Field(False, description="Always quantity > 0")
    image_url: Optional[str] = None


class OrderItem(BaseModel):
    """Snapshot of a product at the time it was ordered."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product_id: ObjectId
    product_name: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class ShippingAddress(Payload):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)


class Order(BaseModel):
    """
    Orders collection schema
    Collection: "order"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user_id: ObjectId
    items: List[OrderItem] = Field(..., min_length=1)
    total: float = Field(..., ge=0)
    status: OrderStatus = "pending"
    shipping_address: ShippingAddress
    payment_method: Optional[PaymentMethod] = None
    tracking_number: Optional[str] = None
    cancelled_at: Optional[datetime] = None


# ---------------------- Requests ----------------------

class UserCreate(Payload):
    username: str = Field(..., min_length=3, max_length=30)
    password: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    profile_image: Optional[str] = None


class LoginRequest(Payload):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserUpdate(Payload):
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)


class ProductCreate(Payload):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    price: float = Field(..., ge=0)
    category: Category
    quantity: int = Field(0, ge=0)
    image_url: Optional[str] = None


class SearchFilters(Payload):
    min_price: Optional[float] = Field(None, ge=0)
    max_price: Optional[float] = Field(None, ge=0)
    in_stock: Optional[bool] = None


class ProductSearch(Payload):
    query: Optional[str] = None
    category: Optional[Category] = None
    filters: SearchFilters = Field(default_factory=SearchFilters)
    page: int = Field(1, ge=1, le=MAX_PAGE)
    limit: int = Field(20, ge=1)
    sort: SortField = "created_at"
    order: Literal["asc", "desc"] = "desc"


class OrderLine(Payload):
    product_id: str
    quantity: int = Field(..., ge=1)


class OrderCreate(Payload):
    items: List[OrderLine] = Field(default_factory=list)
    shipping_address: Optional[ShippingAddress] = None
    payment_method: Optional[PaymentMethod] = None


class StatusWebhook(Payload):
    order_id: str
    status: OrderStatus
    tracking_number: Optional[str] = None
