"""
Database Schemas for the Storefront API

Each stored Pydantic model corresponds to one MongoDB collection. The
collection name is the lowercase of the class name (Product -> "product").
Fields are snake_case in Python and camelCase on the wire and in the store.
"""
import json
import re
from typing import Dict, List, Literal, Optional, Set

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

OBJECT_ID_RE = re.compile(r"^[a-fA-F0-9]{24}$")

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]

# Allowed next states; delivered and cancelled are terminal.
ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"shipped", "cancelled"},
    "shipped": {"delivered", "cancelled"},
    "delivered": set(),
    "cancelled": set(),
}


def is_object_id(value) -> bool:
    return isinstance(value, str) and bool(OBJECT_ID_RE.match(value))


def can_transition(current: str, new: str) -> bool:
    if current == new:
        return True
    return new in ORDER_TRANSITIONS.get(current, set())


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def category_pattern(slug: str) -> str:
    """Regex matching the category name a slug came from: each hyphen stands
    for whitespace or a literal hyphen."""
    return r"[\s-]+".join(re.escape(part) for part in slug.split("-") if part)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


def _parse_string_list(value):
    # Form clients send lists as JSON-encoded strings.
    if value is None:
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value] if value.strip() else []
        return parsed if isinstance(parsed, list) else [parsed]
    return value


# ---------- Products ----------

class Product(CamelModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: str = Field(..., min_length=1, description="Display name")
    description: str = Field(..., min_length=1)
    original_price: float = Field(..., gt=0, description="List price")
    sale_price: float = Field(..., gt=0, description="Selling price, normally <= original price")
    category: str = Field(..., min_length=1, description="Free-text category name")
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    images: List[str] = Field(..., min_length=1, description="Image URLs or paths")
    is_available: bool = Field(True, description="False when sold out")

    @field_validator("sizes", "colors", mode="before")
    @classmethod
    def parse_lists(cls, v):
        return _parse_string_list(v)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    original_price: Optional[float] = Field(None, gt=0)
    sale_price: Optional[float] = Field(None, gt=0)
    category: Optional[str] = Field(None, min_length=1)
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    images: Optional[List[str]] = Field(None, min_length=1)
    is_available: Optional[bool] = None

    @field_validator("sizes", "colors", mode="before")
    @classmethod
    def parse_lists(cls, v):
        if v is None:
            return None
        return _parse_string_list(v)


class CategoryOut(BaseModel):
    name: str
    slug: str


# ---------- Users ----------

class User(CamelModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr
    password: str = Field(..., description="bcrypt hash, never the plain password")
    is_admin: bool = False


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(CamelModel):
    id: str
    name: str
    email: str
    is_admin: bool = False


# ---------- Orders ----------

class OrderItem(CamelModel):
    product: str = Field(..., min_length=1, description="Product id at purchase time")
    product_name: Optional[str] = None
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    color: Optional[str] = None
    price: float = Field(..., ge=0, description="Unit price snapshot")
    image: Optional[str] = None


class OrderCreate(CamelModel):
    customer_name: str = Field(..., min_length=1)
    customer_phone: str = Field(..., min_length=1)
    alternate_phone: str = ""
    customer_address: str = Field(..., min_length=1)
    items: List[OrderItem] = Field(..., min_length=1)
    total_amount: float = Field(..., gt=0)

    @field_validator("customer_phone", "alternate_phone", mode="before")
    @classmethod
    def phone_as_text(cls, v):
        if isinstance(v, (int, float)):
            return str(v)
        return "" if v is None else v


class Order(OrderCreate):
    """
    Orders collection schema
    Collection name: "order"
    """
    status: OrderStatus = "pending"


class OrderUpdate(CamelModel):
    customer_name: Optional[str] = Field(None, min_length=1)
    customer_phone: Optional[str] = Field(None, min_length=1)
    alternate_phone: Optional[str] = None
    customer_address: Optional[str] = Field(None, min_length=1)
    status: Optional[OrderStatus] = None
