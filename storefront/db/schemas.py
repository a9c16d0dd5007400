# storefront/db/schemas.py
from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field, field_serializer, field_validator
from typing import List, Optional

CENT = Decimal("0.01")


# Схема для товара (Product)
class ProductBase(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    category: str
    image: Optional[str] = None
    rating: float
    stock: int

    class Config:
        from_attributes = True


# Строка корзины вместе с данными товара на момент чтения
class CartLine(ProductBase):
    cart_id: str = Field(alias="cartId")
    quantity: int

    class Config:
        from_attributes = True
        populate_by_name = True


class CartItemCreate(BaseModel):
    product_id: str = Field(alias="productId", min_length=1)
    quantity: int = 1

    class Config:
        populate_by_name = True


class CartItemUpdate(BaseModel):
    quantity: int


class OrderLine(BaseModel):
    product_id: str = Field(alias="productId")
    name: str
    quantity: int
    price: Decimal
    line_total: Decimal = Field(alias="lineTotal")

    # В JSON деньги уходят числами, округлёнными до копеек
    @field_serializer("price", "line_total", when_used="json")
    def money_to_number(self, value: Decimal) -> float:
        return float(value.quantize(CENT))

    class Config:
        populate_by_name = True


class CheckoutResponse(BaseModel):
    message: str
    order_summary: List[OrderLine] = Field(alias="orderSummary")
    total: Decimal

    @field_serializer("total", when_used="json")
    def total_to_number(self, value: Decimal) -> float:
        return float(value.quantize(CENT))

    class Config:
        populate_by_name = True


# Схемы пользователя
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be empty")
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserOut(BaseModel):
    id: int
    email: str
    name: str

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    user: UserOut
    token: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
