# app/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import List, Literal
from decimal import Decimal
from datetime import datetime

from app.domain.statuses import (
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
)

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(1, gt=0, le=100, description="Ilość produktu (musi być > 0)")
    options: dict = Field(default_factory=dict, description="Wariant produktu, np. rozmiar/kolor")


class QuantityIn(BaseModel):
    """Nowa ilość linii, 0 usuwa linie."""

    quantity: int = Field(..., ge=0, le=100)


class CouponIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class MergeIn(BaseModel):
    """Scalenie koszyka gościa z koszykiem usera po zalogowaniu."""

    session_id: str = Field(..., min_length=1, max_length=128)
    user_id: int = Field(..., gt=0)


class CartItemOut(BaseModel):
    id: int
    product_id: int
    product_name: str | None = None
    quantity: int
    price: Decimal
    subtotal: Decimal
    options: dict = {}


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: int
    user_id: int | None = None
    session_id: str | None = None
    items: List[CartItemOut]
    items_count: int
    coupon_code: str | None = None
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal


class CouponValidateIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    subtotal: Decimal = Field(..., ge=0)
    user_id: int | None = Field(None, gt=0)


class CouponValidateOut(BaseModel):
    valid: bool
    code: str
    reason: str | None = None
    discount: Decimal = Decimal("0.00")


class ShippingMethodOut(BaseModel):
    id: str
    name: str
    description: str
    price: Decimal


class CheckoutSummaryOut(BaseModel):
    cart: CartOut
    unavailable_items: List[str]
    shipping_methods: List[ShippingMethodOut]


_SHIPPING_FIELDS = ("first_name", "last_name", "phone", "address", "city", "state", "country", "postal_code")


class CheckoutIn(BaseModel):
    """
    Dane do checkout.
    same_as_billing=True kopiuje adres rozliczeniowy do wysyłkowego.
    """

    billing_first_name: str = Field(..., min_length=1, max_length=255)
    billing_last_name: str = Field(..., min_length=1, max_length=255)
    billing_email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    billing_phone: str = Field(..., min_length=1, max_length=20)
    billing_address: str = Field(..., min_length=1, max_length=500)
    billing_city: str = Field(..., min_length=1, max_length=100)
    billing_state: str = Field(..., min_length=1, max_length=100)
    billing_country: str = Field("Nigeria", max_length=100)
    billing_postal_code: str | None = Field(None, max_length=20)

    same_as_billing: bool = False

    shipping_first_name: str = Field(..., min_length=1, max_length=255)
    shipping_last_name: str = Field(..., min_length=1, max_length=255)
    shipping_phone: str = Field(..., min_length=1, max_length=20)
    shipping_address: str = Field(..., min_length=1, max_length=500)
    shipping_city: str = Field(..., min_length=1, max_length=100)
    shipping_state: str = Field(..., min_length=1, max_length=100)
    shipping_country: str | None = Field(None, max_length=100)
    shipping_postal_code: str | None = Field(None, max_length=20)

    shipping_method: Literal["standard", "express"] = "standard"
    payment_method: PaymentMethod
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="before")
    @classmethod
    def copy_billing_to_shipping(cls, data):
        if isinstance(data, dict) and data.get("same_as_billing"):
            data = dict(data)
            for name in _SHIPPING_FIELDS:
                data[f"shipping_{name}"] = data.get(f"billing_{name}")
            if data.get("shipping_country") is None:
                data["shipping_country"] = "Nigeria"
        return data

    def address_fields(self) -> dict:
        fields = {f"billing_{name}": getattr(self, f"billing_{name}") for name in _SHIPPING_FIELDS}
        fields["billing_email"] = self.billing_email
        fields.update({f"shipping_{name}": getattr(self, f"shipping_{name}") for name in _SHIPPING_FIELDS})
        return fields


class OrderItemOut(BaseModel):
    id: int
    product_id: int | None = None
    product_name: str
    product_sku: str
    product_image: str | None = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    total: Decimal
    options: dict = {}


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    payment_status: OrderPaymentStatus
    payment_method: PaymentMethod
    subtotal: Decimal
    discount_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    currency: str
    coupon_code: str | None = None
    coupon_discount: Decimal
    shipping_method: str | None = None
    allowed_transitions: List[OrderStatus] = []
    items: List[OrderItemOut] = []
    cancellation_reason: str | None = None
    created_at: datetime


class StatusIn(BaseModel):
    """Zmiana statusu zamówienia (panel admina)."""

    status: OrderStatus
    reason: str | None = Field(None, max_length=500)
    tracking_number: str | None = Field(None, max_length=100)


class CancelIn(BaseModel):
    reason: str | None = Field(None, max_length=500)


class TimelineEntryOut(BaseModel):
    status: str
    label: str
    date: datetime | None = None
    completed: bool


class TrackOut(BaseModel):
    order_number: str
    status: OrderStatus
    payment_status: OrderPaymentStatus
    tracking_number: str | None = None
    timeline: List[TimelineEntryOut]


class PaymentInitOut(BaseModel):
    payment_id: int
    reference: str
    authorization_url: str | None = None
    access_code: str | None = None


class PaymentOut(BaseModel):
    id: int
    reference: str
    order_id: int
    amount: Decimal
    currency: str
    status: PaymentStatus
    channel: str | None = None
    gateway_response: str | None = None
    refunded_amount: Decimal
    paid_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class RefundIn(BaseModel):
    """Brak kwoty = zwrot całej pozostałej kwoty."""

    amount: Decimal | None = Field(None, gt=0)
    reason: str | None = Field(None, max_length=500)


class RefundOut(BaseModel):
    id: int
    reference: str
    payment_id: int
    amount: Decimal
    currency: str
    status: RefundStatus
    reason: str | None = None
    gateway_reference: str | None = None

    model_config = ConfigDict(from_attributes=True)
