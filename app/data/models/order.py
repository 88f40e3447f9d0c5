from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, Enum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.data.database import Base
from app.domain.statuses import OrderStatus, OrderPaymentStatus, PaymentMethod


def _enum(cls):
    return Enum(cls, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e])


class OrderModel(Base):
    """
    Zamowienie po checkout jest snapshotem: zmieniaja sie tylko statusy i znaczniki czasu.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)

    status = Column(_enum(OrderStatus), nullable=False, default=OrderStatus.PENDING, index=True)
    payment_status = Column(_enum(OrderPaymentStatus), nullable=False, default=OrderPaymentStatus.PENDING)
    payment_method = Column(_enum(PaymentMethod), nullable=False, default=PaymentMethod.PAYSTACK)

    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)

    coupon_code = Column(String(64), nullable=True)
    coupon_discount = Column(Numeric(12, 2), nullable=False, default=0)

    billing_first_name = Column(String(255), nullable=False)
    billing_last_name = Column(String(255), nullable=False)
    billing_email = Column(String(255), nullable=False)
    billing_phone = Column(String(20), nullable=False)
    billing_address = Column(String(500), nullable=False)
    billing_city = Column(String(100), nullable=False)
    billing_state = Column(String(100), nullable=False)
    billing_country = Column(String(100), nullable=True)
    billing_postal_code = Column(String(20), nullable=True)

    shipping_first_name = Column(String(255), nullable=False)
    shipping_last_name = Column(String(255), nullable=False)
    shipping_phone = Column(String(20), nullable=False)
    shipping_address = Column(String(500), nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(100), nullable=False)
    shipping_country = Column(String(100), nullable=True)
    shipping_postal_code = Column(String(20), nullable=True)
    shipping_method = Column(String(100), nullable=True)

    notes = Column(Text, nullable=True)
    tracking_number = Column(String(100), nullable=True)

    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship("OrderItemModel", back_populates="order", order_by="OrderItemModel.id")
    payments = relationship("PaymentModel", back_populates="order", order_by="PaymentModel.id")

    @property
    def is_paid(self) -> bool:
        return self.payment_status == OrderPaymentStatus.PAID
