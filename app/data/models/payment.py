from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, JSON, DateTime, Enum
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.data.database import Base
from app.domain.statuses import PaymentStatus
from app.utils.money import to_money


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    reference = Column(String(64), nullable=False, unique=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False)

    gateway = Column(String(32), nullable=False, default="paystack")
    gateway_reference = Column(String(128), nullable=True)
    authorization_code = Column(String(128), nullable=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(
        Enum(PaymentStatus, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )

    channel = Column(String(32), nullable=True)
    card_type = Column(String(32), nullable=True)
    card_last_four = Column(String(4), nullable=True)
    bank_name = Column(String(100), nullable=True)
    gateway_response = Column(String(500), nullable=True)
    # "metadata" jest zarezerwowane przez declarative
    meta = Column("metadata", JSON, nullable=False, default=dict)

    refunded_amount = Column(Numeric(12, 2), nullable=False, default=0)
    refund_reason = Column(String(500), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    order = relationship("OrderModel", back_populates="payments")
    refunds = relationship("RefundModel", back_populates="payment", order_by="RefundModel.id")

    @property
    def refundable_amount(self):
        return max(to_money(self.amount) - to_money(self.refunded_amount), to_money(0))
