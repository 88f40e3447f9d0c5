from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, Enum
from sqlalchemy.orm import relationship

from app.data.database import Base
from app.domain.statuses import CouponType


class CouponModel(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(255), nullable=True)
    type = Column(
        Enum(CouponType, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=CouponType.PERCENTAGE,
    )
    value = Column(Numeric(10, 2), nullable=False)
    minimum_order_amount = Column(Numeric(12, 2), nullable=False, default=0)
    maximum_discount_amount = Column(Numeric(12, 2), nullable=True)

    usage_limit = Column(Integer, nullable=True)  # None = bez limitu
    usage_limit_per_user = Column(Integer, nullable=True, default=1)
    times_used = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, nullable=False, default=True)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    usages = relationship("CouponUsageModel", back_populates="coupon")
