#app/data/models/cart.py
from sqlalchemy import Column, Integer, String, DateTime, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from app.data.database import Base


class CartModel(Base):
    __tablename__ = "carts"
    __table_args__ = (
        # dokladnie jeden wlasciciel: user albo sesja goscia
        CheckConstraint(
            "(user_id IS NULL) <> (session_id IS NULL)",
            name="ck_cart_single_owner",
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=True, unique=True, index=True)
    session_id = Column(String(128), nullable=True, unique=True, index=True)

    coupon_code = Column(String(64), nullable=True)
    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "CartItemModel",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItemModel.id",
    )
