from sqlalchemy import Column, Integer, ForeignKey, Numeric, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from app.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"
    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_cart_item_quantity"),)

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)  # cena z chwili dodania
    subtotal = Column(Numeric(12, 2), nullable=False)
    options = Column(JSON, nullable=False, default=dict)

    cart = relationship("CartModel", back_populates="items")
    product = relationship("ProductModel", lazy="joined")
