from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, JSON
from sqlalchemy.orm import relationship

from app.data.database import Base


class OrderItemModel(Base):
    """
    Zamrozona kopia produktu z chwili zakupu.
    product_id to tylko wskazowka (SET NULL przy usunieciu produktu), nazwa/sku/cena nie zaleza od katalogu.
    """

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(64), nullable=False)
    product_image = Column(String(500), nullable=True)

    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    total = Column(Numeric(12, 2), nullable=False)
    options = Column(JSON, nullable=False, default=dict)

    order = relationship("OrderModel", back_populates="items")
