from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime
from datetime import datetime, timezone

from app.data.database import Base


class ProductModel(Base):
    """
    Produkt z katalogu (katalog jest zewnetrzny).
    Silnik zamowien czyta cene i flagi, a sam zarzadza kolumnami stanu magazynu.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(64), nullable=False, unique=True)
    image = Column(String(500), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)

    is_active = Column(Boolean, nullable=False, default=True)
    track_quantity = Column(Boolean, nullable=False, default=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    allow_backorders = Column(Boolean, nullable=False, default=False)
    sales_count = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def in_stock(self) -> bool:
        if not self.track_quantity:
            return True
        return self.stock_quantity > 0 or self.allow_backorders

    def can_supply(self, quantity: int) -> bool:
        if not self.track_quantity or self.allow_backorders:
            return True
        return self.stock_quantity >= quantity
