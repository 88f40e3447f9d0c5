# app/data/seed.py
from decimal import Decimal
from datetime import timedelta

from app.data.database import Base, SessionLocal, engine
from app.data.models import CouponModel, ProductModel
from app.domain.statuses import CouponType
from app.utils.money import utcnow
from app.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTS = [
    {"name": "Ankara Print Shirt", "sku": "NS-SHIRT-001", "price": Decimal("1000.00"), "stock_quantity": 50},
    {"name": "Leather Sandals", "sku": "NS-SAND-002", "price": Decimal("5000.00"), "stock_quantity": 20},
    {"name": "Beaded Necklace", "sku": "NS-NECK-003", "price": Decimal("2500.00"), "stock_quantity": 1},
    {
        "name": "Custom Tailored Agbada",
        "sku": "NS-AGB-004",
        "price": Decimal("45000.00"),
        "stock_quantity": 0,
        "allow_backorders": True,
    },
]


def _coupons():
    now = utcnow()
    return [
        {"code": "SAVE10", "description": "10% off", "type": CouponType.PERCENTAGE, "value": Decimal("10")},
        {
            "code": "WELCOME500",
            "description": "NGN 500 off your first order",
            "type": CouponType.FIXED,
            "value": Decimal("500"),
            "minimum_order_amount": Decimal("3000"),
        },
        {
            "code": "FLASH20",
            "description": "20% off, max NGN 2000, first 100 orders",
            "type": CouponType.PERCENTAGE,
            "value": Decimal("20"),
            "maximum_discount_amount": Decimal("2000"),
            "usage_limit": 100,
            "expires_at": now + timedelta(days=7),
        },
    ]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            logger.info("Database already seeded")
            return
        for data in PRODUCTS:
            db.add(ProductModel(**data))
        for data in _coupons():
            db.add(CouponModel(**data))
        db.commit()
        logger.info(f"Seeded {len(PRODUCTS)} products and coupons")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
