# app/repos/product_repo.py
from sqlalchemy import update, case, or_
from sqlalchemy.orm import Session

from app.data.models.product import ProductModel


class ProductRepo:
    """
    Odczyt katalogu + ksiega stanu magazynowego.
    Zmiana stanu zawsze jednym warunkowym UPDATE (nigdy read-then-write),
    commit robi serwis ktory otworzyl transakcje.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def decrement_stock(self, product_id: int, quantity: int) -> bool:
        # UPDATE products SET stock = stock - qty WHERE id = :id AND stock >= :qty
        # (warunek pomijany gdy produkt nie liczy stanu albo dopuszcza backorder)
        stmt = (
            update(ProductModel)
            .where(
                ProductModel.id == product_id,
                ProductModel.is_active.is_(True),
                or_(
                    ProductModel.track_quantity.is_(False),
                    ProductModel.allow_backorders.is_(True),
                    ProductModel.stock_quantity >= quantity,
                ),
            )
            .values(
                stock_quantity=case(
                    (ProductModel.track_quantity.is_(True), ProductModel.stock_quantity - quantity),
                    else_=ProductModel.stock_quantity,
                ),
                sales_count=ProductModel.sales_count + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def restore_stock(self, product_id: int, quantity: int) -> bool:
        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(
                stock_quantity=case(
                    (ProductModel.track_quantity.is_(True), ProductModel.stock_quantity + quantity),
                    else_=ProductModel.stock_quantity,
                ),
                sales_count=case(
                    (ProductModel.sales_count >= quantity, ProductModel.sales_count - quantity),
                    else_=0,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1
