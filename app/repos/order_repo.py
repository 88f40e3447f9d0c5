# app/repos/order_repo.py
from sqlalchemy import select, update, exists
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id)

    def get_order_items(self, order_id: int) -> list[OrderItemModel]:
        stmt = select(OrderItemModel).where(OrderItemModel.order_id == order_id).order_by(OrderItemModel.id)
        return list(self.db.execute(stmt).scalars().all())

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.execute(
            select(exists().where(OrderModel.order_number == order_number))
        ).scalar()

    def list_orders(self, user_id: int, status=None, payment_status=None, limit: int = 20, offset: int = 0):
        stmt = select(OrderModel).where(OrderModel.user_id == user_id)
        if status is not None:
            stmt = stmt.where(OrderModel.status == status)
        if payment_status is not None:
            stmt = stmt.where(OrderModel.payment_status == payment_status)
        stmt = stmt.order_by(OrderModel.created_at.desc(), OrderModel.id.desc()).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def update_where_status(self, order_id: int, allowed_statuses, values: dict) -> int:
        # warunkowe przejscie stanu: UPDATE ... WHERE id = :id AND status IN (...)
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status.in_(list(allowed_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def get_status(self, order_id: int):
        return self.db.execute(select(OrderModel.status).where(OrderModel.id == order_id)).scalar()

    def update_where_payment_status(self, order_id: int, allowed_statuses, values: dict,
                                    excluded_statuses=()) -> int:
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.payment_status.in_(list(allowed_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if excluded_statuses:
            stmt = stmt.where(OrderModel.status.not_in(list(excluded_statuses)))
        return self.db.execute(stmt).rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
