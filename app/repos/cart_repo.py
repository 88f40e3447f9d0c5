# app/repos/cart_repo.py
from sqlalchemy import update, select
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.owner import Owner, UserOwner, SessionOwner


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, cart_id: int) -> CartModel | None:
        return self.db.get(CartModel, cart_id)

    def get_cart_by_owner(self, owner: Owner) -> CartModel | None:
        if isinstance(owner, UserOwner):
            stmt = select(CartModel).where(CartModel.user_id == owner.id)
        else:
            stmt = select(CartModel).where(CartModel.session_id == owner.id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_cart(self, owner: Owner) -> CartModel:
        cart = CartModel(
            user_id=owner.id if isinstance(owner, UserOwner) else None,
            session_id=owner.id if isinstance(owner, SessionOwner) else None,
            version=1,
        )
        self.db.add(cart)
        self.db.commit()
        self.db.refresh(cart)
        return cart

    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        stmt = select(CartItemModel).where(CartItemModel.cart_id == cart_id).order_by(CartItemModel.id)
        return list(self.db.execute(stmt).scalars().all())

    def get_cart_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        item = self.db.get(CartItemModel, item_id)
        if item is None or item.cart_id != cart_id:
            return None
        return item

    def find_line(self, cart_id: int, product_id: int, options: dict) -> CartItemModel | None:
        # ta sama linia = ten sam produkt i te same opcje
        stmt = select(CartItemModel).where(
            CartItemModel.cart_id == cart_id,
            CartItemModel.product_id == product_id,
        )
        for item in self.db.execute(stmt).scalars():
            if (item.options or {}) == (options or {}):
                return item
        return None

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def delete_cart_items(self, cart_id: int) -> None:
        for item in self.get_cart_items(cart_id):
            self.db.delete(item)
        self.db.flush()

    def delete_cart(self, cart: CartModel) -> None:
        self.db.delete(cart)

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # Optimistic locking: UPDATE carts SET ... , version = old + 1 WHERE id = :id AND version = :old
        stmt = (
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(version=old_version + 1, **new_data)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
