from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any
from uuid import uuid4
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.data.models.cart import CartModel
from app.data.models.cart_item import CartItemModel
from app.domain.errors import (
    CartConflict,
    CouponInvalid,
    NotFound,
    OutOfStock,
    ProductUnavailable,
    ValidationError,
)
from app.domain.owner import Owner, UserOwner, SessionOwner
from app.repos.cart_repo import CartRepo
from app.repos.product_repo import ProductRepo
from app.services.coupon_service import CouponEngine
from app.services.lock_service import LockService
from app.utils.money import to_money, utcnow, ZERO
from app.utils.settings import TAX_RATE, CART_MERGE_LOCK_TTL_SECONDS
from app.utils.logging import get_logger

logger = get_logger(__name__)

_KEEP = object()


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    coupon_code: str | None

    def as_values(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "coupon_code": self.coupon_code,
        }


EMPTY_TOTALS = CartTotals(ZERO, ZERO, ZERO, ZERO, None)


class CartService:
    """
    commands (add, update, remove, clear, coupon, merge) modyfikuja stan i zawsze przeliczaja sumy,
    query (get) tylko odczyt.
    Kazda komenda podbija wersje koszyka warunkowym UPDATE (optimistic locking).
    """

    def __init__(
        self,
        db: Session,
        coupon_engine: CouponEngine | None = None,
        lock_service: LockService | None = None,
        tax_rate: Decimal = TAX_RATE,
    ):
        self.db = db
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.coupons = coupon_engine or CouponEngine(db)
        self.lock_service = lock_service or LockService()
        self.tax_rate = Decimal(str(tax_rate))

    #query - odczyt
    def get_or_create(self, owner: Owner) -> CartModel:
        cart = self.repo.get_cart_by_owner(owner)
        if cart:
            return cart

        try:
            created = self.repo.create_cart(owner)
        except IntegrityError:
            # rownolegle zadanie utworzylo koszyk pierwsze
            self.repo.rollback()
            logger.info(f"Koszyk dla {owner} utworzony rownolegle, odczyt istniejacego")
            return self.repo.get_cart_by_owner(owner)

        logger.info(f"Utworzono nowy koszyk {created.id} dla {owner}")
        return created

    def get_cart(self, owner: Owner) -> Dict[str, Any]:
        return self.serialize(self.get_or_create(owner))

    def serialize(self, cart: CartModel) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id)
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "session_id": cart.session_id,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "product_name": i.product.name if i.product else None,
                    "quantity": i.quantity,
                    "price": to_money(i.price),
                    "subtotal": to_money(i.subtotal),
                    "options": i.options or {},
                }
                for i in items
            ],
            "items_count": sum(i.quantity for i in items),
            "coupon_code": cart.coupon_code,
            "subtotal": to_money(cart.subtotal),
            "discount_amount": to_money(cart.discount_amount),
            "tax_amount": to_money(cart.tax_amount),
            "total": to_money(cart.total),
        }

    def calculate_totals(self, cart: CartModel, items=None, coupon_code=_KEEP) -> CartTotals:
        """
        subtotal = suma linii, rabat z kuponu (niewazny kupon jest po cichu usuwany),
        podatek od (subtotal - rabat), total = subtotal - rabat + podatek.
        """
        if items is None:
            items = self.repo.get_cart_items(cart.id)
        if coupon_code is _KEEP:
            coupon_code = cart.coupon_code

        subtotal = to_money(sum((to_money(i.subtotal) for i in items), ZERO))

        discount = ZERO
        if coupon_code:
            coupon = self.coupons.find(coupon_code)
            check = self.coupons.validate(coupon, subtotal, cart.user_id) if coupon else None
            if check is not None and check.valid:
                discount = self.coupons.calculate_discount(coupon, subtotal)
            else:
                logger.info(f"Kupon {coupon_code} nie jest juz wazny, usuwam z koszyka {cart.id}")
                coupon_code = None

        tax = to_money((subtotal - discount) * self.tax_rate)
        total = subtotal - discount + tax

        return CartTotals(subtotal, discount, tax, total, coupon_code)

    #commands
    def recalculate(self, owner: Owner) -> Dict[str, Any]:
        cart = self.get_or_create(owner)
        self._save(cart)
        return self.serialize(cart)

    def add_item(
        self,
        owner: Owner,
        product_id: int,
        quantity: int = 1,
        options: dict | None = None,
    ) -> Dict[str, Any]:

        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        options = options or {}
        cart = self.get_or_create(owner)

        product = self.products.get_product(product_id)
        if not product:
            raise NotFound(f"Product {product_id} not found")

        if not product.is_active:
            raise ProductUnavailable(product.id, product.name)

        if not product.in_stock:
            raise OutOfStock(product.id, product.name, available=0)

        existing_item = self.repo.find_line(cart.id, product_id, options)
        new_quantity = quantity + (existing_item.quantity if existing_item else 0)

        if not product.can_supply(new_quantity):
            raise OutOfStock(product.id, product.name, available=product.stock_quantity)

        try:
            if existing_item:
                logger.info(
                    f"Produkt {product_id} juz jest w koszyku {cart.id}, zwiekszam ilosc "
                    f"z {existing_item.quantity} do {new_quantity}"
                )
                existing_item.quantity = new_quantity
                existing_item.subtotal = to_money(existing_item.price * new_quantity)
            else:
                logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
                price = to_money(product.price)
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        quantity=quantity,
                        price=price,
                        subtotal=to_money(price * quantity),
                        options=options,
                    )
                )

            self._save(cart)

        except Exception as e:
            logger.error(f"Blad podczas dodawania produktu {product_id}: {e}")
            self.repo.rollback()
            raise

        return self.serialize(cart)

    def update_quantity(self, owner: Owner, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")

        cart = self.get_or_create(owner)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise NotFound("Cart item not found.")

        if quantity > 0 and item.product and not item.product.is_active:
            raise ProductUnavailable(item.product_id, item.product.name)
        if quantity > 0 and item.product and not item.product.can_supply(quantity):
            raise OutOfStock(item.product_id, item.product.name, available=item.product.stock_quantity)

        try:
            if quantity == 0:
                logger.info(f"Ilosc 0, usuwam linie {item_id} z koszyka {cart.id}")
                self.repo.delete_cart_item(item)
            else:
                item.quantity = quantity
                item.subtotal = to_money(item.price * quantity)

            self._save(cart)
        except Exception:
            self.repo.rollback()
            raise

        return self.serialize(cart)

    def remove_item(self, owner: Owner, item_id: int) -> Dict[str, Any]:
        cart = self.get_or_create(owner)
        item = self.repo.get_cart_item(cart.id, item_id)
        if not item:
            raise NotFound("Cart item not found.")

        logger.info(f"Usuwanie linii {item_id} z koszyka {cart.id}")
        try:
            self.repo.delete_cart_item(item)
            self._save(cart)
        except Exception:
            self.repo.rollback()
            raise

        return self.serialize(cart)

    def clear(self, owner: Owner) -> Dict[str, Any]:
        cart = self.get_or_create(owner)
        try:
            self.repo.delete_cart_items(cart.id)
            self._save(cart, totals=EMPTY_TOTALS)
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Koszyk {cart.id} wyczyszczony")
        return self.serialize(cart)

    def apply_coupon(self, owner: Owner, code: str) -> Dict[str, Any]:
        cart = self.get_or_create(owner)
        items = self.repo.get_cart_items(cart.id)
        if not items:
            raise ValidationError("Your cart is empty.")

        coupon = self.coupons.find(code)
        if not coupon:
            raise CouponInvalid("Invalid coupon code.")

        subtotal = sum((to_money(i.subtotal) for i in items), ZERO)
        user_id = owner.id if isinstance(owner, UserOwner) else None
        check = self.coupons.validate(coupon, subtotal, user_id)
        if not check.valid:
            raise CouponInvalid(check.reason)

        self._save(cart, items=items, coupon_code=coupon.code)
        logger.info(f"Kupon {coupon.code} zastosowany w koszyku {cart.id}")
        return self.serialize(cart)

    def remove_coupon(self, owner: Owner) -> Dict[str, Any]:
        cart = self.get_or_create(owner)
        self._save(cart, coupon_code=None)
        return self.serialize(cart)

    def merge_guest_into_user(self, session_id: str, user_id: int) -> Dict[str, Any]:
        """
        Przenosi koszyk goscia do koszyka usera po zalogowaniu.
        Scalenie i usuniecie koszyka goscia to jeden commit, ponowienie po bledzie nie dubluje ilosci.
        """
        user_owner = UserOwner(user_id)
        guest = self.repo.get_cart_by_owner(SessionOwner(session_id))
        if guest is None:
            return self.get_cart(user_owner)

        lock_key = f"cart:merge:{session_id}"
        holder = uuid4().hex
        if not self.lock_service.acquire(lock_key, holder, ttl=CART_MERGE_LOCK_TTL_SECONDS):
            raise CartConflict("Cart merge already in progress")

        try:
            user_cart = self.get_or_create(user_owner)
            guest_items = self.repo.get_cart_items(guest.id)

            try:
                for guest_item in guest_items:
                    existing = self.repo.find_line(user_cart.id, guest_item.product_id, guest_item.options or {})
                    if existing:
                        existing.quantity += guest_item.quantity
                        existing.subtotal = to_money(existing.price * existing.quantity)
                    else:
                        self.repo.add_cart_item(
                            CartItemModel(
                                cart_id=user_cart.id,
                                product_id=guest_item.product_id,
                                quantity=guest_item.quantity,
                                price=guest_item.price,
                                subtotal=to_money(guest_item.subtotal),
                                options=guest_item.options or {},
                            )
                        )

                coupon_code = user_cart.coupon_code or guest.coupon_code
                self._save(user_cart, coupon_code=coupon_code, commit=False)
                self.repo.delete_cart(guest)
                self.repo.commit()
            except Exception:
                self.repo.rollback()
                raise

            logger.info(f"Koszyk goscia {session_id} scalony z koszykiem usera {user_id}")

        finally:
            self.lock_service.release(lock_key, holder)

        return self.serialize(user_cart)

    def _save(self, cart: CartModel, items=None, coupon_code=_KEEP, totals: CartTotals | None = None,
              commit: bool = True):
        if totals is None:
            totals = self.calculate_totals(cart, items=items, coupon_code=coupon_code)

        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={**totals.as_values(), "updated_at": utcnow()},
        )

        # np w bazie update set version 2 where id 1 and version 1
        if rowcount == 0:
            self.repo.rollback()
            raise CartConflict()

        if commit:
            self.repo.commit()
        return totals
