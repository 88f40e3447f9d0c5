# app/services/checkout_service.py
import secrets
import string
from decimal import Decimal
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.data.models.order_item import OrderItemModel
from app.domain.errors import (
    CartConflict,
    CartNotCheckoutable,
    CheckoutFailed,
    CouponInvalid,
    DomainError,
    OutOfStock,
    ProductUnavailable,
    ValidationError,
)
from app.domain.owner import Owner, UserOwner
from app.domain.schemas import CheckoutIn
from app.domain.statuses import OrderStatus, OrderPaymentStatus
from app.repos.order_repo import OrderRepo
from app.repos.product_repo import ProductRepo
from app.services.cart_service import CartService
from app.services.coupon_service import CouponEngine
from app.utils.money import to_money, utcnow, ZERO
from app.utils.settings import (
    COUPON_CHECKOUT_POLICY,
    CURRENCY,
    DEBUG,
    EXPRESS_SHIPPING_FEE,
    ORDER_NUMBER_PREFIX,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits
_MAX_ORDER_NUMBER_ATTEMPTS = 10


def shipping_methods(express_fee: Decimal = EXPRESS_SHIPPING_FEE) -> list[dict]:
    return [
        {
            "id": "standard",
            "name": "Standard Delivery",
            "description": "Delivery within 3-5 business days",
            "price": ZERO,
        },
        {
            "id": "express",
            "name": "Express Delivery",
            "description": "Delivery within 1-2 business days",
            "price": to_money(express_fee),
        },
    ]


class CheckoutService:
    """
    Zamiana koszyka w zamowienie.

    1. Walidacja dostepnosci wszystkich linii (zbiera wszystkie bledy, nie tylko pierwszy)
    2. Ponowna walidacja kuponu (polityka drop/reject)
    3. Jedna transakcja: Order + OrderItems, warunkowe zdjecie stanu, uzycie kuponu, czyszczenie koszyka
    4. Dowolny blad w 3 = pelny rollback, koszyk bez zmian
    """

    def __init__(
        self,
        db: Session,
        cart_service: CartService | None = None,
        coupon_engine: CouponEngine | None = None,
        currency: str = CURRENCY,
        coupon_policy: str = COUPON_CHECKOUT_POLICY,
        debug: bool = DEBUG,
        order_prefix: str = ORDER_NUMBER_PREFIX,
        express_fee: Decimal = EXPRESS_SHIPPING_FEE,
    ):
        if coupon_policy not in ("drop", "reject"):
            raise ValueError(f"Unknown coupon checkout policy: {coupon_policy}")

        self.db = db
        self.coupons = coupon_engine or CouponEngine(db)
        self.carts = cart_service or CartService(db, coupon_engine=self.coupons)
        self.orders = OrderRepo(db)
        self.products = ProductRepo(db)
        self.currency = currency
        self.coupon_policy = coupon_policy
        self.debug = debug
        self.order_prefix = order_prefix
        self.express_fee = to_money(express_fee)

    #query
    def find_problems(self, items) -> list[DomainError]:
        problems: list[DomainError] = []
        for item in items:
            product = item.product
            if product is None or not product.is_active:
                problems.append(ProductUnavailable(item.product_id, product.name if product else None))
            elif not product.can_supply(item.quantity):
                problems.append(OutOfStock(product.id, product.name, available=max(product.stock_quantity, 0)))
        return problems

    def summary(self, owner: Owner) -> dict:
        cart_view = self.carts.recalculate(owner)
        cart = self.carts.get_or_create(owner)
        problems = self.find_problems(self.carts.repo.get_cart_items(cart.id))
        return {
            "cart": cart_view,
            "unavailable_items": [p.message for p in problems],
            "shipping_methods": shipping_methods(self.express_fee),
        }

    #command
    def checkout(self, owner: Owner, payload: CheckoutIn) -> OrderModel:
        if not isinstance(owner, UserOwner):
            raise ValidationError("Sign in to complete checkout.")

        cart = self.carts.get_or_create(owner)
        items = self.carts.repo.get_cart_items(cart.id)

        if not items:
            raise ValidationError("Your cart is empty.")

        problems = self.find_problems(items)
        if problems:
            logger.info(f"Checkout koszyka {cart.id} zablokowany: {len(problems)} niedostepnych pozycji")
            raise CartNotCheckoutable(problems)

        self._revalidate_coupon(cart, items, owner.id)

        # swieze sumy (kupon mogl wygasnac od czasu dodania)
        self.carts.recalculate(owner)
        items = self.carts.repo.get_cart_items(cart.id)
        coupon_code = cart.coupon_code
        cart_version = cart.version

        shipping_amount = self.express_fee if payload.shipping_method == "express" else ZERO
        total = to_money(cart.total) + shipping_amount

        try:
            order = self.orders.add_order(
                OrderModel(
                    order_number=self.generate_order_number(),
                    user_id=owner.id,
                    status=OrderStatus.PENDING,
                    payment_status=OrderPaymentStatus.PENDING,
                    payment_method=payload.payment_method,
                    subtotal=to_money(cart.subtotal),
                    discount_amount=to_money(cart.discount_amount),
                    shipping_amount=shipping_amount,
                    tax_amount=to_money(cart.tax_amount),
                    total=total,
                    currency=self.currency,
                    coupon_code=coupon_code,
                    coupon_discount=to_money(cart.discount_amount) if coupon_code else ZERO,
                    shipping_method=payload.shipping_method,
                    notes=payload.notes,
                    **payload.address_fields(),
                )
            )

            for item in items:
                product = item.product
                self.orders.add_order_item(
                    OrderItemModel(
                        order_id=order.id,
                        product_id=product.id,
                        product_name=product.name,
                        product_sku=product.sku,
                        product_image=product.image,
                        quantity=item.quantity,
                        unit_price=to_money(item.price),
                        subtotal=to_money(item.subtotal),
                        total=to_money(item.subtotal),
                        options=item.options or {},
                    )
                )

                # UPDATE ... WHERE stock_quantity >= qty, przegrany wyscig = 0 wierszy
                if not self.products.decrement_stock(product.id, item.quantity):
                    raise OutOfStock(product.id, product.name)

            if coupon_code:
                coupon = self.coupons.find(coupon_code)
                if coupon is None:
                    raise CouponInvalid("Invalid coupon code.")
                self.coupons.redeem(coupon, owner.id, order.id, cart.discount_amount)

            self.carts.repo.delete_cart_items(cart.id)
            rowcount = self.carts.repo.update_cart_version(
                cart_id=cart.id,
                old_version=cart_version,
                new_data={
                    "subtotal": ZERO,
                    "discount_amount": ZERO,
                    "tax_amount": ZERO,
                    "total": ZERO,
                    "coupon_code": None,
                    "updated_at": utcnow(),
                },
            )
            if rowcount == 0:
                raise CartConflict()

            self.db.commit()

        except DomainError as e:
            self.db.rollback()
            logger.warning(f"Checkout koszyka {cart.id} wycofany: {e}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Checkout koszyka {cart.id} nieudany")
            raise CheckoutFailed(str(e) if self.debug else None) from e

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} created from cart {cart.id}, total {order.total}")
        return order

    def generate_order_number(self) -> str:
        # <prefix><YYYYMMDD><6 losowych znakow>, powtarzamy przy kolizji
        date_part = utcnow().strftime("%Y%m%d")
        for _ in range(_MAX_ORDER_NUMBER_ATTEMPTS):
            random_part = "".join(secrets.choice(_ALPHABET) for _ in range(6))
            number = f"{self.order_prefix}{date_part}{random_part}"
            if not self.orders.order_number_exists(number):
                return number
        raise RuntimeError("Could not generate a unique order number")

    def _revalidate_coupon(self, cart, items, user_id: int):
        if not cart.coupon_code:
            return

        coupon = self.coupons.find(cart.coupon_code)
        subtotal = sum((to_money(i.subtotal) for i in items), ZERO)
        if coupon:
            check = self.coupons.validate(coupon, subtotal, user_id)
            reason = check.reason
            valid = check.valid
        else:
            reason = "Invalid coupon code."
            valid = False

        if valid:
            return

        if self.coupon_policy == "reject":
            raise CouponInvalid(reason)

        logger.warning(f"Kupon {cart.coupon_code} niewazny przy checkout ({reason}), usuwam z koszyka {cart.id}")
