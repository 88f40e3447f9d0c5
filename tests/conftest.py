import hashlib
import hmac
import json
import os
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.data.database import Base, make_engine
from app.data.models import CouponModel, ProductModel
from app.domain.errors import PaymentGatewayError
from app.domain.owner import UserOwner
from app.domain.schemas import CheckoutIn
from app.domain.statuses import CouponType
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.coupon_service import CouponEngine
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService

WEBHOOK_SECRET = "sk_test_webhook_secret"


class FakeLock:
    """Lock w pamieci zamiast redisa."""

    def __init__(self):
        self.held = {}
        self.acquired = []

    def acquire(self, key, holder, ttl):
        if key in self.held:
            return False
        self.held[key] = holder
        self.acquired.append(key)
        return True

    def release(self, key, holder):
        if self.held.get(key) == holder:
            del self.held[key]
            return True
        return False


class FakeNotifier:
    def __init__(self):
        self.confirmations = []
        self.status_changes = []

    def notify(self, order, user_id):
        self.confirmations.append((order.id, user_id))

    def notify_status_change(self, order):
        self.status_changes.append((order.id, order.status))


class FakeGateway:
    def __init__(self):
        self.initialized = []
        self.refunds = []
        self.verify_data = {}
        self.fail_initialize = False
        self.fail_refund = False

    def initialize_transaction(self, email, amount, reference, callback_url, currency, metadata=None):
        if self.fail_initialize:
            raise PaymentGatewayError("Gateway unavailable")
        self.initialized.append(
            {"email": email, "amount": amount, "reference": reference, "currency": currency, "metadata": metadata}
        )
        return {
            "authorization_url": f"https://checkout.paystack.com/{reference}",
            "access_code": f"AC_{reference}",
            "reference": reference,
        }

    def verify_transaction(self, reference):
        return self.verify_data.get(reference, {"reference": reference, "status": "ongoing"})

    def create_refund(self, transaction, amount):
        if self.fail_refund:
            raise PaymentGatewayError("Refund rejected")
        self.refunds.append({"transaction": transaction, "amount": amount})
        return {"id": 5000 + len(self.refunds), "status": "pending"}


@pytest.fixture()
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autoflush=True, expire_on_commit=True)()
    yield session
    session.close()


@pytest.fixture()
def lock():
    return FakeLock()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def carts(db, lock):
    return CartService(db, coupon_engine=CouponEngine(db), lock_service=lock, tax_rate=Decimal("0"))


@pytest.fixture()
def checkout(db, carts):
    return CheckoutService(db, cart_service=carts, coupon_engine=carts.coupons, coupon_policy="drop")


@pytest.fixture()
def orders(db, notifier):
    return OrderService(db, notifier=notifier)


@pytest.fixture()
def payments(db, gateway, notifier, lock, orders):
    return PaymentService(
        db,
        gateway=gateway,
        notifier=notifier,
        lock_service=lock,
        order_service=orders,
        secret_key=WEBHOOK_SECRET,
        callback_url="http://testserver/payments/callback",
    )


@pytest.fixture()
def make_product(db):
    counter = {"n": 0}

    def _make(price="1000.00", stock=10, **kwargs):
        counter["n"] += 1
        product = ProductModel(
            name=kwargs.pop("name", f"Product {counter['n']}"),
            sku=kwargs.pop("sku", f"SKU-{counter['n']:04d}"),
            price=Decimal(price),
            stock_quantity=stock,
            **kwargs,
        )
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture()
def make_coupon(db):
    def _make(code="SAVE10", type=CouponType.PERCENTAGE, value="10", **kwargs):
        coupon = CouponModel(code=code, type=type, value=Decimal(value), **kwargs)
        db.add(coupon)
        db.commit()
        return coupon

    return _make


def checkout_payload(**overrides) -> dict:
    data = {
        "billing_first_name": "Ada",
        "billing_last_name": "Obi",
        "billing_email": "ada@example.com",
        "billing_phone": "+2348012345678",
        "billing_address": "12 Marina Road",
        "billing_city": "Lagos",
        "billing_state": "Lagos",
        "billing_postal_code": "100001",
        "same_as_billing": True,
        "payment_method": "paystack",
    }
    data.update(overrides)
    return data


def checkout_input(**overrides) -> CheckoutIn:
    return CheckoutIn(**checkout_payload(**overrides))


@pytest.fixture()
def place_order(carts, checkout, make_product):
    """Koszyk usera z jedna linia -> zamowienie."""

    def _place(user_id=1, price="6300.00", quantity=1, stock=10, **overrides):
        product = make_product(price=price, stock=stock)
        owner = UserOwner(user_id)
        carts.add_item(owner, product.id, quantity)
        order = checkout.checkout(owner, checkout_input(**overrides))
        return order, product

    return _place


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


def webhook_body(event: str, reference: str, status: str = "success", **data) -> bytes:
    payload = {
        "event": event,
        "data": {
            "reference": reference,
            "status": status,
            "channel": "card",
            "gateway_response": "Approved" if status == "success" else "Declined",
            "authorization": {
                "authorization_code": "AUTH_abc123",
                "card_type": "visa",
                "last4": "4081",
                "bank": "Test Bank",
            },
            **data,
        },
    }
    return json.dumps(payload).encode()
