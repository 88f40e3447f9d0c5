# app/api/deps.py
from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.errors import CartNotCheckoutable, CheckoutFailed, DomainError, NotFound, ValidationError
from app.domain.owner import Owner, owner_from_ids
from app.services.cart_service import CartService
from app.services.checkout_service import CheckoutService
from app.services.coupon_service import CouponEngine
from app.services.lock_service import LockService
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.payment_service import PaymentService
from app.services.paystack_client import PaystackClient

# bledy ktore routery tlumacza na HTTP, reszta leci jako 500
SERVICE_ERRORS = (DomainError, ValidationError, NotFound, PermissionError)


def to_http(e: Exception) -> HTTPException:
    if isinstance(e, PermissionError):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, CartNotCheckoutable):
        return HTTPException(
            status_code=e.status_code,
            detail={"message": e.message, "errors": [err.message for err in e.errors]},
        )
    if isinstance(e, CheckoutFailed) and e.detail:
        return HTTPException(status_code=e.status_code, detail={"message": e.message, "error": e.detail})
    if isinstance(e, DomainError):
        return HTTPException(status_code=e.status_code, detail=e.message)
    return HTTPException(status_code=400, detail=str(e))


def get_owner(
    user_id: int | None = Query(None, gt=0),
    session_id: str | None = Query(None, min_length=1, max_length=128),
) -> Owner:
    try:
        return owner_from_ids(user_id, session_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


def get_lock_service() -> LockService:
    return LockService()


def get_notifier() -> NotificationService:
    return NotificationService()


def get_gateway() -> PaystackClient:
    return PaystackClient()


def get_cart_service(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
) -> CartService:
    return CartService(db=db, coupon_engine=CouponEngine(db), lock_service=lock_service)


def get_checkout_service(
    db: Session = Depends(get_db),
    carts: CartService = Depends(get_cart_service),
) -> CheckoutService:
    return CheckoutService(db=db, cart_service=carts, coupon_engine=carts.coupons)


def get_order_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderService:
    return OrderService(db=db, notifier=notifier)


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: PaystackClient = Depends(get_gateway),
    notifier: NotificationService = Depends(get_notifier),
    lock_service: LockService = Depends(get_lock_service),
    orders: OrderService = Depends(get_order_service),
) -> PaymentService:
    return PaymentService(
        db=db,
        gateway=gateway,
        notifier=notifier,
        lock_service=lock_service,
        order_service=orders,
    )
