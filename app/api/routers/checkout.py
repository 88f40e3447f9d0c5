# app/api/routers/checkout.py
from fastapi import APIRouter, Depends

from app.api.deps import SERVICE_ERRORS, get_checkout_service, get_order_service, get_owner, to_http
from app.domain.owner import Owner
from app.domain.schemas import CheckoutIn, CheckoutSummaryOut, OrderOut
from app.services.checkout_service import CheckoutService
from app.services.order_service import OrderService

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.get("/", response_model=CheckoutSummaryOut)
def checkout_summary(
    owner: Owner = Depends(get_owner),
    svc: CheckoutService = Depends(get_checkout_service),
):
    """
    Podsumowanie przed złożeniem zamówienia: sumy, niedostępne pozycje, metody dostawy.
    """
    try:
        return svc.summary(owner)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.post("/", response_model=OrderOut, status_code=201)
def place_order(
    payload: CheckoutIn,
    owner: Owner = Depends(get_owner),
    svc: CheckoutService = Depends(get_checkout_service),
    orders: OrderService = Depends(get_order_service),
):
    """
    Zamienia koszyk w zamówienie (pending/pending).
    Płatność startuje osobno przez /payments/initialize.
    """
    try:
        order = svc.checkout(owner, payload)
    except SERVICE_ERRORS as e:
        raise to_http(e)
    return orders.serialize(order)
