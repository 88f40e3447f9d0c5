# app/api/routers/orders.py
from typing import List
from fastapi import APIRouter, Depends, Query

from app.api.deps import SERVICE_ERRORS, get_order_service, to_http
from app.domain.schemas import CancelIn, OrderOut, StatusIn, TrackOut
from app.domain.statuses import OrderPaymentStatus, OrderStatus
from app.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/", response_model=List[OrderOut])
def list_orders(
    user_id: int = Query(..., gt=0),
    status: OrderStatus | None = Query(None),
    payment_status: OrderPaymentStatus | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    svc: OrderService = Depends(get_order_service),
):
    orders = svc.list_orders(user_id, status, payment_status, limit, offset)
    return [svc.serialize(o) for o in orders]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    """
    Pobiera szczegóły zamówienia.
    """
    try:
        return svc.serialize(svc.get_order(order_id, user_id))
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.get("/{order_id}/track", response_model=TrackOut)
def track_order(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    try:
        return svc.track(order_id, user_id)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: CancelIn,
    user_id: int = Query(..., gt=0),
    svc: OrderService = Depends(get_order_service),
):
    """
    Anulowanie przez klienta: przywraca stan magazynu.
    Zwrot pieniędzy to osobna akcja (/payments/{id}/refund).
    """
    try:
        order = svc.cancel(order_id, user_id=user_id, reason=payload.reason or "Cancelled by customer")
    except SERVICE_ERRORS as e:
        raise to_http(e)
    return svc.serialize(order)


@router.post("/{order_id}/status", response_model=OrderOut)
def change_status(
    order_id: int,
    payload: StatusIn,
    svc: OrderService = Depends(get_order_service),
):
    """
    Panel admina (autoryzacja po stronie gatewaya API).
    """
    try:
        order = svc.transition(order_id, payload.status, payload.reason, payload.tracking_number)
    except SERVICE_ERRORS as e:
        raise to_http(e)
    return svc.serialize(order)
