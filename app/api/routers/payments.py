# app/api/routers/payments.py
from fastapi import APIRouter, Depends, Header, Query, Request
from starlette.concurrency import run_in_threadpool

from app.api.deps import SERVICE_ERRORS, get_payment_service, to_http
from app.domain.errors import SignatureMismatch
from app.domain.schemas import PaymentInitOut, PaymentOut, RefundIn, RefundOut
from app.services.payment_service import PaymentService

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/initialize/{order_id}", response_model=PaymentInitOut)
def initialize_payment(
    order_id: int,
    user_id: int = Query(..., gt=0),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Tworzy Payment i transakcję w bramce, zwraca URL do przekierowania klienta.
    """
    try:
        return svc.initialize(order_id, user_id)
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.get("/verify/{reference}", response_model=PaymentOut)
def verify_payment(
    reference: str,
    svc: PaymentService = Depends(get_payment_service),
):
    try:
        return svc.verify(reference).payment
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.get("/callback", response_model=PaymentOut)
def payment_callback(
    reference: str = Query(..., min_length=1),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Powrót klienta z bramki, ta sama ścieżka co verify.
    """
    try:
        return svc.verify(reference).payment
    except SERVICE_ERRORS as e:
        raise to_http(e)


@router.post("/webhook")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: str | None = Header(None),
    svc: PaymentService = Depends(get_payment_service),
):
    """
    Webhook bramki. Podpis liczony z surowego body, poza złym podpisem zawsze 200.
    """
    raw_body = await request.body()
    try:
        return await run_in_threadpool(svc.handle_webhook, raw_body, x_paystack_signature)
    except SignatureMismatch as e:
        raise to_http(e)


@router.post("/{payment_id}/refund", response_model=RefundOut)
def refund_payment(
    payment_id: int,
    payload: RefundIn,
    svc: PaymentService = Depends(get_payment_service),
):
    try:
        return svc.process_refund(payment_id, payload.amount, payload.reason)
    except SERVICE_ERRORS as e:
        raise to_http(e)
