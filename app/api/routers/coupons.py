# app/api/routers/coupons.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.data.database import get_db
from app.domain.schemas import CouponValidateIn, CouponValidateOut
from app.services.coupon_service import CouponEngine

router = APIRouter(prefix="/coupons", tags=["coupons"])


def get_service(db: Session = Depends(get_db)):
    return CouponEngine(db)


@router.post("/validate", response_model=CouponValidateOut)
def validate_coupon(
    payload: CouponValidateIn,
    svc: CouponEngine = Depends(get_service),
):
    """
    Sprawdza kupon bez zapisu do koszyka (podgląd rabatu).
    """
    coupon = svc.find(payload.code)
    if coupon is None:
        return CouponValidateOut(valid=False, code=payload.code.strip().upper(), reason="Invalid coupon code.")

    check = svc.validate(coupon, payload.subtotal, payload.user_id)
    if not check.valid:
        return CouponValidateOut(valid=False, code=coupon.code, reason=check.reason)

    return CouponValidateOut(
        valid=True,
        code=coupon.code,
        discount=svc.calculate_discount(coupon, payload.subtotal),
    )
