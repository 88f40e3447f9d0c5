# app/services/coupon_service.py
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.orm import Session

from app.data.models.coupon import CouponModel
from app.data.models.coupon_usage import CouponUsageModel
from app.domain.errors import CouponInvalid
from app.domain.statuses import CouponType
from app.repos.coupon_repo import CouponRepo
from app.utils.money import to_money, as_utc, utcnow, ZERO
from app.utils.settings import CURRENCY
from app.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CouponCheck:
    valid: bool
    reason: str | None = None


class CouponEngine:
    """
    Walidacja kuponu i wyliczanie rabatu.
    Walidacja jest powtarzana przy checkout, nie ufamy stanowi zapisanemu w koszyku.
    """

    def __init__(self, db: Session, now=utcnow):
        self.db = db
        self.repo = CouponRepo(db)
        self._now = now

    def find(self, code: str | None) -> CouponModel | None:
        return self.repo.get_by_code(code)

    def validate(self, coupon: CouponModel, subtotal, user_id: int | None = None) -> CouponCheck:
        now = self._now()
        subtotal = to_money(subtotal)

        if not coupon.is_active:
            return CouponCheck(False, "This coupon is no longer active.")

        starts_at = as_utc(coupon.starts_at)
        if starts_at and now < starts_at:
            return CouponCheck(False, "This coupon is not yet valid.")

        expires_at = as_utc(coupon.expires_at)
        if expires_at and now > expires_at:
            return CouponCheck(False, "This coupon has expired.")

        if coupon.usage_limit is not None and coupon.times_used >= coupon.usage_limit:
            return CouponCheck(False, "This coupon has reached its usage limit.")

        if user_id is not None and coupon.usage_limit_per_user:
            used = self.repo.count_user_usages(coupon.id, user_id)
            if used >= coupon.usage_limit_per_user:
                return CouponCheck(
                    False, "You have already used this coupon the maximum number of times."
                )

        minimum = to_money(coupon.minimum_order_amount)
        if minimum > ZERO and subtotal < minimum:
            return CouponCheck(False, f"Minimum order amount of {CURRENCY} {minimum:,.2f} required.")

        return CouponCheck(True)

    @staticmethod
    def calculate_discount(coupon: CouponModel, subtotal) -> Decimal:
        subtotal = to_money(subtotal)
        value = Decimal(str(coupon.value))

        if coupon.type == CouponType.PERCENTAGE:
            discount = subtotal * value / Decimal(100)
            if coupon.maximum_discount_amount is not None:
                discount = min(discount, Decimal(str(coupon.maximum_discount_amount)))
        else:
            discount = value

        return to_money(max(min(discount, subtotal), ZERO))

    def redeem(self, coupon: CouponModel, user_id: int, order_id: int, discount) -> CouponUsageModel:
        """
        Rejestruje uzycie kuponu w transakcji checkout (bez commita).
        Blokada wiersza kuponu + warunkowy UPDATE times_used, wiec dwa rownolegle
        checkouty nie przekrocza limitu.
        """
        self.repo.lock_coupon(coupon.id)

        if coupon.usage_limit_per_user:
            used = self.repo.count_user_usages(coupon.id, user_id)
            if used >= coupon.usage_limit_per_user:
                raise CouponInvalid("You have already used this coupon the maximum number of times.")

        if not self.repo.increment_usage(coupon.id):
            raise CouponInvalid("This coupon has reached its usage limit.")

        usage = self.repo.add_usage(
            CouponUsageModel(
                coupon_id=coupon.id,
                user_id=user_id,
                order_id=order_id,
                discount_amount=to_money(discount),
            )
        )
        logger.info(f"Coupon {coupon.code} redeemed by user {user_id} for order {order_id}")
        return usage
