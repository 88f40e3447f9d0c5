# app/repos/coupon_repo.py
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import Session

from app.data.models.coupon import CouponModel
from app.data.models.coupon_usage import CouponUsageModel


class CouponRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str | None) -> CouponModel | None:
        if not code:
            return None
        stmt = select(CouponModel).where(CouponModel.code == code.strip().upper())
        return self.db.execute(stmt).scalar_one_or_none()

    def lock_coupon(self, coupon_id: int) -> CouponModel | None:
        # SELECT ... FOR UPDATE (sqlite ignoruje, tam i tak jest jeden writer)
        stmt = select(CouponModel).where(CouponModel.id == coupon_id).with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def count_user_usages(self, coupon_id: int, user_id: int) -> int:
        stmt = select(func.count(CouponUsageModel.id)).where(
            CouponUsageModel.coupon_id == coupon_id,
            CouponUsageModel.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one()

    def increment_usage(self, coupon_id: int) -> bool:
        stmt = (
            update(CouponModel)
            .where(
                CouponModel.id == coupon_id,
                or_(
                    CouponModel.usage_limit.is_(None),
                    CouponModel.times_used < CouponModel.usage_limit,
                ),
            )
            .values(times_used=CouponModel.times_used + 1)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def add_usage(self, usage: CouponUsageModel) -> CouponUsageModel:
        self.db.add(usage)
        self.db.flush()
        return usage
