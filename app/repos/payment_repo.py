# app/repos/payment_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.data.models.payment import PaymentModel
from app.data.models.refund import RefundModel
from app.domain.statuses import PaymentStatus


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_payment(self, payment: PaymentModel) -> PaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def get_payment(self, payment_id: int) -> PaymentModel | None:
        return self.db.get(PaymentModel, payment_id)

    def get_by_reference(self, reference: str) -> PaymentModel | None:
        stmt = select(PaymentModel).where(PaymentModel.reference == reference)
        return self.db.execute(stmt).scalar_one_or_none()

    def reference_exists(self, reference: str) -> bool:
        return self.get_by_reference(reference) is not None

    def get_successful_payment(self, order_id: int, exclude_id: int | None = None) -> PaymentModel | None:
        stmt = select(PaymentModel).where(
            PaymentModel.order_id == order_id,
            PaymentModel.status.in_(
                [PaymentStatus.SUCCESS, PaymentStatus.PARTIALLY_REFUNDED, PaymentStatus.REFUNDED]
            ),
        )
        if exclude_id is not None:
            stmt = stmt.where(PaymentModel.id != exclude_id)
        return self.db.execute(stmt.limit(1)).scalar_one_or_none()

    def mark_success_once(self, payment_id: int, values: dict) -> bool:
        # tylko pierwsze potwierdzenie zmienia wiersz, kolejne dostaja rowcount 0
        stmt = (
            update(PaymentModel)
            .where(
                PaymentModel.id == payment_id,
                PaymentModel.status.in_(
                    [PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.FAILED]
                ),
            )
            .values(status=PaymentStatus.SUCCESS, **values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def update_where_status(self, payment_id: int, allowed_statuses, values: dict) -> int:
        stmt = (
            update(PaymentModel)
            .where(PaymentModel.id == payment_id, PaymentModel.status.in_(list(allowed_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def add_refund(self, refund: RefundModel) -> RefundModel:
        self.db.add(refund)
        self.db.flush()
        return refund

    def get_refund_by_gateway_reference(self, gateway_reference: str) -> RefundModel | None:
        stmt = select(RefundModel).where(RefundModel.gateway_reference == gateway_reference)
        return self.db.execute(stmt).scalar_one_or_none()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
