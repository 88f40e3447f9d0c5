# app/services/payment_service.py
import hashlib
import hmac
import json
import secrets
import string
from dataclasses import dataclass, field
from uuid import uuid4
from sqlalchemy.orm import Session

from app.data.models.payment import PaymentModel
from app.data.models.refund import RefundModel
from app.domain.errors import (
    AlreadyPaid,
    NotFound,
    OrderNotPayable,
    PaymentGatewayError,
    RefundNotAllowed,
    PaymentInProgress,
    SignatureMismatch,
)
from app.domain.statuses import (
    OrderPaymentStatus,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    can_transition_payment,
    payment_sources,
)
from app.repos.payment_repo import PaymentRepo
from app.services.lock_service import LockService
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.paystack_client import PaystackClient
from app.utils.money import to_money, to_minor_units, utcnow, ZERO
from app.utils.settings import (
    PAYSTACK_CALLBACK_URL,
    PAYSTACK_SECRET_KEY,
    PAYMENT_LOCK_TTL_SECONDS,
)
from app.utils.logging import get_logger

logger = get_logger(__name__)

_ALPHABET = string.ascii_uppercase + string.digits

SUCCESS_STATUSES = ("success",)
FAILURE_STATUSES = ("failed", "abandoned", "reversed")


@dataclass(frozen=True)
class GatewayOutcome:
    """Wynik transakcji z bramki (verify albo webhook)."""

    reference: str
    status: str
    channel: str | None = None
    gateway_response: str | None = None
    authorization: dict = field(default_factory=dict)
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_gateway_data(cls, data: dict, status: str | None = None) -> "GatewayOutcome":
        return cls(
            reference=data.get("reference"),
            status=(status or data.get("status") or "").lower(),
            channel=data.get("channel"),
            gateway_response=data.get("gateway_response"),
            authorization=data.get("authorization") or {},
            raw=data,
        )

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_STATUSES

    @property
    def failed(self) -> bool:
        return self.status in FAILURE_STATUSES


@dataclass
class ReconcileResult:
    payment: PaymentModel
    changed: bool


def _random_reference(prefix: str) -> str:
    random_part = "".join(secrets.choice(_ALPHABET) for _ in range(8))
    return f"{prefix}_{utcnow().strftime('%Y%m%d%H%M%S')}_{random_part}"


class PaymentService:
    """
    Platnosci: inicjalizacja w bramce, rekonsyliacja (verify/callback/webhook - jedna sciezka),
    zwroty.
    Webhooki przychodza at-least-once: sprawdzenie statusu przed zmiana + warunkowy UPDATE,
    wiec drugie dostarczenie tego samego zdarzenia nic nie zmienia.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaystackClient | None = None,
        notifier: NotificationService | None = None,
        lock_service: LockService | None = None,
        order_service: OrderService | None = None,
        secret_key: str | None = None,
        callback_url: str = PAYSTACK_CALLBACK_URL,
        lock_ttl: int = PAYMENT_LOCK_TTL_SECONDS,
    ):
        self.db = db
        self.repo = PaymentRepo(db)
        self.gateway = gateway or PaystackClient()
        self.notifier = notifier or NotificationService()
        self.lock_service = lock_service or LockService()
        self.orders = order_service or OrderService(db, notifier=self.notifier)
        self.secret_key = secret_key if secret_key is not None else PAYSTACK_SECRET_KEY
        self.callback_url = callback_url
        self.lock_ttl = lock_ttl

    def get_payment(self, reference: str) -> PaymentModel:
        payment = self.repo.get_by_reference(reference)
        if not payment:
            raise NotFound("Payment not found.")
        return payment

    def initialize(self, order_id: int, user_id: int) -> dict:
        """
        Use Case: start platnosci dla zamowienia.
        Blad bramki oznacza Payment jako failed, zamowienie mozna oplacic ponownie nowym Payment.
        """
        order = self.orders.get_order(order_id, user_id)

        if not can_transition_payment(order.payment_status, OrderPaymentStatus.PAID):
            raise AlreadyPaid()
        if self.repo.get_successful_payment(order.id):
            raise AlreadyPaid()
        if order.status == OrderStatus.CANCELLED:
            raise OrderNotPayable("Cannot pay for a cancelled order.")
        if order.payment_method != PaymentMethod.PAYSTACK:
            raise OrderNotPayable("This order is paid by bank transfer.")

        reference = _random_reference("PAY")
        while self.repo.reference_exists(reference):
            reference = _random_reference("PAY")

        payment = self.repo.add_payment(
            PaymentModel(
                reference=reference,
                order_id=order.id,
                user_id=user_id,
                gateway="paystack",
                amount=to_money(order.total),
                currency=order.currency,
                status=PaymentStatus.PENDING,
                refunded_amount=ZERO,
                meta={},
            )
        )
        self.repo.commit()
        logger.info(f"Payment {reference} created for order {order.order_number}")

        try:
            data = self.gateway.initialize_transaction(
                email=order.billing_email,
                amount=to_minor_units(order.total),
                reference=reference,
                callback_url=self.callback_url,
                currency=order.currency,
                metadata={
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "payment_id": payment.id,
                },
            )
        except PaymentGatewayError as e:
            logger.error(f"Payment initialization failed for order {order.id}: {e}")
            self.repo.update_where_status(
                payment.id,
                [PaymentStatus.PENDING],
                {"status": PaymentStatus.FAILED, "gateway_response": str(e)[:500]},
            )
            self.repo.commit()
            raise

        payment.gateway_reference = data.get("reference") or reference
        payment.meta = {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
        }
        self.repo.commit()

        return {
            "payment_id": payment.id,
            "reference": payment.reference,
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
        }

    def verify(self, reference: str) -> ReconcileResult:
        """
        Synchroniczna weryfikacja (po powrocie klienta z bramki albo callback).
        """
        payment = self.get_payment(reference)

        if payment.status == PaymentStatus.SUCCESS:
            return ReconcileResult(payment, False)

        data = self.gateway.verify_transaction(reference)
        outcome = GatewayOutcome.from_gateway_data({"reference": reference, **data})
        return self.reconcile(reference, outcome)

    def reconcile(self, reference: str, outcome: GatewayOutcome) -> ReconcileResult:
        """
        Jedyna sciezka zapisu wyniku platnosci.
        success: Payment success + metadane, zamowienie oplacone, jedno powiadomienie;
        failure: Payment failed, bez zmian w zamowieniu i magazynie.
        """
        payment = self.get_payment(reference)

        if payment.status == PaymentStatus.SUCCESS:
            logger.info(f"Payment {reference} already successful, skipping")
            return ReconcileResult(payment, False)

        if not outcome.succeeded and not outcome.failed:
            logger.info(f"Payment {reference} not final yet ({outcome.status}), skipping")
            return ReconcileResult(payment, False)

        lock_key = f"payment:{reference}:lock"
        holder = uuid4().hex
        if not self.lock_service.acquire(lock_key, holder, ttl=self.lock_ttl):
            logger.info(f"Payment {reference} is being reconciled by another worker")
            return ReconcileResult(payment, False)

        try:
            if outcome.succeeded:
                changed = self._record_success(payment, outcome)
            else:
                changed = self._record_failure(payment, outcome)
        finally:
            self.lock_service.release(lock_key, holder)

        self.db.refresh(payment)

        if changed and outcome.succeeded:
            order = self.orders.get_order(payment.order_id)
            if order.payment_status != OrderPaymentStatus.PAID:
                return ReconcileResult(payment, changed)
            try:
                self.notifier.notify(order, payment.user_id)
            except Exception as e:
                logger.error(f"Order confirmation for {order.order_number} could not be queued: {e}")

        return ReconcileResult(payment, changed)

    def _record_success(self, payment: PaymentModel, outcome: GatewayOutcome) -> bool:
        try:
            other = self.repo.get_successful_payment(payment.order_id, exclude_id=payment.id)
            if other:
                # zamowienie juz oplacone innym Payment - ten nie moze byc drugim sukcesem
                rowcount = self.repo.update_where_status(
                    payment.id,
                    [PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.FAILED],
                    {
                        "status": PaymentStatus.CANCELLED,
                        "gateway_response": f"Duplicate charge, order already paid by {other.reference}",
                    },
                )
                self.repo.commit()
                if rowcount:
                    logger.error(
                        f"Payment {payment.reference} succeeded but order {payment.order_id} "
                        f"was already paid by {other.reference}, needs manual refund"
                    )
                return False

            if not self.repo.mark_success_once(payment.id, {"paid_at": utcnow()}):
                self.repo.rollback()
                return False

            self.db.refresh(payment)
            auth = outcome.authorization
            payment.gateway_reference = outcome.reference or payment.gateway_reference
            payment.authorization_code = auth.get("authorization_code")
            payment.channel = outcome.channel
            payment.card_type = auth.get("card_type")
            payment.card_last_four = auth.get("last4")
            payment.bank_name = auth.get("bank")
            payment.gateway_response = outcome.gateway_response
            payment.meta = {**(payment.meta or {}), "gateway": outcome.raw}

            if not self.orders.mark_paid(payment.order_id) and \
                    self.orders.repo.get_status(payment.order_id) == OrderStatus.CANCELLED:
                # pieniadze pobrane, zamowienie anulowane w miedzyczasie - bez potwierdzenia
                payment.gateway_response = "Order was cancelled before payment completed, needs refund"
                payment.meta = {**(payment.meta or {}), "refund_required": True}
                logger.error(
                    f"Payment {payment.reference} succeeded but order {payment.order_id} "
                    f"was cancelled, needs manual refund"
                )
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Payment {payment.reference} successful for order {payment.order_id}")
        return True

    def _record_failure(self, payment: PaymentModel, outcome: GatewayOutcome) -> bool:
        rowcount = self.repo.update_where_status(
            payment.id,
            [PaymentStatus.PENDING, PaymentStatus.PROCESSING],
            {
                "status": PaymentStatus.FAILED,
                "gateway_response": outcome.gateway_response or "Payment failed",
            },
        )
        self.repo.commit()

        if rowcount:
            logger.info(f"Payment {payment.reference} failed: {outcome.gateway_response}")
        return rowcount == 1

    def verify_signature(self, raw_body: bytes, signature: str | None) -> None:
        if not self.secret_key:
            logger.warning("Webhook rejected: gateway secret is not configured")
            raise SignatureMismatch()

        expected = hmac.new(self.secret_key.encode(), raw_body, hashlib.sha512).hexdigest()
        if not signature or not hmac.compare_digest(expected.encode(), signature.encode()):
            logger.warning("Invalid Paystack webhook signature")
            raise SignatureMismatch()

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> dict:
        """
        Podpis sprawdzany przed odczytem jakiegokolwiek pola.
        Poza zlym podpisem nic nie leci do warstwy HTTP - bramka dostaje potwierdzenie
        (inaczej ponawialaby dostarczenie w nieskonczonosc).
        """
        self.verify_signature(raw_body, signature)

        try:
            payload = json.loads(raw_body)
        except ValueError:
            logger.warning("Webhook payload is not valid JSON")
            return {"message": "Webhook ignored"}

        data = payload.get("data", {}) if isinstance(payload, dict) else None
        if not isinstance(data, dict):
            logger.warning("Webhook payload has no data object")
            return {"message": "Webhook ignored"}

        event = payload.get("event")
        reference = data.get("reference")
        logger.info(f"Paystack webhook received: {event} ({reference})")

        try:
            if event == "charge.success":
                if reference and str(data.get("status", "")).lower() == "success":
                    self.reconcile(reference, GatewayOutcome.from_gateway_data(data))
                else:
                    logger.warning(f"charge.success without success status for {reference}")
            elif event == "charge.failed":
                if reference:
                    self.reconcile(reference, GatewayOutcome.from_gateway_data(data, status="failed"))
            elif event == "refund.processed":
                self._handle_refund_processed(data)
            else:
                logger.info(f"Unhandled Paystack webhook event: {event}")
        except NotFound:
            logger.warning(f"Webhook {event} for unknown payment {reference}")
        except Exception as e:
            logger.error(f"Webhook {event} for {reference} failed: {e}")

        return {"message": "Webhook processed"}

    def _handle_refund_processed(self, data: dict):
        gateway_ref = data.get("refund_reference") or (str(data["id"]) if data.get("id") else None)
        refund = self.repo.get_refund_by_gateway_reference(gateway_ref) if gateway_ref else None
        if refund is None:
            logger.info(f"Refund processed for unknown refund {gateway_ref}")
            return

        if refund.status != RefundStatus.SUCCESS:
            refund.status = RefundStatus.SUCCESS
            refund.processed_at = utcnow()
            self.repo.commit()
            logger.info(f"Refund {refund.reference} processed")

    def process_refund(self, payment_id: int, amount=None, reason: str | None = None) -> RefundModel:
        """
        Use Case: zwrot (czesciowy albo pelny) udanej platnosci przez bramke.
        """
        payment = self.repo.get_payment(payment_id)
        if not payment:
            raise NotFound("Payment not found.")

        lock_key = f"payment:{payment.reference}:lock"
        holder = uuid4().hex
        if not self.lock_service.acquire(lock_key, holder, ttl=self.lock_ttl):
            raise PaymentInProgress()

        try:
            self.db.refresh(payment)
            if payment.status not in (PaymentStatus.SUCCESS, PaymentStatus.PARTIALLY_REFUNDED):
                raise RefundNotAllowed()

            refundable = payment.refundable_amount
            amount = refundable if amount is None else to_money(amount)
            if amount <= ZERO or amount > refundable:
                raise RefundNotAllowed(f"Refund amount must be between 0 and {refundable}.")

            refund = self.repo.add_refund(
                RefundModel(
                    reference=_random_reference("REF"),
                    payment_id=payment.id,
                    order_id=payment.order_id,
                    amount=amount,
                    currency=payment.currency,
                    status=RefundStatus.PENDING,
                    reason=reason or "Order cancelled by customer",
                )
            )
            self.repo.commit()

            try:
                data = self.gateway.create_refund(
                    transaction=payment.gateway_reference or payment.reference,
                    amount=to_minor_units(amount),
                )
            except PaymentGatewayError:
                refund.status = RefundStatus.FAILED
                self.repo.commit()
                logger.error(f"Paystack refund failed for payment {payment.reference}")
                raise

            new_refunded = to_money(payment.refunded_amount) + amount
            full = new_refunded >= to_money(payment.amount)

            refund.status = RefundStatus.PROCESSING
            refund.gateway_reference = str(data["id"]) if data.get("id") is not None else None
            payment.refunded_amount = new_refunded
            payment.status = PaymentStatus.REFUNDED if full else PaymentStatus.PARTIALLY_REFUNDED
            payment.refund_reason = reason
            payment.refunded_at = utcnow()

            order_payment_status = OrderPaymentStatus.REFUNDED if full else OrderPaymentStatus.PARTIALLY_REFUNDED
            self.orders.repo.update_where_payment_status(
                payment.order_id,
                payment_sources(order_payment_status),
                {"payment_status": order_payment_status},
            )
            self.repo.commit()
        finally:
            self.lock_service.release(lock_key, holder)

        logger.info(f"Refund {refund.reference} of {amount} initiated for payment {payment.reference}")
        return refund
