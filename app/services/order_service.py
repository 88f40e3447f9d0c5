# app/services/order_service.py
from sqlalchemy.orm import Session

from app.data.models.order import OrderModel
from app.domain.errors import InvalidTransition, NotFound, OrderNotCancellable
from app.domain.statuses import (
    CANCELLABLE_STATUSES,
    OrderPaymentStatus,
    OrderStatus,
    allowed_transitions,
    can_transition,
    payment_sources,
)
from app.repos.order_repo import OrderRepo
from app.repos.product_repo import ProductRepo
from app.services.notification_service import NotificationService
from app.utils.money import to_money, utcnow
from app.utils.logging import get_logger

logger = get_logger(__name__)


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien: odczyt i maszyna stanow.
    Kazde przejscie to warunkowy UPDATE ... WHERE status IN (dozwolone zrodla),
    wiec rownolegle zmiany nie przeskocza tabeli przejsc.
    """

    def __init__(self, db: Session, notifier: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.products = ProductRepo(db)
        self.notifier = notifier or NotificationService()

    def get_order(self, order_id: int, user_id: int | None = None) -> OrderModel:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFound("Order not found.")

        if user_id is not None and order.user_id != user_id:
            raise PermissionError("Brak dostepu do zamowienia")

        return order

    def list_orders(self, user_id: int, status=None, payment_status=None, limit: int = 20, offset: int = 0):
        return self.repo.list_orders(user_id, status, payment_status, limit, offset)

    def transition(self, order_id: int, target: OrderStatus, reason: str | None = None,
                   tracking_number: str | None = None) -> OrderModel:
        """
        Use Case: zmiana statusu zgodnie z tabela przejsc.
        Anulowanie idzie przez cancel() bo przywraca stan magazynu.
        """
        if target == OrderStatus.CANCELLED:
            return self.cancel(order_id, reason=reason)

        order = self.get_order(order_id)
        current = order.status

        if not can_transition(current, target):
            raise InvalidTransition(current, target)

        values = {"status": target}
        if target == OrderStatus.SHIPPED:
            values["shipped_at"] = utcnow()
            if tracking_number:
                values["tracking_number"] = tracking_number
        elif target == OrderStatus.DELIVERED:
            values["delivered_at"] = utcnow()

        rowcount = self.repo.update_where_status(order.id, [current], values)
        if rowcount == 0:
            self.repo.rollback()
            raise InvalidTransition(current, target)

        self.repo.commit()
        logger.info(f"Order {order.order_number}: {current.value} -> {target.value}")

        self.db.refresh(order)
        self._notify_status(order)
        return order

    def cancel(self, order_id: int, user_id: int | None = None, reason: str | None = None) -> OrderModel:
        """
        Use Case: anulowanie zamowienia.

        W jednej transakcji: status cancelled, przywrocenie stanu magazynu dla kazdej pozycji,
        oraz etykieta payment_status=refunded jesli zamowienie bylo oplacone.
        Zwrot pieniedzy przez bramke to osobna akcja (PaymentService.process_refund).
        """
        order = self.get_order(order_id, user_id)

        if order.status not in CANCELLABLE_STATUSES:
            raise OrderNotCancellable()

        items = self.repo.get_order_items(order.id)

        try:
            rowcount = self.repo.update_where_status(
                order.id,
                CANCELLABLE_STATUSES,
                {
                    "status": OrderStatus.CANCELLED,
                    "cancelled_at": utcnow(),
                    "cancellation_reason": reason,
                },
            )
            if rowcount == 0:
                raise OrderNotCancellable()

            for item in items:
                # produkt mogl zostac usuniety z katalogu
                if item.product_id is not None:
                    self.products.restore_stock(item.product_id, item.quantity)

            self.repo.update_where_payment_status(
                order.id,
                payment_sources(OrderPaymentStatus.REFUNDED),
                {"payment_status": OrderPaymentStatus.REFUNDED},
            )

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} cancelled, stock restored for {len(items)} items")
        self._notify_status(order)
        return order

    def mark_paid(self, order_id: int) -> bool:
        """
        payment_status=paid, status pending -> confirmed.
        Idempotentne, bez commita (wola je rekonsyliacja platnosci w swojej transakcji).
        Anulowanego zamowienia nie oznacza jako oplacone.
        """
        changed = self.repo.update_where_payment_status(
            order_id,
            payment_sources(OrderPaymentStatus.PAID),
            {"payment_status": OrderPaymentStatus.PAID, "paid_at": utcnow()},
            excluded_statuses=[OrderStatus.CANCELLED, OrderStatus.REFUNDED],
        )
        self.repo.update_where_status(order_id, [OrderStatus.PENDING], {"status": OrderStatus.CONFIRMED})

        if changed:
            logger.info(f"Order {order_id} marked as paid")
        return changed == 1

    def track(self, order_id: int, user_id: int | None = None) -> dict:
        order = self.get_order(order_id, user_id)
        status = order.status
        paid = order.payment_status in (
            OrderPaymentStatus.PAID,
            OrderPaymentStatus.REFUNDED,
            OrderPaymentStatus.PARTIALLY_REFUNDED,
        )
        processing = status in (
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        )
        shipped = status in (OrderStatus.SHIPPED, OrderStatus.DELIVERED)

        timeline = [
            {"status": "placed", "label": "Order Placed", "date": order.created_at, "completed": True},
            {
                "status": "payment",
                "label": "Payment Received" if paid else "Payment Pending",
                "date": order.paid_at if paid else None,
                "completed": paid,
            },
            {
                "status": "processing",
                "label": "Processing",
                "date": order.updated_at if processing else None,
                "completed": processing,
            },
            {"status": "shipped", "label": "Shipped", "date": order.shipped_at, "completed": shipped},
            {
                "status": "delivered",
                "label": "Delivered",
                "date": order.delivered_at,
                "completed": status == OrderStatus.DELIVERED,
            },
        ]
        if status == OrderStatus.CANCELLED:
            timeline.append(
                {"status": "cancelled", "label": "Cancelled", "date": order.cancelled_at, "completed": True}
            )

        return {
            "order_number": order.order_number,
            "status": status,
            "payment_status": order.payment_status,
            "tracking_number": order.tracking_number,
            "timeline": timeline,
        }

    def serialize(self, order: OrderModel) -> dict:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "user_id": order.user_id,
            "status": order.status,
            "payment_status": order.payment_status,
            "payment_method": order.payment_method,
            "subtotal": to_money(order.subtotal),
            "discount_amount": to_money(order.discount_amount),
            "shipping_amount": to_money(order.shipping_amount),
            "tax_amount": to_money(order.tax_amount),
            "total": to_money(order.total),
            "currency": order.currency,
            "coupon_code": order.coupon_code,
            "coupon_discount": to_money(order.coupon_discount),
            "shipping_method": order.shipping_method,
            "allowed_transitions": allowed_transitions(order.status),
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "product_name": i.product_name,
                    "product_sku": i.product_sku,
                    "product_image": i.product_image,
                    "quantity": i.quantity,
                    "unit_price": to_money(i.unit_price),
                    "subtotal": to_money(i.subtotal),
                    "total": to_money(i.total),
                    "options": i.options or {},
                }
                for i in self.repo.get_order_items(order.id)
            ],
            "cancellation_reason": order.cancellation_reason,
            "created_at": order.created_at,
        }

    def _notify_status(self, order: OrderModel):
        try:
            self.notifier.notify_status_change(order)
        except Exception as e:
            # status juz zapisany, brak powiadomienia nie cofa zmiany
            logger.warning(f"Status notification for order {order.id} failed: {e}")
