# app/services/notification_service.py
from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysylania powiadomien.
    Uzywa Celery do asynchronicznego przetwarzania.
    """

    def notify(self, order, user_id: int):
        """
        Potwierdzenie zamowienia po udanej platnosci.
        """
        send_order_confirmation_task.delay(user_id, order.id, order.order_number, str(order.total))

    def notify_status_change(self, order):
        send_order_status_task.delay(order.user_id, order.id, order.order_number, order.status.value)


@celery_app.task(name="app.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(user_id: int, order_id: int, order_number: str, total: str):
    """
    Celery task - w prawdziwym systemie wyslalby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_number} ({order_id}) confirmed, total {total}")

    return {"user_id": user_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="app.services.notification_service.send_order_status_task")
def send_order_status_task(user_id: int, order_id: int, order_number: str, status: str):
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_number} ({order_id}) is now {status}")

    return {"user_id": user_id, "order_id": order_id, "status": status}
