# checkout/services/notification_service.py
from checkout.celery_worker import celery_app
from checkout.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Fire-and-forget notifications through Celery.
    Enqueue failures are logged and swallowed: the business write is already committed.
    """

    def notify(self, user_id: int, title: str, message: str, type: str = "system"):
        try:
            send_notification_task.delay(user_id, title, message, type)
        except Exception as e:
            logger.warning(f"Failed to enqueue notification '{title}' for user {user_id}: {e}")

    def order_created(self, user_id: int, order_id: int):
        self.notify(user_id, "Order Created", f"Your order #{order_id} has been created successfully.", "order")

    def order_cancelled(self, user_id: int, order_id: int):
        self.notify(user_id, "Order Canceled", f"Your order #{order_id} has been canceled.", "order")

    def payment_event(self, user_id: int, order_id: int, title: str, message: str):
        self.notify(user_id, title, f"Your order #{order_id}: {message}", "payment")


@celery_app.task(name="checkout.services.notification_service.send_notification_task")
def send_notification_task(user_id: int, title: str, message: str, type: str = "system"):
    """
    Delivery belongs to the notification service; here we only log.
    """
    logger.info(f"[NOTIFICATION:{type}] User {user_id}: {title} - {message}")
    return {"user_id": user_id, "title": title, "type": type, "status": "sent"}
