# shop/services/notification_service.py
from shop.celery_worker import celery_app
from shop.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Customer notifications.
    Sent through Celery so a slow mail/SMS provider never holds up a request.
    """

    @staticmethod
    def send_order_notification(customer_id: int, order_id: int):
        """
        Order placed.
        """
        send_order_notification_task.delay(customer_id, order_id)

    @staticmethod
    def send_status_update(customer_id: int, order_id: int, status: str):
        send_status_update_task.delay(customer_id, order_id, status)


@celery_app.task(name="shop.services.notification_service.send_order_notification_task")
def send_order_notification_task(customer_id: int, order_id: int):
    """
    Celery task - a real deployment hands this to the SMS/e-mail provider.
    For now it only logs.
    """
    logger.info(f"[NOTIFICATION] Customer {customer_id}: order {order_id} has been placed")

    return {"customer_id": customer_id, "order_id": order_id, "status": "sent"}


@celery_app.task(name="shop.services.notification_service.send_status_update_task")
def send_status_update_task(customer_id: int, order_id: int, status: str):
    logger.info(f"[NOTIFICATION] Customer {customer_id}: order {order_id} is now {status}")

    return {"customer_id": customer_id, "order_id": order_id, "order_status": status, "status": "sent"}
