import logging

from rsvp.core.celery_config import celery_app
from rsvp.database.db import SessionLocal
from rsvp.services.challenges import purge_expired_challenges
from rsvp.services.notifications import EmailNotificationGateway, NotificationGateway

logger = logging.getLogger(__name__)


@celery_app.task(bind=True)
def send_code_task(self, user_id: int, event_id: int, code: str):
    """Deliver a verification code outside the request cycle."""
    try:
        EmailNotificationGateway().send_code(user_id, event_id, code)
    except Exception:
        logger.exception("Failed to send verification code to user=%s event=%s", user_id, event_id)
        raise


@celery_app.task(bind=True)
def send_confirmation_task(self, user_id: int, event_id: int):
    try:
        EmailNotificationGateway().send_confirmation(user_id, event_id)
    except Exception:
        logger.exception("Failed to send confirmation to user=%s event=%s", user_id, event_id)
        raise


@celery_app.task(bind=True)
def purge_expired_challenges_task(self) -> int:
    db = SessionLocal()
    try:
        return purge_expired_challenges(db)
    finally:
        db.close()


class CeleryNotificationGateway(NotificationGateway):
    """Queues notifications on the Celery broker and returns immediately."""

    def send_code(self, user_id: int, event_id: int, code: str) -> None:
        send_code_task.delay(user_id, event_id, code)

    def send_confirmation(self, user_id: int, event_id: int) -> None:
        send_confirmation_task.delay(user_id, event_id)
