from celery import Celery

from rsvp.core import config


def make_celery(app_name: str = "rsvp") -> Celery:
    redis_url = config.get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url, include=["rsvp.tasks"])
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.beat_schedule = {
        "purge-expired-challenges": {
            "task": "rsvp.tasks.purge_expired_challenges_task",
            "schedule": float(config.OTP_CLEANUP_INTERVAL_SECONDS),
        },
    }
    return celery


celery_app = make_celery()
