from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from gitaura.core.config import settings
from gitaura.core.logging import configure_logging

celery_app = Celery(
    "gitaura",
    broker=settings.celery_broker_url or str(settings.redis_url),
    backend=settings.celery_result_backend or str(settings.redis_url),
    include=[
        "gitaura.workers.tasks.leaderboard_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.job_default_timeout,
    task_soft_time_limit=settings.job_default_timeout - 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# Periodic tasks
celery_app.conf.beat_schedule = {
    "recalculate-ranks": {
        "task": "gitaura.workers.tasks.leaderboard_tasks.recalculate_ranks",
        "schedule": settings.rank_recalc_interval_seconds,
    },
    "award-monthly-badges": {
        "task": "gitaura.workers.tasks.leaderboard_tasks.award_monthly_badges",
        "schedule": 3600.0,  # Every hour
    },
    "capture-monthly-winners": {
        "task": "gitaura.workers.tasks.leaderboard_tasks.capture_monthly_winners",
        # Days 28-31; the task itself only acts on the last day of the month
        "schedule": crontab(minute=50, hour=23, day_of_month="28-31"),
    },
}


@worker_process_init.connect
def _setup_worker_logging(**kwargs) -> None:
    configure_logging()
