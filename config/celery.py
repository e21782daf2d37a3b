import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("findoorz")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Catch captures whose webhook never arrived - every 5 minutes
    "reconcile-pending-payments": {
        "task": "payments.reconcile_pending_payments",
        "schedule": 300.0,
        "options": {"expires": 280},
    },
    # Fail orders that were never paid - every hour
    "expire-stale-payments": {
        "task": "payments.expire_stale_payments",
        "schedule": crontab(minute=30),
    },
    # Drop old in-app notifications - daily at 03:00
    "purge-old-notifications": {
        "task": "notifications.purge_old_notifications",
        "schedule": crontab(minute=0, hour=3),
    },
}

app.conf.timezone = "Asia/Kolkata"
