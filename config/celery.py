import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("qr_wallet")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


app.conf.beat_schedule = {
    "refresh-exchange-rates": {
        "task": "wallets.tasks.refresh_exchange_rates",
        "schedule": crontab(minute=0, hour=0),
    },
    "cleanup-idempotency-keys": {
        "task": "wallets.tasks.cleanup_idempotency_keys",
        "schedule": crontab(minute=0, hour="*/6"),
    },
    "cleanup-rate-limit-windows": {
        "task": "wallets.tasks.cleanup_rate_limit_windows",
        "schedule": crontab(minute=30),
    },
    "reset-daily-spend": {
        "task": "wallets.tasks.reset_daily_spend",
        "schedule": crontab(minute=0, hour=0),
    },
    "reset-monthly-spend": {
        "task": "wallets.tasks.reset_monthly_spend",
        "schedule": crontab(minute=5, hour=0, day_of_month=1),
    },
}

app.conf.timezone = "UTC"
