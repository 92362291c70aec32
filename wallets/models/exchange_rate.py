from django.db import models
from django.utils import timezone

from wallets.models.base import BaseModel


class ExchangeRateTable(BaseModel):
    """
    Units of each currency per one unit of ``base`` (always USD).

    There is a single row, refreshed by the daily Celery task.
    """

    base = models.CharField(max_length=3, default="USD")
    rates = models.JSONField(default=dict)
    source = models.CharField(max_length=64, blank=True, default="")

    def __str__(self):
        return f"Exchange rates ({len(self.rates)} currencies, updated {self.updated_at})"

    def age(self, now=None):
        return (now or timezone.now()) - self.updated_at

    def is_stale(self, max_age, now=None):
        return self.age(now) > max_age
