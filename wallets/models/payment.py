from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from wallets.models.base import BaseModel


class Payment(BaseModel):
    """
    A deposit through the card/bank gateway, keyed by the gateway reference.

    Records are created as ``pending`` when we initialise a charge, and the
    wallet is credited in the same atomic unit that sets ``processed``. A
    replayed confirmation finds ``processed=True`` and does nothing.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        SUCCESS = "success", "Success"
        FAILED = "failed", "Failed"

    reference = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payments",
    )
    wallet = models.ForeignKey(
        "wallets.Wallet",
        on_delete=models.PROTECT,
        related_name="payments",
        null=True,
        blank=True,
    )
    amount = models.DecimalField(max_digits=20, decimal_places=2)
    currency = models.CharField(max_length=3)
    type = models.CharField(max_length=16, default="deposit")
    channel = models.CharField(max_length=32, blank=True, default="")
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING
    )
    processed = models.BooleanField(default=False)
    gateway_data = models.JSONField(
        null=True, blank=True, encoder=DjangoJSONEncoder
    )

    def __str__(self):
        return f"Payment {self.reference} | {self.amount} {self.currency} | {self.status}"
