from django.conf import settings
from django.db import models

from wallets.models.base import StatefulRecord


class MomoTransaction(StatefulRecord):
    """
    A mobile-money collection (money in) or disbursement (money out).

    ``reference_id`` is the X-Reference-Id we generate and hand to the
    provider; callbacks carry it back as ``externalId``. Only references that
    exist here are ever acted upon.
    """

    class Type(models.TextChoices):
        COLLECTION = "collection", "Collection"
        DISBURSEMENT = "disbursement", "Disbursement"

    reference_id = models.CharField(max_length=64, unique=True)
    type = models.CharField(max_length=12, choices=Type.choices)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="momo_transactions",
    )
    amount = models.DecimalField(max_digits=20, decimal_places=2)
    currency = models.CharField(max_length=3)
    phone_number = models.CharField(max_length=32)
    provider_status = models.CharField(max_length=32, blank=True, default="")
    financial_transaction_id = models.CharField(max_length=64, blank=True, default="")
    callback_status = models.CharField(max_length=32, blank=True, default="")
    verified_status = models.CharField(max_length=32, blank=True, default="")
    refunded = models.BooleanField(default=False)
    failure_reason = models.TextField(blank=True, default="")

    def __str__(self):
        return f"MomoTransaction {self.reference_id} | {self.type} | {self.status}"
