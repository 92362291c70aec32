import secrets

from django.conf import settings
from django.db import models

from wallets.models.base import BaseModel

WALLET_ID_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_wallet_id():
    groups = (
        "".join(secrets.choice(WALLET_ID_ALPHABET) for _ in range(4))
        for _ in range(3)
    )
    return "QRW-" + "-".join(groups)


def default_currency():
    return settings.DEFAULT_WALLET_CURRENCY


def default_daily_limit():
    return settings.WALLET_DAILY_LIMIT


def default_monthly_limit():
    return settings.WALLET_MONTHLY_LIMIT


class Wallet(BaseModel):
    """
    Represents a user's wallet with a non-negative balance.

    ``wallet_id`` is the public, unguessable identifier users share with each
    other (``QRW-XXXX-XXXX-XXXX``). Concurrency safety is handled at the
    service layer via select_for_update() and F() expressions; the balance is
    never decremented below zero.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        SUSPENDED = "suspended", "Suspended"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wallet",
    )
    wallet_id = models.CharField(
        max_length=19, unique=True, default=generate_wallet_id, editable=False
    )
    currency = models.CharField(max_length=3, default=default_currency)
    balance = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    daily_spent = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    monthly_spent = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    daily_limit = models.DecimalField(
        max_digits=20, decimal_places=2, default=default_daily_limit
    )
    monthly_limit = models.DecimalField(
        max_digits=20, decimal_places=2, default=default_monthly_limit
    )
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.ACTIVE
    )

    def __str__(self):
        return f"Wallet {self.wallet_id} (balance={self.balance} {self.currency})"

    @property
    def is_active(self):
        return self.status == self.Status.ACTIVE
