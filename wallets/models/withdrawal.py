from django.conf import settings
from django.db import models

from wallets.models.base import StatefulRecord


class Withdrawal(StatefulRecord):
    """
    A payout from a wallet to a bank account or mobile-money number through
    the card/bank gateway.

    The wallet is debited when the record is created (status ``pending``).
    If the gateway later reports the transfer as failed the amount is
    credited back exactly once, guarded by ``refunded``.
    """

    class Type(models.TextChoices):
        BANK = "bank", "Bank"
        MOBILE_MONEY = "mobile_money", "Mobile money"

    reference = models.CharField(max_length=64, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="withdrawals",
    )
    wallet = models.ForeignKey(
        "wallets.Wallet",
        on_delete=models.PROTECT,
        related_name="withdrawals",
    )
    amount = models.DecimalField(max_digits=20, decimal_places=2)
    currency = models.CharField(max_length=3)
    type = models.CharField(max_length=12, choices=Type.choices, default=Type.BANK)
    bank_code = models.CharField(max_length=32, blank=True, default="")
    mobile_money_provider = models.CharField(max_length=32, blank=True, default="")
    account_number = models.CharField(max_length=32, blank=True, default="")
    phone_number = models.CharField(max_length=32, blank=True, default="")
    account_name = models.CharField(max_length=255, blank=True, default="")
    recipient_code = models.CharField(max_length=64, blank=True, default="")
    transfer_code = models.CharField(max_length=64, blank=True, default="", db_index=True)
    refunded = models.BooleanField(default=False)
    failure_reason = models.TextField(blank=True, default="")
    otp_verified_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Withdrawal {self.reference} | {self.amount} {self.currency} | {self.status}"
