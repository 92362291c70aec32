from django.conf import settings
from django.db import models

from wallets.models.base import StatefulRecord


class Transaction(StatefulRecord):
    """
    A per-user receipt.

    A wallet-to-wallet transfer writes two receipts sharing one
    ``transaction_id``: a "send" receipt for the sender (carrying the fee)
    and a "receive" receipt for the recipient (fee zero). Deposits and
    withdrawals write a single receipt whose ``reference`` points at the
    gateway record.
    """

    class Type(models.TextChoices):
        SEND = "send", "Send"
        RECEIVE = "receive", "Receive"
        DEPOSIT = "deposit", "Deposit"
        WITHDRAWAL = "withdrawal", "Withdrawal"

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    transaction_id = models.CharField(max_length=64, db_index=True)
    type = models.CharField(max_length=12, choices=Type.choices)
    sender_wallet_id = models.CharField(max_length=32, blank=True, default="")
    receiver_wallet_id = models.CharField(max_length=32, blank=True, default="")
    sender_name = models.CharField(max_length=255, blank=True, default="")
    receiver_name = models.CharField(max_length=255, blank=True, default="")
    amount = models.DecimalField(max_digits=20, decimal_places=2)
    fee = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    currency = models.CharField(max_length=3)
    sender_currency = models.CharField(max_length=3, blank=True, default="")
    receiver_currency = models.CharField(max_length=3, blank=True, default="")
    exchange_rate = models.DecimalField(
        max_digits=24, decimal_places=8, null=True, blank=True
    )
    converted_amount = models.DecimalField(
        max_digits=20, decimal_places=2, null=True, blank=True
    )
    note = models.CharField(max_length=255, blank=True, default="")
    reference = models.CharField(max_length=64, blank=True, default="", db_index=True)
    description = models.CharField(max_length=255, blank=True, default="")
    method = models.CharField(max_length=32, blank=True, default="")
    failure_reason = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(StatefulRecord.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["owner", "transaction_id"], name="uniq_receipt_per_owner"
            ),
        ]
        indexes = [
            models.Index(fields=["owner", "status"], name="idx_receipt_owner_status"),
        ]

    def __str__(self):
        return (
            f"Transaction {self.transaction_id} | {self.type} | "
            f"{self.amount} {self.currency} | {self.status}"
        )
