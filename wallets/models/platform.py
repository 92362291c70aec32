from django.conf import settings
from django.db import models

from wallets.models.base import BaseModel

PLATFORM_WALLET_PK = 1


class PlatformWallet(BaseModel):
    """Aggregate of every transfer fee collected, in USD-equivalent."""

    wallet_id = models.CharField(max_length=19, default="QRW-PLATFORM", unique=True)
    name = models.CharField(max_length=64, default="QR Wallet")
    description = models.CharField(
        max_length=255, blank=True, default="Platform fee collection wallet"
    )
    total_balance_usd = models.DecimalField(max_digits=24, decimal_places=6, default=0)
    total_transactions = models.PositiveBigIntegerField(default=0)
    total_fees_collected = models.PositiveBigIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    def __str__(self):
        return f"PlatformWallet (USD {self.total_balance_usd})"


class PlatformCurrencyBalance(BaseModel):
    """Fees collected in one currency, with their running USD equivalent."""

    platform = models.ForeignKey(
        PlatformWallet, on_delete=models.CASCADE, related_name="balances"
    )
    currency = models.CharField(max_length=3, unique=True)
    amount = models.DecimalField(max_digits=20, decimal_places=2, default=0)
    usd_equivalent = models.DecimalField(max_digits=24, decimal_places=6, default=0)
    tx_count = models.PositiveBigIntegerField(default=0)
    last_transaction_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Platform {self.currency} balance {self.amount}"


class PlatformFee(BaseModel):
    """One fee ledger entry per transfer."""

    platform = models.ForeignKey(
        PlatformWallet, on_delete=models.CASCADE, related_name="fees"
    )
    transaction_id = models.CharField(max_length=64, unique=True)
    original_amount = models.DecimalField(max_digits=20, decimal_places=2)
    currency = models.CharField(max_length=3)
    usd_amount = models.DecimalField(max_digits=24, decimal_places=6)
    exchange_rate = models.DecimalField(max_digits=24, decimal_places=8)
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
    )
    sender_name = models.CharField(max_length=255, blank=True, default="")
    transfer_amount = models.DecimalField(max_digits=20, decimal_places=2)

    def __str__(self):
        return f"Fee {self.transaction_id} {self.original_amount} {self.currency}"
