import logging

from django.conf import settings
from django.db.models import F
from django.utils import timezone

from wallets.models import (
    PLATFORM_WALLET_PK,
    PlatformCurrencyBalance,
    PlatformFee,
    PlatformWallet,
)
from wallets.services.exchange import fee_in_usd

logger = logging.getLogger(__name__)


def ensure_platform_wallet(currencies=None):
    """
    Create the platform wallet and its per-currency balances if missing.

    Returns ``(platform, created_currencies)``. Safe to run repeatedly.
    """
    platform, created = PlatformWallet.objects.get_or_create(pk=PLATFORM_WALLET_PK)
    if created:
        logger.info("Platform wallet created: %s", platform.wallet_id)

    created_currencies = []
    for currency in currencies or settings.SUPPORTED_CURRENCIES:
        _, was_created = PlatformCurrencyBalance.objects.get_or_create(
            currency=currency, defaults={"platform": platform}
        )
        if was_created:
            created_currencies.append(currency)
    return platform, created_currencies


def collect_fee(fee, currency, transaction_id, sender, sender_name, transfer_amount, snapshot=None, now=None):
    """
    Credit a transfer fee to the platform ledger.

    Must run inside the transfer's atomic block so the fee is recorded if and
    only if the transfer commits.
    """
    now = now or timezone.now()
    usd_amount, rate = fee_in_usd(fee, currency, snapshot=snapshot)

    platform, _ = PlatformWallet.objects.get_or_create(pk=PLATFORM_WALLET_PK)
    PlatformWallet.objects.filter(pk=platform.pk).update(
        total_balance_usd=F("total_balance_usd") + usd_amount,
        total_transactions=F("total_transactions") + 1,
        total_fees_collected=F("total_fees_collected") + 1,
        updated_at=now,
    )

    balance, _ = PlatformCurrencyBalance.objects.select_for_update().get_or_create(
        currency=currency, defaults={"platform": platform}
    )
    PlatformCurrencyBalance.objects.filter(pk=balance.pk).update(
        amount=F("amount") + fee,
        usd_equivalent=F("usd_equivalent") + usd_amount,
        tx_count=F("tx_count") + 1,
        last_transaction_at=now,
        updated_at=now,
    )

    entry = PlatformFee.objects.create(
        platform=platform,
        transaction_id=transaction_id,
        original_amount=fee,
        currency=currency,
        usd_amount=usd_amount,
        exchange_rate=rate,
        sender=sender,
        sender_name=sender_name,
        transfer_amount=transfer_amount,
    )
    logger.info(
        "Platform fee collected: tx=%s fee=%s %s usd=%s",
        transaction_id,
        fee,
        currency,
        usd_amount,
    )
    return entry
