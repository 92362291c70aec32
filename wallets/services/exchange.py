"""
Currency conversion against the stored USD rate table.

Rates are units of a currency per one USD, so converting ``amount`` from
``A`` to ``B`` multiplies by ``rates[B] / rates[A]``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import transaction

from wallets.errors import AppError, ErrorCode
from wallets.models import ExchangeRateTable
from wallets.utils import rates as rate_provider

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
USD_PLACES = Decimal("0.000001")
RATE_PLACES = Decimal("0.00000001")


def money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RateSnapshot:
    rates: dict = field(default_factory=dict)
    updated_at: datetime = None
    stale: bool = True

    def usd_rate(self, currency):
        return self.rates.get(currency)


def _as_decimals(raw_rates):
    parsed = {}
    for currency, value in (raw_rates or {}).items():
        try:
            parsed[currency] = Decimal(str(value))
        except (InvalidOperation, TypeError):
            logger.warning("Ignoring malformed stored rate for %s: %r", currency, value)
    return parsed


def get_snapshot(now=None):
    table = ExchangeRateTable.objects.order_by("-updated_at").first()
    if table is None:
        return RateSnapshot()
    return RateSnapshot(
        rates=_as_decimals(table.rates),
        updated_at=table.updated_at,
        stale=table.is_stale(settings.EXCHANGE_RATE_MAX_AGE, now=now),
    )


@transaction.atomic
def store_rates(rates, source=""):
    table = ExchangeRateTable.objects.select_for_update().order_by("pk").first()
    if table is None:
        table = ExchangeRateTable(base="USD")
    table.rates = rates
    table.source = source
    table.save()
    logger.info("Exchange rates stored: %d currencies source=%s", len(rates), source)
    return table


def refresh_rates(url=None, session=None):
    """Fetch current rates for the supported currencies and store them."""
    url = url or settings.EXCHANGE_RATE_API_URL
    rates = rate_provider.keep_supported(rate_provider.fetch_usd_rates(url, session=session))
    return store_rates(rates, source=url)


def conversion_rate(from_currency, to_currency, snapshot=None):
    """
    Rate applied when moving money from one currency to another.

    Refuses to convert with a missing or stale table rather than guessing.
    """
    if from_currency == to_currency:
        return Decimal("1")

    snapshot = snapshot or get_snapshot()
    if snapshot.stale:
        logger.error(
            "Refusing conversion %s->%s: exchange rates stale (updated_at=%s)",
            from_currency,
            to_currency,
            snapshot.updated_at,
        )
        raise AppError(
            ErrorCode.SERVICE_UNAVAILABLE,
            "Exchange rates are out of date. Please try again later.",
            {"from": from_currency, "to": to_currency},
        )

    from_rate = snapshot.usd_rate(from_currency)
    to_rate = snapshot.usd_rate(to_currency)
    if not from_rate or not to_rate:
        raise AppError(
            ErrorCode.SERVICE_UNAVAILABLE,
            f"Exchange rate for {from_currency}/{to_currency} is unavailable.",
            {"from": from_currency, "to": to_currency},
        )
    return (to_rate / from_rate).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def convert(amount, from_currency, to_currency, snapshot=None):
    """Returns ``(converted_amount, rate)``."""
    rate = conversion_rate(from_currency, to_currency, snapshot=snapshot)
    return money(Decimal(amount) * rate), rate


def fee_in_usd(fee, currency, snapshot=None):
    """
    USD value of a fee, for the platform ledger.

    Bookkeeping only: a missing rate falls back to 1 with a warning instead
    of failing the transfer that produced the fee.
    """
    snapshot = snapshot or get_snapshot()
    if snapshot.stale:
        logger.warning("Valuing fee with stale exchange rates (updated_at=%s)", snapshot.updated_at)
    rate = Decimal("1") if currency == "USD" else snapshot.usd_rate(currency)
    if not rate:
        logger.warning("No exchange rate for %s; valuing fee at rate 1", currency)
        rate = Decimal("1")
    usd_amount = (Decimal(fee) / rate).quantize(USD_PLACES, rounding=ROUND_HALF_UP)
    return usd_amount, rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)
