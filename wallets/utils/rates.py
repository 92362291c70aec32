import logging
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings

from wallets.conf import get_gateway_config
from wallets.errors import ServiceError

logger = logging.getLogger(__name__)


def fetch_usd_rates(url=None, session=None):
    """Fetch units-per-USD for every currency the provider knows."""
    url = url or settings.EXCHANGE_RATE_API_URL
    http = session or requests
    try:
        response = http.get(url, timeout=get_gateway_config().timeout)
        body = response.json()
    except requests.exceptions.RequestException as exc:
        logger.error("Exchange rate request failed: url=%s error=%s", url, str(exc))
        raise ServiceError("exchange_rates", "Exchange rates are unavailable.") from exc
    except ValueError as exc:
        logger.error("Exchange rate provider returned a non-JSON body: url=%s", url)
        raise ServiceError("exchange_rates", "Exchange rates are unavailable.") from exc

    if not isinstance(body, dict) or body.get("success") is False or not body.get("rates"):
        logger.error("Exchange rate provider returned an error: %s", body)
        raise ServiceError("exchange_rates", "Exchange rates are unavailable.")
    return body["rates"]


def keep_supported(all_rates, currencies=None):
    """
    Restrict a provider rate map to the configured currencies.

    Values are stored as strings so no precision is lost in the JSON column.
    USD is always present with rate 1.
    """
    currencies = currencies or settings.SUPPORTED_CURRENCIES
    rates = {"USD": "1"}
    for currency in currencies:
        if currency == "USD" or currency not in all_rates:
            continue
        try:
            value = Decimal(str(all_rates[currency]))
        except (InvalidOperation, TypeError):
            logger.warning("Ignoring malformed rate for %s: %r", currency, all_rates[currency])
            continue
        if value > 0:
            rates[currency] = str(value)
    return rates
