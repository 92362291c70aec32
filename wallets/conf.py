"""
Typed gateway configuration and the service readiness gate.

The configuration is built once from Django settings and validated eagerly
when the app loads. Operations that talk to a gateway call
``require_service_ready`` first so that a missing secret surfaces as an
immediate ``CONFIG_MISSING`` instead of an opaque authentication failure
several calls later.
"""

import functools
import logging
from dataclasses import dataclass, fields

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.signals import setting_changed
from django.dispatch import receiver

from wallets.errors import AppError, ErrorCode

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("sandbox", "production")

SERVICE_REQUIREMENTS = {
    "paystack": ("paystack_secret_key",),
    "momo_collections": (
        "momo_collections_subscription_key",
        "momo_collections_api_user",
        "momo_collections_api_key",
    ),
    "momo_disbursements": (
        "momo_disbursements_subscription_key",
        "momo_disbursements_api_user",
        "momo_disbursements_api_key",
    ),
    "momo_webhook": ("momo_webhook_secret",),
}


@dataclass(frozen=True)
class GatewayConfig:
    environment: str
    timeout: int
    strict_cross_verification: bool
    paystack_secret_key: str
    paystack_base_url: str
    paystack_callback_url: str
    momo_collections_subscription_key: str
    momo_collections_api_user: str
    momo_collections_api_key: str
    momo_disbursements_subscription_key: str
    momo_disbursements_api_user: str
    momo_disbursements_api_key: str
    momo_webhook_secret: str
    momo_callback_url: str
    momo_default_currency: str

    @property
    def is_production(self):
        return self.environment == "production"

    @property
    def momo_base_url(self):
        if self.is_production:
            return "https://proxy.momoapi.mtn.com"
        return "https://sandbox.momodeveloper.mtn.com"

    @property
    def requires_cross_verification(self):
        return self.is_production or self.strict_cross_verification

    def __repr__(self):
        # Secrets never end up in logs or tracebacks.
        return f"GatewayConfig(environment={self.environment!r}, timeout={self.timeout!r})"


def load_gateway_config():
    environment = getattr(settings, "PAYMENT_ENVIRONMENT", "sandbox")
    if environment not in ENVIRONMENTS:
        raise ImproperlyConfigured(
            f"PAYMENT_ENVIRONMENT must be one of {ENVIRONMENTS}, got {environment!r}"
        )

    values = {
        "environment": environment,
        "timeout": int(getattr(settings, "GATEWAY_TIMEOUT", 30)),
        "strict_cross_verification": bool(
            getattr(settings, "WEBHOOK_STRICT_CROSS_VERIFICATION", False)
        ),
    }
    for field in fields(GatewayConfig):
        if field.name not in values:
            values[field.name] = getattr(settings, field.name.upper(), "") or ""
    return GatewayConfig(**values)


@functools.lru_cache(maxsize=1)
def get_gateway_config():
    return load_gateway_config()


@receiver(setting_changed)
def _reset_gateway_config(**kwargs):
    get_gateway_config.cache_clear()


def missing_config_keys(config=None):
    config = config or get_gateway_config()
    missing = []
    for keys in SERVICE_REQUIREMENTS.values():
        for key in keys:
            if not getattr(config, key) and key not in missing:
                missing.append(key)
    return missing


def is_service_ready(service, config=None):
    config = config or get_gateway_config()
    required = SERVICE_REQUIREMENTS.get(service)
    if required is None:
        return True
    return all(getattr(config, key) for key in required)


def require_service_ready(service):
    if not is_service_ready(service):
        raise AppError(
            ErrorCode.CONFIG_MISSING,
            f"Service unavailable: {service} is not configured. Contact support.",
            {"service": service},
        )


def report_missing_configuration():
    """Log the gateway keys that are not set. Called once at startup."""
    missing = missing_config_keys()
    if missing:
        logger.error(
            "Gateway configuration missing (%d): %s. "
            "Operations depending on these keys will be refused.",
            len(missing),
            ", ".join(key.upper() for key in missing),
        )
    else:
        logger.info("All gateway configuration present.")
    return missing
