"""
Settings for the wallet backend.

Every secret and tunable is read from the environment so the same module
serves development, CI and production. Gateway secrets default to empty
strings: the wallets app reports them at startup and refuses to call an
unconfigured gateway (see ``wallets.conf``).
"""

import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "replace-me-in-production")

DEBUG = env_bool("DJANGO_DEBUG", False)

ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework.authtoken",
    "wallets.apps.WalletsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "wallets.middleware.RequestResponseLoggingMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.environ.get("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.environ.get("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.environ.get("DB_USER", ""),
        "PASSWORD": os.environ.get("DB_PASSWORD", ""),
        "HOST": os.environ.get("DB_HOST", ""),
        "PORT": os.environ.get("DB_PORT", ""),
    }
}

# The "burst" cache backs the process-local lookup limiter. It is bounded and
# local to each worker.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "wallets-default",
    },
    "burst": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "wallets-burst",
        "OPTIONS": {"MAX_ENTRIES": 10000},
    },
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "EXCEPTION_HANDLER": "wallets.utils.exceptions.api_exception_handler",
}

# Celery
CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_TASK_ACKS_LATE = True
CELERY_TIMEZONE = "UTC"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "wallets": {
            "handlers": ["console"],
            "level": os.environ.get("WALLETS_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

# ---------------------------------------------------------------------------
# Payment gateways
# ---------------------------------------------------------------------------

PAYMENT_ENVIRONMENT = os.environ.get("PAYMENT_ENVIRONMENT", "sandbox")

PAYSTACK_SECRET_KEY = os.environ.get("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.environ.get("PAYSTACK_BASE_URL", "https://api.paystack.co")
PAYSTACK_CALLBACK_URL = os.environ.get("PAYSTACK_CALLBACK_URL", "")

MOMO_COLLECTIONS_SUBSCRIPTION_KEY = os.environ.get("MOMO_COLLECTIONS_SUBSCRIPTION_KEY", "")
MOMO_COLLECTIONS_API_USER = os.environ.get("MOMO_COLLECTIONS_API_USER", "")
MOMO_COLLECTIONS_API_KEY = os.environ.get("MOMO_COLLECTIONS_API_KEY", "")
MOMO_DISBURSEMENTS_SUBSCRIPTION_KEY = os.environ.get("MOMO_DISBURSEMENTS_SUBSCRIPTION_KEY", "")
MOMO_DISBURSEMENTS_API_USER = os.environ.get("MOMO_DISBURSEMENTS_API_USER", "")
MOMO_DISBURSEMENTS_API_KEY = os.environ.get("MOMO_DISBURSEMENTS_API_KEY", "")
MOMO_WEBHOOK_SECRET = os.environ.get("MOMO_WEBHOOK_SECRET", "")
MOMO_CALLBACK_URL = os.environ.get("MOMO_CALLBACK_URL", "")
MOMO_DEFAULT_CURRENCY = os.environ.get("MOMO_DEFAULT_CURRENCY", "EUR")

GATEWAY_TIMEOUT = int(os.environ.get("GATEWAY_TIMEOUT", 30))

# Sandbox only: refuse webhooks that could not be cross-verified. Production
# always refuses them regardless of this flag.
WEBHOOK_STRICT_CROSS_VERIFICATION = env_bool("WEBHOOK_STRICT_CROSS_VERIFICATION", False)

# Dedicated deposit accounts are opened at this partner bank.
PAYSTACK_PREFERRED_BANK = os.environ.get("PAYSTACK_PREFERRED_BANK", "wema-bank")

# ---------------------------------------------------------------------------
# QR payment requests
# ---------------------------------------------------------------------------

QR_SIGNING_SECRET = os.environ.get("QR_SIGNING_SECRET", "")
QR_CODE_TTL = timedelta(minutes=15)

# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

SUPPORTED_CURRENCIES = [
    "USD", "NGN", "ZAR", "KES", "GHS", "EGP", "TZS", "UGX", "RWF", "ETB",
    "MAD", "DZD", "TND", "XAF", "XOF", "ZWL", "ZMW", "BWP", "NAD", "MZN",
    "AOA", "CDF", "SDG", "LYD", "MUR", "MWK", "SLL", "LRD", "GMD", "GNF",
    "BIF", "ERN", "DJF", "SOS", "SSP", "LSL", "SZL", "MGA", "SCR", "KMF",
    "MRU", "CVE", "STN", "GBP", "EUR",
]
DEFAULT_WALLET_CURRENCY = os.environ.get("DEFAULT_WALLET_CURRENCY", "GHS")

TRANSFER_FEE_RATE = Decimal("0.01")
TRANSFER_FEE_MIN = Decimal("10")
TRANSFER_FEE_MAX = Decimal("100")
TRANSFER_MAX_AMOUNT = Decimal("10000000")
WITHDRAWAL_MIN_AMOUNT = Decimal("100")

WALLET_DAILY_LIMIT = Decimal(os.environ.get("WALLET_DAILY_LIMIT", "500000"))
WALLET_MONTHLY_LIMIT = Decimal(os.environ.get("WALLET_MONTHLY_LIMIT", "5000000"))

EXCHANGE_RATE_API_URL = os.environ.get(
    "EXCHANGE_RATE_API_URL", "https://api.exchangerate.host/latest?base=USD"
)
EXCHANGE_RATE_MAX_AGE = timedelta(hours=36)

# ---------------------------------------------------------------------------
# Abuse protection
# ---------------------------------------------------------------------------

IDEMPOTENCY_KEY_MIN_LENGTH = 16
IDEMPOTENCY_KEY_TTL = timedelta(hours=24)

WALLET_RATE_LIMITS = {
    "send_money": {
        "window_seconds": 3600,
        "max_requests": 20,
        "message": "Too many transfers. Please wait before sending again.",
    },
    "initiate_withdrawal": {
        "window_seconds": 3600,
        "max_requests": 5,
        "message": "Too many withdrawal attempts. Please try again later.",
    },
    "momo_request_to_pay": {
        "window_seconds": 3600,
        "max_requests": 10,
        "message": "Too many MoMo payment requests. Please try again later.",
    },
    "momo_transfer": {
        "window_seconds": 3600,
        "max_requests": 5,
        "message": "Too many MoMo transfers. Please try again later.",
    },
    "lookup_wallet": {
        "window_seconds": 300,
        "max_requests": 30,
        "message": "Too many wallet lookups. Please wait a few minutes.",
    },
}

LOOKUP_BURST_LIMIT = {"window_seconds": 60, "max_requests": 100}
LOOKUP_FAILURE_LIMIT = {"window_seconds": 300, "max_failures": 10}
