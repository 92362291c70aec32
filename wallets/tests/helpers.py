import uuid
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core.cache import caches

from wallets.models import ExchangeRateTable, Profile, Wallet
from wallets.utils import GatewayResult, GatewayStatus

GATEWAY_SETTINGS = {
    "PAYSTACK_SECRET_KEY": "sk_test_secret",
    "MOMO_COLLECTIONS_SUBSCRIPTION_KEY": "col-sub",
    "MOMO_COLLECTIONS_API_USER": "col-user",
    "MOMO_COLLECTIONS_API_KEY": "col-key",
    "MOMO_DISBURSEMENTS_SUBSCRIPTION_KEY": "dis-sub",
    "MOMO_DISBURSEMENTS_API_USER": "dis-user",
    "MOMO_DISBURSEMENTS_API_KEY": "dis-key",
    "MOMO_WEBHOOK_SECRET": "momo-hook-token",
}


def make_user(username, balance="0", currency="GHS", kyc="verified", full_name=None):
    user = get_user_model().objects.create_user(username=username, password="pass1234")
    Profile.objects.create(
        user=user,
        full_name=full_name if full_name is not None else username.title(),
        kyc_status=kyc,
        kyc_documents_status="approved" if kyc == "verified" else "",
    )
    Wallet.objects.create(user=user, currency=currency, balance=Decimal(balance))
    return user


def new_key():
    return uuid.uuid4().hex


def store_rates(**rates):
    rates = {"USD": "1", **{currency: str(value) for currency, value in rates.items()}}
    return ExchangeRateTable.objects.create(base="USD", rates=rates, source="test")


def gateway_result(ok=True, status=GatewayStatus.COMPLETED, provider_reference="", message="", data=None):
    data = data or {}
    return GatewayResult(
        ok=ok,
        status=status,
        provider_reference=provider_reference,
        message=message,
        data=data,
        raw={"status": ok, "data": data},
    )


def clear_burst_cache():
    caches["burst"].clear()
