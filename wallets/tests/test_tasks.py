from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

from django.core.management import CommandError, call_command
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone

from wallets.errors import ServiceError
from wallets.models import (
    ExchangeRateTable,
    IdempotencyKey,
    PlatformCurrencyBalance,
    PlatformWallet,
    RateLimitWindow,
    Wallet,
)
from wallets.tasks import (
    cleanup_idempotency_keys,
    cleanup_rate_limit_windows,
    refresh_exchange_rates,
    reset_daily_spend,
    reset_monthly_spend,
)
from wallets.tests.helpers import make_user, new_key, store_rates

# ============================================================
# Celery Task Tests
# ============================================================


class CleanupTaskTest(TransactionTestCase):
    def setUp(self):
        self.user = make_user("ama")

    def test_cleanup_idempotency_keys_removes_only_expired(self):
        now = timezone.now()
        for _ in range(3):
            IdempotencyKey.objects.create(
                key=new_key(), user=self.user, operation="send_money", expires_at=now - timedelta(minutes=1)
            )
        live = IdempotencyKey.objects.create(
            key=new_key(), user=self.user, operation="send_money", expires_at=now + timedelta(hours=1)
        )

        result = cleanup_idempotency_keys.apply(kwargs={"batch_size": 2})

        self.assertEqual(result.get(), {"deleted": 3})
        self.assertEqual(list(IdempotencyKey.objects.values_list("pk", flat=True)), [live.pk])

    @override_settings(
        WALLET_RATE_LIMITS={"send_money": {"window_seconds": 3600, "max_requests": 20, "message": "x"}}
    )
    def test_cleanup_rate_limit_windows(self):
        stale = RateLimitWindow.objects.create(user=self.user, operation="send_money", requests=[1.0])
        RateLimitWindow.objects.filter(pk=stale.pk).update(updated_at=timezone.now() - timedelta(hours=2))
        RateLimitWindow.objects.create(user=self.user, operation="lookup_wallet", requests=[1.0])

        result = cleanup_rate_limit_windows.apply()

        self.assertEqual(result.get(), {"deleted": 1})
        self.assertEqual(list(RateLimitWindow.objects.values_list("operation", flat=True)), ["lookup_wallet"])


class SpendResetTaskTest(TransactionTestCase):
    def setUp(self):
        self.user = make_user("ama")
        Wallet.objects.filter(user=self.user).update(daily_spent=Decimal("120"), monthly_spent=Decimal("900"))

    def test_reset_daily_spend(self):
        self.assertEqual(reset_daily_spend.apply().get(), {"reset": 1})
        wallet = Wallet.objects.get(user=self.user)
        self.assertEqual(wallet.daily_spent, Decimal("0"))
        self.assertEqual(wallet.monthly_spent, Decimal("900"))

    def test_reset_monthly_spend(self):
        self.assertEqual(reset_monthly_spend.apply().get(), {"reset": 1})
        self.assertEqual(Wallet.objects.get(user=self.user).monthly_spent, Decimal("0"))


class RefreshExchangeRatesTaskTest(TransactionTestCase):
    @patch("wallets.services.exchange.rate_provider.fetch_usd_rates")
    def test_refresh(self, fetch):
        fetch.return_value = {"GHS": "15.1", "NGN": "1510"}

        result = refresh_exchange_rates.apply()

        self.assertEqual(result.get()["currencies"], 3)
        self.assertEqual(ExchangeRateTable.objects.get().rates["GHS"], "15.1")

    @patch("wallets.tasks.exchange.refresh_rates")
    def test_failed_refresh_keeps_previous_rates(self, refresh):
        store_rates(GHS="14")
        refresh.side_effect = ServiceError("exchange_rates", "Exchange rates are unavailable.")

        refresh_exchange_rates.apply()

        self.assertTrue(refresh.called)
        self.assertEqual(ExchangeRateTable.objects.get().rates["GHS"], "14")


# ============================================================
# Management commands
# ============================================================


class ManagementCommandTest(TestCase):
    def test_setup_platform_wallet(self):
        out = StringIO()
        call_command("setup_platform_wallet", stdout=out)
        call_command("setup_platform_wallet", stdout=out)
        self.assertEqual(PlatformWallet.objects.count(), 1)
        self.assertEqual(PlatformCurrencyBalance.objects.filter(currency="GHS").count(), 1)
        self.assertIn("Platform wallet ready: QRW-PLATFORM", out.getvalue())

    @patch("wallets.services.exchange.rate_provider.fetch_usd_rates")
    def test_refresh_exchange_rates(self, fetch):
        fetch.return_value = {"GHS": "15.1"}
        out = StringIO()
        call_command("refresh_exchange_rates", url="https://rates.example/latest", stdout=out)
        self.assertIn("Stored rates for 2 currencies.", out.getvalue())
        fetch.assert_called_once_with("https://rates.example/latest", session=None)

    @patch("wallets.services.exchange.rate_provider.fetch_usd_rates")
    def test_refresh_exchange_rates_failure(self, fetch):
        fetch.side_effect = ServiceError("exchange_rates", "Exchange rates are unavailable.")
        with self.assertRaises(CommandError):
            call_command("refresh_exchange_rates", stdout=StringIO())
