from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from wallets.apps import check_gateway_services
from wallets.conf import (
    get_gateway_config,
    is_service_ready,
    load_gateway_config,
    missing_config_keys,
    require_service_ready,
)
from wallets.errors import AppError, ErrorCode
from wallets.tests.helpers import GATEWAY_SETTINGS

NO_GATEWAYS = {key: "" for key in GATEWAY_SETTINGS}


class GatewayConfigTest(SimpleTestCase):
    @override_settings(**GATEWAY_SETTINGS)
    def test_all_services_ready(self):
        self.assertEqual(missing_config_keys(), [])
        for service in ("paystack", "momo_collections", "momo_disbursements", "momo_webhook"):
            self.assertTrue(is_service_ready(service))
        self.assertEqual(check_gateway_services(), [])

    @override_settings(**NO_GATEWAYS)
    def test_missing_service_is_refused_with_config_missing(self):
        self.assertFalse(is_service_ready("paystack"))
        with self.assertRaises(AppError) as ctx:
            require_service_ready("paystack")
        self.assertEqual(ctx.exception.code, ErrorCode.CONFIG_MISSING)
        self.assertEqual(ctx.exception.details["service"], "paystack")

    @override_settings(**NO_GATEWAYS)
    def test_system_check_warns_per_unready_service(self):
        ids = {warning.id for warning in check_gateway_services()}
        self.assertEqual(ids, {"wallets.W001"})
        self.assertEqual(len(check_gateway_services()), 4)

    @override_settings(PAYMENT_ENVIRONMENT="staging")
    def test_invalid_environment_is_rejected(self):
        with self.assertRaises(ImproperlyConfigured):
            load_gateway_config()

    @override_settings(PAYSTACK_SECRET_KEY="sk_live_very_secret")
    def test_repr_never_contains_secrets(self):
        self.assertNotIn("sk_live_very_secret", repr(get_gateway_config()))

    @override_settings(PAYMENT_ENVIRONMENT="production", WEBHOOK_STRICT_CROSS_VERIFICATION=False)
    def test_production_always_requires_cross_verification(self):
        self.assertTrue(get_gateway_config().requires_cross_verification)

    @override_settings(PAYMENT_ENVIRONMENT="sandbox", WEBHOOK_STRICT_CROSS_VERIFICATION=True)
    def test_sandbox_strict_mode(self):
        self.assertTrue(get_gateway_config().requires_cross_verification)

    @override_settings(PAYMENT_ENVIRONMENT="sandbox", WEBHOOK_STRICT_CROSS_VERIFICATION=False)
    def test_sandbox_tolerant_by_default(self):
        self.assertFalse(get_gateway_config().requires_cross_verification)
