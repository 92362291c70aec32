import json
from decimal import Decimal
from unittest.mock import MagicMock

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from wallets.errors import ServiceError
from wallets.models import MomoTransaction, Payment, Transaction, Wallet, Withdrawal
from wallets.services.webhooks import handle_gateway_webhook, handle_momo_webhook
from wallets.tests.helpers import GATEWAY_SETTINGS, gateway_result, make_user
from wallets.utils import GatewayStatus
from wallets.utils.signatures import compute_signature

SECRET = GATEWAY_SETTINGS["PAYSTACK_SECRET_KEY"]
MOMO_TOKEN = GATEWAY_SETTINGS["MOMO_WEBHOOK_SECRET"]


def signed(event, **data):
    body = json.dumps({"event": event, "data": data}).encode("utf-8")
    return body, compute_signature(SECRET, body)


def verifying_client(gateway_status=GatewayStatus.COMPLETED, **data):
    client = MagicMock()
    result = gateway_result(status=gateway_status, data=data)
    client.verify_transaction.return_value = result
    client.verify_transfer.return_value = result
    return client


# ============================================================
# Card/bank gateway webhooks
# ============================================================


@override_settings(**GATEWAY_SETTINGS, PAYMENT_ENVIRONMENT="sandbox", WEBHOOK_STRICT_CROSS_VERIFICATION=False)
class GatewayChargeWebhookTest(TestCase):
    def setUp(self):
        self.user = make_user("ama", balance="0")
        Payment.objects.create(
            reference="TXN_hook_1",
            user=self.user,
            wallet=self.user.wallet,
            amount=Decimal("250.00"),
            currency="GHS",
            channel="card",
        )
        self.body, self.signature = signed("charge.success", reference="TXN_hook_1", amount=25000, status="success")
        self.client_mock = verifying_client(amount=25000, currency="GHS", channel="card", status="success")

    def _deliver(self, body=None, signature=None, client=None, method="POST"):
        return handle_gateway_webhook(
            method,
            body if body is not None else self.body,
            signature if signature is not None else self.signature,
            client=client or self.client_mock,
        )

    def _balance(self):
        return Wallet.objects.get(user=self.user).balance

    def test_charge_success_credits_wallet(self):
        response = self._deliver()
        self.assertEqual((response.http_status, response.outcome), (200, "processed"))
        self.assertEqual(self._balance(), Decimal("250.00"))
        payment = Payment.objects.get(reference="TXN_hook_1")
        self.assertTrue(payment.processed)
        self.assertEqual(payment.status, Payment.Status.SUCCESS)
        self.client_mock.verify_transaction.assert_called_once_with("TXN_hook_1")

    def test_replayed_delivery_credits_once(self):
        self._deliver()
        response = self._deliver()
        self.assertEqual((response.http_status, response.outcome), (200, "ignored"))
        self.assertEqual(self._balance(), Decimal("250.00"))
        self.assertEqual(Transaction.objects.filter(transaction_id="TXN_hook_1").count(), 1)

    def test_bad_signature(self):
        response = self._deliver(signature="0" * 128)
        self.assertEqual(response.http_status, 400)
        self.assertEqual(response.message, "Invalid signature")
        self.assertEqual(self._balance(), Decimal("0.00"))

    def test_missing_signature(self):
        self.assertEqual(self._deliver(signature="").http_status, 400)

    def test_wrong_method(self):
        self.assertEqual(self._deliver(method="GET").http_status, 405)

    def test_unknown_reference(self):
        body, signature = signed("charge.success", reference="TXN_not_ours", amount=100)
        response = self._deliver(body, signature)
        self.assertEqual(response.http_status, 404)
        self.assertEqual(self._balance(), Decimal("0.00"))

    def test_unhandled_event_is_acknowledged(self):
        body, signature = signed("subscription.create", reference="SUB_1")
        response = self._deliver(body, signature)
        self.assertEqual((response.http_status, response.outcome), (200, "ignored"))

    def test_malformed_body(self):
        body = b"not json"
        response = self._deliver(body, compute_signature(SECRET, body))
        self.assertEqual(response.http_status, 400)

    def test_missing_reference(self):
        body, signature = signed("charge.success", amount=100)
        self.assertEqual(self._deliver(body, signature).http_status, 400)

    def test_gateway_status_wins_over_callback(self):
        client = verifying_client(gateway_status=GatewayStatus.FAILED, status_text="failed")
        response = self._deliver(client=client)
        self.assertEqual(response.http_status, 200)
        self.assertEqual(self._balance(), Decimal("0.00"))
        self.assertEqual(Payment.objects.get(reference="TXN_hook_1").status, Payment.Status.FAILED)

    def test_sandbox_trusts_callback_when_verification_unavailable(self):
        client = MagicMock()
        client.verify_transaction.side_effect = ServiceError("paystack", "timed out")
        response = self._deliver(client=client)
        self.assertEqual(response.outcome, "processed")
        self.assertEqual(self._balance(), Decimal("250.00"))

    @override_settings(PAYMENT_ENVIRONMENT="production")
    def test_production_rejects_unverifiable_callback(self):
        client = MagicMock()
        client.verify_transaction.side_effect = ServiceError("paystack", "timed out")
        response = self._deliver(client=client)
        self.assertEqual(response.http_status, 502)
        self.assertEqual(self._balance(), Decimal("0.00"))
        self.assertFalse(Payment.objects.get(reference="TXN_hook_1").processed)

    @override_settings(WEBHOOK_STRICT_CROSS_VERIFICATION=True)
    def test_strict_sandbox_rejects_unverifiable_callback(self):
        client = verifying_client(gateway_status=GatewayStatus.UNKNOWN)
        self.assertEqual(self._deliver(client=client).http_status, 502)

    @override_settings(PAYSTACK_SECRET_KEY="")
    def test_unconfigured_gateway(self):
        self.assertEqual(self._deliver().http_status, 503)


@override_settings(**GATEWAY_SETTINGS)
class GatewayTransferWebhookTest(TestCase):
    def setUp(self):
        self.user = make_user("kofi", balance="600")
        self.withdrawal = Withdrawal.objects.create(
            reference="WD_hook_1",
            user=self.user,
            wallet=self.user.wallet,
            amount=Decimal("400.00"),
            currency="GHS",
            account_number="0123456789",
            bank_code="058",
            transfer_code="TRF_hook_1",
            status="processing",
        )

    def _deliver(self, event, client_status):
        body, signature = signed(event, reference="WD_hook_1", transfer_code="TRF_hook_1", reason="Bank declined")
        return handle_gateway_webhook("POST", body, signature, client=verifying_client(gateway_status=client_status))

    def test_transfer_success_completes_withdrawal(self):
        response = self._deliver("transfer.success", GatewayStatus.COMPLETED)
        self.assertEqual(response.outcome, "processed")
        self.withdrawal.refresh_from_db()
        self.assertEqual(self.withdrawal.status, "completed")
        self.assertEqual(self._deliver("transfer.success", GatewayStatus.COMPLETED).outcome, "ignored")

    def test_transfer_failed_refunds_once(self):
        self.assertEqual(self._deliver("transfer.failed", GatewayStatus.FAILED).outcome, "processed")
        self.assertEqual(self._deliver("transfer.failed", GatewayStatus.FAILED).outcome, "ignored")
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("1000.00"))
        self.withdrawal.refresh_from_db()
        self.assertTrue(self.withdrawal.refunded)
        self.assertEqual(self.withdrawal.failure_reason, "Bank declined")

    def test_reversal_after_completion_refunds(self):
        self._deliver("transfer.success", GatewayStatus.COMPLETED)
        self._deliver("transfer.reversed", GatewayStatus.FAILED)
        self.withdrawal.refresh_from_db()
        self.assertEqual(self.withdrawal.status, "refunded")
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("1000.00"))

    def test_late_success_after_refund_is_ignored(self):
        self._deliver("transfer.failed", GatewayStatus.FAILED)
        response = self._deliver("transfer.success", GatewayStatus.COMPLETED)
        self.assertEqual((response.http_status, response.outcome), (200, "ignored"))
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("1000.00"))


# ============================================================
# MoMo webhooks
# ============================================================


def momo_factory(status_text="SUCCESSFUL", ok=True):
    client = MagicMock()
    if ok:
        client.get_status.return_value = gateway_result(
            status=GatewayStatus.COMPLETED if status_text == "SUCCESSFUL" else GatewayStatus.FAILED,
            provider_reference="FIN-9",
            data={"status": status_text},
        )
    else:
        client.get_status.return_value = gateway_result(ok=False, status=GatewayStatus.UNKNOWN)
    factory = MagicMock(return_value=client)
    return factory


@override_settings(**GATEWAY_SETTINGS, PAYMENT_ENVIRONMENT="sandbox", WEBHOOK_STRICT_CROSS_VERIFICATION=False)
class MomoWebhookTest(TestCase):
    def setUp(self):
        self.user = make_user("esi", balance="0")
        MomoTransaction.objects.create(
            reference_id="5f0c3c52-0000-4000-8000-000000000001",
            type=MomoTransaction.Type.COLLECTION,
            user=self.user,
            amount=Decimal("75.00"),
            currency="GHS",
            phone_number="233241234567",
            status="pending",
        )
        self.body = json.dumps(
            {
                "externalId": "5f0c3c52-0000-4000-8000-000000000001",
                "status": "SUCCESSFUL",
                "financialTransactionId": "FIN-9",
            }
        ).encode("utf-8")

    def _deliver(self, token=MOMO_TOKEN, body=None, factory=None, method="POST"):
        return handle_momo_webhook(
            method, token, body if body is not None else self.body, client_factory=factory or momo_factory()
        )

    def _balance(self):
        return Wallet.objects.get(user=self.user).balance

    def test_verified_success_credits_wallet_once(self):
        factory = momo_factory()
        self.assertEqual(self._deliver(factory=factory).http_status, 200)
        self.assertEqual(self._deliver(factory=factory).http_status, 200)
        self.assertEqual(self._balance(), Decimal("75.00"))
        factory.assert_called_with("collection")
        record = MomoTransaction.objects.get()
        self.assertEqual(record.status, "completed")
        self.assertEqual(record.callback_status, "SUCCESSFUL")
        self.assertEqual(record.financial_transaction_id, "FIN-9")

    def test_invalid_token(self):
        response = self._deliver(token="wrong")
        self.assertEqual(response.http_status, 403)
        self.assertEqual(self._balance(), Decimal("0.00"))

    def test_missing_token(self):
        self.assertEqual(self._deliver(token=None).http_status, 403)

    def test_wrong_method(self):
        self.assertEqual(self._deliver(method="GET").http_status, 405)

    def test_missing_fields(self):
        body = json.dumps({"status": "SUCCESSFUL"}).encode("utf-8")
        self.assertEqual(self._deliver(body=body).http_status, 400)

    def test_unknown_external_id(self):
        body = json.dumps({"externalId": "not-ours", "status": "SUCCESSFUL"}).encode("utf-8")
        self.assertEqual(self._deliver(body=body).http_status, 404)

    def test_api_status_wins_over_callback(self):
        response = self._deliver(factory=momo_factory(status_text="FAILED"))
        self.assertEqual(response.http_status, 200)
        self.assertEqual(self._balance(), Decimal("0.00"))
        self.assertEqual(MomoTransaction.objects.get().status, "failed")

    def test_sandbox_accepts_unverifiable_callback(self):
        self._deliver(factory=momo_factory(ok=False))
        self.assertEqual(self._balance(), Decimal("75.00"))

    @override_settings(PAYMENT_ENVIRONMENT="production")
    def test_production_rejects_unverifiable_callback(self):
        response = self._deliver(factory=momo_factory(ok=False))
        self.assertEqual(response.http_status, 502)
        self.assertEqual(self._balance(), Decimal("0.00"))
        self.assertEqual(MomoTransaction.objects.get().status, "pending")

    @override_settings(PAYMENT_ENVIRONMENT="production", MOMO_WEBHOOK_SECRET="")
    def test_production_without_secret_is_misconfigured(self):
        self.assertEqual(self._deliver().http_status, 503)

    @override_settings(MOMO_WEBHOOK_SECRET="")
    def test_sandbox_without_secret_accepts(self):
        self.assertEqual(self._deliver(token=None).http_status, 200)


# ============================================================
# Webhook endpoints
# ============================================================


@override_settings(**GATEWAY_SETTINGS)
class WebhookEndpointTest(TestCase):
    def setUp(self):
        self.api = APIClient()

    def test_gateway_endpoint_needs_no_authentication_but_checks_signature(self):
        body, _ = signed("charge.success", reference="TXN_x")
        response = self.api.post(
            reverse("webhook-gateway"),
            data=body,
            content_type="application/json",
            HTTP_X_PAYSTACK_SIGNATURE="deadbeef",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Invalid signature")

    def test_gateway_endpoint_acknowledges_signed_unhandled_event(self):
        body, signature = signed("customeridentification.success", reference="CUS_1")
        response = self.api.post(
            reverse("webhook-gateway"),
            data=body,
            content_type="application/json",
            HTTP_X_PAYSTACK_SIGNATURE=signature,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "ignored")

    def test_gateway_endpoint_rejects_get(self):
        self.assertEqual(self.api.get(reverse("webhook-gateway")).status_code, 405)

    def test_momo_endpoint_checks_token(self):
        response = self.api.post(
            reverse("webhook-momo") + "?token=wrong",
            data=json.dumps({"externalId": "x", "status": "SUCCESSFUL"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
