from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from rest_framework.test import APIClient

from wallets.models import Payment, Profile, Transaction, Wallet, Withdrawal
from wallets.services import WalletService
from wallets.tests.helpers import GATEWAY_SETTINGS, clear_burst_cache, gateway_result, make_user, new_key
from wallets.utils import GatewayStatus

# ============================================================
# Error envelope and wallets
# ============================================================


class ErrorEnvelopeTest(TestCase):
    def setUp(self):
        self.api = APIClient()

    def test_unauthenticated(self):
        response = self.api.get(reverse("wallet-me"))
        self.assertEqual(response.status_code, 401)
        error = response.json()["error"]
        self.assertEqual(error["code"], "AUTH_UNAUTHENTICATED")
        self.assertEqual(error["status"], "unauthenticated")
        self.assertIn("timestamp", error["details"])

    def test_validation_error(self):
        user = make_user("ama")
        self.api.force_authenticate(user=user)
        response = self.api.post(reverse("transfer-send"), {"amount": "abc"}, format="json")
        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "SYSTEM_VALIDATION_FAILED")
        self.assertIn("recipient_wallet_id", error["details"]["fields"])


class WalletAPITest(TestCase):
    def setUp(self):
        self.api = APIClient()
        clear_burst_cache()

    def tearDown(self):
        clear_burst_cache()

    def test_open_wallet(self):
        user = get_user_model().objects.create_user(username="nana", password="pass1234")
        self.api.force_authenticate(user=user)

        response = self.api.post(reverse("wallet-open"), {"full_name": "Nana Ama", "currency": "ghs"}, format="json")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["currency"], "GHS")
        self.assertEqual(Decimal(response.json()["balance"]), Decimal("0"))

        response = self.api.post(reverse("wallet-open"), {}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Wallet.objects.filter(user=user).count(), 1)

    def test_open_wallet_rejects_unknown_currency(self):
        user = get_user_model().objects.create_user(username="nana", password="pass1234")
        self.api.force_authenticate(user=user)
        response = self.api.post(reverse("wallet-open"), {"currency": "XYZ"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Wallet.objects.filter(user=user).exists())

    def test_my_wallet(self):
        user = make_user("ama", balance="42.50")
        self.api.force_authenticate(user=user)
        response = self.api.get(reverse("wallet-me"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["wallet_id"], user.wallet.wallet_id)
        self.assertEqual(response.json()["balance"], "42.50")

    def test_my_wallet_missing(self):
        user = get_user_model().objects.create_user(username="nowallet", password="pass1234")
        self.api.force_authenticate(user=user)
        response = self.api.get(reverse("wallet-me"))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "WALLET_NOT_FOUND")

    def test_lookup(self):
        user = make_user("ama")
        target = make_user("kofi", full_name="Kofi Boateng")
        self.api.force_authenticate(user=user)

        response = self.api.post(
            reverse("wallet-lookup"), {"wallet_id": target.wallet.wallet_id.lower()}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["recipient_name"], "Kofi Boateng")

        response = self.api.post(reverse("wallet-lookup"), {"wallet_id": "QRW-AAAA-BBBB-CCCC"}, format="json")
        self.assertEqual(response.json(), {"found": False})


# ============================================================
# Transfers
# ============================================================


class SendMoneyAPITest(TransactionTestCase):
    def setUp(self):
        self.api = APIClient()
        self.sender = make_user("ama", balance="1000")
        self.recipient = make_user("kofi", balance="0", full_name="Kofi Boateng")
        self.api.force_authenticate(user=self.sender)

    def _send(self, amount, key):
        return self.api.post(
            reverse("transfer-send"),
            {"recipient_wallet_id": self.recipient.wallet.wallet_id, "amount": amount},
            format="json",
            HTTP_IDEMPOTENCY_KEY=key,
        )

    def test_send_and_replay(self):
        key = new_key()
        first = self._send("100.00", key)
        second = self._send("100.00", key)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["fee"], "10.00")
        self.assertEqual(second.status_code, 200)
        self.assertTrue(second.json()["idempotent_replay"])
        self.assertEqual(Wallet.objects.get(user=self.sender).balance, Decimal("890.00"))

    def test_idempotency_key_in_body(self):
        response = self.api.post(
            reverse("transfer-send"),
            {
                "recipient_wallet_id": self.recipient.wallet.wallet_id,
                "amount": "50",
                "idempotency_key": new_key(),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 200)

    def test_insufficient_funds_envelope(self):
        response = self._send("5000", new_key())
        self.assertEqual(response.status_code, 400)
        error = response.json()["error"]
        self.assertEqual(error["code"], "WALLET_INSUFFICIENT_FUNDS")
        self.assertEqual(error["status"], "failed-precondition")

    def test_missing_key(self):
        response = self.api.post(
            reverse("transfer-send"),
            {"recipient_wallet_id": self.recipient.wallet.wallet_id, "amount": "50"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "SYSTEM_VALIDATION_FAILED")

    def test_unverified_sender(self):
        Profile.objects.filter(user=self.sender).update(kyc_status="pending")
        response = self._send("50", new_key())
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "KYC_REQUIRED")


# ============================================================
# Withdrawals and payments
# ============================================================


@override_settings(**GATEWAY_SETTINGS)
class WithdrawalAPITest(TransactionTestCase):
    def setUp(self):
        self.api = APIClient()
        self.user = make_user("ama", balance="1000")
        self.api.force_authenticate(user=self.user)

    @patch("wallets.services.withdrawal.PaystackClient")
    def test_initiate_withdrawal(self, client_cls):
        client = client_cls.return_value
        client.create_transfer_recipient.return_value = gateway_result(provider_reference="RCP_1")
        client.initiate_transfer.return_value = gateway_result(
            status=GatewayStatus.PENDING_OTP, provider_reference="TRF_1"
        )

        response = self.api.post(
            reverse("withdrawal-initiate"),
            {"amount": "250", "type": "bank", "account_number": "0123456789", "bank_code": "058"},
            format="json",
            HTTP_IDEMPOTENCY_KEY=new_key(),
        )

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["requires_otp"])
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("750.00"))

        client.finalize_transfer.return_value = gateway_result(status=GatewayStatus.PENDING)
        response = self.api.post(
            reverse("withdrawal-finalize"),
            {"transfer_code": "TRF_1", "otp": "123456"},
            format="json",
            HTTP_IDEMPOTENCY_KEY=new_key(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Withdrawal.objects.get().status, "processing")

    def test_destination_is_validated(self):
        response = self.api.post(
            reverse("withdrawal-initiate"),
            {"amount": "250", "type": "bank", "account_number": "0123456789"},
            format="json",
            HTTP_IDEMPOTENCY_KEY=new_key(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("bank_code", response.json()["error"]["details"]["fields"])


@override_settings(**GATEWAY_SETTINGS)
class PaymentAPITest(TransactionTestCase):
    def setUp(self):
        self.api = APIClient()
        self.user = make_user("ama", balance="0")
        self.api.force_authenticate(user=self.user)

    @patch("wallets.services.payment.PaystackClient")
    def test_initialize_transaction(self, client_cls):
        client_cls.return_value.initialize_transaction.return_value = gateway_result(
            status=GatewayStatus.PENDING,
            data={"authorization_url": "https://checkout.example/abc", "access_code": "abc"},
        )
        response = self.api.post(
            reverse("payment-initialize"), {"email": "ama@example.com", "amount": "100"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        reference = response.json()["reference"]
        self.assertTrue(reference.startswith("TXN_"))
        payment = Payment.objects.get(reference=reference)
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertFalse(payment.processed)

    @patch("wallets.services.payment.PaystackClient")
    def test_verify_payment_credits_once(self, client_cls):
        client_cls.return_value.verify_transaction.return_value = gateway_result(
            data={
                "status": "success",
                "amount": 50000,
                "currency": "GHS",
                "channel": "card",
                "metadata": {"user_id": str(self.user.pk)},
            },
        )
        first = self.api.post(reverse("payment-verify"), {"reference": "TXN_verify_1"}, format="json")
        second = self.api.post(reverse("payment-verify"), {"reference": "TXN_verify_1"}, format="json")

        self.assertEqual(first.status_code, 200)
        self.assertTrue(first.json()["verified"])
        self.assertEqual(first.json()["new_balance"], "500.00")
        self.assertTrue(second.json()["already_processed"])
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("500.00"))

    @patch("wallets.services.payment.PaystackClient")
    def test_verify_payment_renders_money_as_strings(self, client_cls):
        client_cls.return_value.verify_transaction.return_value = gateway_result(
            data={"status": "success", "amount": 10, "currency": "GHS", "metadata": {"user_id": str(self.user.pk)}},
        )
        response = self.api.post(reverse("payment-verify"), {"reference": "TXN_verify_3"}, format="json")

        body = response.json()
        self.assertEqual((body["amount"], body["new_balance"]), ("0.10", "0.10"))
        self.assertFalse(body["already_processed"])

    @patch("wallets.services.payment.PaystackClient")
    def test_pending_verification_omits_money_fields(self, client_cls):
        client_cls.return_value.verify_transaction.return_value = gateway_result(
            status=GatewayStatus.PENDING, data={"status": "pending"}
        )
        response = self.api.post(reverse("payment-verify"), {"reference": "TXN_verify_4"}, format="json")

        body = response.json()
        self.assertFalse(body["verified"])
        self.assertEqual(body["status"], "pending")
        self.assertNotIn("amount", body)

    @patch("wallets.services.payment.PaystackClient")
    def test_verify_payment_of_another_user(self, client_cls):
        other = make_user("kofi")
        client_cls.return_value.verify_transaction.return_value = gateway_result(
            data={"status": "success", "amount": 50000, "currency": "GHS", "metadata": {"user_id": str(other.pk)}},
        )
        response = self.api.post(reverse("payment-verify"), {"reference": "TXN_verify_2"}, format="json")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "AUTH_PERMISSION_DENIED")
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("0.00"))

    @patch("wallets.services.payment.PaystackClient")
    def test_unsuccessful_payment_is_not_credited(self, client_cls):
        client_cls.return_value.verify_transaction.return_value = gateway_result(
            status=GatewayStatus.FAILED, message="Declined", data={"status": "failed"}
        )
        response = self.api.post(reverse("payment-verify"), {"reference": "TXN_verify_3"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["verified"])
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("0.00"))

    @patch("wallets.services.payment.PaystackClient")
    def test_mobile_money_charge_completed_immediately(self, client_cls):
        client_cls.return_value.charge_mobile_money.return_value = gateway_result(
            data={"status": "success", "display_text": "Approved"}
        )
        response = self.api.post(
            reverse("payment-mobile-money-charge"),
            {"email": "ama@example.com", "amount": "20", "phone_number": "0241234567", "provider": "mtn"},
            format="json",
            HTTP_IDEMPOTENCY_KEY=new_key(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["completed"])
        self.assertEqual(Wallet.objects.get(user=self.user).balance, Decimal("20.00"))

    @patch("wallets.services.payment.PaystackClient")
    def test_bank_list(self, client_cls):
        client_cls.return_value.list_banks.return_value = gateway_result(
            data={"banks": [{"name": "GTBank", "code": "058", "type": "nuban", "id": 9}]}
        )
        response = self.api.get(reverse("bank-list"), {"country": "ghana"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"banks": [{"name": "GTBank", "code": "058", "type": "nuban"}]})
        client_cls.return_value.list_banks.assert_called_once_with("ghana")

    @patch("wallets.services.payment.PaystackClient")
    def test_verify_bank_account(self, client_cls):
        client_cls.return_value.resolve_account.return_value = gateway_result(
            data={"account_name": "AMA MENSAH", "account_number": "0123456789", "bank_id": 9}
        )
        response = self.api.post(
            reverse("bank-verify-account"), {"account_number": "0123456789", "bank_code": "058"}, format="json"
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["account_name"], "AMA MENSAH")


# ============================================================
# MoMo, KYC and receipts
# ============================================================


@override_settings(**GATEWAY_SETTINGS)
class MomoAPITest(TestCase):
    def setUp(self):
        self.api = APIClient()
        self.user = make_user("esi", balance="500")
        self.api.force_authenticate(user=self.user)

    @patch("wallets.services.momo.MomoClient")
    def test_request_to_pay_is_accepted(self, client_cls):
        client_cls.return_value.request_to_pay.return_value = gateway_result(status=GatewayStatus.PENDING)
        response = self.api.post(
            reverse("momo-request-to-pay"),
            {"amount": "10", "phone_number": "233241234567"},
            format="json",
            HTTP_IDEMPOTENCY_KEY=new_key(),
        )
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["status"], "pending")
        client_cls.assert_called_once_with("collection")

    @patch("wallets.services.momo.MomoClient")
    def test_status_check_renders_amount_as_string(self, client_cls):
        client_cls.return_value.request_to_pay.return_value = gateway_result(status=GatewayStatus.PENDING)
        client_cls.return_value.get_status.return_value = gateway_result(
            status=GatewayStatus.PENDING, data={"status": "PENDING"}
        )
        accepted = self.api.post(
            reverse("momo-request-to-pay"),
            {"amount": "10", "phone_number": "233241234567"},
            format="json",
            HTTP_IDEMPOTENCY_KEY=new_key(),
        )

        response = self.api.post(
            reverse("momo-status"), {"reference_id": accepted.json()["reference_id"]}, format="json"
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["amount"], "10.00")
        self.assertEqual(response.json()["provider_status"], "PENDING")

    def test_balance_is_staff_only(self):
        response = self.api.get(reverse("momo-balance"))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "AUTH_PERMISSION_DENIED")


class KycAPITest(TestCase):
    def test_update_status(self):
        user = make_user("ama", kyc="pending")
        Profile.objects.filter(user=user).update(kyc_documents_status="approved")
        api = APIClient()
        api.force_authenticate(user=user)

        response = api.post(reverse("kyc-status"), {"status": "verified"}, format="json")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"kyc_status": "verified"})

    def test_invalid_status(self):
        user = make_user("ama", kyc="pending")
        api = APIClient()
        api.force_authenticate(user=user)
        response = api.post(reverse("kyc-status"), {"status": "approved"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "KYC_VERIFICATION_FAILED")


class TransactionAPITest(TransactionTestCase):
    def setUp(self):
        self.api = APIClient()
        self.sender = make_user("ama", balance="1000")
        self.recipient = make_user("kofi", balance="0")
        self.result = WalletService.send_money(
            self.sender, self.recipient.wallet.wallet_id, "100", idempotency_key=new_key()
        )

    def test_list_shows_only_own_receipts(self):
        self.api.force_authenticate(user=self.sender)
        response = self.api.get(reverse("transaction-list"))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        rows = data["results"] if isinstance(data, dict) else data
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["type"], "send")

    def test_filters(self):
        self.api.force_authenticate(user=self.recipient)
        response = self.api.get(reverse("transaction-list"), {"type": "RECEIVE", "status": "completed"})
        data = response.json()
        rows = data["results"] if isinstance(data, dict) else data
        self.assertEqual(len(rows), 1)
        response = self.api.get(reverse("transaction-list"), {"type": "send"})
        data = response.json()
        rows = data["results"] if isinstance(data, dict) else data
        self.assertEqual(len(rows), 0)

    def test_detail(self):
        self.api.force_authenticate(user=self.recipient)
        response = self.api.get(reverse("transaction-detail", args=[self.result["transaction_id"]]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["fee"], "0.00")

    def test_detail_of_someone_else(self):
        outsider = make_user("yaw")
        self.api.force_authenticate(user=outsider)
        response = self.api.get(reverse("transaction-detail", args=[self.result["transaction_id"]]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(Transaction.objects.count(), 2)

    def test_currency_filter_and_limit(self):
        WalletService.send_money(self.sender, self.recipient.wallet.wallet_id, "50", idempotency_key=new_key())
        self.api.force_authenticate(user=self.sender)

        response = self.api.get(reverse("transaction-list"), {"currency": "ghs"})
        self.assertEqual(len(response.json()), 2)
        response = self.api.get(reverse("transaction-list"), {"currency": "NGN"})
        self.assertEqual(len(response.json()), 0)
        response = self.api.get(reverse("transaction-list"), {"limit": "1"})
        rows = response.json()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["amount"], "50.00")
