from decimal import Decimal
from unittest.mock import MagicMock

from django.test import TransactionTestCase, override_settings

from wallets.errors import AppError, ErrorCode, ServiceError
from wallets.models import IdempotencyKey, Transaction, Wallet, Withdrawal
from wallets.services import WithdrawalService
from wallets.tests.helpers import GATEWAY_SETTINGS, gateway_result, make_user, new_key
from wallets.utils import GatewayStatus

BANK_DESTINATION = {
    "type": "bank",
    "account_number": "0123456789",
    "bank_code": "058",
    "account_name": "Ama Mensah",
}


def paystack_client(transfer_status=GatewayStatus.PENDING, transfer_ok=True):
    client = MagicMock()
    client.create_transfer_recipient.return_value = gateway_result(
        status=GatewayStatus.COMPLETED, provider_reference="RCP_test"
    )
    client.initiate_transfer.return_value = gateway_result(
        ok=transfer_ok,
        status=transfer_status,
        provider_reference="TRF_test",
        message="" if transfer_ok else "Insufficient balance on integration",
    )
    client.finalize_transfer.return_value = gateway_result(
        status=GatewayStatus.PENDING, provider_reference="TRF_test"
    )
    return client


@override_settings(**GATEWAY_SETTINGS)
class InitiateWithdrawalTest(TransactionTestCase):
    def setUp(self):
        self.user = make_user("ama", balance="1000", full_name="Ama Mensah")

    def _initiate(self, amount="500", client=None, key=None, **destination):
        data = {**BANK_DESTINATION, **destination, "amount": amount}
        return WithdrawalService.initiate(
            self.user, data, idempotency_key=key or new_key(), client=client or paystack_client()
        )

    def _balance(self):
        return Wallet.objects.get(user=self.user).balance

    def test_successful_bank_withdrawal(self):
        client = paystack_client()
        result = self._initiate(client=client)

        self.assertFalse(result["requires_otp"])
        self.assertTrue(result["reference"].startswith("WD_"))
        self.assertEqual(self._balance(), Decimal("500.00"))
        client.create_transfer_recipient.assert_called_once_with(
            "nuban", "Ama Mensah", "0123456789", "058", "GHS"
        )
        withdrawal = Withdrawal.objects.get(reference=result["reference"])
        self.assertEqual(withdrawal.status, "pending")
        self.assertEqual(withdrawal.transfer_code, "TRF_test")
        self.assertEqual(withdrawal.recipient_code, "RCP_test")
        self.assertFalse(withdrawal.refunded)
        receipt = Transaction.objects.get(transaction_id=result["reference"])
        self.assertEqual(receipt.type, Transaction.Type.WITHDRAWAL)
        self.assertEqual(receipt.status, "pending")

    def test_withdrawals_do_not_count_toward_spend_limits(self):
        self._initiate()
        wallet = Wallet.objects.get(user=self.user)
        self.assertEqual(wallet.daily_spent, Decimal("0"))

    def test_mobile_money_destination(self):
        client = paystack_client()
        self._initiate(
            client=client,
            type="mobile_money",
            phone_number="0241234567",
            mobile_money_provider="MTN",
            account_number="",
            bank_code="",
        )
        client.create_transfer_recipient.assert_called_once_with(
            "mobile_money", "Ama Mensah", "0241234567", "MTN", "GHS"
        )

    def test_gateway_rejection_refunds_the_wallet(self):
        key = new_key()
        with self.assertRaises(ServiceError) as ctx:
            self._initiate(client=paystack_client(transfer_ok=False), key=key)

        self.assertEqual(ctx.exception.code, ErrorCode.SERVICE_PAYSTACK_ERROR)
        self.assertEqual(self._balance(), Decimal("1000.00"))
        withdrawal = Withdrawal.objects.get()
        self.assertEqual(withdrawal.status, "failed")
        self.assertTrue(withdrawal.refunded)
        self.assertEqual(withdrawal.failure_reason, "Insufficient balance on integration")
        self.assertIsNotNone(withdrawal.failed_at)
        self.assertEqual(Transaction.objects.get().status, "failed")
        self.assertEqual(IdempotencyKey.objects.get(pk=key).status, IdempotencyKey.Status.FAILED)

    def test_failed_transfer_status_refunds_the_wallet(self):
        with self.assertRaises(ServiceError):
            self._initiate(client=paystack_client(transfer_status=GatewayStatus.FAILED))
        self.assertEqual(self._balance(), Decimal("1000.00"))
        self.assertTrue(Withdrawal.objects.get().refunded)

    def test_network_error_refunds_the_wallet(self):
        client = paystack_client()
        client.initiate_transfer.side_effect = ServiceError("paystack", "timed out")
        with self.assertRaises(ServiceError):
            self._initiate(client=client)
        self.assertEqual(self._balance(), Decimal("1000.00"))
        self.assertEqual(Withdrawal.objects.get().status, "failed")

    def test_recipient_failure_debits_nothing(self):
        client = paystack_client()
        client.create_transfer_recipient.return_value = gateway_result(ok=False, message="Invalid account")
        with self.assertRaises(ServiceError):
            self._initiate(client=client)
        self.assertEqual(self._balance(), Decimal("1000.00"))
        self.assertFalse(Withdrawal.objects.exists())
        client.initiate_transfer.assert_not_called()

    def test_minimum_amount(self):
        with self.assertRaises(AppError) as ctx:
            self._initiate(amount="99")
        self.assertEqual(ctx.exception.code, ErrorCode.TXN_AMOUNT_TOO_SMALL)
        self.assertEqual(ctx.exception.message, "Minimum withdrawal is 100.")

    def test_insufficient_funds(self):
        with self.assertRaises(AppError) as ctx:
            self._initiate(amount="1500")
        self.assertEqual(ctx.exception.code, ErrorCode.WALLET_INSUFFICIENT_FUNDS)
        self.assertFalse(Withdrawal.objects.exists())

    def test_incomplete_destination(self):
        with self.assertRaises(AppError) as ctx:
            self._initiate(type="mobile_money", phone_number="0241234567")
        self.assertEqual(ctx.exception.code, ErrorCode.SYSTEM_VALIDATION_FAILED)

    def test_sixth_withdrawal_in_an_hour_is_rate_limited(self):
        for _ in range(5):
            self._initiate(amount="100")
        with self.assertRaises(AppError) as ctx:
            self._initiate(amount="100")
        self.assertEqual(ctx.exception.code, ErrorCode.RATE_LIMIT_EXCEEDED)
        self.assertEqual(Withdrawal.objects.count(), 5)
        self.assertEqual(self._balance(), Decimal("500.00"))

    @override_settings(PAYSTACK_SECRET_KEY="")
    def test_unconfigured_gateway_is_refused(self):
        with self.assertRaises(AppError) as ctx:
            self._initiate()
        self.assertEqual(ctx.exception.code, ErrorCode.CONFIG_MISSING)
        self.assertEqual(self._balance(), Decimal("1000.00"))


@override_settings(**GATEWAY_SETTINGS)
class WithdrawalOtpTest(TransactionTestCase):
    def setUp(self):
        self.user = make_user("kofi", balance="1000")
        self.client_mock = paystack_client(transfer_status=GatewayStatus.PENDING_OTP)
        self.result = WithdrawalService.initiate(
            self.user,
            {**BANK_DESTINATION, "amount": "300"},
            idempotency_key=new_key(),
            client=self.client_mock,
        )

    def test_initiate_reports_otp(self):
        self.assertTrue(self.result["requires_otp"])
        self.assertEqual(self.result["transfer_code"], "TRF_test")
        withdrawal = Withdrawal.objects.get(reference=self.result["reference"])
        self.assertEqual(withdrawal.status, "pending_otp")
        self.assertEqual(Transaction.objects.get().status, "pending_otp")

    def test_finalize_moves_to_processing(self):
        result = WithdrawalService.finalize(
            self.user, "TRF_test", "123456", idempotency_key=new_key(), client=self.client_mock
        )

        self.assertEqual(result, {"reference": self.result["reference"]})
        self.client_mock.finalize_transfer.assert_called_once_with("TRF_test", "123456")
        withdrawal = Withdrawal.objects.get()
        self.assertEqual(withdrawal.status, "processing")
        self.assertIsNotNone(withdrawal.otp_verified_at)
        self.assertEqual(Transaction.objects.get().status, "processing")

    def test_wrong_otp(self):
        self.client_mock.finalize_transfer.return_value = gateway_result(ok=False, message="Invalid OTP")
        with self.assertRaises(AppError) as ctx:
            WithdrawalService.finalize(
                self.user, "TRF_test", "000000", idempotency_key=new_key(), client=self.client_mock
            )
        self.assertEqual(ctx.exception.code, ErrorCode.SYSTEM_VALIDATION_FAILED)
        self.assertEqual(ctx.exception.message, "Invalid OTP")
        self.assertEqual(Withdrawal.objects.get().status, "pending_otp")

    def test_finalize_twice_is_invalid_state(self):
        WithdrawalService.finalize(self.user, "TRF_test", "123456", idempotency_key=new_key(), client=self.client_mock)
        with self.assertRaises(AppError) as ctx:
            WithdrawalService.finalize(
                self.user, "TRF_test", "123456", idempotency_key=new_key(), client=self.client_mock
            )
        self.assertEqual(ctx.exception.code, ErrorCode.TXN_INVALID_STATE)

    def test_unknown_transfer_code(self):
        with self.assertRaises(AppError) as ctx:
            WithdrawalService.finalize(
                self.user, "TRF_other", "123456", idempotency_key=new_key(), client=self.client_mock
            )
        self.assertEqual(ctx.exception.code, ErrorCode.TXN_NOT_FOUND)

    def test_transfer_code_of_another_user(self):
        other = make_user("esi")
        with self.assertRaises(AppError) as ctx:
            WithdrawalService.finalize(other, "TRF_test", "123456", idempotency_key=new_key(), client=self.client_mock)
        self.assertEqual(ctx.exception.code, ErrorCode.TXN_NOT_FOUND)

    def test_missing_otp(self):
        with self.assertRaises(AppError) as ctx:
            WithdrawalService.finalize(self.user, "TRF_test", "", idempotency_key=new_key())
        self.assertEqual(ctx.exception.message, "Transfer code and OTP are required.")


@override_settings(**GATEWAY_SETTINGS)
class SettleWithdrawalTest(TransactionTestCase):
    def setUp(self):
        self.user = make_user("yaw", balance="1000")
        self.reference = WithdrawalService.initiate(
            self.user,
            {**BANK_DESTINATION, "amount": "400"},
            idempotency_key=new_key(),
            client=paystack_client(),
        )["reference"]

    def _balance(self):
        return Wallet.objects.get(user=self.user).balance

    def test_refund_happens_once(self):
        self.assertTrue(WithdrawalService.refund(self.reference, "Bank declined"))
        self.assertFalse(WithdrawalService.refund(self.reference, "Bank declined"))
        self.assertEqual(self._balance(), Decimal("1000.00"))

    def test_complete_happens_once(self):
        self.assertTrue(WithdrawalService.complete(self.reference))
        self.assertFalse(WithdrawalService.complete(self.reference))
        withdrawal = Withdrawal.objects.get()
        self.assertEqual(withdrawal.status, "completed")
        self.assertIsNotNone(withdrawal.completed_at)
        self.assertEqual(Transaction.objects.get().status, "completed")
        self.assertEqual(self._balance(), Decimal("600.00"))

    def test_reversal_after_completion_refunds(self):
        WithdrawalService.complete(self.reference)
        self.assertTrue(WithdrawalService.refund(self.reference, "Reversed"))
        withdrawal = Withdrawal.objects.get()
        self.assertEqual(withdrawal.status, "refunded")
        self.assertEqual(Transaction.objects.get().status, "refunded")
        self.assertEqual(self._balance(), Decimal("1000.00"))

    def test_unknown_reference(self):
        with self.assertRaises(AppError) as ctx:
            WithdrawalService.refund("WD_missing")
        self.assertEqual(ctx.exception.code, ErrorCode.TXN_NOT_FOUND)
