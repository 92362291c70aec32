import logging
from decimal import Decimal

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser
from django.db import transaction
from django.utils import timezone

from wallets.conf import require_service_ready
from wallets.errors import AppError, ErrorCode, ServiceError
from wallets.models import (
    AuditLogEntry,
    Transaction,
    TransactionStatus,
    Wallet,
    Withdrawal,
)
from wallets.services.audit import audit_log, guard_operation
from wallets.services.idempotency import with_idempotency
from wallets.services.kyc import enforce_kyc
from wallets.services.rate_limit import enforce_rate_limit
from wallets.services.state_machine import (
    apply_transition,
    initial_state_fields,
    normalize_status,
)
from wallets.services.wallet import (
    credit_wallet,
    debit_wallet,
    display_name,
    get_user_wallet,
    to_amount,
)
from wallets.utils import GatewayStatus, PaystackClient
from wallets.utils.references import generate_reference

logger = logging.getLogger(__name__)

REFUND_TARGETS = {
    "pending": TransactionStatus.FAILED,
    "pending_otp": TransactionStatus.FAILED,
    "processing": TransactionStatus.FAILED,
    "completed": TransactionStatus.REFUNDED,
    "failed": TransactionStatus.REFUNDED,
}


class WithdrawalService:
    """
    Payouts from a wallet to a bank account or mobile-money number.

    Order of operations:
    1. Create the payout recipient at the gateway.
    2. Atomically debit the wallet and create a ``pending`` withdrawal.
    3. Ask the gateway to transfer.
    4. If step 3 fails, credit the wallet back and mark the withdrawal
       ``failed`` with ``refunded=True`` in one compensating atomic unit.

    No database lock is held while talking to the gateway.
    """

    @staticmethod
    def validate_destination(data: dict) -> str:
        withdrawal_type = data.get("type") or Withdrawal.Type.BANK
        if withdrawal_type == Withdrawal.Type.BANK:
            if not data.get("account_number") or not data.get("bank_code"):
                raise AppError(
                    ErrorCode.SYSTEM_VALIDATION_FAILED,
                    "Account number and bank code are required for bank withdrawals.",
                )
        elif withdrawal_type == Withdrawal.Type.MOBILE_MONEY:
            if not data.get("phone_number") or not data.get("mobile_money_provider"):
                raise AppError(
                    ErrorCode.SYSTEM_VALIDATION_FAILED,
                    "Phone number and provider are required for mobile money withdrawals.",
                )
        else:
            raise AppError(
                ErrorCode.SYSTEM_VALIDATION_FAILED,
                f"Unknown withdrawal type: {withdrawal_type}.",
            )
        return withdrawal_type

    @staticmethod
    def initiate(
        user: AbstractBaseUser,
        data: dict,
        idempotency_key: str = None,
        request=None,
        client: PaystackClient = None,
    ) -> dict:
        """
        Start a withdrawal.

        Args:
            user: The authenticated caller.
            data: ``amount``, ``type`` (``bank`` or ``mobile_money``) and the
                destination fields for that type.
            idempotency_key: Client key, required.
            request: Incoming request, for the audit log.
            client: Gateway client; a new ``PaystackClient`` by default.

        Returns:
            ``{reference, requires_otp}`` plus ``transfer_code`` when the
            gateway asks for an OTP.

        Raises:
            AppError: ``TXN_AMOUNT_TOO_SMALL``, ``WALLET_INSUFFICIENT_FUNDS``,
                ``RATE_LIMIT_EXCEEDED`` and the other guard errors.
            ServiceError: When the gateway refuses; the wallet has already
                been refunded by then.
        """
        require_service_ready("paystack")
        enforce_kyc(user)
        enforce_rate_limit(user, "initiate_withdrawal")

        amount = to_amount(data.get("amount"))
        if amount <= 0:
            raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount must be positive.")
        if amount < settings.WITHDRAWAL_MIN_AMOUNT:
            raise AppError(
                ErrorCode.TXN_AMOUNT_TOO_SMALL,
                f"Minimum withdrawal is {settings.WITHDRAWAL_MIN_AMOUNT:.0f}.",
                {"min": str(settings.WITHDRAWAL_MIN_AMOUNT)},
            )
        withdrawal_type = WithdrawalService.validate_destination(data)
        client = client or PaystackClient()

        def operation():
            with guard_operation(
                user,
                "initiate_withdrawal",
                request=request,
                amount=amount,
                metadata={"type": withdrawal_type},
                failure_message="Withdrawal failed.",
            ):
                result = WithdrawalService._run(user, amount, withdrawal_type, data, client)
            audit_log(
                user,
                "initiate_withdrawal",
                AuditLogEntry.Result.SUCCESS,
                amount=amount,
                metadata={"reference": result["reference"], "requires_otp": result["requires_otp"]},
                request=request,
            )
            return result

        return with_idempotency(idempotency_key, "initiate_withdrawal", user, operation)

    @staticmethod
    def _run(user, amount: Decimal, withdrawal_type: str, data: dict, client) -> dict:
        wallet = get_user_wallet(user)
        if not wallet.is_active:
            raise AppError(ErrorCode.WALLET_SUSPENDED)
        if wallet.balance < amount:
            raise AppError(
                ErrorCode.WALLET_INSUFFICIENT_FUNDS,
                details={"required": str(amount), "available": str(wallet.balance)},
            )

        account_name = data.get("account_name") or display_name(user)
        if withdrawal_type == Withdrawal.Type.BANK:
            recipient = client.create_transfer_recipient(
                "nuban", account_name, data["account_number"], data["bank_code"], wallet.currency
            )
        else:
            recipient = client.create_transfer_recipient(
                "mobile_money",
                account_name,
                data["phone_number"],
                data["mobile_money_provider"],
                wallet.currency,
            )
        if not recipient.ok or not recipient.provider_reference:
            logger.error("Transfer recipient creation failed: user=%s message=%s", user.pk, recipient.message)
            raise ServiceError("paystack", recipient.message or "Failed to create transfer recipient.")

        reference = generate_reference("WD")
        withdrawal = WithdrawalService._debit_and_record(
            user, amount, reference, withdrawal_type, data, account_name, recipient.provider_reference
        )

        try:
            result = client.initiate_transfer(
                amount, recipient.provider_reference, reference, data.get("reason") or "Wallet withdrawal"
            )
        except AppError as exc:
            WithdrawalService.refund(reference, exc.message)
            raise ServiceError("paystack", "Failed to initiate transfer.", reference=reference) from exc

        if not result.ok or result.failed:
            WithdrawalService.refund(reference, result.message or "Transfer initiation failed.")
            raise ServiceError("paystack", "Failed to initiate transfer.", reference=reference)

        if result.status is GatewayStatus.PENDING_OTP:
            WithdrawalService._set_state(
                withdrawal.pk, TransactionStatus.PENDING_OTP, transfer_code=result.provider_reference
            )
            logger.info("Withdrawal awaiting OTP: reference=%s", reference)
            return {
                "reference": reference,
                "requires_otp": True,
                "transfer_code": result.provider_reference,
            }

        Withdrawal.objects.filter(pk=withdrawal.pk).update(
            transfer_code=result.provider_reference, updated_at=timezone.now()
        )
        logger.info("Withdrawal submitted: reference=%s transfer_code=%s", reference, result.provider_reference)
        return {"reference": reference, "requires_otp": False}

    @staticmethod
    @transaction.atomic
    def _debit_and_record(user, amount, reference, withdrawal_type, data, account_name, recipient_code):
        wallet = get_user_wallet(user, lock=True)
        debit_wallet(wallet, amount, track_spend=False)
        now = timezone.now()
        withdrawal = Withdrawal.objects.create(
            reference=reference,
            user=user,
            wallet=wallet,
            amount=amount,
            currency=wallet.currency,
            type=withdrawal_type,
            bank_code=data.get("bank_code") or "",
            mobile_money_provider=data.get("mobile_money_provider") or "",
            account_number=data.get("account_number") or "",
            phone_number=data.get("phone_number") or "",
            account_name=account_name,
            recipient_code=recipient_code,
            **initial_state_fields(TransactionStatus.PENDING, reference, now),
        )
        Transaction.objects.create(
            owner=user,
            transaction_id=reference,
            type=Transaction.Type.WITHDRAWAL,
            sender_wallet_id=wallet.wallet_id,
            sender_name=account_name,
            amount=amount,
            currency=wallet.currency,
            sender_currency=wallet.currency,
            reference=reference,
            description="Bank withdrawal" if withdrawal_type == Withdrawal.Type.BANK else "Mobile money withdrawal",
            method=withdrawal_type,
            **initial_state_fields(TransactionStatus.PENDING, reference, now),
        )
        logger.info(
            "Withdrawal debited: reference=%s user=%s amount=%s %s new_balance=%s",
            reference,
            user.pk,
            amount,
            wallet.currency,
            wallet.balance,
        )
        return withdrawal

    @staticmethod
    @transaction.atomic
    def _set_state(withdrawal_pk, status, **extra):
        withdrawal = Withdrawal.objects.select_for_update().get(pk=withdrawal_pk)
        apply_transition(withdrawal, status, **extra)
        receipt = (
            Transaction.objects.select_for_update()
            .filter(owner_id=withdrawal.user_id, transaction_id=withdrawal.reference)
            .first()
        )
        if receipt is not None and normalize_status(receipt.status) != normalize_status(status):
            apply_transition(receipt, status)
        return withdrawal

    @staticmethod
    @transaction.atomic
    def refund(reference: str, reason: str = "") -> bool:
        """
        Credit a withdrawal's amount back to its wallet, at most once.

        Returns True if this call performed the refund.
        """
        withdrawal = Withdrawal.objects.select_for_update().filter(reference=reference).first()
        if withdrawal is None:
            raise AppError(ErrorCode.TXN_NOT_FOUND, details={"reference": reference})
        if withdrawal.refunded:
            logger.info("Withdrawal already refunded: reference=%s", reference)
            return False

        current = normalize_status(withdrawal.status)
        target = REFUND_TARGETS.get(current)
        if target is None:
            raise AppError(
                ErrorCode.TXN_INVALID_STATE,
                f"Withdrawal {reference} cannot be refunded from {current}.",
                {"transaction_id": reference, "from": current},
            )

        wallet = Wallet.objects.select_for_update().get(pk=withdrawal.wallet_id)
        credit_wallet(wallet, withdrawal.amount)

        now = timezone.now()
        apply_transition(
            withdrawal,
            target,
            now=now,
            refunded=True,
            failure_reason=reason or "",
            failed_at=now,
        )
        receipt = (
            Transaction.objects.select_for_update()
            .filter(owner_id=withdrawal.user_id, transaction_id=reference)
            .first()
        )
        if receipt is not None:
            receipt_target = REFUND_TARGETS.get(normalize_status(receipt.status))
            if receipt_target is not None:
                apply_transition(receipt, receipt_target, now=now, failure_reason=reason or "")

        logger.warning(
            "Withdrawal refunded: reference=%s amount=%s %s reason=%s",
            reference,
            withdrawal.amount,
            withdrawal.currency,
            reason,
        )
        return True

    @staticmethod
    def finalize(
        user: AbstractBaseUser,
        transfer_code: str,
        otp: str,
        idempotency_key: str = None,
        request=None,
        client: PaystackClient = None,
    ) -> dict:
        """
        Submit the OTP for a withdrawal in ``pending_otp``.

        Returns:
            ``{reference}`` of the withdrawal, now ``processing``.

        Raises:
            AppError: ``TXN_NOT_FOUND`` for an unknown or foreign code,
                ``TXN_INVALID_STATE`` when no OTP is awaited,
                ``SYSTEM_VALIDATION_FAILED`` when the gateway rejects the OTP.
        """
        enforce_kyc(user)
        if not transfer_code or not otp:
            raise AppError(ErrorCode.SYSTEM_VALIDATION_FAILED, "Transfer code and OTP are required.")
        client = client or PaystackClient()

        def operation():
            with guard_operation(
                user,
                "finalize_transfer",
                request=request,
                metadata={"transfer_code": transfer_code},
                failure_message="Transfer finalization failed.",
            ):
                withdrawal = Withdrawal.objects.filter(user=user, transfer_code=transfer_code).first()
                if withdrawal is None:
                    raise AppError(ErrorCode.TXN_NOT_FOUND, details={"transfer_code": transfer_code})
                if normalize_status(withdrawal.status) != TransactionStatus.PENDING_OTP:
                    raise AppError(
                        ErrorCode.TXN_INVALID_STATE,
                        "This withdrawal is not awaiting an OTP.",
                        {"transaction_id": withdrawal.reference, "from": withdrawal.status},
                    )

                result = client.finalize_transfer(transfer_code, otp)
                if not result.ok:
                    raise AppError(
                        ErrorCode.SYSTEM_VALIDATION_FAILED,
                        result.message or "OTP verification failed.",
                        {"reference": withdrawal.reference},
                    )
                WithdrawalService._set_state(
                    withdrawal.pk, TransactionStatus.PROCESSING, otp_verified_at=timezone.now()
                )
            audit_log(
                user,
                "finalize_transfer",
                AuditLogEntry.Result.SUCCESS,
                amount=withdrawal.amount,
                currency=withdrawal.currency,
                metadata={"reference": withdrawal.reference},
                request=request,
            )
            logger.info("Withdrawal OTP verified: reference=%s", withdrawal.reference)
            return {"reference": withdrawal.reference}

        return with_idempotency(idempotency_key, "finalize_transfer", user, operation)

    @staticmethod
    @transaction.atomic
    def complete(reference: str, transfer_code: str = "") -> bool:
        """Mark a withdrawal and its receipt completed. Returns False if it already was."""
        withdrawal = Withdrawal.objects.select_for_update().filter(reference=reference).first()
        if withdrawal is None:
            raise AppError(ErrorCode.TXN_NOT_FOUND, details={"reference": reference})
        if normalize_status(withdrawal.status) == TransactionStatus.COMPLETED:
            return False

        now = timezone.now()
        extra = {"completed_at": now}
        if transfer_code and not withdrawal.transfer_code:
            extra["transfer_code"] = transfer_code
        apply_transition(withdrawal, TransactionStatus.COMPLETED, now=now, **extra)
        receipt = (
            Transaction.objects.select_for_update()
            .filter(owner_id=withdrawal.user_id, transaction_id=reference)
            .first()
        )
        if receipt is not None and normalize_status(receipt.status) != TransactionStatus.COMPLETED:
            apply_transition(receipt, TransactionStatus.COMPLETED, now=now, completed_at=now)
        logger.info("Withdrawal completed: reference=%s", reference)
        return True
