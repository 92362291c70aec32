"""
Mobile-money collections (request-to-pay) and disbursements (transfers).

Collections credit the wallet only once a verified ``SUCCESSFUL`` status
arrives, either from the callback path or from a status check. Disbursements
debit first and are refunded if the provider rejects or later fails them.
"""

import logging
import uuid

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser
from django.db import transaction
from django.utils import timezone

from wallets.conf import get_gateway_config, require_service_ready
from wallets.errors import AppError, ErrorCode, ServiceError
from wallets.models import (
    AuditLogEntry,
    MomoTransaction,
    Transaction,
    TransactionStatus,
    Wallet,
)
from wallets.services import exchange
from wallets.services.audit import audit_log, guard_operation
from wallets.services.idempotency import with_idempotency
from wallets.services.kyc import enforce_kyc
from wallets.services.rate_limit import enforce_rate_limit
from wallets.services.state_machine import (
    apply_transition,
    initial_state_fields,
    normalize_status,
)
from wallets.services.wallet import credit_wallet, debit_wallet, get_user_wallet, to_amount
from wallets.utils import GatewayStatus, MomoClient

logger = logging.getLogger(__name__)

METHOD_LABEL = "MTN MoMo"


def _validate_amount(amount):
    amount = to_amount(amount)
    if amount <= 0:
        raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount must be positive.")
    return amount


def _receipt(record):
    return (
        Transaction.objects.select_for_update()
        .filter(owner_id=record.user_id, transaction_id=record.reference_id)
        .first()
    )


class MomoService:
    @staticmethod
    def request_to_pay(user: AbstractBaseUser, amount, phone_number: str, currency: str = None,
                       payer_message: str = "", payee_note: str = "", idempotency_key: str = None,
                       request=None, client=None) -> dict:
        require_service_ready("momo_collections")
        enforce_kyc(user)
        enforce_rate_limit(user, "momo_request_to_pay")
        amount = _validate_amount(amount)
        currency = (currency or get_gateway_config().momo_default_currency or settings.DEFAULT_WALLET_CURRENCY).upper()
        client = client or MomoClient("collection")

        def operation():
            with guard_operation(
                user,
                "momo_request_to_pay",
                request=request,
                amount=amount,
                currency=currency,
                failure_message="MoMo payment request failed.",
            ):
                reference_id = str(uuid.uuid4())
                record = MomoTransaction.objects.create(
                    reference_id=reference_id,
                    type=MomoTransaction.Type.COLLECTION,
                    user=user,
                    amount=amount,
                    currency=currency,
                    phone_number=phone_number,
                )
                try:
                    result = client.request_to_pay(
                        reference_id,
                        amount,
                        currency,
                        phone_number,
                        payer_message or "Wallet top-up",
                        payee_note or "Wallet top-up",
                    )
                except AppError as exc:
                    MomoService._close(record.pk, TransactionStatus.CANCELLED, exc.message)
                    raise
                if not result.ok:
                    MomoService._close(record.pk, TransactionStatus.CANCELLED, result.message)
                    raise ServiceError("momo", "MoMo rejected the payment request.", reference_id=reference_id)

                with transaction.atomic():
                    locked = MomoTransaction.objects.select_for_update().get(pk=record.pk)
                    apply_transition(locked, TransactionStatus.PENDING, provider_status="PENDING")

            audit_log(
                user,
                "momo_request_to_pay",
                AuditLogEntry.Result.SUCCESS,
                amount=amount,
                currency=currency,
                metadata={"reference_id": reference_id},
                request=request,
            )
            logger.info("MoMo request-to-pay accepted: ref=%s user=%s amount=%s %s", reference_id, user.pk, amount, currency)
            return {
                "reference_id": reference_id,
                "status": TransactionStatus.PENDING.value,
                "message": "Payment request sent. Approve it on your phone.",
            }

        return with_idempotency(idempotency_key, "momo_request_to_pay", user, operation)

    @staticmethod
    @transaction.atomic
    def _close(record_pk, status, reason=""):
        record = MomoTransaction.objects.select_for_update().get(pk=record_pk)
        apply_transition(record, status, failure_reason=reason or "")
        return record

    @staticmethod
    def transfer(user: AbstractBaseUser, amount, phone_number: str, payer_message: str = "",
                 payee_note: str = "", idempotency_key: str = None, request=None, client=None) -> dict:
        require_service_ready("momo_disbursements")
        enforce_kyc(user)
        enforce_rate_limit(user, "momo_transfer")
        amount = _validate_amount(amount)
        client = client or MomoClient("disbursement")

        def operation():
            with guard_operation(
                user,
                "momo_transfer",
                request=request,
                amount=amount,
                failure_message="MoMo transfer failed.",
            ):
                reference_id = str(uuid.uuid4())
                record = MomoService._debit_and_record(user, amount, phone_number, reference_id)
                try:
                    result = client.transfer(
                        reference_id,
                        amount,
                        record.currency,
                        phone_number,
                        payer_message or "Wallet withdrawal",
                        payee_note or "Wallet withdrawal",
                    )
                except AppError as exc:
                    MomoService.refund(reference_id, exc.message)
                    raise ServiceError("momo", "Failed to initiate MoMo transfer.", reference_id=reference_id) from exc
                if not result.ok:
                    MomoService.refund(reference_id, result.message)
                    raise ServiceError("momo", "Failed to initiate MoMo transfer.", reference_id=reference_id)

            audit_log(
                user,
                "momo_transfer",
                AuditLogEntry.Result.SUCCESS,
                amount=amount,
                currency=record.currency,
                metadata={"reference_id": reference_id},
                request=request,
            )
            logger.info("MoMo transfer accepted: ref=%s user=%s amount=%s %s", reference_id, user.pk, amount, record.currency)
            return {
                "reference_id": reference_id,
                "status": TransactionStatus.PENDING.value,
                "message": "Transfer initiated.",
            }

        return with_idempotency(idempotency_key, "momo_transfer", user, operation)

    @staticmethod
    @transaction.atomic
    def _debit_and_record(user, amount, phone_number, reference_id):
        wallet = get_user_wallet(user, lock=True)
        if not wallet.is_active:
            raise AppError(ErrorCode.WALLET_SUSPENDED)
        debit_wallet(wallet, amount, track_spend=False)
        now = timezone.now()
        record = MomoTransaction.objects.create(
            reference_id=reference_id,
            type=MomoTransaction.Type.DISBURSEMENT,
            user=user,
            amount=amount,
            currency=wallet.currency,
            phone_number=phone_number,
            **initial_state_fields(TransactionStatus.PENDING, reference_id, now),
        )
        Transaction.objects.create(
            owner=user,
            transaction_id=reference_id,
            type=Transaction.Type.WITHDRAWAL,
            sender_wallet_id=wallet.wallet_id,
            amount=amount,
            currency=wallet.currency,
            sender_currency=wallet.currency,
            reference=reference_id,
            description="Mobile money withdrawal",
            method=METHOD_LABEL,
            **initial_state_fields(TransactionStatus.PENDING, reference_id, now),
        )
        return record

    @staticmethod
    @transaction.atomic
    def refund(reference_id, reason=""):
        """Return a disbursement's amount to the wallet, at most once."""
        record = MomoTransaction.objects.select_for_update().filter(reference_id=reference_id).first()
        if record is None:
            raise AppError(ErrorCode.TXN_NOT_FOUND, details={"reference_id": reference_id})
        return MomoService._refund_locked(record, reason)

    @staticmethod
    def _refund_locked(record, reason="", **extra):
        if record.type != MomoTransaction.Type.DISBURSEMENT or record.refunded:
            return False

        wallet = Wallet.objects.select_for_update().get(user_id=record.user_id)
        credit_wallet(wallet, record.amount)

        now = timezone.now()
        fields = {"refunded": True, "failure_reason": reason or "", **extra}
        if normalize_status(record.status) == TransactionStatus.FAILED:
            for name, value in fields.items():
                setattr(record, name, value)
            record.save(update_fields=[*fields, "updated_at"])
        else:
            apply_transition(record, TransactionStatus.FAILED, now=now, **fields)

        receipt = _receipt(record)
        if receipt is not None and normalize_status(receipt.status) in ("pending", "processing"):
            apply_transition(receipt, TransactionStatus.FAILED, now=now, failure_reason=reason or "")

        logger.warning(
            "MoMo disbursement refunded: ref=%s amount=%s %s reason=%s",
            record.reference_id,
            record.amount,
            record.currency,
            reason,
        )
        return True

    @staticmethod
    @transaction.atomic
    def apply_status(reference_id: str, status, callback_status: str = "", verified_status: str = "",
                     financial_transaction_id: str = "") -> tuple:
        """
        Apply a verified provider status to a MoMo transaction.

        Safe to call repeatedly with the same status. Returns
        ``(record, changed)``.
        """
        record = MomoTransaction.objects.select_for_update().filter(reference_id=reference_id).first()
        if record is None:
            raise AppError(ErrorCode.TXN_NOT_FOUND, details={"reference_id": reference_id})

        status = GatewayStatus(getattr(status, "value", status))
        extra = {}
        if callback_status:
            extra["callback_status"] = callback_status
        if verified_status:
            extra["verified_status"] = verified_status
            extra["provider_status"] = verified_status
        if financial_transaction_id:
            extra["financial_transaction_id"] = financial_transaction_id

        current = normalize_status(record.status)
        now = timezone.now()

        if status is GatewayStatus.COMPLETED:
            if current == TransactionStatus.COMPLETED:
                return record, False
            apply_transition(record, TransactionStatus.COMPLETED, now=now, **extra)
            if record.type == MomoTransaction.Type.COLLECTION:
                MomoService._credit_collection(record, now)
            else:
                receipt = _receipt(record)
                if receipt is not None and normalize_status(receipt.status) != TransactionStatus.COMPLETED:
                    apply_transition(receipt, TransactionStatus.COMPLETED, now=now, completed_at=now)
            logger.info("MoMo transaction completed: ref=%s type=%s", reference_id, record.type)
            return record, True

        if status is GatewayStatus.FAILED:
            if current in (TransactionStatus.FAILED, TransactionStatus.REFUNDED, TransactionStatus.CANCELLED):
                return record, False
            reason = verified_status or callback_status or "Provider reported failure."
            if record.type == MomoTransaction.Type.DISBURSEMENT:
                MomoService._refund_locked(record, reason, **extra)
            else:
                apply_transition(record, TransactionStatus.FAILED, now=now, failure_reason=reason, **extra)
            logger.warning("MoMo transaction failed: ref=%s type=%s", reference_id, record.type)
            return record, True

        if extra:
            for name, value in extra.items():
                setattr(record, name, value)
            record.save(update_fields=[*extra, "updated_at"])
        return record, False

    @staticmethod
    def _credit_collection(record, now):
        wallet = Wallet.objects.select_for_update().filter(user_id=record.user_id).first()
        if wallet is None:
            raise AppError(ErrorCode.WALLET_NOT_FOUND, details={"user": record.user_id})
        credited, rate = exchange.convert(record.amount, record.currency, wallet.currency)
        credit_wallet(wallet, credited)
        is_conversion = record.currency != wallet.currency
        Transaction.objects.create(
            owner_id=record.user_id,
            transaction_id=record.reference_id,
            type=Transaction.Type.DEPOSIT,
            receiver_wallet_id=wallet.wallet_id,
            amount=record.amount,
            currency=record.currency,
            receiver_currency=wallet.currency,
            exchange_rate=rate if is_conversion else None,
            converted_amount=credited if is_conversion else None,
            reference=record.financial_transaction_id or record.reference_id,
            description="Mobile money deposit",
            method=METHOD_LABEL,
            completed_at=now,
            **initial_state_fields(TransactionStatus.COMPLETED, record.reference_id, now),
        )
        logger.info(
            "MoMo collection credited: ref=%s credited=%s %s new_balance=%s",
            record.reference_id,
            credited,
            wallet.currency,
            wallet.balance,
        )

    @staticmethod
    def check_status(user: AbstractBaseUser, reference_id: str, client=None) -> dict:
        enforce_kyc(user)
        record = MomoTransaction.objects.filter(reference_id=reference_id, user=user).first()
        if record is None:
            raise AppError(ErrorCode.TXN_NOT_FOUND, details={"reference_id": reference_id})

        client = client or MomoClient(record.type)
        result = client.get_status(reference_id)
        if result.ok:
            record, _ = MomoService.apply_status(
                reference_id,
                result.status,
                verified_status=str(result.data.get("status") or ""),
                financial_transaction_id=result.provider_reference,
            )
        return {
            "reference_id": reference_id,
            "status": record.status,
            "provider_status": record.provider_status,
            "amount": record.amount,
            "currency": record.currency,
        }

    @staticmethod
    def get_balance(product: str, client=None) -> dict:
        client = client or MomoClient(product)
        result = client.get_balance(str(uuid.uuid4()))
        if not result.ok:
            raise ServiceError("momo", "Failed to fetch MoMo balance.", product=product)
        return {
            "product": product,
            "available_balance": result.data.get("availableBalance"),
            "currency": result.data.get("currency"),
        }
