import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from wallets.errors import AppError, ErrorCode
from wallets.models import (
    AuditLogEntry,
    Payment,
    Profile,
    Transaction,
    TransactionStatus,
    Wallet,
)
from wallets.services import exchange
from wallets.services.audit import audit_log, guard_operation, hash_ip
from wallets.services.idempotency import with_idempotency
from wallets.services.kyc import enforce_kyc
from wallets.services.platform import collect_fee
from wallets.services.rate_limit import enforce_rate_limit
from wallets.services.state_machine import initial_state_fields
from wallets.utils.burst import lookup_burst_limiter, lookup_failure_tracker
from wallets.utils.references import generate_transaction_id

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
WALLET_ID_PATTERN_LENGTH = len("QRW-XXXX-XXXX-XXXX")
DEFAULT_RECIPIENT_NAME = "QR Wallet User"


def to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount must be a number.")
    if not amount.is_finite():
        raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount must be a number.")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def display_name(user):
    profile = Profile.objects.filter(user=user).first()
    return (profile.full_name if profile else "") or "Unknown"


def get_user_wallet(user: AbstractBaseUser, lock: bool = False) -> Wallet:
    queryset = Wallet.objects.select_for_update() if lock else Wallet.objects
    wallet = queryset.filter(user=user).first()
    if wallet is None:
        raise AppError(ErrorCode.WALLET_NOT_FOUND, details={"user": user.pk})
    return wallet


def looks_like_wallet_id(value):
    return (
        isinstance(value, str)
        and len(value) == WALLET_ID_PATTERN_LENGTH
        and value.startswith("QRW-")
    )


def credit_wallet(wallet: Wallet, amount: Decimal) -> Wallet:
    """Add ``amount`` to a locked wallet row and refresh it."""
    Wallet.objects.filter(pk=wallet.pk).update(
        balance=F("balance") + amount, updated_at=timezone.now()
    )
    wallet.refresh_from_db(fields=["balance"])
    return wallet


def debit_wallet(wallet: Wallet, amount: Decimal, track_spend: bool = True) -> Wallet:
    """
    Remove ``amount`` from a locked wallet row.

    The caller has already checked the balance under the same lock.
    """
    if wallet.balance < amount:
        raise AppError(
            ErrorCode.WALLET_INSUFFICIENT_FUNDS,
            details={"required": str(amount), "available": str(wallet.balance)},
        )
    updates = {"balance": F("balance") - amount, "updated_at": timezone.now()}
    if track_spend:
        updates["daily_spent"] = F("daily_spent") + amount
        updates["monthly_spent"] = F("monthly_spent") + amount
    Wallet.objects.filter(pk=wallet.pk).update(**updates)
    wallet.refresh_from_db(fields=["balance", "daily_spent", "monthly_spent"])
    return wallet


def check_spend_limits(wallet, total):
    if wallet.daily_spent + total > wallet.daily_limit:
        raise AppError(
            ErrorCode.WALLET_LIMIT_EXCEEDED,
            "Transaction exceeds your daily limit.",
            {"limit": "daily", "remaining": str(max(wallet.daily_limit - wallet.daily_spent, 0))},
        )
    if wallet.monthly_spent + total > wallet.monthly_limit:
        raise AppError(
            ErrorCode.WALLET_LIMIT_EXCEEDED,
            "Transaction exceeds your monthly limit.",
            {"limit": "monthly", "remaining": str(max(wallet.monthly_limit - wallet.monthly_spent, 0))},
        )


class WalletService:
    """
    Wallet ledger: peer transfers, deposit confirmation and wallet lookup.

    Every balance change happens inside ``transaction.atomic()`` on rows
    locked with ``select_for_update()``, using ``F()`` expressions for the
    arithmetic. When two wallets are involved they are locked in primary key
    order.
    """

    @staticmethod
    @transaction.atomic
    def open_wallet(user: AbstractBaseUser, full_name: str = "", currency: str = None) -> tuple:
        """Create the caller's profile and wallet. Returns ``(wallet, created)``."""
        currency = (currency or settings.DEFAULT_WALLET_CURRENCY).upper()
        if currency not in settings.SUPPORTED_CURRENCIES:
            raise AppError(
                ErrorCode.SYSTEM_VALIDATION_FAILED,
                f"Unsupported currency: {currency}.",
                {"currency": currency},
            )

        profile, _ = Profile.objects.get_or_create(user=user)
        if full_name and not profile.full_name:
            profile.full_name = full_name
            profile.save(update_fields=["full_name", "updated_at"])

        wallet, created = Wallet.objects.get_or_create(
            user=user, defaults={"currency": currency}
        )
        if created:
            logger.info("Wallet opened: user=%s wallet=%s currency=%s", user.pk, wallet.wallet_id, currency)
        return wallet, created

    @staticmethod
    def compute_fee(amount: Decimal) -> Decimal:
        """1% of the amount, clamped to [TRANSFER_FEE_MIN, TRANSFER_FEE_MAX]."""
        fee = Decimal(amount) * settings.TRANSFER_FEE_RATE
        fee = min(max(fee, settings.TRANSFER_FEE_MIN), settings.TRANSFER_FEE_MAX)
        return fee.quantize(CENT, rounding=ROUND_HALF_UP)

    @staticmethod
    def validate_transfer_amount(amount) -> Decimal:
        amount = to_amount(amount)
        if amount <= 0:
            raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount must be positive.")
        if amount > settings.TRANSFER_MAX_AMOUNT:
            raise AppError(
                ErrorCode.TXN_AMOUNT_TOO_LARGE,
                details={"max": str(settings.TRANSFER_MAX_AMOUNT)},
            )
        return amount

    @staticmethod
    def send_money(
        sender: AbstractBaseUser,
        recipient_wallet_id: str,
        amount,
        note: str = "",
        idempotency_key: str = None,
        request=None,
    ) -> dict:
        """
        Send money to another wallet, at most once per idempotency key.

        Args:
            sender: The authenticated caller.
            recipient_wallet_id: Public ``QRW-XXXX-XXXX-XXXX`` id of the recipient.
            amount: Amount in the sender's currency, before the fee.
            note: Optional note copied onto both receipts.
            idempotency_key: Client key, required.
            request: Incoming request, for the audit log.

        Returns:
            The JSON form of the transfer result (see ``transfer``).

        Raises:
            AppError: KYC, rate-limit, validation, idempotency and ledger errors.
        """
        enforce_kyc(sender)
        enforce_rate_limit(sender, "send_money")
        amount = WalletService.validate_transfer_amount(amount)
        if not looks_like_wallet_id(recipient_wallet_id):
            raise AppError(ErrorCode.TXN_RECIPIENT_NOT_FOUND, "Invalid recipient wallet ID.")

        def operation():
            with guard_operation(
                sender,
                "send_money",
                request=request,
                amount=amount,
                metadata={"recipient_wallet_id": recipient_wallet_id},
                failure_message="Transaction failed.",
            ):
                result = WalletService.transfer(sender, recipient_wallet_id, amount, note)
            audit_log(
                sender,
                "send_money",
                AuditLogEntry.Result.SUCCESS,
                amount=amount,
                currency=result["currency"],
                metadata={
                    "transaction_id": result["transaction_id"],
                    "recipient_wallet_id": recipient_wallet_id,
                    "fee": str(result["fee"]),
                },
                request=request,
            )
            return result

        return with_idempotency(idempotency_key, "send_money", sender, operation)

    @staticmethod
    @transaction.atomic
    def transfer(sender: AbstractBaseUser, recipient_wallet_id: str, amount: Decimal, note: str = "") -> dict:
        """
        Move ``amount`` plus fee out of the sender's wallet and ``amount``
        (converted when currencies differ) into the recipient's.

        Everything, including both receipts and the platform fee, commits
        or rolls back together.

        Args:
            sender: Owner of the debited wallet.
            recipient_wallet_id: Public id of the credited wallet.
            amount: Validated positive amount in the sender's currency.
            note: Optional note for the receipts.

        Returns:
            Dict with ``transaction_id``, ``amount``, ``fee``, ``currency``,
            ``recipient_name``, ``new_balance``, ``converted_amount``,
            ``recipient_currency`` and ``exchange_rate``.

        Raises:
            AppError: ``TXN_SELF_TRANSFER``, ``WALLET_INSUFFICIENT_FUNDS``,
                ``TXN_RECIPIENT_NOT_FOUND``, ``WALLET_SUSPENDED``,
                ``WALLET_LIMIT_EXCEEDED`` or ``SERVICE_UNAVAILABLE`` when a
                conversion has no fresh rate.
        """
        sender_wallet_id = (
            Wallet.objects.filter(user=sender).values_list("wallet_id", flat=True).first()
        )
        if sender_wallet_id is None:
            raise AppError(ErrorCode.WALLET_NOT_FOUND, details={"user": sender.pk})
        if sender_wallet_id == recipient_wallet_id:
            raise AppError(ErrorCode.TXN_SELF_TRANSFER)

        fee = WalletService.compute_fee(amount)
        total = amount + fee

        locked = {
            wallet.wallet_id: wallet
            for wallet in Wallet.objects.select_for_update()
            .filter(wallet_id__in=[sender_wallet_id, recipient_wallet_id])
            .order_by("pk")
        }
        sender_wallet = locked[sender_wallet_id]
        recipient_wallet = locked.get(recipient_wallet_id)

        if not sender_wallet.is_active:
            raise AppError(ErrorCode.WALLET_SUSPENDED, details={"role": "sender"})
        if sender_wallet.balance < total:
            raise AppError(
                ErrorCode.WALLET_INSUFFICIENT_FUNDS,
                details={"required": str(total), "available": str(sender_wallet.balance)},
            )
        if recipient_wallet is None:
            raise AppError(ErrorCode.TXN_RECIPIENT_NOT_FOUND, details={"wallet_id": recipient_wallet_id})
        if not recipient_wallet.is_active:
            raise AppError(
                ErrorCode.WALLET_SUSPENDED,
                "Recipient wallet is suspended.",
                {"role": "recipient"},
            )
        check_spend_limits(sender_wallet, total)

        snapshot = exchange.get_snapshot()
        converted, rate = exchange.convert(
            amount, sender_wallet.currency, recipient_wallet.currency, snapshot=snapshot
        )
        is_conversion = sender_wallet.currency != recipient_wallet.currency

        sender_name = display_name(sender)
        recipient_name = display_name(recipient_wallet.user)

        debit_wallet(sender_wallet, total)
        credit_wallet(recipient_wallet, converted)

        now = timezone.now()
        transaction_id = generate_transaction_id()
        collect_fee(
            fee,
            sender_wallet.currency,
            transaction_id,
            sender,
            sender_name,
            amount,
            snapshot=snapshot,
            now=now,
        )

        receipt = {
            "transaction_id": transaction_id,
            "sender_wallet_id": sender_wallet.wallet_id,
            "receiver_wallet_id": recipient_wallet.wallet_id,
            "sender_name": sender_name,
            "receiver_name": recipient_name,
            "amount": amount,
            "currency": sender_wallet.currency,
            "sender_currency": sender_wallet.currency,
            "receiver_currency": recipient_wallet.currency,
            "exchange_rate": rate if is_conversion else None,
            "converted_amount": converted if is_conversion else None,
            "note": note or "",
            "reference": f"TXN-{int(now.timestamp() * 1000)}",
            "completed_at": now,
        }
        Transaction.objects.create(
            owner=sender,
            type=Transaction.Type.SEND,
            fee=fee,
            **receipt,
            **initial_state_fields(TransactionStatus.COMPLETED, transaction_id, now),
        )
        Transaction.objects.create(
            owner=recipient_wallet.user,
            type=Transaction.Type.RECEIVE,
            fee=0,
            **receipt,
            **initial_state_fields(TransactionStatus.COMPLETED, transaction_id, now),
        )

        logger.info(
            "Transfer completed: tx=%s from=%s to=%s amount=%s %s fee=%s converted=%s %s",
            transaction_id,
            sender_wallet.wallet_id,
            recipient_wallet.wallet_id,
            amount,
            sender_wallet.currency,
            fee,
            converted,
            recipient_wallet.currency,
        )
        return {
            "transaction_id": transaction_id,
            "amount": amount,
            "fee": fee,
            "currency": sender_wallet.currency,
            "recipient_name": recipient_name,
            "new_balance": sender_wallet.balance,
            "converted_amount": converted,
            "recipient_currency": recipient_wallet.currency,
            "exchange_rate": rate,
        }

    @staticmethod
    @transaction.atomic
    def confirm_deposit(
        user: AbstractBaseUser,
        reference: str,
        amount,
        currency: str,
        channel: str = "",
        description: str = "",
        gateway_data: dict = None,
        method: str = "",
    ) -> tuple:
        """
        Credit a confirmed gateway deposit exactly once.

        Args:
            user: Owner of the credited wallet.
            reference: Gateway reference; the idempotency key of the deposit.
            amount: Amount in ``currency``, converted into the wallet currency.
            currency: Currency the gateway collected in.

        Returns:
            ``(payment, credited)``; ``credited`` is False when the reference
            was already processed.
        """
        amount = to_amount(amount)
        payment = Payment.objects.select_for_update().filter(reference=reference).first()
        if payment is not None and payment.processed:
            logger.info("Deposit already processed: reference=%s", reference)
            return payment, False
        if payment is not None and payment.user_id != user.pk:
            raise AppError(
                ErrorCode.AUTH_PERMISSION_DENIED,
                "This payment belongs to another user.",
                {"reference": reference},
            )

        wallet = get_user_wallet(user, lock=True)
        credited, rate = exchange.convert(amount, currency, wallet.currency)
        credit_wallet(wallet, credited)

        if payment is None:
            payment = Payment(reference=reference, user=user)
        payment.wallet = wallet
        payment.amount = amount
        payment.currency = currency
        payment.channel = channel or payment.channel
        payment.status = Payment.Status.SUCCESS
        payment.processed = True
        if gateway_data is not None:
            payment.gateway_data = gateway_data
        payment.save()

        now = timezone.now()
        is_conversion = currency != wallet.currency
        Transaction.objects.create(
            owner=user,
            transaction_id=reference,
            type=Transaction.Type.DEPOSIT,
            receiver_wallet_id=wallet.wallet_id,
            amount=amount,
            currency=currency,
            receiver_currency=wallet.currency,
            exchange_rate=rate if is_conversion else None,
            converted_amount=credited if is_conversion else None,
            reference=reference,
            description=description or "Wallet deposit",
            method=method or channel,
            completed_at=now,
            **initial_state_fields(TransactionStatus.COMPLETED, reference, now),
        )

        logger.info(
            "Deposit credited: reference=%s user=%s amount=%s %s credited=%s %s new_balance=%s",
            reference,
            user.pk,
            amount,
            currency,
            credited,
            wallet.currency,
            wallet.balance,
        )
        return payment, True

    @staticmethod
    def lookup_wallet(user: AbstractBaseUser, wallet_id: str, request=None) -> dict:
        """
        Resolve a public wallet id to a display name for the send screen.

        A per-IP burst limiter and a failed-lookup cooldown sit in front of
        the persistent per-user limit to make enumerating wallet ids costly.
        """
        identity = hash_ip(request)
        if not lookup_burst_limiter().allow(identity):
            logger.warning("Lookup burst limit hit: ip_hash=%s", identity)
            raise AppError(ErrorCode.RATE_LIMIT_EXCEEDED, "Too many requests from this location.")

        failures = lookup_failure_tracker()
        if failures.is_blocked(identity):
            raise AppError(
                ErrorCode.RATE_COOLDOWN_ACTIVE,
                "Too many failed attempts. Please wait 5 minutes.",
            )

        enforce_rate_limit(user, "lookup_wallet")

        wallet = None
        if looks_like_wallet_id(wallet_id):
            wallet = Wallet.objects.select_related("user").filter(wallet_id=wallet_id).first()
        if wallet is None:
            count = failures.record(identity)
            logger.warning("Wallet lookup miss: user=%s ip_hash=%s failures=%s", user.pk, identity, count)
            return {"found": False}

        profile = Profile.objects.filter(user=wallet.user).first()
        return {
            "found": True,
            "wallet_id": wallet.wallet_id,
            "recipient_name": (profile.full_name if profile else "") or DEFAULT_RECIPIENT_NAME,
            "profile_photo_url": (profile.profile_photo_url if profile else "") or None,
        }
