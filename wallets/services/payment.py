import logging

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser

from wallets.conf import require_service_ready
from wallets.errors import AppError, ErrorCode, ServiceError
from wallets.models import AuditLogEntry, Payment, Profile, VirtualAccount
from wallets.services.audit import audit_log, guard_operation
from wallets.services.idempotency import with_idempotency
from wallets.services.kyc import enforce_kyc
from wallets.services.wallet import WalletService, get_user_wallet, to_amount
from wallets.utils import PaystackClient, from_minor_units
from wallets.utils.references import generate_reference

logger = logging.getLogger(__name__)


def _positive(amount):
    amount = to_amount(amount)
    if amount <= 0:
        raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount must be positive.")
    return amount


def _split_name(name):
    parts = name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:]) or parts[0]


def _virtual_account_data(account):
    return {
        "bank_name": account.bank_name,
        "account_number": account.account_number,
        "account_name": account.account_name,
    }


def _metadata_user_id(data):
    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        return None
    value = metadata.get("user_id")
    return str(value) if value not in (None, "") else None


class PaymentService:
    """Deposits and account lookups through the card/bank gateway."""

    @staticmethod
    def initialize_transaction(user: AbstractBaseUser, email: str, amount, currency: str = None, client=None) -> dict:
        require_service_ready("paystack")
        enforce_kyc(user)
        amount = _positive(amount)
        wallet = get_user_wallet(user)
        currency = (currency or wallet.currency).upper()
        client = client or PaystackClient()

        reference = generate_reference("TXN")
        Payment.objects.create(
            reference=reference,
            user=user,
            wallet=wallet,
            amount=amount,
            currency=currency,
            channel="card",
        )
        result = client.initialize_transaction(
            email, amount, currency, reference, {"user_id": str(user.pk), "type": "deposit"}
        )
        if not result.ok:
            Payment.objects.filter(reference=reference).update(status=Payment.Status.FAILED)
            raise ServiceError("paystack", result.message or "Failed to initialize payment.")

        logger.info("Checkout initialized: reference=%s user=%s amount=%s %s", reference, user.pk, amount, currency)
        return {
            "authorization_url": result.data.get("authorization_url"),
            "access_code": result.data.get("access_code"),
            "reference": reference,
        }

    @staticmethod
    def charge_mobile_money(user: AbstractBaseUser, email: str, amount, phone_number: str, provider: str,
                            currency: str = None, idempotency_key: str = None, request=None, client=None) -> dict:
        require_service_ready("paystack")
        enforce_kyc(user)
        amount = _positive(amount)
        wallet = get_user_wallet(user)
        currency = (currency or wallet.currency).upper()
        client = client or PaystackClient()

        def operation():
            with guard_operation(
                user,
                "charge_mobile_money",
                request=request,
                amount=amount,
                currency=currency,
                failure_message="Mobile money charge failed.",
            ):
                reference = generate_reference("MOMO")
                Payment.objects.create(
                    reference=reference,
                    user=user,
                    wallet=wallet,
                    amount=amount,
                    currency=currency,
                    channel="mobile_money",
                )
                try:
                    result = client.charge_mobile_money(
                        email,
                        amount,
                        currency,
                        phone_number,
                        provider,
                        reference,
                        {"user_id": str(user.pk), "type": "deposit"},
                    )
                except AppError:
                    Payment.objects.filter(reference=reference).update(status=Payment.Status.FAILED)
                    raise

                if not result.ok or result.failed:
                    Payment.objects.filter(reference=reference).update(
                        status=Payment.Status.FAILED, gateway_data=result.data
                    )
                    raise ServiceError("paystack", result.message or "Mobile money charge failed.", reference=reference)

                completed = result.completed
                if completed:
                    WalletService.confirm_deposit(
                        user,
                        reference,
                        amount,
                        currency,
                        channel="mobile_money",
                        description="Mobile money deposit",
                        gateway_data=result.data,
                        method="mobile_money",
                    )

            audit_log(
                user,
                "charge_mobile_money",
                AuditLogEntry.Result.SUCCESS,
                amount=amount,
                currency=currency,
                metadata={"reference": reference, "completed": completed},
                request=request,
            )
            return {
                "reference": reference,
                "completed": completed,
                "status": result.status.value,
                "display_text": result.data.get("display_text") or result.message,
            }

        return with_idempotency(idempotency_key, "charge_mobile_money", user, operation)

    @staticmethod
    def verify_payment(user: AbstractBaseUser, reference: str, request=None, client=None) -> dict:
        """
        Confirm a deposit by asking the gateway directly.

        A reference owned by someone else is refused whether ownership is
        known locally or only from the gateway's metadata.

        Returns:
            ``verified`` plus, for a successful charge, ``already_processed``,
            ``amount``, ``currency`` and ``new_balance`` (Decimals).

        Raises:
            AppError: ``AUTH_PERMISSION_DENIED`` for another user's reference.
        """
        require_service_ready("paystack")
        enforce_kyc(user)
        client = client or PaystackClient()

        payment = Payment.objects.filter(reference=reference).first()
        if payment is not None and payment.user_id != user.pk:
            raise AppError(ErrorCode.AUTH_PERMISSION_DENIED, "This payment belongs to another user.")

        with guard_operation(user, "verify_payment", request=request, metadata={"reference": reference}):
            result = client.verify_transaction(reference)
            owner_id = _metadata_user_id(result.data)
            if payment is None and owner_id is not None and owner_id != str(user.pk):
                raise AppError(ErrorCode.AUTH_PERMISSION_DENIED, "This payment belongs to another user.")

            if not result.completed:
                logger.info("Payment not successful: reference=%s status=%s", reference, result.status.value)
                return {
                    "verified": False,
                    "reference": reference,
                    "status": result.status.value,
                    "message": result.message or "Payment not successful.",
                }

            if payment is not None and payment.processed:
                return {"verified": True, "already_processed": True, "reference": reference}

            amount = from_minor_units(result.data.get("amount"))
            currency = result.data.get("currency") or (payment.currency if payment else settings.DEFAULT_WALLET_CURRENCY)
            payment, credited = WalletService.confirm_deposit(
                user,
                reference,
                amount,
                currency,
                channel=str(result.data.get("channel") or ""),
                description="Wallet deposit",
                gateway_data=result.data,
            )

        wallet = get_user_wallet(user)
        if credited:
            audit_log(
                user,
                "verify_payment",
                AuditLogEntry.Result.SUCCESS,
                amount=amount,
                currency=currency,
                metadata={"reference": reference},
                request=request,
            )
        return {
            "verified": True,
            "already_processed": not credited,
            "reference": reference,
            "amount": amount,
            "currency": currency,
            "new_balance": wallet.balance,
        }

    @staticmethod
    def get_banks(country: str = "nigeria", client=None) -> dict:
        client = client or PaystackClient()
        result = client.list_banks(country or "nigeria")
        if not result.ok:
            raise ServiceError("paystack", result.message or "Failed to fetch banks.")
        return {
            "banks": [
                {"name": bank.get("name"), "code": bank.get("code"), "type": bank.get("type")}
                for bank in result.data.get("banks", [])
            ]
        }

    @staticmethod
    def verify_bank_account(account_number: str, bank_code: str, client=None) -> dict:
        if not account_number or not bank_code:
            raise AppError(ErrorCode.SYSTEM_VALIDATION_FAILED, "Account number and bank code are required.")
        client = client or PaystackClient()
        result = client.resolve_account(account_number, bank_code)
        if not result.ok:
            raise AppError(
                ErrorCode.SYSTEM_VALIDATION_FAILED,
                result.message or "Could not resolve account.",
                {"account_number": account_number},
            )
        return {
            "verified": True,
            "account_name": result.data.get("account_name"),
            "account_number": result.data.get("account_number") or account_number,
            "bank_id": result.data.get("bank_id"),
        }

    @staticmethod
    def get_or_create_virtual_account(user: AbstractBaseUser, email: str, name: str = "", client=None) -> dict:
        """
        Return the caller's dedicated deposit account, opening it on first use.

        The gateway customer is looked up by email and created when missing.
        The account is stored on the user, so later calls never reach the
        gateway.

        Returns:
            ``bank_name``, ``account_number``, ``account_name`` and ``created``.

        Raises:
            ServiceError: the gateway refused the customer or the account.
        """
        enforce_kyc(user)
        existing = VirtualAccount.objects.filter(user=user).first()
        if existing is not None:
            return {**_virtual_account_data(existing), "created": False}

        require_service_ready("paystack")
        client = client or PaystackClient()
        if not name:
            profile = Profile.objects.filter(user=user).first()
            name = (profile.full_name if profile else "") or user.get_username()

        customer = client.fetch_customer(email)
        if not customer.ok or not customer.data.get("id"):
            first_name, last_name = _split_name(name)
            customer = client.create_customer(email, first_name, last_name, {"user_id": str(user.pk)})
            if not customer.ok or not customer.data.get("id"):
                raise ServiceError("paystack", customer.message or "Failed to create customer.")
        customer_id = str(customer.data["id"])

        result = client.create_dedicated_account(customer_id, settings.PAYSTACK_PREFERRED_BANK)
        if not result.ok or not result.data.get("account_number"):
            logger.error("Dedicated account refused: user=%s customer=%s message=%s", user.pk, customer_id, result.message)
            raise ServiceError("paystack", result.message or "Virtual accounts are not available.")

        bank = result.data.get("bank") if isinstance(result.data.get("bank"), dict) else {}
        account, created = VirtualAccount.objects.get_or_create(
            user=user,
            defaults={
                "customer_id": customer_id,
                "bank_name": bank.get("name") or "",
                "bank_id": str(bank.get("id") or ""),
                "account_number": str(result.data["account_number"]),
                "account_name": result.data.get("account_name") or name,
            },
        )
        if created:
            logger.info("Virtual account opened: user=%s bank=%s", user.pk, account.bank_name)
        return {**_virtual_account_data(account), "created": created}
