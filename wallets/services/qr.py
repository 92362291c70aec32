"""
Signed payment-request QR codes.

A receiver asks the server to sign ``{wallet_id, amount, note, timestamp,
user_id}``; the payer's app scans the code and asks the server to check the
signature before pre-filling the send screen. The payload travels as the
exact JSON string that was signed.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser
from django.utils import timezone

from wallets.errors import AppError, ErrorCode
from wallets.models import Profile, Wallet
from wallets.services.kyc import enforce_kyc
from wallets.services.wallet import DEFAULT_RECIPIENT_NAME, get_user_wallet, to_amount
from wallets.utils.signatures import compute_signature, verify_signature

logger = logging.getLogger(__name__)


def _signing_secret():
    secret = settings.QR_SIGNING_SECRET
    if not secret:
        raise AppError(
            ErrorCode.CONFIG_MISSING,
            "Service unavailable: QR signing is not configured. Contact support.",
            {"service": "qr"},
        )
    return secret


def _millis(moment):
    return int(moment.timestamp() * 1000)


def _invalid(reason):
    return {"valid": False, "reason": reason}


class QrService:
    @staticmethod
    def sign_payload(user: AbstractBaseUser, wallet_id: str, amount=None, note: str = "", now=None) -> dict:
        """
        Sign a payment request for one of the caller's own wallets.

        Args:
            user: the receiver.
            wallet_id: must be the caller's wallet id.
            amount: requested amount; ``None`` or zero leaves it to the payer.
            note: free text shown to the payer.

        Returns:
            ``payload`` (the signed JSON string), ``signature`` (hex
            HMAC-SHA256) and ``expires_at``.

        Raises:
            AppError: ``AUTH_PERMISSION_DENIED`` when the wallet is not the
                caller's, ``CONFIG_MISSING`` without a signing secret.
        """
        secret = _signing_secret()
        enforce_kyc(user)
        wallet = get_user_wallet(user)
        if wallet.wallet_id != wallet_id:
            raise AppError(ErrorCode.AUTH_PERMISSION_DENIED, "Wallet does not belong to user.")

        amount = to_amount(amount or 0)
        if amount < 0:
            raise AppError(ErrorCode.TXN_AMOUNT_INVALID, "Amount cannot be negative.")

        now = now or timezone.now()
        payload = json.dumps(
            {
                "wallet_id": wallet_id,
                "amount": str(amount),
                "note": note or "",
                "timestamp": _millis(now),
                "user_id": str(user.pk),
            },
            separators=(",", ":"),
            sort_keys=True,
        )
        logger.info("QR payment request signed: user=%s wallet=%s amount=%s", user.pk, wallet_id, amount)
        return {
            "payload": payload,
            "signature": compute_signature(secret, payload, hashlib.sha256),
            "expires_at": now + settings.QR_CODE_TTL,
        }

    @staticmethod
    def verify_payload(user: AbstractBaseUser, payload: str, signature: str, now=None) -> dict:
        """
        Check a scanned payment request and resolve who it pays.

        A bad signature, an unreadable or expired payload and an unknown
        wallet come back as ``{"valid": False, "reason": ...}``. Only a
        missing field or an unconfigured secret raises.
        """
        if not payload or not signature:
            raise AppError(ErrorCode.SYSTEM_VALIDATION_FAILED, "Missing payload or signature.")
        secret = _signing_secret()

        if not verify_signature(secret, payload, signature, hashlib.sha256):
            logger.warning("QR signature mismatch: user=%s", user.pk)
            return _invalid("Invalid signature")

        try:
            data = json.loads(payload)
            amount = Decimal(str(data.get("amount") or 0))
            timestamp = int(data.get("timestamp") or 0)
        except (ValueError, TypeError, AttributeError, InvalidOperation):
            return _invalid("Invalid payload format")

        now = now or timezone.now()
        if timestamp:
            signed_at = datetime.fromtimestamp(timestamp / 1000, tz=dt_timezone.utc)
            if now - signed_at > settings.QR_CODE_TTL:
                return _invalid("QR code expired")

        wallet = Wallet.objects.filter(wallet_id=data.get("wallet_id")).first()
        if wallet is None:
            return _invalid("Wallet not found")

        profile = Profile.objects.filter(user_id=wallet.user_id).first()
        return {
            "valid": True,
            "wallet_id": wallet.wallet_id,
            "amount": amount,
            "note": data.get("note") or "",
            "recipient_name": (profile.full_name if profile else "") or DEFAULT_RECIPIENT_NAME,
            "profile_photo_url": (profile.profile_photo_url if profile else "") or None,
        }
