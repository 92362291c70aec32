"""
Application error taxonomy.

Codes follow ``CATEGORY_SPECIFIC_CONDITION`` with the categories AUTH, KYC,
WALLET, TXN, RATE, SERVICE, CONFIG and SYSTEM. Each code has a transport
status (gRPC-style, as mobile clients expect it) and a message that is safe
to show to the user.
"""

import logging
from enum import Enum

from django.utils import timezone

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    AUTH_UNAUTHENTICATED = "AUTH_UNAUTHENTICATED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    AUTH_SESSION_EXPIRED = "AUTH_SESSION_EXPIRED"

    KYC_REQUIRED = "KYC_REQUIRED"
    KYC_INCOMPLETE = "KYC_INCOMPLETE"
    KYC_VERIFICATION_FAILED = "KYC_VERIFICATION_FAILED"

    WALLET_NOT_FOUND = "WALLET_NOT_FOUND"
    WALLET_INSUFFICIENT_FUNDS = "WALLET_INSUFFICIENT_FUNDS"
    WALLET_LIMIT_EXCEEDED = "WALLET_LIMIT_EXCEEDED"
    WALLET_SUSPENDED = "WALLET_SUSPENDED"

    TXN_INVALID_STATE = "TXN_INVALID_STATE"
    TXN_DUPLICATE_REQUEST = "TXN_DUPLICATE_REQUEST"
    TXN_SELF_TRANSFER = "TXN_SELF_TRANSFER"
    TXN_RECIPIENT_NOT_FOUND = "TXN_RECIPIENT_NOT_FOUND"
    TXN_NOT_FOUND = "TXN_NOT_FOUND"
    TXN_AMOUNT_INVALID = "TXN_AMOUNT_INVALID"
    TXN_AMOUNT_TOO_SMALL = "TXN_AMOUNT_TOO_SMALL"
    TXN_AMOUNT_TOO_LARGE = "TXN_AMOUNT_TOO_LARGE"

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    RATE_COOLDOWN_ACTIVE = "RATE_COOLDOWN_ACTIVE"

    SERVICE_PAYSTACK_ERROR = "SERVICE_PAYSTACK_ERROR"
    SERVICE_MOMO_ERROR = "SERVICE_MOMO_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    SYSTEM_INTERNAL_ERROR = "SYSTEM_INTERNAL_ERROR"
    SYSTEM_VALIDATION_FAILED = "SYSTEM_VALIDATION_FAILED"


TRANSPORT_STATUS = {
    ErrorCode.AUTH_UNAUTHENTICATED: "unauthenticated",
    ErrorCode.AUTH_PERMISSION_DENIED: "permission-denied",
    ErrorCode.AUTH_SESSION_EXPIRED: "unauthenticated",
    ErrorCode.KYC_REQUIRED: "failed-precondition",
    ErrorCode.KYC_INCOMPLETE: "failed-precondition",
    ErrorCode.KYC_VERIFICATION_FAILED: "failed-precondition",
    ErrorCode.WALLET_NOT_FOUND: "not-found",
    ErrorCode.WALLET_INSUFFICIENT_FUNDS: "failed-precondition",
    ErrorCode.WALLET_LIMIT_EXCEEDED: "failed-precondition",
    ErrorCode.WALLET_SUSPENDED: "failed-precondition",
    ErrorCode.TXN_INVALID_STATE: "failed-precondition",
    ErrorCode.TXN_DUPLICATE_REQUEST: "already-exists",
    ErrorCode.TXN_SELF_TRANSFER: "invalid-argument",
    ErrorCode.TXN_RECIPIENT_NOT_FOUND: "not-found",
    ErrorCode.TXN_NOT_FOUND: "not-found",
    ErrorCode.TXN_AMOUNT_INVALID: "invalid-argument",
    ErrorCode.TXN_AMOUNT_TOO_SMALL: "invalid-argument",
    ErrorCode.TXN_AMOUNT_TOO_LARGE: "invalid-argument",
    ErrorCode.RATE_LIMIT_EXCEEDED: "resource-exhausted",
    ErrorCode.RATE_COOLDOWN_ACTIVE: "resource-exhausted",
    ErrorCode.SERVICE_PAYSTACK_ERROR: "unavailable",
    ErrorCode.SERVICE_MOMO_ERROR: "unavailable",
    ErrorCode.SERVICE_UNAVAILABLE: "unavailable",
    ErrorCode.CONFIG_MISSING: "failed-precondition",
    ErrorCode.CONFIG_INVALID: "failed-precondition",
    ErrorCode.SYSTEM_INTERNAL_ERROR: "internal",
    ErrorCode.SYSTEM_VALIDATION_FAILED: "invalid-argument",
}

HTTP_STATUS = {
    "unauthenticated": 401,
    "permission-denied": 403,
    "failed-precondition": 400,
    "invalid-argument": 400,
    "not-found": 404,
    "already-exists": 409,
    "resource-exhausted": 429,
    "unavailable": 503,
    "internal": 500,
}

DEFAULT_MESSAGES = {
    ErrorCode.AUTH_UNAUTHENTICATED: "Please sign in to continue.",
    ErrorCode.AUTH_PERMISSION_DENIED: "You do not have permission to perform this action.",
    ErrorCode.AUTH_SESSION_EXPIRED: "Your session has expired. Please sign in again.",
    ErrorCode.KYC_REQUIRED: "Please complete identity verification to continue.",
    ErrorCode.KYC_INCOMPLETE: "Your verification is incomplete. Please finish all steps.",
    ErrorCode.KYC_VERIFICATION_FAILED: "Identity verification failed. Please try again.",
    ErrorCode.WALLET_NOT_FOUND: "Wallet not found. Please contact support.",
    ErrorCode.WALLET_INSUFFICIENT_FUNDS: "Insufficient balance for this transaction.",
    ErrorCode.WALLET_LIMIT_EXCEEDED: "Transaction exceeds your daily limit.",
    ErrorCode.WALLET_SUSPENDED: "This wallet is suspended. Please contact support.",
    ErrorCode.TXN_INVALID_STATE: "This transaction cannot be modified.",
    ErrorCode.TXN_DUPLICATE_REQUEST: "This request has already been processed.",
    ErrorCode.TXN_SELF_TRANSFER: "You cannot transfer to your own wallet.",
    ErrorCode.TXN_RECIPIENT_NOT_FOUND: "Recipient wallet not found. Please check the ID.",
    ErrorCode.TXN_NOT_FOUND: "Transaction not found.",
    ErrorCode.TXN_AMOUNT_INVALID: "Please enter a valid amount.",
    ErrorCode.TXN_AMOUNT_TOO_SMALL: "Amount is below the minimum allowed.",
    ErrorCode.TXN_AMOUNT_TOO_LARGE: "Amount exceeds the maximum allowed.",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Too many requests. Please wait before trying again.",
    ErrorCode.RATE_COOLDOWN_ACTIVE: "Please wait before retrying this action.",
    ErrorCode.SERVICE_PAYSTACK_ERROR: "Payment service error. Please try again.",
    ErrorCode.SERVICE_MOMO_ERROR: "MoMo service error. Please try again.",
    ErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable. Please try again.",
    ErrorCode.CONFIG_MISSING: "Service is not configured. Contact support.",
    ErrorCode.CONFIG_INVALID: "Service configuration error. Contact support.",
    ErrorCode.SYSTEM_INTERNAL_ERROR: "Something went wrong. Please try again later.",
    ErrorCode.SYSTEM_VALIDATION_FAILED: "Invalid data provided.",
}


class AppError(Exception):
    """
    A failure with a machine-readable code.

    Constructing an AppError writes one structured log record so that
    operational logs can be searched by code, whichever layer ends up
    rendering the error.
    """

    def __init__(self, code, message=None, details=None):
        self.code = ErrorCode(code)
        self.message = message or DEFAULT_MESSAGES.get(self.code, "An error occurred.")
        self.details = dict(details or {})
        self.timestamp = timezone.now().isoformat()
        super().__init__(self.message)

        logger.error(
            "app_error code=%s message=%s details=%s timestamp=%s",
            self.code.value,
            self.message,
            self.details,
            self.timestamp,
        )

    @property
    def transport_status(self):
        return TRANSPORT_STATUS.get(self.code, "failed-precondition")

    @property
    def http_status(self):
        return HTTP_STATUS[self.transport_status]

    def to_dict(self):
        return {
            "code": self.code.value,
            "status": self.transport_status,
            "message": self.message,
            "details": {**self.details, "timestamp": self.timestamp},
        }


class ServiceError(AppError):
    """An external gateway failed or could not be reached. Always retryable."""

    def __init__(self, service, message=None, **context):
        try:
            code = ErrorCode(f"SERVICE_{service.upper()}_ERROR")
        except ValueError:
            code = ErrorCode.SERVICE_UNAVAILABLE
        self.service = service
        super().__init__(
            code,
            message or f"{service} service error. Please try again.",
            {"service": service, "retryable": True, **context},
        )
