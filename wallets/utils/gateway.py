"""
One result shape for both payment gateways.

Paystack answers ``{"status": true, "data": {"status": "success"}}`` while
MoMo answers with an HTTP status code and ``{"status": "SUCCESSFUL"}``.
Business logic only ever sees a ``GatewayResult``.
"""

from dataclasses import dataclass, field
from enum import Enum


class GatewayStatus(str, Enum):
    PENDING = "pending"
    PENDING_OTP = "pending_otp"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"


PAYSTACK_STATUSES = {
    "success": GatewayStatus.COMPLETED,
    "otp": GatewayStatus.PENDING_OTP,
    "send_otp": GatewayStatus.PENDING_OTP,
    "pending": GatewayStatus.PENDING,
    "ongoing": GatewayStatus.PENDING,
    "processing": GatewayStatus.PENDING,
    "queued": GatewayStatus.PENDING,
    "received": GatewayStatus.PENDING,
    "pay_offline": GatewayStatus.PENDING,
    "failed": GatewayStatus.FAILED,
    "reversed": GatewayStatus.FAILED,
    "abandoned": GatewayStatus.FAILED,
}

MOMO_STATUSES = {
    "SUCCESSFUL": GatewayStatus.COMPLETED,
    "PENDING": GatewayStatus.PENDING,
    "FAILED": GatewayStatus.FAILED,
    "REJECTED": GatewayStatus.FAILED,
    "TIMEOUT": GatewayStatus.FAILED,
}


@dataclass(frozen=True)
class GatewayResult:
    ok: bool
    status: GatewayStatus = GatewayStatus.UNKNOWN
    provider_reference: str = ""
    message: str = ""
    data: dict = field(default_factory=dict)
    raw: object = None

    @property
    def completed(self):
        return self.ok and self.status is GatewayStatus.COMPLETED

    @property
    def failed(self):
        return self.status is GatewayStatus.FAILED


def paystack_status(value):
    return PAYSTACK_STATUSES.get(str(value or "").lower(), GatewayStatus.UNKNOWN)


def momo_status(value):
    return MOMO_STATUSES.get(str(value or "").upper(), GatewayStatus.UNKNOWN)
