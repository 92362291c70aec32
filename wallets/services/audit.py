"""
Append-only audit trail for financial operations.

``audit_log`` never raises: a failed audit write is logged and the primary
operation carries on.
"""

import hashlib
import logging
from contextlib import contextmanager

from django.db import transaction

from wallets.errors import AppError, ErrorCode
from wallets.models import AuditLogEntry

logger = logging.getLogger(__name__)


def client_ip(request):
    if request is None:
        return "unknown"
    meta = getattr(request, "META", {})
    forwarded = meta.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return meta.get("REMOTE_ADDR") or "unknown"


def hash_ip(request):
    """First 16 hex chars of the SHA-256 of the client IP."""
    return hashlib.sha256(client_ip(request).encode("utf-8")).hexdigest()[:16]


def _actor_id(actor):
    return str(getattr(actor, "pk", actor) or "")


def audit_log(actor, operation, result, amount=None, currency="", error="", metadata=None, request=None):
    entry = {
        "actor_id": _actor_id(actor),
        "operation": operation,
        "result": result,
        "amount": amount,
        "currency": currency or "",
        "error": error or "",
        "metadata": metadata or {},
        "ip_hash": hash_ip(request) if request is not None else "",
    }
    try:
        with transaction.atomic():
            return AuditLogEntry.objects.create(**entry)
    except Exception:
        logger.exception("AUDIT LOG WRITE FAILED: entry=%s", entry)
        return None


@contextmanager
def guard_operation(actor, operation, request=None, amount=None, currency="", metadata=None, failure_message=None):
    """
    Boundary for a financial operation.

    Failures are audit-logged. ``AppError``s propagate unchanged; anything
    else is logged with its traceback and replaced by a generic
    ``SYSTEM_INTERNAL_ERROR`` so no internals reach the caller.
    """
    try:
        yield
    except AppError as exc:
        audit_log(
            actor,
            operation,
            AuditLogEntry.Result.FAILURE,
            amount=amount,
            currency=currency,
            error=exc.message,
            metadata={**(metadata or {}), "code": exc.code.value},
            request=request,
        )
        raise
    except Exception as exc:
        logger.exception("Unexpected error in %s for actor=%s", operation, _actor_id(actor))
        audit_log(
            actor,
            operation,
            AuditLogEntry.Result.FAILURE,
            amount=amount,
            currency=currency,
            error=str(exc),
            metadata=metadata,
            request=request,
        )
        raise AppError(ErrorCode.SYSTEM_INTERNAL_ERROR, failure_message) from exc
