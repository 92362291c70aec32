"""
At-most-once execution of client-initiated financial operations.

1. Claim the key atomically (row lock). A missing key is created as
   ``pending``; a ``completed`` key short-circuits to its cached result; a
   ``failed`` key is reset to ``pending``; a ``pending`` key is a duplicate
   in flight. A key never changes owner.
2. Run the operation outside the claim so it can open its own atomic units.
3. Record ``completed`` with the result, or ``failed`` with the error.
"""

import json
import logging
from typing import Any, Callable

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.contrib.auth.base_user import AbstractBaseUser
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from wallets.errors import AppError, ErrorCode
from wallets.models import IdempotencyKey

logger = logging.getLogger(__name__)

REPLAY_FLAG = "idempotent_replay"


def validate_key(key: str) -> None:
    if not isinstance(key, str) or len(key) < settings.IDEMPOTENCY_KEY_MIN_LENGTH:
        raise AppError(
            ErrorCode.SYSTEM_VALIDATION_FAILED,
            f"Idempotency key required (min {settings.IDEMPOTENCY_KEY_MIN_LENGTH} characters).",
        )


def _in_progress(operation):
    return AppError(
        ErrorCode.TXN_DUPLICATE_REQUEST,
        "Operation already in progress with this idempotency key.",
        {"operation": operation},
    )


def claim(key: str, operation: str, user: AbstractBaseUser, now=None) -> tuple:
    """
    Returns ``(True, cached_result)`` for a completed key, ``(False, None)``
    when the caller now owns the pending claim.
    """
    now = now or timezone.now()
    expires_at = now + settings.IDEMPOTENCY_KEY_TTL

    with transaction.atomic():
        record = IdempotencyKey.objects.select_for_update().filter(pk=key).first()

        if record is None:
            try:
                with transaction.atomic():
                    IdempotencyKey.objects.create(
                        key=key,
                        user=user,
                        operation=operation,
                        status=IdempotencyKey.Status.PENDING,
                        expires_at=expires_at,
                    )
            except IntegrityError:
                # Another request created the key between our read and insert.
                raise _in_progress(operation)
            return False, None

        if record.user_id != user.pk:
            raise AppError(
                ErrorCode.AUTH_PERMISSION_DENIED,
                "Idempotency key belongs to another user.",
                {"operation": operation},
            )

        if record.expires_at <= now:
            record.operation = operation
            record.status = IdempotencyKey.Status.PENDING
            record.result = None
            record.error = ""
            record.expires_at = expires_at
            record.completed_at = None
            record.failed_at = None
            record.retry_at = now
            record.save()
            return False, None

        if record.status == IdempotencyKey.Status.COMPLETED:
            return True, record.result

        if record.status == IdempotencyKey.Status.FAILED:
            record.status = IdempotencyKey.Status.PENDING
            record.retry_at = now
            record.save(update_fields=["status", "retry_at", "updated_at"])
            return False, None

        raise _in_progress(operation)


def _normalize(result):
    return json.loads(json.dumps(result, cls=DjangoJSONEncoder))


def with_idempotency(
    key: str, operation: str, user: AbstractBaseUser, func: Callable[[], dict]
) -> dict[str, Any]:
    """
    Run ``func()`` at most once per ``key``.

    The result is stored in its JSON form and that same form is returned on
    the first call and on every replay.

    Args:
        key: Client-supplied idempotency key (at least 16 characters).
        operation: Name of the guarded operation, e.g. ``send_money``.
        user: The caller. A key is never shared between users.
        func: Zero-argument callable performing the operation.

    Returns:
        The JSON-normalised result. Replays carry ``idempotent_replay: True``.

    Raises:
        AppError: ``SYSTEM_VALIDATION_FAILED`` for a missing or short key,
            ``AUTH_PERMISSION_DENIED`` for another user's key,
            ``TXN_DUPLICATE_REQUEST`` while the key is pending. Errors from
            ``func`` are re-raised after the key is marked failed.
    """
    validate_key(key)
    replay, cached = claim(key, operation, user)
    if replay:
        logger.info("Idempotent replay: key=%s... operation=%s user=%s", key[:8], operation, user.pk)
        result = dict(cached or {})
        result[REPLAY_FLAG] = True
        return result

    try:
        result = _normalize(func())
    except Exception as exc:
        _mark_failed(key, exc)
        raise

    now = timezone.now()
    IdempotencyKey.objects.filter(pk=key).update(
        status=IdempotencyKey.Status.COMPLETED,
        result=result,
        error="",
        completed_at=now,
        updated_at=now,
    )
    return result


def _mark_failed(key, exc):
    now = timezone.now()
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    try:
        IdempotencyKey.objects.filter(pk=key).update(
            status=IdempotencyKey.Status.FAILED,
            error=message,
            failed_at=now,
            updated_at=now,
        )
    except DatabaseError:
        logger.exception("Failed to update idempotency key status: key=%s...", key[:8])
