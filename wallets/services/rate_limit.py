"""
Persistent sliding-window rate limiter per (user, operation).

Each window row stores the epoch timestamps of recent requests. The read,
prune, check and append happen under a row lock so two concurrent requests
cannot both see the last free slot. Storage errors fail open.
"""

import logging

from django.conf import settings
from django.contrib.auth.base_user import AbstractBaseUser
from django.db import DatabaseError, transaction
from django.utils import timezone

from wallets.errors import AppError, ErrorCode
from wallets.models import RateLimitWindow

logger = logging.getLogger(__name__)


def get_limit(operation: str) -> dict:
    return settings.WALLET_RATE_LIMITS.get(operation)


def check_rate_limit(user: AbstractBaseUser, operation: str, now=None) -> bool:
    """Record one request and return False if it exceeds the window."""
    config = get_limit(operation)
    if not config:
        logger.warning("No rate limit configured for operation=%s", operation)
        return True

    now_ts = (now or timezone.now()).timestamp()
    window_start = now_ts - config["window_seconds"]

    try:
        with transaction.atomic():
            window, _ = RateLimitWindow.objects.select_for_update().get_or_create(
                user=user, operation=operation
            )
            recent = [ts for ts in window.requests or [] if ts > window_start]
            if len(recent) >= config["max_requests"]:
                return False
            recent.append(now_ts)
            window.requests = recent
            window.save(update_fields=["requests", "updated_at"])
            return True
    except DatabaseError:
        logger.exception(
            "Rate limit check failed for user=%s operation=%s; allowing request",
            user.pk,
            operation,
        )
        return True


def enforce_rate_limit(user: AbstractBaseUser, operation: str, now=None) -> None:
    """
    Count one request against the caller's window for ``operation``.

    Raises:
        AppError: ``RATE_LIMIT_EXCEEDED`` once the window is full.
    """
    if not check_rate_limit(user, operation, now=now):
        config = get_limit(operation) or {}
        logger.warning("Rate limit hit: user=%s operation=%s", user.pk, operation)
        raise AppError(
            ErrorCode.RATE_LIMIT_EXCEEDED,
            config.get("message"),
            {"operation": operation, "user": user.pk},
        )


def longest_window_seconds() -> int:
    return max(
        (limit["window_seconds"] for limit in settings.WALLET_RATE_LIMITS.values()),
        default=0,
    )
