"""
Status transitions for every ``StatefulRecord``.

Two call shapes:

* ``update_transaction_state`` locks the row, validates and writes in its
  own atomic block.
* ``build_transition_fields`` / ``apply_transition`` compute or apply the
  change for a row the caller already locked inside its own atomic block.
"""

import logging

from django.db import transaction
from django.utils import timezone

from wallets.errors import AppError, ErrorCode
from wallets.models import TransactionStatus

logger = logging.getLogger(__name__)

S = TransactionStatus

VALID_TRANSITIONS = {
    "created": {"pending", "completed", "cancelled"},
    "pending": {"processing", "pending_otp", "completed", "failed", "cancelled"},
    "pending_otp": {"processing", "failed", "cancelled"},
    "processing": {"completed", "failed"},
    "completed": {"refunded"},
    "failed": {"refunded", "pending"},
    "refunded": set(),
    "cancelled": set(),
}

TERMINAL_STATES = frozenset({"refunded", "cancelled"})

EXTERNAL_STATUSES = {
    "SUCCESSFUL": S.COMPLETED,
    "SUCCESS": S.COMPLETED,
    "PENDING": S.PENDING,
    "FAILED": S.FAILED,
}


def normalize_status(status):
    """Map gateway vocabulary (``SUCCESSFUL``, ``success``, ...) onto ours."""
    if not status:
        return S.CREATED.value
    value = str(getattr(status, "value", status))
    mapped = EXTERNAL_STATUSES.get(value.upper())
    return mapped.value if mapped else value.lower()


def record_label(record):
    for attr in ("reference", "reference_id", "transaction_id"):
        value = getattr(record, attr, None)
        if value:
            return str(value)
    return str(record.pk)


def validate_transition(current, new, record_id):
    current = normalize_status(current)
    new = normalize_status(new)
    details = {"transaction_id": record_id, "from": current, "to": new}

    if current in TERMINAL_STATES:
        raise AppError(
            ErrorCode.TXN_INVALID_STATE,
            f"Transaction {record_id} is in terminal state: {current}.",
            details,
        )
    if current == S.COMPLETED and new != S.REFUNDED:
        raise AppError(
            ErrorCode.TXN_INVALID_STATE,
            f"Completed transaction {record_id} can only be refunded.",
            details,
        )
    if new not in VALID_TRANSITIONS.get(current, set()):
        raise AppError(
            ErrorCode.TXN_INVALID_STATE,
            f"Invalid state transition: {current} -> {new}.",
            details,
        )

    logger.info("State transition: %s -> %s for %s", current, new, record_id)
    return current, new


def _history_entry(current, new, now):
    return {"from": current, "to": new, "timestamp": now.isoformat()}


def initial_state_fields(status, record_id="new", now=None):
    """Fields for a record that is born directly in ``status``."""
    now = now or timezone.now()
    if normalize_status(status) == S.CREATED:
        return {"status": S.CREATED.value, "status_history": []}
    current, new = validate_transition(S.CREATED, status, record_id)
    return {
        "status": new,
        "previous_status": current,
        "status_updated_at": now,
        "status_history": [_history_entry(current, new, now)],
    }


def build_transition_fields(record, new_status, now=None):
    now = now or timezone.now()
    current, new = validate_transition(record.status, new_status, record_label(record))
    history = list(record.status_history or [])
    history.append(_history_entry(current, new, now))
    return {
        "status": new,
        "previous_status": current,
        "status_updated_at": now,
        "status_history": history,
    }


def apply_transition(record, new_status, now=None, **extra):
    """Validate and save a transition on a row the caller has locked."""
    fields = build_transition_fields(record, new_status, now=now)
    fields.update(extra)
    for name, value in fields.items():
        setattr(record, name, value)
    record.save(update_fields=[*fields, "updated_at"])
    return record


def update_transaction_state(model, lookup, new_status, **extra):
    """
    Lock the row matching ``lookup``, validate and apply the transition.

    Returns ``(previous_status, new_status)``.
    """
    with transaction.atomic():
        record = model.objects.select_for_update().filter(**lookup).first()
        if record is None:
            raise AppError(ErrorCode.TXN_NOT_FOUND, "Transaction record not found.", {"lookup": {k: str(v) for k, v in lookup.items()}})
        previous = normalize_status(record.status)
        apply_transition(record, new_status, **extra)
        return previous, record.status
