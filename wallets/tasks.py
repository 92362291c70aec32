import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from wallets.errors import ServiceError
from wallets.models import IdempotencyKey, RateLimitWindow, Wallet
from wallets.services import exchange
from wallets.services.rate_limit import longest_window_seconds

logger = logging.getLogger(__name__)

IDEMPOTENCY_CLEANUP_BATCH = 500


@shared_task(bind=True, acks_late=True, max_retries=3, default_retry_delay=300)
def refresh_exchange_rates(self):
    """
    Daily: pull USD-based rates for the supported currencies.

    Provider failures are retried with backoff; the previous table stays in
    place until a refresh succeeds.
    """
    try:
        table = exchange.refresh_rates()
    except ServiceError as exc:
        logger.error("Exchange rate refresh failed (attempt %d): %s", self.request.retries + 1, exc.message)
        raise self.retry(exc=exc, countdown=2**self.request.retries * 300)

    logger.info("Exchange rates refreshed: %d currencies", len(table.rates))
    return {"currencies": len(table.rates), "updated_at": table.updated_at.isoformat()}


@shared_task
def cleanup_idempotency_keys(batch_size=IDEMPOTENCY_CLEANUP_BATCH):
    """Every 6 hours: delete expired idempotency keys in batches."""
    now = timezone.now()
    deleted = 0
    while True:
        batch = list(
            IdempotencyKey.objects.filter(expires_at__lte=now).values_list("pk", flat=True)[:batch_size]
        )
        if not batch:
            break
        count, _ = IdempotencyKey.objects.filter(pk__in=batch).delete()
        deleted += count
        if len(batch) < batch_size:
            break

    if deleted:
        logger.info("Deleted %d expired idempotency key(s).", deleted)
    return {"deleted": deleted}


@shared_task
def cleanup_rate_limit_windows():
    """Hourly: drop windows with no activity inside the longest configured window."""
    cutoff = timezone.now() - timedelta(seconds=longest_window_seconds())
    deleted, _ = RateLimitWindow.objects.filter(updated_at__lt=cutoff).delete()
    if deleted:
        logger.info("Deleted %d stale rate limit window(s).", deleted)
    return {"deleted": deleted}


@shared_task
def reset_daily_spend():
    updated = Wallet.objects.exclude(daily_spent=0).update(daily_spent=0, updated_at=timezone.now())
    logger.info("Daily spend reset for %d wallet(s).", updated)
    return {"reset": updated}


@shared_task
def reset_monthly_spend():
    updated = Wallet.objects.exclude(monthly_spent=0).update(monthly_spent=0, updated_at=timezone.now())
    logger.info("Monthly spend reset for %d wallet(s).", updated)
    return {"reset": updated}
