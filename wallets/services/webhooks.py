"""
Inbound gateway callbacks.

Each delivery goes through the same checks in order: HTTP method,
authenticity (HMAC signature for the card/bank gateway, shared token for
MoMo), body shape, existence of the referenced record, and cross-verification
against the gateway's own status endpoint. Only then is anything written.

Handlers return a ``WebhookResponse`` instead of raising, so the view only
renders it. Deliveries are at-least-once and may arrive out of order; every
handler is safe to replay.
"""

import json
import logging
from dataclasses import dataclass

from wallets.conf import get_gateway_config, is_service_ready
from wallets.errors import AppError, ErrorCode
from wallets.models import MomoTransaction, Payment, Withdrawal
from wallets.services.momo import MomoService
from wallets.services.wallet import WalletService
from wallets.services.withdrawal import WithdrawalService
from wallets.utils import GatewayStatus, MomoClient, PaystackClient, from_minor_units
from wallets.utils.gateway import momo_status, paystack_status
from wallets.utils.signatures import verify_signature, verify_token

logger = logging.getLogger(__name__)

PROCESSED = "processed"
IGNORED = "ignored"
REJECTED = "rejected"
RETRY = "retry"


@dataclass(frozen=True)
class WebhookResponse:
    outcome: str
    http_status: int
    message: str = ""

    def body(self):
        return {"status": self.outcome, "message": self.message}


def processed(message="OK"):
    return WebhookResponse(PROCESSED, 200, message)


def ignored(message):
    return WebhookResponse(IGNORED, 200, message)


def rejected(http_status, message):
    return WebhookResponse(REJECTED, http_status, message)


def _parse(raw_body):
    try:
        payload = json.loads(raw_body)
    except (TypeError, ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _cross_verify(query, reference, claimed):
    """
    Ask the gateway for the authoritative status.

    Returns ``(status, None)`` to proceed or ``(None, response)`` to stop.
    When the gateway cannot be reached the callback's claim is trusted only
    outside production (and only if strict verification is off).
    """
    config = get_gateway_config()
    try:
        result = query()
    except AppError as exc:
        logger.error("Cross-verification error: ref=%s error=%s", reference, exc.message)
        result = None

    if result is None or not result.ok or result.status is GatewayStatus.UNKNOWN:
        if config.requires_cross_verification:
            logger.error("Rejecting callback: unable to cross-verify ref=%s", reference)
            return None, rejected(502, "Unable to verify transaction status")
        logger.warning("Cross-verification unavailable for ref=%s; using callback status %s", reference, claimed.value)
        return claimed, None

    if result.status is not claimed:
        logger.warning(
            "Callback status mismatch: ref=%s callback=%s verified=%s",
            reference,
            claimed.value,
            result.status.value,
        )
    return result.status, None


def _run(handler, *args):
    try:
        return handler(*args)
    except AppError as exc:
        if exc.code is ErrorCode.TXN_INVALID_STATE:
            return ignored(exc.message)
        if exc.code is ErrorCode.TXN_NOT_FOUND:
            return rejected(404, "Transaction not found")
        logger.error("Webhook handler failed: handler=%s code=%s", handler.__name__, exc.code.value)
        return WebhookResponse(RETRY, 500, "Error")
    except Exception:
        logger.exception("Webhook handler crashed: handler=%s", handler.__name__)
        return WebhookResponse(RETRY, 500, "Error")


def _on_charge_success(reference, data, client):
    payment = Payment.objects.filter(reference=reference).select_related("user").first()
    if payment is None:
        logger.error("Unknown charge reference (not initiated by us): %s", reference)
        return rejected(404, "Transaction not found")
    if payment.processed:
        return ignored("Already processed")

    verified = None

    def query():
        nonlocal verified
        verified = client.verify_transaction(reference)
        return verified

    status, stop = _cross_verify(query, reference, GatewayStatus.COMPLETED)
    if stop:
        return stop

    if status is GatewayStatus.COMPLETED:
        source = verified.data if verified is not None and verified.ok else data
        amount = from_minor_units(source.get("amount")) if source.get("amount") is not None else payment.amount
        _, credited = WalletService.confirm_deposit(
            payment.user,
            reference,
            amount,
            source.get("currency") or payment.currency,
            channel=str(source.get("channel") or payment.channel or ""),
            description="Wallet deposit",
            gateway_data=source,
        )
        return processed() if credited else ignored("Already processed")

    if status is GatewayStatus.FAILED:
        Payment.objects.filter(pk=payment.pk, processed=False).update(status=Payment.Status.FAILED)
        return processed("Payment failed")
    return ignored(f"No action for status {status.value}")


def _withdrawal_for(reference):
    return Withdrawal.objects.filter(reference=reference).first()


def _settle_withdrawal(reference, data, client, claimed):
    withdrawal = _withdrawal_for(reference)
    if withdrawal is None:
        logger.error("Unknown transfer reference (not initiated by us): %s", reference)
        return rejected(404, "Transaction not found")

    status, stop = _cross_verify(lambda: client.verify_transfer(reference), reference, claimed)
    if stop:
        return stop

    if status is GatewayStatus.COMPLETED:
        changed = WithdrawalService.complete(reference, str(data.get("transfer_code") or ""))
        return processed() if changed else ignored("Already completed")
    if status is GatewayStatus.FAILED:
        reason = str(data.get("reason") or data.get("status") or "Transfer failed")
        changed = WithdrawalService.refund(reference, reason)
        return processed("Refunded") if changed else ignored("Already refunded")
    return ignored(f"No action for status {status.value}")


def _on_transfer_success(reference, data, client):
    return _settle_withdrawal(reference, data, client, GatewayStatus.COMPLETED)


def _on_transfer_failed(reference, data, client):
    return _settle_withdrawal(reference, data, client, GatewayStatus.FAILED)


GATEWAY_HANDLERS = {
    "charge.success": _on_charge_success,
    "transfer.success": _on_transfer_success,
    "transfer.failed": _on_transfer_failed,
    "transfer.reversed": _on_transfer_failed,
}


def handle_gateway_webhook(method, raw_body, signature, client=None):
    if method != "POST":
        return rejected(405, "Method Not Allowed")
    if not is_service_ready("paystack"):
        logger.error("Gateway webhook received but the gateway is not configured")
        return rejected(503, "Service misconfigured")

    config = get_gateway_config()
    if not verify_signature(config.paystack_secret_key, raw_body, signature):
        logger.warning("Gateway webhook: invalid signature")
        return rejected(400, "Invalid signature")

    payload = _parse(raw_body)
    if payload is None:
        return rejected(400, "Invalid payload")

    event = payload.get("event")
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    handler = GATEWAY_HANDLERS.get(event)
    if handler is None:
        logger.info("Gateway webhook: ignoring event %s", event)
        return ignored(f"Unhandled event {event}")

    reference = data.get("reference")
    if not reference:
        return rejected(400, "Missing reference")

    logger.info("Gateway webhook: event=%s reference=%s status=%s", event, reference, paystack_status(data.get("status")).value)
    return _run(handler, str(reference), data, client or PaystackClient())


def _apply_momo_callback(record, callback_status, financial_transaction_id, client_factory):
    claimed = momo_status(callback_status)
    verified_status = ""

    def query():
        nonlocal verified_status
        result = client_factory(record.type).get_status(record.reference_id)
        verified_status = str(result.data.get("status") or "") if result.ok else ""
        return result

    status, stop = _cross_verify(query, record.reference_id, claimed)
    if stop:
        return stop

    _, changed = MomoService.apply_status(
        record.reference_id,
        status,
        callback_status=callback_status,
        verified_status=verified_status,
        financial_transaction_id=financial_transaction_id,
    )
    if not changed:
        logger.info("MoMo callback: no action needed for ref=%s status=%s", record.reference_id, status.value)
    return processed()


def handle_momo_webhook(method, token, raw_body, client_factory=MomoClient):
    if method != "POST":
        return rejected(405, "Method Not Allowed")

    config = get_gateway_config()
    if config.momo_webhook_secret:
        if not verify_token(config.momo_webhook_secret, token):
            logger.error("MoMo webhook: invalid or missing webhook token")
            return rejected(403, "Forbidden")
    elif config.is_production:
        logger.critical("MoMo webhook: no webhook secret configured in production")
        return rejected(503, "Service misconfigured")
    else:
        logger.warning("MoMo webhook: accepting callback without a webhook token (sandbox)")

    payload = _parse(raw_body)
    if payload is None:
        return rejected(400, "Bad Request")
    external_id = payload.get("externalId")
    callback_status = payload.get("status")
    if not external_id or not isinstance(external_id, str) or not callback_status:
        logger.error("MoMo webhook: missing or invalid required fields")
        return rejected(400, "Bad Request")

    record = MomoTransaction.objects.filter(reference_id=external_id).first()
    if record is None:
        logger.error("MoMo webhook: unknown externalId (not initiated by us): %s", external_id)
        return rejected(404, "Transaction not found")

    return _run(
        _apply_momo_callback,
        record,
        str(callback_status),
        str(payload.get("financialTransactionId") or ""),
        client_factory,
    )
