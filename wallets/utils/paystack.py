import logging
from decimal import ROUND_HALF_UP, Decimal

import requests

from wallets.conf import get_gateway_config, require_service_ready
from wallets.errors import ServiceError
from wallets.utils.gateway import GatewayResult, GatewayStatus, paystack_status

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_minor_units(amount):
    """Paystack amounts are integers in the smallest currency unit (kobo, pesewa)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(value):
    return (Decimal(value or 0) / 100).quantize(CENT, rounding=ROUND_HALF_UP)


class PaystackClient:
    """
    Thin client for the card/bank gateway.

    Network failures (connection errors, timeouts, unreadable bodies) are
    raised as ``ServiceError("paystack")``. A well-formed response, successful
    or not, is returned as a ``GatewayResult`` and the caller decides.
    """

    service = "paystack"

    def __init__(self, config=None, session=None):
        self.config = config or get_gateway_config()
        self.session = session or requests.Session()

    def _request(self, method, path, payload=None, params=None):
        require_service_ready(self.service)
        url = f"{self.config.paystack_base_url.rstrip('/')}{path}"
        headers = {
            "Authorization": f"Bearer {self.config.paystack_secret_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.exceptions.Timeout as exc:
            logger.error("Paystack timeout: %s %s error=%s", method, path, str(exc))
            raise ServiceError(
                self.service, "Payment service timed out. Please try again.", path=path
            ) from exc
        except requests.exceptions.ConnectionError as exc:
            logger.error("Paystack connection error: %s %s error=%s", method, path, str(exc))
            raise ServiceError(self.service, path=path) from exc
        except requests.exceptions.RequestException as exc:
            logger.error("Paystack request error: %s %s error=%s", method, path, str(exc))
            raise ServiceError(self.service, path=path) from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.error(
                "Paystack returned a non-JSON body: %s %s http_status=%s",
                method,
                path,
                response.status_code,
            )
            raise ServiceError(
                self.service, path=path, http_status=response.status_code
            ) from exc

        logger.info(
            "Paystack %s %s http_status=%s status=%s",
            method,
            path,
            response.status_code,
            body.get("status") if isinstance(body, dict) else None,
        )
        return body if isinstance(body, dict) else {"status": False, "data": body}

    def _result(self, body, reference_field="reference", status=None):
        data = body.get("data")
        data = data if isinstance(data, dict) else {}
        if status is None:
            status = paystack_status(data.get("status"))
        return GatewayResult(
            ok=bool(body.get("status")),
            status=status,
            provider_reference=str(data.get(reference_field) or ""),
            message=str(body.get("message") or ""),
            data=data,
            raw=body,
        )

    def initialize_transaction(self, email, amount, currency, reference, metadata):
        payload = {
            "email": email,
            "amount": to_minor_units(amount),
            "currency": currency,
            "reference": reference,
            "metadata": metadata,
        }
        if self.config.paystack_callback_url:
            payload["callback_url"] = self.config.paystack_callback_url
        body = self._request("POST", "/transaction/initialize", payload)
        return self._result(body, status=GatewayStatus.PENDING)

    def verify_transaction(self, reference):
        body = self._request("GET", f"/transaction/verify/{reference}")
        return self._result(body)

    def charge_mobile_money(self, email, amount, currency, phone_number, provider, reference, metadata):
        body = self._request(
            "POST",
            "/charge",
            {
                "email": email,
                "amount": to_minor_units(amount),
                "currency": currency,
                "mobile_money": {"phone": phone_number, "provider": provider},
                "reference": reference,
                "metadata": metadata,
            },
        )
        return self._result(body)

    def create_transfer_recipient(self, recipient_type, name, account_number, bank_code, currency):
        body = self._request(
            "POST",
            "/transferrecipient",
            {
                "type": recipient_type,
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": currency,
            },
        )
        return self._result(body, reference_field="recipient_code", status=GatewayStatus.COMPLETED)

    def initiate_transfer(self, amount, recipient_code, reference, reason):
        body = self._request(
            "POST",
            "/transfer",
            {
                "source": "balance",
                "amount": to_minor_units(amount),
                "recipient": recipient_code,
                "reference": reference,
                "reason": reason,
            },
        )
        return self._result(body, reference_field="transfer_code")

    def finalize_transfer(self, transfer_code, otp):
        body = self._request(
            "POST",
            "/transfer/finalize_transfer",
            {"transfer_code": transfer_code, "otp": otp},
        )
        return self._result(body, reference_field="transfer_code")

    def verify_transfer(self, reference):
        body = self._request("GET", f"/transfer/verify/{reference}")
        return self._result(body, reference_field="transfer_code")

    def list_banks(self, country="nigeria"):
        body = self._request("GET", "/bank", params={"country": country})
        banks = body.get("data") if isinstance(body.get("data"), list) else []
        return GatewayResult(
            ok=bool(body.get("status")),
            status=GatewayStatus.COMPLETED if body.get("status") else GatewayStatus.FAILED,
            message=str(body.get("message") or ""),
            data={"banks": banks},
            raw=body,
        )

    def resolve_account(self, account_number, bank_code):
        body = self._request(
            "GET",
            "/bank/resolve",
            params={"account_number": account_number, "bank_code": bank_code},
        )
        return self._result(body, reference_field="account_number", status=GatewayStatus.COMPLETED)

    def fetch_customer(self, email):
        body = self._request("GET", f"/customer/{email}")
        return self._result(body, reference_field="customer_code", status=GatewayStatus.COMPLETED)

    def create_customer(self, email, first_name, last_name, metadata):
        body = self._request(
            "POST",
            "/customer",
            {
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "metadata": metadata,
            },
        )
        return self._result(body, reference_field="customer_code", status=GatewayStatus.COMPLETED)

    def create_dedicated_account(self, customer, preferred_bank):
        body = self._request(
            "POST",
            "/dedicated_account",
            {"customer": customer, "preferred_bank": preferred_bank},
        )
        return self._result(body, reference_field="account_number", status=GatewayStatus.COMPLETED)
