import logging

import requests
from django.core.cache import cache

from wallets.conf import get_gateway_config, require_service_ready
from wallets.errors import ServiceError
from wallets.utils.gateway import GatewayResult, GatewayStatus, momo_status

logger = logging.getLogger(__name__)

PRODUCTS = {
    "collection": {
        "service": "momo_collections",
        "path": "collection",
        "keys": (
            "momo_collections_subscription_key",
            "momo_collections_api_user",
            "momo_collections_api_key",
        ),
        "status_path": "/v1_0/requesttopay/{reference_id}",
    },
    "disbursement": {
        "service": "momo_disbursements",
        "path": "disbursement",
        "keys": (
            "momo_disbursements_subscription_key",
            "momo_disbursements_api_user",
            "momo_disbursements_api_key",
        ),
        "status_path": "/v1_0/transfer/{reference_id}",
    },
}

TOKEN_CACHE_KEY = "momo:token:{product}"
TOKEN_EXPIRY_MARGIN = 60


def msisdn(phone_number):
    return str(phone_number).replace("+", "").replace(" ", "")


class MomoClient:
    """
    Client for one MoMo product (``collection`` or ``disbursement``).

    Access tokens are fetched with basic auth and kept in the default cache
    until shortly before they expire.
    """

    service = "momo"

    def __init__(self, product, config=None, session=None):
        if product not in PRODUCTS:
            raise ValueError(f"Unknown MoMo product: {product!r}")
        self.product = product
        self.product_config = PRODUCTS[product]
        self.config = config or get_gateway_config()
        self.session = session or requests.Session()
        subscription_key, api_user, api_key = (
            getattr(self.config, key) for key in self.product_config["keys"]
        )
        self.subscription_key = subscription_key
        self.api_user = api_user
        self.api_key = api_key

    def _url(self, path):
        return f"{self.config.momo_base_url}/{self.product_config['path']}{path}"

    def _send(self, method, path, **kwargs):
        try:
            return self.session.request(
                method, self._url(path), timeout=self.config.timeout, **kwargs
            )
        except requests.exceptions.Timeout as exc:
            logger.error("MoMo timeout: %s %s error=%s", method, path, str(exc))
            raise ServiceError(
                self.service, "MoMo service timed out. Please try again.", path=path
            ) from exc
        except requests.exceptions.RequestException as exc:
            logger.error("MoMo request error: %s %s error=%s", method, path, str(exc))
            raise ServiceError(self.service, path=path) from exc

    def get_access_token(self):
        require_service_ready(self.product_config["service"])
        cache_key = TOKEN_CACHE_KEY.format(product=self.product)
        token = cache.get(cache_key)
        if token:
            return token

        response = self._send(
            "POST",
            "/token/",
            auth=(self.api_user, self.api_key),
            headers={"Ocp-Apim-Subscription-Key": self.subscription_key},
        )
        try:
            body = response.json()
        except ValueError:
            body = {}
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            logger.error(
                "MoMo token request failed: product=%s http_status=%s",
                self.product,
                response.status_code,
            )
            raise ServiceError(
                self.service, "Failed to authenticate with MoMo.", http_status=response.status_code
            )

        expires_in = int(body.get("expires_in") or 3600)
        cache.set(cache_key, token, max(expires_in - TOKEN_EXPIRY_MARGIN, 1))
        return token

    def _request(self, method, path, reference_id, payload=None):
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "X-Reference-Id": reference_id,
            "X-Target-Environment": self.config.environment,
            "Ocp-Apim-Subscription-Key": self.subscription_key,
            "Content-Type": "application/json",
        }
        if self.config.environment != "sandbox" and self.config.momo_callback_url:
            headers["X-Callback-Url"] = self.config.momo_callback_url

        response = self._send(method, path, json=payload, headers=headers)
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None
        logger.info(
            "MoMo %s %s%s http_status=%s ref=%s",
            method,
            self.product_config["path"],
            path,
            response.status_code,
            reference_id,
        )
        return response.status_code, body

    def _initiate(self, path, party_field, reference_id, amount, currency, phone_number, payer_message, payee_note):
        status_code, body = self._request(
            "POST",
            path,
            reference_id,
            {
                "amount": str(amount),
                "currency": currency,
                "externalId": reference_id,
                party_field: {"partyIdType": "MSISDN", "partyId": msisdn(phone_number)},
                "payerMessage": payer_message,
                "payeeNote": payee_note,
            },
        )
        accepted = status_code == 202
        return GatewayResult(
            ok=accepted,
            status=GatewayStatus.PENDING if accepted else GatewayStatus.FAILED,
            provider_reference=reference_id,
            message="" if accepted else f"MoMo rejected the request (HTTP {status_code}).",
            data=body if isinstance(body, dict) else {},
            raw=body,
        )

    def request_to_pay(self, reference_id, amount, currency, phone_number, payer_message, payee_note):
        return self._initiate(
            "/v1_0/requesttopay", "payer", reference_id, amount, currency,
            phone_number, payer_message, payee_note,
        )

    def transfer(self, reference_id, amount, currency, phone_number, payer_message, payee_note):
        return self._initiate(
            "/v1_0/transfer", "payee", reference_id, amount, currency,
            phone_number, payer_message, payee_note,
        )

    def get_status(self, reference_id):
        path = self.product_config["status_path"].format(reference_id=reference_id)
        status_code, body = self._request("GET", path, reference_id)
        data = body if isinstance(body, dict) else {}
        ok = status_code == 200 and bool(data.get("status"))
        return GatewayResult(
            ok=ok,
            status=momo_status(data.get("status")) if ok else GatewayStatus.UNKNOWN,
            provider_reference=str(data.get("financialTransactionId") or ""),
            message=str(data.get("reason") or ""),
            data=data,
            raw=body,
        )

    def get_balance(self, reference_id):
        status_code, body = self._request("GET", "/v1_0/account/balance", reference_id)
        ok = status_code == 200 and isinstance(body, dict)
        return GatewayResult(
            ok=ok,
            status=GatewayStatus.COMPLETED if ok else GatewayStatus.FAILED,
            data=body if ok else {},
            raw=body,
        )
