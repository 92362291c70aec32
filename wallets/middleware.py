import json
import logging

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = frozenset(
    {
        "otp",
        "account_number",
        "phone_number",
        "transfer_code",
        "idempotency_key",
        "token",
        "access_token",
        "authorization_url",
        "access_code",
    }
)
MASK = "***"
WEBHOOK_PATH_PREFIX = "/api/webhooks/"


def mask_sensitive(value):
    if isinstance(value, dict):
        return {
            key: MASK if key in SENSITIVE_FIELDS else mask_sensitive(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [mask_sensitive(item) for item in value]
    return value


def _render(raw):
    """JSON bodies are logged with sensitive fields masked; anything else is summarised."""
    try:
        return json.dumps(mask_sensitive(json.loads(raw)))
    except (TypeError, ValueError, UnicodeDecodeError):
        return f"<{len(raw)} bytes not logged>"


class RequestResponseLoggingMiddleware:
    """
    Logs each API request's method, path and body, and the response status
    and content.

    OTPs, account and phone numbers, transfer codes, idempotency keys and
    tokens are masked. Webhook bodies and query strings are never logged.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        is_webhook = request.path.startswith(WEBHOOK_PATH_PREFIX)
        path = request.path if is_webhook else request.get_full_path()
        content_type = request.META.get("CONTENT_TYPE", "")

        request_body = ""
        if is_webhook:
            request_body = "<webhook body not logged>"
        elif "multipart/form-data" in content_type:
            request_body = "<Multipart form data - body not logged>"
        elif request.method in ("POST", "PUT", "PATCH") and request.body:
            request_body = _render(request.body)

        logger.info("API Request: %s %s Body: %s", request.method, path, request_body)

        response = self.get_response(request)

        response_type = response.get("Content-Type", "")
        if response_type.startswith("application/json") and hasattr(response, "content"):
            response_content = _render(response.content)
        elif hasattr(response, "streaming_content"):
            response_content = "<Streaming content>"
        else:
            response_content = f"<Content-Type: {response_type}>"

        logger.info(
            "API Response: %s %s Status: %s Content: %s",
            request.method,
            path,
            response.status_code,
            response_content,
        )
        return response
