from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.services.webhooks import handle_gateway_webhook, handle_momo_webhook


class WebhookView(APIView):
    """Unauthenticated server-to-server callback; the raw body is what gets verified."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def dispatch(self, request, *args, **kwargs):
        # Read before DRF parses the stream.
        self.raw_body = request.body
        return super().dispatch(request, *args, **kwargs)

    def handle(self, request):
        raise NotImplementedError

    def get(self, request, *args, **kwargs):
        return self.handle(request)

    post = put = patch = delete = get

    def render(self, outcome):
        return Response(outcome.body(), status=outcome.http_status)


class GatewayWebhookView(WebhookView):
    """POST /api/webhooks/gateway/: Card/bank gateway events (HMAC-SHA512 signed)."""

    def handle(self, request):
        outcome = handle_gateway_webhook(
            request.method,
            self.raw_body,
            request.META.get("HTTP_X_PAYSTACK_SIGNATURE", ""),
        )
        return self.render(outcome)


class MomoWebhookView(WebhookView):
    """POST /api/webhooks/momo/?token=...: MoMo callbacks."""

    def handle(self, request):
        outcome = handle_momo_webhook(
            request.method,
            request.query_params.get("token"),
            self.raw_body,
        )
        return self.render(outcome)
