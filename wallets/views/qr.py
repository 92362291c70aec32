from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import (
    QrSignatureSerializer,
    QrSignSerializer,
    QrVerificationSerializer,
    QrVerifySerializer,
)
from wallets.services import QrService


class QrSignView(APIView):
    """POST /api/qr/sign/: Sign a payment request for the caller's wallet."""

    def post(self, request, *args, **kwargs):
        serializer = QrSignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = QrService.sign_payload(
            request.user, data["wallet_id"], amount=data.get("amount"), note=data["note"]
        )
        return Response(QrSignatureSerializer(result).data)


class QrVerifyView(APIView):
    """POST /api/qr/verify/: Check a scanned payment request."""

    def post(self, request, *args, **kwargs):
        serializer = QrVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = QrService.verify_payload(request.user, data["payload"], data["signature"])
        return Response(QrVerificationSerializer(result).data)
