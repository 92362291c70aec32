from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import (
    MomoBalanceSerializer,
    MomoRequestToPaySerializer,
    MomoStatusResultSerializer,
    MomoStatusSerializer,
    MomoTransferSerializer,
)
from wallets.services import MomoService
from wallets.views.base import idempotency_key_from


class MomoRequestToPayView(APIView):
    """POST /api/momo/request-to-pay/: Ask a MoMo subscriber to approve a top-up."""

    def post(self, request, *args, **kwargs):
        serializer = MomoRequestToPaySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = MomoService.request_to_pay(
            request.user,
            data["amount"],
            data["phone_number"],
            currency=data.get("currency"),
            payer_message=data.get("payer_message", ""),
            payee_note=data.get("payee_note", ""),
            idempotency_key=idempotency_key_from(request, data),
            request=request,
        )
        return Response(result, status=status.HTTP_202_ACCEPTED)


class MomoTransferView(APIView):
    """POST /api/momo/transfer/: Pay out from the wallet to a MoMo number."""

    def post(self, request, *args, **kwargs):
        serializer = MomoTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = MomoService.transfer(
            request.user,
            data["amount"],
            data["phone_number"],
            payer_message=data.get("payer_message", ""),
            payee_note=data.get("payee_note", ""),
            idempotency_key=idempotency_key_from(request, data),
            request=request,
        )
        return Response(result, status=status.HTTP_202_ACCEPTED)


class MomoStatusView(APIView):
    """POST /api/momo/status/: Refresh one of the caller's MoMo transactions."""

    def post(self, request, *args, **kwargs):
        serializer = MomoStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = MomoService.check_status(request.user, serializer.validated_data["reference_id"])
        return Response(MomoStatusResultSerializer(result).data)


class MomoBalanceView(APIView):
    """GET /api/momo/balance/?product=collection: Provider account balance (staff only)."""

    permission_classes = [IsAdminUser]

    def get(self, request, *args, **kwargs):
        serializer = MomoBalanceSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(MomoService.get_balance(serializer.validated_data["product"]))
