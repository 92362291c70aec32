from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import FinalizeTransferSerializer, InitiateWithdrawalSerializer
from wallets.services import WithdrawalService
from wallets.views.base import idempotency_key_from


class InitiateWithdrawalView(APIView):
    """
    POST /api/withdrawals/: Withdraw to a bank account or mobile-money number.

    Request body: {"amount": "500.00", "type": "bank", "account_number": "...", "bank_code": "..."}
    The wallet is debited immediately and refunded if the payout fails.
    """

    def post(self, request, *args, **kwargs):
        serializer = InitiateWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = WithdrawalService.initiate(
            request.user,
            data,
            idempotency_key=idempotency_key_from(request, data),
            request=request,
        )
        return Response(result, status=status.HTTP_201_CREATED)


class FinalizeTransferView(APIView):
    """POST /api/withdrawals/finalize/: Submit the OTP for a withdrawal."""

    def post(self, request, *args, **kwargs):
        serializer = FinalizeTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = WithdrawalService.finalize(
            request.user,
            data["transfer_code"],
            data["otp"],
            idempotency_key=idempotency_key_from(request, data),
            request=request,
        )
        return Response(result)
