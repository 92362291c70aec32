from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import SendMoneySerializer
from wallets.services import WalletService
from wallets.views.base import idempotency_key_from


class SendMoneyView(APIView):
    """
    POST /api/transfers/send/: Send money to another wallet.

    Request body: {"recipient_wallet_id": "QRW-...", "amount": "250.00", "note": "..."}
    Header: Idempotency-Key (or ``idempotency_key`` in the body)
    """

    def post(self, request, *args, **kwargs):
        serializer = SendMoneySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = WalletService.send_money(
            request.user,
            data["recipient_wallet_id"],
            data["amount"],
            note=data.get("note", ""),
            idempotency_key=idempotency_key_from(request, data),
            request=request,
        )
        return Response(result, status=status.HTTP_200_OK)
