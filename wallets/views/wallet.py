from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import (
    OpenWalletSerializer,
    WalletLookupSerializer,
    WalletSerializer,
)
from wallets.services import WalletService
from wallets.services.wallet import get_user_wallet


class OpenWalletView(APIView):
    """
    POST /api/wallets/: Open the caller's wallet.

    Request body: {"full_name": "...", "currency": "GHS"} (both optional)
    Returns 201 on creation, 200 if the caller already has a wallet.
    """

    def post(self, request, *args, **kwargs):
        serializer = OpenWalletSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        wallet, created = WalletService.open_wallet(
            request.user,
            full_name=serializer.validated_data.get("full_name", ""),
            currency=serializer.validated_data.get("currency"),
        )
        return Response(
            WalletSerializer(wallet).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class MyWalletView(APIView):
    """GET /api/wallets/me/: The caller's wallet."""

    def get(self, request, *args, **kwargs):
        return Response(WalletSerializer(get_user_wallet(request.user)).data)


class LookupWalletView(APIView):
    """POST /api/wallets/lookup/: Resolve a public wallet id to a display name."""

    def post(self, request, *args, **kwargs):
        serializer = WalletLookupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = WalletService.lookup_wallet(
            request.user, serializer.validated_data["wallet_id"], request=request
        )
        return Response(result)
