from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import (
    BankAccountSerializer,
    ChargeMobileMoneySerializer,
    InitializeTransactionSerializer,
    PaymentVerificationSerializer,
    VerifyPaymentSerializer,
    VirtualAccountRequestSerializer,
)
from wallets.services import PaymentService
from wallets.views.base import idempotency_key_from


class InitializeTransactionView(APIView):
    """POST /api/payments/initialize/: Start a card checkout."""

    def post(self, request, *args, **kwargs):
        serializer = InitializeTransactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = PaymentService.initialize_transaction(
            request.user, data["email"], data["amount"], currency=data.get("currency")
        )
        return Response(result)


class ChargeMobileMoneyView(APIView):
    """POST /api/payments/mobile-money/charge/: Deposit from a mobile-money wallet."""

    def post(self, request, *args, **kwargs):
        serializer = ChargeMobileMoneySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = PaymentService.charge_mobile_money(
            request.user,
            data["email"],
            data["amount"],
            data["phone_number"],
            data["provider"],
            currency=data.get("currency"),
            idempotency_key=idempotency_key_from(request, data),
            request=request,
        )
        return Response(result)


class VerifyPaymentView(APIView):
    """POST /api/payments/verify/: Confirm a deposit by reference."""

    def post(self, request, *args, **kwargs):
        serializer = VerifyPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = PaymentService.verify_payment(
            request.user, serializer.validated_data["reference"], request=request
        )
        return Response(PaymentVerificationSerializer(result).data)


class BankListView(APIView):
    """GET /api/banks/?country=nigeria"""

    def get(self, request, *args, **kwargs):
        return Response(PaymentService.get_banks(request.query_params.get("country") or "nigeria"))


class VerifyBankAccountView(APIView):
    """POST /api/banks/verify-account/"""

    def post(self, request, *args, **kwargs):
        serializer = BankAccountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        return Response(PaymentService.verify_bank_account(data["account_number"], data["bank_code"]))


class VirtualAccountView(APIView):
    """
    POST /api/payments/virtual-account/: The caller's bank-transfer deposit account.

    Request body: {"email": "...", "name": "..."} (name optional)
    Returns 201 when the account was just opened, 200 afterwards.
    """

    def post(self, request, *args, **kwargs):
        serializer = VirtualAccountRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        result = PaymentService.get_or_create_virtual_account(request.user, data["email"], data["name"])
        return Response(
            result,
            status=status.HTTP_201_CREATED if result["created"] else status.HTTP_200_OK,
        )
