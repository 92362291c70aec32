from rest_framework.response import Response
from rest_framework.views import APIView

from wallets.serializers import KycStatusSerializer
from wallets.services.kyc import update_kyc_status


class KycStatusView(APIView):
    """POST /api/kyc/status/: Record the outcome of identity verification."""

    def post(self, request, *args, **kwargs):
        serializer = KycStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(update_kyc_status(request.user, serializer.validated_data["status"]))
