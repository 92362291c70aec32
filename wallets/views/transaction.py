from rest_framework.generics import ListAPIView, RetrieveAPIView

from wallets.models import Transaction
from wallets.serializers import TransactionSerializer

MAX_LIST_LIMIT = 200


def _receipts_for(user):
    return Transaction.objects.filter(owner=user).order_by("-created_at")


class TransactionListView(ListAPIView):
    """
    GET /api/transactions/: The caller's receipts, newest first.

    Query params:
        - status: pending, completed, failed, ...
        - type: send, receive, deposit, withdrawal
        - currency: ISO code of the amount
        - limit: at most 200 rows
    """

    serializer_class = TransactionSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = _receipts_for(self.request.user)

        filters = {
            "status": params.get("status", "").lower(),
            "type": params.get("type", "").lower(),
            "currency": params.get("currency", "").upper(),
        }
        queryset = queryset.filter(**{field: value for field, value in filters.items() if value})

        limit = params.get("limit")
        if limit and limit.isdigit():
            queryset = queryset[: min(int(limit), MAX_LIST_LIMIT)]
        return queryset


class TransactionDetailView(RetrieveAPIView):
    """GET /api/transactions/<transaction_id>/"""

    serializer_class = TransactionSerializer
    lookup_field = "transaction_id"

    def get_queryset(self):
        return _receipts_for(self.request.user)
