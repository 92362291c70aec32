from rest_framework import serializers

from wallets.models import Transaction


class TransactionSerializer(serializers.ModelSerializer):
    """Read-only serializer for receipts."""

    class Meta:
        model = Transaction
        fields = (
            "transaction_id",
            "type",
            "sender_wallet_id",
            "receiver_wallet_id",
            "sender_name",
            "receiver_name",
            "amount",
            "fee",
            "currency",
            "sender_currency",
            "receiver_currency",
            "exchange_rate",
            "converted_amount",
            "note",
            "reference",
            "description",
            "method",
            "status",
            "previous_status",
            "status_updated_at",
            "status_history",
            "failure_reason",
            "completed_at",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields
