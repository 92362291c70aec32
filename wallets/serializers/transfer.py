from rest_framework import serializers


class SendMoneySerializer(serializers.Serializer):
    """Validates peer transfer requests. Amount rules live in the ledger."""

    recipient_wallet_id = serializers.CharField(max_length=32)
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    note = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=128, required=False)

    def validate_recipient_wallet_id(self, value):
        return value.strip().upper()
