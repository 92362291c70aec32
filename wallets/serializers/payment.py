from rest_framework import serializers


class InitializeTransactionSerializer(serializers.Serializer):
    email = serializers.EmailField()
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    currency = serializers.CharField(max_length=3, required=False)


class ChargeMobileMoneySerializer(serializers.Serializer):
    email = serializers.EmailField()
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    phone_number = serializers.CharField(max_length=32)
    provider = serializers.CharField(max_length=32)
    currency = serializers.CharField(max_length=3, required=False)
    idempotency_key = serializers.CharField(max_length=128, required=False)


class VerifyPaymentSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=64)


class BankAccountSerializer(serializers.Serializer):
    account_number = serializers.CharField(max_length=32)
    bank_code = serializers.CharField(max_length=32)


class PaymentVerificationSerializer(serializers.Serializer):
    """Outcome of a deposit verification. Keys absent from the result are omitted."""

    verified = serializers.BooleanField()
    already_processed = serializers.BooleanField(required=False)
    reference = serializers.CharField()
    status = serializers.CharField(required=False)
    message = serializers.CharField(required=False)
    amount = serializers.DecimalField(max_digits=20, decimal_places=2, required=False)
    currency = serializers.CharField(required=False)
    new_balance = serializers.DecimalField(max_digits=20, decimal_places=2, required=False)


class VirtualAccountRequestSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
