from rest_framework import serializers


class MomoRequestToPaySerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    phone_number = serializers.CharField(max_length=32)
    currency = serializers.CharField(max_length=3, required=False)
    payer_message = serializers.CharField(max_length=160, required=False, allow_blank=True, default="")
    payee_note = serializers.CharField(max_length=160, required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=128, required=False)


class MomoTransferSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    phone_number = serializers.CharField(max_length=32)
    payer_message = serializers.CharField(max_length=160, required=False, allow_blank=True, default="")
    payee_note = serializers.CharField(max_length=160, required=False, allow_blank=True, default="")
    idempotency_key = serializers.CharField(max_length=128, required=False)


class MomoStatusSerializer(serializers.Serializer):
    reference_id = serializers.CharField(max_length=64)


class MomoBalanceSerializer(serializers.Serializer):
    product = serializers.ChoiceField(
        choices=("collection", "disbursement"), required=False, default="collection"
    )


class MomoStatusResultSerializer(serializers.Serializer):
    reference_id = serializers.CharField()
    status = serializers.CharField()
    provider_status = serializers.CharField(allow_blank=True)
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    currency = serializers.CharField()
