from rest_framework import serializers

from wallets.models import Withdrawal


class InitiateWithdrawalSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=20, decimal_places=2)
    type = serializers.ChoiceField(choices=Withdrawal.Type.choices, default=Withdrawal.Type.BANK)
    account_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    bank_code = serializers.CharField(max_length=32, required=False, allow_blank=True)
    phone_number = serializers.CharField(max_length=32, required=False, allow_blank=True)
    mobile_money_provider = serializers.CharField(max_length=32, required=False, allow_blank=True)
    account_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True)
    idempotency_key = serializers.CharField(max_length=128, required=False)

    def validate(self, attrs):
        if attrs["type"] == Withdrawal.Type.BANK:
            missing = [f for f in ("account_number", "bank_code") if not attrs.get(f)]
        else:
            missing = [f for f in ("phone_number", "mobile_money_provider") if not attrs.get(f)]
        if missing:
            raise serializers.ValidationError(
                {field: "This field is required for this withdrawal type." for field in missing}
            )
        return attrs


class FinalizeTransferSerializer(serializers.Serializer):
    transfer_code = serializers.CharField(max_length=64)
    otp = serializers.CharField(max_length=16)
    idempotency_key = serializers.CharField(max_length=128, required=False)
