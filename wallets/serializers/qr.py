from rest_framework import serializers


class QrSignSerializer(serializers.Serializer):
    wallet_id = serializers.CharField(max_length=32)
    amount = serializers.DecimalField(max_digits=20, decimal_places=2, min_value=0, required=False)
    note = serializers.CharField(max_length=140, required=False, allow_blank=True, default="")

    def validate_wallet_id(self, value):
        return value.strip().upper()


class QrSignatureSerializer(serializers.Serializer):
    payload = serializers.CharField()
    signature = serializers.CharField()
    expires_at = serializers.DateTimeField()


class QrVerifySerializer(serializers.Serializer):
    payload = serializers.CharField(max_length=2048)
    signature = serializers.CharField(max_length=128)


class QrVerificationSerializer(serializers.Serializer):
    """A rejected code carries only ``valid`` and ``reason``."""

    valid = serializers.BooleanField()
    reason = serializers.CharField(required=False)
    wallet_id = serializers.CharField(required=False)
    amount = serializers.DecimalField(max_digits=20, decimal_places=2, required=False)
    note = serializers.CharField(required=False, allow_blank=True)
    recipient_name = serializers.CharField(required=False)
    profile_photo_url = serializers.CharField(required=False, allow_null=True)
