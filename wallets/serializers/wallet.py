from django.conf import settings
from rest_framework import serializers

from wallets.models import Wallet


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = (
            "wallet_id",
            "currency",
            "balance",
            "daily_spent",
            "monthly_spent",
            "daily_limit",
            "monthly_limit",
            "status",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class OpenWalletSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    currency = serializers.CharField(max_length=3, required=False)

    def validate_currency(self, value):
        value = value.upper()
        if value not in settings.SUPPORTED_CURRENCIES:
            raise serializers.ValidationError(f"Unsupported currency: {value}.")
        return value


class WalletLookupSerializer(serializers.Serializer):
    wallet_id = serializers.CharField(max_length=32)

    def validate_wallet_id(self, value):
        return value.strip().upper()
