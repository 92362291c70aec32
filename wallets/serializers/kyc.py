from rest_framework import serializers


class KycStatusSerializer(serializers.Serializer):
    # Unknown values are passed through and rejected by the KYC service.
    status = serializers.CharField(max_length=16)
