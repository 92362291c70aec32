def idempotency_key_from(request, validated_data=None):
    """The ``Idempotency-Key`` header wins over an ``idempotency_key`` body field."""
    header = request.META.get("HTTP_IDEMPOTENCY_KEY")
    if header:
        return header
    return (validated_data or {}).get("idempotency_key")
