from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models

from wallets.models.base import BaseModel


class IdempotencyKey(BaseModel):
    """
    A client-supplied key guarding one financial operation.

    A key belongs to exactly one user. ``result`` holds the serialised
    response of the completed operation and is replayed verbatim.
    """

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    key = models.CharField(max_length=255, primary_key=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="idempotency_keys",
    )
    operation = models.CharField(max_length=64)
    status = models.CharField(
        max_length=10, choices=Status.choices, default=Status.PENDING
    )
    result = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    error = models.TextField(blank=True, default="")
    expires_at = models.DateTimeField(db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    retry_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"IdempotencyKey {self.key[:8]}... | {self.operation} | {self.status}"
