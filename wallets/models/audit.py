from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class AuditLogEntry(models.Model):
    """
    Append-only record of a financial operation outcome.

    Rows are written once and never changed or removed by the application;
    ``save`` on an existing row and ``delete`` both raise.
    """

    class Result(models.TextChoices):
        SUCCESS = "success", "Success"
        FAILURE = "failure", "Failure"

    actor_id = models.CharField(max_length=64, db_index=True)
    operation = models.CharField(max_length=64)
    result = models.CharField(max_length=10, choices=Result.choices)
    amount = models.DecimalField(max_digits=20, decimal_places=2, null=True, blank=True)
    currency = models.CharField(max_length=3, blank=True, default="")
    error = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    ip_hash = models.CharField(max_length=16, blank=True, default="")
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-timestamp"]

    def __str__(self):
        return f"Audit {self.operation} {self.result} by {self.actor_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionError("Audit log entries are immutable.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionError("Audit log entries cannot be deleted.")
