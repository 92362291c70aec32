from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model providing common timestamp fields.

    All concrete models in the wallets app should inherit from this
    to ensure consistent created_at / updated_at tracking.
    """

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]


class TransactionStatus(models.TextChoices):
    CREATED = "created", "Created"
    PENDING = "pending", "Pending"
    PENDING_OTP = "pending_otp", "Pending OTP"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    CANCELLED = "cancelled", "Cancelled"


class StatefulRecord(BaseModel):
    """
    Abstract base for every financial record whose status is driven by the
    transaction state machine.

    ``status`` must only change through ``wallets.services.state_machine``,
    which validates the transition and appends it to ``status_history``.
    """

    status = models.CharField(
        max_length=16,
        choices=TransactionStatus.choices,
        default=TransactionStatus.CREATED,
    )
    previous_status = models.CharField(max_length=16, blank=True, default="")
    status_updated_at = models.DateTimeField(null=True, blank=True)
    status_history = models.JSONField(default=list, blank=True)

    class Meta(BaseModel.Meta):
        abstract = True
