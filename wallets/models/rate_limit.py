from django.conf import settings
from django.db import models

from wallets.models.base import BaseModel


class RateLimitWindow(BaseModel):
    """Request timestamps (epoch seconds) inside the sliding window of one (user, operation)."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="rate_limit_windows",
    )
    operation = models.CharField(max_length=64)
    requests = models.JSONField(default=list, blank=True)

    class Meta(BaseModel.Meta):
        constraints = [
            models.UniqueConstraint(
                fields=["user", "operation"], name="uniq_rate_limit_user_operation"
            ),
        ]

    def __str__(self):
        return f"RateLimitWindow {self.user_id}/{self.operation} ({len(self.requests)})"
