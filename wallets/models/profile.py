from django.conf import settings
from django.db import models

from wallets.models.base import BaseModel


class Profile(BaseModel):
    """
    Identity data the ledger needs about a user.

    ``kyc_status`` is authoritative for the KYC gate. ``kyc_completed`` and
    ``kyc_verified`` are the legacy flags written before ``kyc_status``
    existed; they are only read to migrate old accounts.
    """

    class KycStatus(models.TextChoices):
        UNSET = "", "Unset"
        PENDING = "pending", "Pending"
        VERIFIED = "verified", "Verified"
        REJECTED = "rejected", "Rejected"

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
    )
    full_name = models.CharField(max_length=255, blank=True, default="")
    profile_photo_url = models.URLField(blank=True, default="")
    kyc_status = models.CharField(
        max_length=10,
        choices=KycStatus.choices,
        blank=True,
        default=KycStatus.UNSET,
    )
    kyc_completed = models.BooleanField(default=False)
    kyc_verified = models.BooleanField(default=False)
    kyc_documents_status = models.CharField(
        max_length=20,
        blank=True,
        default="",
        help_text="Review state of the submitted identity documents.",
    )
    kyc_status_updated_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"Profile {self.user_id} ({self.full_name or 'unnamed'})"
