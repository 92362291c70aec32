import logging

from django.contrib.auth.base_user import AbstractBaseUser
from django.utils import timezone

from wallets.errors import AppError, ErrorCode
from wallets.models import Profile

logger = logging.getLogger(__name__)

APPROVED_DOCUMENT_STATUSES = ("approved", "verified")


def enforce_kyc(user: AbstractBaseUser) -> Profile:
    """
    Allow the caller only if their identity is verified.

    Accounts verified before ``kyc_status`` existed carry the two legacy
    flags instead; they are migrated to ``verified`` on first use.

    Returns:
        The caller's Profile.

    Raises:
        AppError: ``KYC_REQUIRED`` when not verified, ``WALLET_NOT_FOUND``
            when the caller has no profile.
    """
    profile = Profile.objects.filter(user=user).first()
    if profile is None:
        raise AppError(ErrorCode.WALLET_NOT_FOUND, "User account not found.")

    if profile.kyc_status == Profile.KycStatus.VERIFIED:
        return profile

    if not profile.kyc_status and profile.kyc_completed and profile.kyc_verified:
        now = timezone.now()
        Profile.objects.filter(pk=profile.pk).update(
            kyc_status=Profile.KycStatus.VERIFIED,
            kyc_status_updated_at=now,
            updated_at=now,
        )
        profile.kyc_status = Profile.KycStatus.VERIFIED
        logger.info("Auto-migrated kyc_status to verified for user=%s", user.pk)
        return profile

    raise AppError(ErrorCode.KYC_REQUIRED, details={"kyc_status": profile.kyc_status or "unset"})


def update_kyc_status(user: AbstractBaseUser, status: str) -> dict:
    valid = (
        Profile.KycStatus.PENDING,
        Profile.KycStatus.VERIFIED,
        Profile.KycStatus.REJECTED,
    )
    if status not in valid:
        raise AppError(ErrorCode.KYC_VERIFICATION_FAILED, "Invalid KYC status.")

    profile, _ = Profile.objects.get_or_create(user=user)

    if status == Profile.KycStatus.VERIFIED:
        if not profile.kyc_documents_status:
            raise AppError(ErrorCode.KYC_INCOMPLETE, "No KYC documents found.")
        if profile.kyc_documents_status not in APPROVED_DOCUMENT_STATUSES:
            raise AppError(ErrorCode.KYC_INCOMPLETE, "KYC documents have not been approved.")

    profile.kyc_status = status
    profile.kyc_status_updated_at = timezone.now()
    update_fields = ["kyc_status", "kyc_status_updated_at", "updated_at"]
    if status == Profile.KycStatus.VERIFIED:
        profile.kyc_completed = True
        profile.kyc_verified = True
        update_fields += ["kyc_completed", "kyc_verified"]
    profile.save(update_fields=update_fields)

    logger.info("KYC status updated to %s for user=%s", status, user.pk)
    return {"kyc_status": status}
