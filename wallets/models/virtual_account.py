from django.conf import settings
from django.db import models

from wallets.models.base import BaseModel


class VirtualAccount(BaseModel):
    """
    A dedicated bank account number that deposits into one user's wallet.

    Opened once at the card/bank gateway and reused afterwards.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="virtual_account",
    )
    customer_id = models.CharField(max_length=64)
    bank_name = models.CharField(max_length=128)
    bank_id = models.CharField(max_length=32, blank=True, default="")
    account_number = models.CharField(max_length=20)
    account_name = models.CharField(max_length=255, blank=True, default="")

    def __str__(self):
        return f"VirtualAccount {self.account_number} ({self.bank_name}) for {self.user_id}"
