from wallets.models.base import TransactionStatus
from wallets.models.profile import Profile
from wallets.models.wallet import Wallet, generate_wallet_id
from wallets.models.transaction import Transaction
from wallets.models.withdrawal import Withdrawal
from wallets.models.momo import MomoTransaction
from wallets.models.payment import Payment
from wallets.models.idempotency import IdempotencyKey
from wallets.models.rate_limit import RateLimitWindow
from wallets.models.audit import AuditLogEntry
from wallets.models.exchange_rate import ExchangeRateTable
from wallets.models.virtual_account import VirtualAccount
from wallets.models.platform import (
    PLATFORM_WALLET_PK,
    PlatformCurrencyBalance,
    PlatformFee,
    PlatformWallet,
)

__all__ = [
    "TransactionStatus",
    "Profile",
    "Wallet",
    "generate_wallet_id",
    "Transaction",
    "Withdrawal",
    "MomoTransaction",
    "Payment",
    "IdempotencyKey",
    "RateLimitWindow",
    "AuditLogEntry",
    "ExchangeRateTable",
    "PLATFORM_WALLET_PK",
    "PlatformWallet",
    "PlatformCurrencyBalance",
    "PlatformFee",
    "VirtualAccount",
]
