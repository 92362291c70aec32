from wallets.services.wallet import WalletService
from wallets.services.withdrawal import WithdrawalService
from wallets.services.momo import MomoService
from wallets.services.payment import PaymentService
from wallets.services.qr import QrService

__all__ = ["WalletService", "WithdrawalService", "MomoService", "PaymentService", "QrService"]
