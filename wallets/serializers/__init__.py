from wallets.serializers.wallet import (
    OpenWalletSerializer,
    WalletLookupSerializer,
    WalletSerializer,
)
from wallets.serializers.transfer import SendMoneySerializer
from wallets.serializers.withdraw import (
    FinalizeTransferSerializer,
    InitiateWithdrawalSerializer,
)
from wallets.serializers.payment import (
    BankAccountSerializer,
    ChargeMobileMoneySerializer,
    InitializeTransactionSerializer,
    PaymentVerificationSerializer,
    VerifyPaymentSerializer,
    VirtualAccountRequestSerializer,
)
from wallets.serializers.momo import (
    MomoBalanceSerializer,
    MomoRequestToPaySerializer,
    MomoStatusResultSerializer,
    MomoStatusSerializer,
    MomoTransferSerializer,
)
from wallets.serializers.qr import (
    QrSignatureSerializer,
    QrSignSerializer,
    QrVerificationSerializer,
    QrVerifySerializer,
)
from wallets.serializers.kyc import KycStatusSerializer
from wallets.serializers.transaction import TransactionSerializer

__all__ = [
    "WalletSerializer",
    "OpenWalletSerializer",
    "WalletLookupSerializer",
    "SendMoneySerializer",
    "InitiateWithdrawalSerializer",
    "FinalizeTransferSerializer",
    "InitializeTransactionSerializer",
    "ChargeMobileMoneySerializer",
    "VerifyPaymentSerializer",
    "PaymentVerificationSerializer",
    "BankAccountSerializer",
    "VirtualAccountRequestSerializer",
    "MomoRequestToPaySerializer",
    "MomoTransferSerializer",
    "MomoStatusSerializer",
    "MomoStatusResultSerializer",
    "MomoBalanceSerializer",
    "QrSignSerializer",
    "QrSignatureSerializer",
    "QrVerifySerializer",
    "QrVerificationSerializer",
    "KycStatusSerializer",
    "TransactionSerializer",
]
