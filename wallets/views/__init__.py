from wallets.views.wallet import LookupWalletView, MyWalletView, OpenWalletView
from wallets.views.transfer import SendMoneyView
from wallets.views.withdraw import FinalizeTransferView, InitiateWithdrawalView
from wallets.views.payment import (
    BankListView,
    ChargeMobileMoneyView,
    InitializeTransactionView,
    VerifyBankAccountView,
    VerifyPaymentView,
    VirtualAccountView,
)
from wallets.views.momo import (
    MomoBalanceView,
    MomoRequestToPayView,
    MomoStatusView,
    MomoTransferView,
)
from wallets.views.qr import QrSignView, QrVerifyView
from wallets.views.kyc import KycStatusView
from wallets.views.transaction import TransactionDetailView, TransactionListView
from wallets.views.webhooks import GatewayWebhookView, MomoWebhookView

__all__ = [
    "OpenWalletView",
    "MyWalletView",
    "LookupWalletView",
    "SendMoneyView",
    "InitiateWithdrawalView",
    "FinalizeTransferView",
    "InitializeTransactionView",
    "ChargeMobileMoneyView",
    "VerifyPaymentView",
    "BankListView",
    "VerifyBankAccountView",
    "VirtualAccountView",
    "MomoRequestToPayView",
    "MomoTransferView",
    "MomoStatusView",
    "MomoBalanceView",
    "QrSignView",
    "QrVerifyView",
    "KycStatusView",
    "TransactionListView",
    "TransactionDetailView",
    "GatewayWebhookView",
    "MomoWebhookView",
]
