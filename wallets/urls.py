from django.urls import path

from wallets.views import (
    BankListView,
    ChargeMobileMoneyView,
    FinalizeTransferView,
    GatewayWebhookView,
    InitializeTransactionView,
    InitiateWithdrawalView,
    KycStatusView,
    LookupWalletView,
    MomoBalanceView,
    MomoRequestToPayView,
    MomoStatusView,
    MomoTransferView,
    MomoWebhookView,
    MyWalletView,
    OpenWalletView,
    QrSignView,
    QrVerifyView,
    SendMoneyView,
    TransactionDetailView,
    TransactionListView,
    VerifyBankAccountView,
    VerifyPaymentView,
    VirtualAccountView,
)

urlpatterns = [
    path("wallets/", OpenWalletView.as_view(), name="wallet-open"),
    path("wallets/me/", MyWalletView.as_view(), name="wallet-me"),
    path("wallets/lookup/", LookupWalletView.as_view(), name="wallet-lookup"),
    path("transfers/send/", SendMoneyView.as_view(), name="transfer-send"),
    path("withdrawals/", InitiateWithdrawalView.as_view(), name="withdrawal-initiate"),
    path("withdrawals/finalize/", FinalizeTransferView.as_view(), name="withdrawal-finalize"),
    path("payments/initialize/", InitializeTransactionView.as_view(), name="payment-initialize"),
    path("payments/verify/", VerifyPaymentView.as_view(), name="payment-verify"),
    path(
        "payments/mobile-money/charge/",
        ChargeMobileMoneyView.as_view(),
        name="payment-mobile-money-charge",
    ),
    path(
        "payments/virtual-account/",
        VirtualAccountView.as_view(),
        name="payment-virtual-account",
    ),
    path("banks/", BankListView.as_view(), name="bank-list"),
    path("banks/verify-account/", VerifyBankAccountView.as_view(), name="bank-verify-account"),
    path("momo/request-to-pay/", MomoRequestToPayView.as_view(), name="momo-request-to-pay"),
    path("momo/transfer/", MomoTransferView.as_view(), name="momo-transfer"),
    path("momo/status/", MomoStatusView.as_view(), name="momo-status"),
    path("momo/balance/", MomoBalanceView.as_view(), name="momo-balance"),
    path("qr/sign/", QrSignView.as_view(), name="qr-sign"),
    path("qr/verify/", QrVerifyView.as_view(), name="qr-verify"),
    path("kyc/status/", KycStatusView.as_view(), name="kyc-status"),
    path("transactions/", TransactionListView.as_view(), name="transaction-list"),
    path(
        "transactions/<str:transaction_id>/",
        TransactionDetailView.as_view(),
        name="transaction-detail",
    ),
    path("webhooks/gateway/", GatewayWebhookView.as_view(), name="webhook-gateway"),
    path("webhooks/momo/", MomoWebhookView.as_view(), name="webhook-momo"),
]
