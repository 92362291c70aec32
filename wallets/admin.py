from django.contrib import admin

from wallets.models import (
    AuditLogEntry,
    ExchangeRateTable,
    IdempotencyKey,
    MomoTransaction,
    Payment,
    PlatformCurrencyBalance,
    PlatformFee,
    PlatformWallet,
    Profile,
    Transaction,
    VirtualAccount,
    Wallet,
    Withdrawal,
)


class ReadOnlyAdminMixin:
    """
    Makes a ledger model browsable but not editable from the admin.

    Balances and statuses only change through the services, which lock rows
    and validate state transitions.
    """

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "full_name", "kyc_status", "kyc_documents_status", "kyc_status_updated_at")
    list_filter = ("kyc_status",)
    search_fields = ("user__username", "full_name")
    readonly_fields = ("kyc_status", "kyc_completed", "kyc_verified", "kyc_status_updated_at")


@admin.register(Wallet)
class WalletAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("wallet_id", "user", "currency", "balance", "status", "updated_at")
    list_filter = ("status", "currency")
    search_fields = ("wallet_id", "user__username")


@admin.register(Transaction)
class TransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "transaction_id",
        "owner",
        "type",
        "amount",
        "fee",
        "currency",
        "status",
        "created_at",
    )
    list_filter = ("type", "status")
    search_fields = ("transaction_id", "reference", "sender_wallet_id", "receiver_wallet_id")


@admin.register(Withdrawal)
class WithdrawalAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("reference", "user", "type", "amount", "currency", "status", "refunded", "created_at")
    list_filter = ("type", "status", "refunded")
    search_fields = ("reference", "transfer_code")


@admin.register(MomoTransaction)
class MomoTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("reference_id", "user", "type", "amount", "currency", "status", "refunded", "created_at")
    list_filter = ("type", "status")
    search_fields = ("reference_id", "financial_transaction_id")


@admin.register(Payment)
class PaymentAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("reference", "user", "amount", "currency", "channel", "status", "processed", "created_at")
    list_filter = ("status", "processed", "channel")
    search_fields = ("reference",)


@admin.register(VirtualAccount)
class VirtualAccountAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("account_number", "bank_name", "user", "customer_id", "created_at")
    search_fields = ("account_number", "user__username")


@admin.register(IdempotencyKey)
class IdempotencyKeyAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("operation", "user", "status", "expires_at", "created_at")
    list_filter = ("operation", "status")


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("timestamp", "actor_id", "operation", "result", "amount", "currency")
    list_filter = ("operation", "result")
    search_fields = ("actor_id",)


@admin.register(ExchangeRateTable)
class ExchangeRateTableAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("base", "source", "updated_at")


@admin.register(PlatformWallet)
class PlatformWalletAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("wallet_id", "total_balance_usd", "total_transactions", "is_active")


@admin.register(PlatformCurrencyBalance)
class PlatformCurrencyBalanceAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("currency", "amount", "usd_equivalent", "tx_count", "last_transaction_at")


@admin.register(PlatformFee)
class PlatformFeeAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("transaction_id", "original_amount", "currency", "usd_amount", "sender_name", "created_at")
    search_fields = ("transaction_id",)
