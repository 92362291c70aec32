import django.core.serializers.json
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import wallets.models.wallet


def status_fields():
    return [
        (
            "status",
            models.CharField(
                choices=[
                    ("created", "Created"),
                    ("pending", "Pending"),
                    ("pending_otp", "Pending OTP"),
                    ("processing", "Processing"),
                    ("completed", "Completed"),
                    ("failed", "Failed"),
                    ("refunded", "Refunded"),
                    ("cancelled", "Cancelled"),
                ],
                default="created",
                max_length=16,
            ),
        ),
        ("previous_status", models.CharField(blank=True, default="", max_length=16)),
        ("status_updated_at", models.DateTimeField(blank=True, null=True)),
        ("status_history", models.JSONField(blank=True, default=list)),
    ]


def id_and_timestamps():
    return [
        (
            "id",
            models.BigAutoField(
                auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
            ),
        ),
        ("created_at", models.DateTimeField(auto_now_add=True)),
        ("updated_at", models.DateTimeField(auto_now=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Profile",
            fields=id_and_timestamps()
            + [
                ("full_name", models.CharField(blank=True, default="", max_length=255)),
                ("profile_photo_url", models.URLField(blank=True, default="")),
                (
                    "kyc_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("", "Unset"),
                            ("pending", "Pending"),
                            ("verified", "Verified"),
                            ("rejected", "Rejected"),
                        ],
                        default="",
                        max_length=10,
                    ),
                ),
                ("kyc_completed", models.BooleanField(default=False)),
                ("kyc_verified", models.BooleanField(default=False)),
                (
                    "kyc_documents_status",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Review state of the submitted identity documents.",
                        max_length=20,
                    ),
                ),
                ("kyc_status_updated_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Wallet",
            fields=id_and_timestamps()
            + [
                (
                    "wallet_id",
                    models.CharField(
                        default=wallets.models.wallet.generate_wallet_id,
                        editable=False,
                        max_length=19,
                        unique=True,
                    ),
                ),
                (
                    "currency",
                    models.CharField(
                        default=wallets.models.wallet.default_currency, max_length=3
                    ),
                ),
                ("balance", models.DecimalField(decimal_places=2, default=0, max_digits=20)),
                ("daily_spent", models.DecimalField(decimal_places=2, default=0, max_digits=20)),
                ("monthly_spent", models.DecimalField(decimal_places=2, default=0, max_digits=20)),
                (
                    "daily_limit",
                    models.DecimalField(
                        decimal_places=2,
                        default=wallets.models.wallet.default_daily_limit,
                        max_digits=20,
                    ),
                ),
                (
                    "monthly_limit",
                    models.DecimalField(
                        decimal_places=2,
                        default=wallets.models.wallet.default_monthly_limit,
                        max_digits=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("suspended", "Suspended")],
                        default="active",
                        max_length=10,
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="wallet",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=id_and_timestamps()
            + status_fields()
            + [
                ("transaction_id", models.CharField(db_index=True, max_length=64)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("send", "Send"),
                            ("receive", "Receive"),
                            ("deposit", "Deposit"),
                            ("withdrawal", "Withdrawal"),
                        ],
                        max_length=12,
                    ),
                ),
                ("sender_wallet_id", models.CharField(blank=True, default="", max_length=32)),
                ("receiver_wallet_id", models.CharField(blank=True, default="", max_length=32)),
                ("sender_name", models.CharField(blank=True, default="", max_length=255)),
                ("receiver_name", models.CharField(blank=True, default="", max_length=255)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=20)),
                ("fee", models.DecimalField(decimal_places=2, default=0, max_digits=20)),
                ("currency", models.CharField(max_length=3)),
                ("sender_currency", models.CharField(blank=True, default="", max_length=3)),
                ("receiver_currency", models.CharField(blank=True, default="", max_length=3)),
                (
                    "exchange_rate",
                    models.DecimalField(blank=True, decimal_places=8, max_digits=24, null=True),
                ),
                (
                    "converted_amount",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=20, null=True),
                ),
                ("note", models.CharField(blank=True, default="", max_length=255)),
                (
                    "reference",
                    models.CharField(blank=True, db_index=True, default="", max_length=64),
                ),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                ("method", models.CharField(blank=True, default="", max_length=32)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "indexes": [
                    models.Index(fields=["owner", "status"], name="idx_receipt_owner_status")
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("owner", "transaction_id"), name="uniq_receipt_per_owner"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Withdrawal",
            fields=id_and_timestamps()
            + status_fields()
            + [
                ("reference", models.CharField(max_length=64, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=20)),
                ("currency", models.CharField(max_length=3)),
                (
                    "type",
                    models.CharField(
                        choices=[("bank", "Bank"), ("mobile_money", "Mobile money")],
                        default="bank",
                        max_length=12,
                    ),
                ),
                ("bank_code", models.CharField(blank=True, default="", max_length=32)),
                (
                    "mobile_money_provider",
                    models.CharField(blank=True, default="", max_length=32),
                ),
                ("account_number", models.CharField(blank=True, default="", max_length=32)),
                ("phone_number", models.CharField(blank=True, default="", max_length=32)),
                ("account_name", models.CharField(blank=True, default="", max_length=255)),
                ("recipient_code", models.CharField(blank=True, default="", max_length=64)),
                (
                    "transfer_code",
                    models.CharField(blank=True, db_index=True, default="", max_length=64),
                ),
                ("refunded", models.BooleanField(default=False)),
                ("failure_reason", models.TextField(blank=True, default="")),
                ("otp_verified_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="withdrawals",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "wallet",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="withdrawals",
                        to="wallets.wallet",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="MomoTransaction",
            fields=id_and_timestamps()
            + status_fields()
            + [
                ("reference_id", models.CharField(max_length=64, unique=True)),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("collection", "Collection"),
                            ("disbursement", "Disbursement"),
                        ],
                        max_length=12,
                    ),
                ),
                ("amount", models.DecimalField(decimal_places=2, max_digits=20)),
                ("currency", models.CharField(max_length=3)),
                ("phone_number", models.CharField(max_length=32)),
                ("provider_status", models.CharField(blank=True, default="", max_length=32)),
                (
                    "financial_transaction_id",
                    models.CharField(blank=True, default="", max_length=64),
                ),
                ("callback_status", models.CharField(blank=True, default="", max_length=32)),
                ("verified_status", models.CharField(blank=True, default="", max_length=32)),
                ("refunded", models.BooleanField(default=False)),
                ("failure_reason", models.TextField(blank=True, default="")),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="momo_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="Payment",
            fields=id_and_timestamps()
            + [
                ("reference", models.CharField(max_length=64, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=20)),
                ("currency", models.CharField(max_length=3)),
                ("type", models.CharField(default="deposit", max_length=16)),
                ("channel", models.CharField(blank=True, default="", max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("success", "Success"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                ("processed", models.BooleanField(default=False)),
                (
                    "gateway_data",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "wallet",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="wallets.wallet",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="IdempotencyKey",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "key",
                    models.CharField(max_length=255, primary_key=True, serialize=False),
                ),
                ("operation", models.CharField(max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        default="pending",
                        max_length=10,
                    ),
                ),
                (
                    "result",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                ("error", models.TextField(blank=True, default="")),
                ("expires_at", models.DateTimeField(db_index=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("retry_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="idempotency_keys",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="RateLimitWindow",
            fields=id_and_timestamps()
            + [
                ("operation", models.CharField(max_length=64)),
                ("requests", models.JSONField(blank=True, default=list)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rate_limit_windows",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "abstract": False,
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user", "operation"), name="uniq_rate_limit_user_operation"
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("actor_id", models.CharField(db_index=True, max_length=64)),
                ("operation", models.CharField(max_length=64)),
                (
                    "result",
                    models.CharField(
                        choices=[("success", "Success"), ("failure", "Failure")],
                        max_length=10,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=20, null=True),
                ),
                ("currency", models.CharField(blank=True, default="", max_length=3)),
                ("error", models.TextField(blank=True, default="")),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                    ),
                ),
                ("ip_hash", models.CharField(blank=True, default="", max_length=16)),
                ("timestamp", models.DateTimeField(auto_now_add=True, db_index=True)),
            ],
            options={"ordering": ["-timestamp"]},
        ),
        migrations.CreateModel(
            name="ExchangeRateTable",
            fields=id_and_timestamps()
            + [
                ("base", models.CharField(default="USD", max_length=3)),
                ("rates", models.JSONField(default=dict)),
                ("source", models.CharField(blank=True, default="", max_length=64)),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="PlatformWallet",
            fields=id_and_timestamps()
            + [
                (
                    "wallet_id",
                    models.CharField(default="QRW-PLATFORM", max_length=19, unique=True),
                ),
                ("name", models.CharField(default="QR Wallet", max_length=64)),
                (
                    "description",
                    models.CharField(
                        blank=True, default="Platform fee collection wallet", max_length=255
                    ),
                ),
                (
                    "total_balance_usd",
                    models.DecimalField(decimal_places=6, default=0, max_digits=24),
                ),
                ("total_transactions", models.PositiveBigIntegerField(default=0)),
                ("total_fees_collected", models.PositiveBigIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="PlatformCurrencyBalance",
            fields=id_and_timestamps()
            + [
                ("currency", models.CharField(max_length=3, unique=True)),
                ("amount", models.DecimalField(decimal_places=2, default=0, max_digits=20)),
                (
                    "usd_equivalent",
                    models.DecimalField(decimal_places=6, default=0, max_digits=24),
                ),
                ("tx_count", models.PositiveBigIntegerField(default=0)),
                ("last_transaction_at", models.DateTimeField(blank=True, null=True)),
                (
                    "platform",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="balances",
                        to="wallets.platformwallet",
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
        migrations.CreateModel(
            name="PlatformFee",
            fields=id_and_timestamps()
            + [
                ("transaction_id", models.CharField(max_length=64, unique=True)),
                ("original_amount", models.DecimalField(decimal_places=2, max_digits=20)),
                ("currency", models.CharField(max_length=3)),
                ("usd_amount", models.DecimalField(decimal_places=6, max_digits=24)),
                ("exchange_rate", models.DecimalField(decimal_places=8, max_digits=24)),
                ("sender_name", models.CharField(blank=True, default="", max_length=255)),
                ("transfer_amount", models.DecimalField(decimal_places=2, max_digits=20)),
                (
                    "platform",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="fees",
                        to="wallets.platformwallet",
                    ),
                ),
                (
                    "sender",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={"ordering": ["-created_at"], "abstract": False},
        ),
    ]
