from django.core.management.base import BaseCommand

from wallets.services.platform import ensure_platform_wallet


class Command(BaseCommand):
    help = "Creates the platform fee wallet and its per-currency balances"

    def handle(self, *args, **options):
        platform, created_currencies = ensure_platform_wallet()
        if created_currencies:
            self.stdout.write(
                f"Created {len(created_currencies)} currency balance(s): {', '.join(created_currencies)}"
            )
        self.stdout.write(self.style.SUCCESS(f"Platform wallet ready: {platform.wallet_id}"))
