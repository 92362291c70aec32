from django.core.management.base import BaseCommand, CommandError

from wallets.errors import ServiceError
from wallets.services import exchange


class Command(BaseCommand):
    help = "Fetches current exchange rates and stores them"

    def add_arguments(self, parser):
        parser.add_argument("--url", help="Override EXCHANGE_RATE_API_URL")

    def handle(self, *args, **options):
        self.stdout.write("Fetching exchange rates...")
        try:
            table = exchange.refresh_rates(url=options.get("url"))
        except ServiceError as exc:
            raise CommandError(exc.message) from exc
        self.stdout.write(self.style.SUCCESS(f"Stored rates for {len(table.rates)} currencies."))
