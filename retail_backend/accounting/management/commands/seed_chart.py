# accounting/management/commands/seed_chart.py

from django.core.management.base import BaseCommand

from accounting.services.account_resolver import DEFAULT_CHART, ensure_default_chart


class Command(BaseCommand):
    help = "Seed the default retail chart (cash, M-Pesa, bank, AR/AP control accounts, sales, short/over)"

    def handle(self, *args, **options):
        self.stdout.write("Seeding default chart of accounts...")

        accounts = ensure_default_chart()

        for (key, _, _, is_parent), acc in zip(DEFAULT_CHART, accounts):
            marker = " (parent)" if is_parent else ""
            self.stdout.write(f"  {acc.code:<6} {key:<16} {acc.name}{marker}")

        self.stdout.write(self.style.SUCCESS(f"✅ Chart ready: {len(accounts)} accounts"))
