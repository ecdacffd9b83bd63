# accounting/management/commands/check_ledger_integrity.py

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from accounting.services.balance_service import find_unbalanced_entries, get_trial_balance


class Command(BaseCommand):
    help = "Verify the ledger: every entry balances and the trial balance nets to zero."

    def add_arguments(self, parser):
        parser.add_argument(
            "--strict",
            action="store_true",
            help="Exit with an error when any problem is found (for CI / cron).",
        )

    def handle(self, *args, **options):
        strict = bool(options.get("strict"))

        unbalanced = find_unbalanced_entries()
        tb = get_trial_balance()

        for row in unbalanced:
            self.stdout.write(
                self.style.ERROR(
                    f"❌ JournalEntry #{row['journal_entry_id']}: "
                    f"debits={row['debit_total']} credits={row['credit_total']}"
                )
            )

        if not tb["is_balanced"]:
            self.stdout.write(
                self.style.ERROR(
                    f"❌ Trial balance off: debits={tb['total_debits']} credits={tb['total_credits']}"
                )
            )

        problems = len(unbalanced) + (0 if tb["is_balanced"] else 1)
        if problems == 0:
            self.stdout.write(self.style.SUCCESS("✅ Ledger integrity OK"))
            return

        if strict:
            raise CommandError(f"Ledger integrity check failed ({problems} problem(s))")
