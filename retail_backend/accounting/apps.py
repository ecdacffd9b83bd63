# accounting/apps.py

"""
ACCOUNTING APP CONFIG

Ledger store:
- Chart of accounts (hierarchical, party sub-accounts under AR/AP)
- Immutable journal entries + lines (integer minor units)
- Balance derivation (ledger is the single source of truth)
"""

from django.apps import AppConfig


class AccountingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounting"
    verbose_name = "Accounting Ledger"
