# cashier/apps.py

"""
CASHIER APP CONFIG

Cash control:
- Cashier sessions (OPEN -> CLOSED -> RECONCILED) per channel and cashier
- Blind cash counts with configured variance tolerance
- Mobile money verification
- Reconciliation of declared vs ledger-expected balances
"""

from django.apps import AppConfig


class CashierConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cashier"
    verbose_name = "Cashier Sessions & Reconciliation"
