# credit/apps.py

"""
CREDIT APP CONFIG

Credit policy engine:
- Parties (customers / suppliers) as the engine's handle on external records
- Credit profiles: approval, limit, duration, freeze
- Outstanding / available credit always derived from the ledger
"""

from django.apps import AppConfig


class CreditConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "credit"
    verbose_name = "Credit Policy"
