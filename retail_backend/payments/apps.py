# payments/apps.py

"""
PAYMENTS APP CONFIG

Payment allocator:
- Invoices (sales / purchase orders, abstracted to the unit of allocation)
- FIFO allocation of one payment across a party's open invoices
- Every applied amount is a balanced ledger posting
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments & Allocation"
