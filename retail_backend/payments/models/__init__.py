# payments/models/__init__.py

"""
PAYMENTS MODELS PACKAGE EXPORTS

Keep this file imports-only.
"""

from payments.models.invoice import Invoice
from payments.models.invoice_payment import InvoicePayment
from payments.models.payment_allocation import PaymentAllocation

__all__ = [
    "Invoice",
    "InvoicePayment",
    "PaymentAllocation",
]
