# payments/services/exceptions.py

"""
PAYMENT SERVICE ERRORS

Excess payment is NOT an error: it is a reported value on AllocationResult.
"""


class PaymentServiceError(Exception):
    """Base exception for invoice / allocation failures."""


class InvalidPaymentAmountError(PaymentServiceError):
    """Raised when a payment amount is not a positive integer of minor units."""


class InvoiceNotFoundError(PaymentServiceError):
    """Raised when an invoice id is unknown or belongs to another party."""


class InvoiceNotPayableError(PaymentServiceError):
    """Raised when an invoice has nothing outstanding or is not in a payable state."""


class InvoiceStateError(PaymentServiceError):
    """Raised on an invalid invoice lifecycle action (confirm twice, cancel a posted invoice)."""


class AllocationIntegrityError(PaymentServiceError):
    """Raised when posted amounts do not reconcile with the allocation totals."""
