# credit/services/exceptions.py

"""
CREDIT POLICY ERRORS

All are recoverable and reported to the caller; none are retried.
"""


class CreditPolicyError(Exception):
    """Base exception for credit policy failures (also: invalid limit / duration / amount)."""


class PartyNotFoundError(CreditPolicyError):
    """Raised when a party id does not resolve."""


class CreditNotApprovedError(CreditPolicyError):
    """Raised when new credit is requested for a party without approved credit."""


class CreditFrozenError(CreditPolicyError):
    """Raised when new credit is requested for a frozen party."""


class CreditLimitExceededError(CreditPolicyError):
    """Raised when outstanding + amount would exceed the credit limit."""

    def __init__(self, message: str, *, outstanding: int = 0, amount: int = 0, limit: int = 0):
        self.outstanding = outstanding
        self.amount = amount
        self.limit = limit
        super().__init__(message)
