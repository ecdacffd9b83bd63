# cashier/services/exceptions.py

"""
CASHIER SERVICE ERRORS

All of these are recoverable and reported to the caller; none of them
leaves a partial write behind.
"""


class CashierError(Exception):
    """Base exception for cashier session / count / reconciliation failures."""


class SessionNotFoundError(CashierError):
    pass


class SessionAlreadyOpenError(CashierError):
    """Raised when the cashier already has an OPEN session on the channel."""

    def __init__(self, message: str, *, existing_session_id=None):
        super().__init__(message)
        self.existing_session_id = existing_session_id


class SessionNotOpenError(CashierError):
    """Raised when an operation (or a ledger posting) needs an OPEN session."""


class InvalidSessionTransitionError(CashierError):
    pass


class CashCountNotFoundError(CashierError):
    pass


class VarianceReviewRequiredError(CashierError):
    """Raised when unresolved variances block a reconciliation."""

    def __init__(self, message: str, *, problems=None):
        super().__init__(message)
        self.problems = list(problems or [])


class ReconciliationError(CashierError):
    pass


class ReconciliationNotFoundError(ReconciliationError):
    pass
