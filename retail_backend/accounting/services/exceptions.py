# accounting/services/exceptions.py

"""
ACCOUNTING SERVICE ERRORS

Centralized domain errors for the ledger.
"""


class AccountingServiceError(Exception):
    """Base exception for all accounting service failures."""


class AccountResolutionError(AccountingServiceError):
    """Raised when an expected account cannot be resolved."""


class JournalEntryCreationError(AccountingServiceError):
    """Raised when a journal entry is malformed and cannot be created."""


class UnbalancedEntryError(JournalEntryCreationError):
    """Raised when sum(debits) != sum(credits)."""

    def __init__(self, total_debits: int, total_credits: int):
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Journal entry not balanced: debits={total_debits} credits={total_credits}"
        )


class IdempotencyError(AccountingServiceError):
    """Raised on duplicate or retried accounting events."""


class DuplicatePostingError(IdempotencyError):
    """A posting for the same (source_type, source_id, idempotency_key) already exists."""

    def __init__(self, reference: str, existing_entry=None):
        self.reference = reference
        self.existing_entry = existing_entry
        super().__init__(f"Journal entry already exists for reference {reference}")


class ReversalError(AccountingServiceError):
    """Raised when an entry cannot be reversed."""
