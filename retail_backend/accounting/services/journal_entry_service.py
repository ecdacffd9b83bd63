# accounting/services/journal_entry_service.py

"""
======================================================
PATH: accounting/services/journal_entry_service.py
======================================================
JOURNAL ENTRY SERVICE (LEDGER ENGINE)

This module is the ONLY place allowed to:
- Create JournalEntry
- Create JournalLine
- Enforce debit == credit (integer minor units, no rounding ever)
- Guarantee atomicity
- Enforce idempotency via (source_type, source_id, idempotency_key)
- Enforce cashier session attribution (no postings into a closed session)

Everything else (invoices, allocations, variance adjustments) must pass through here.

ANTI-CIRCULAR-IMPORT RULE:
- Do NOT import the cashier session gate at module import time.
- Import it lazily inside the enforcement function.
"""

from __future__ import annotations

import logging
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalLine
from accounting.services.exceptions import (
    DuplicatePostingError,
    JournalEntryCreationError,
    ReversalError,
    UnbalancedEntryError,
)

logger = logging.getLogger(__name__)

REVERSAL_SOURCE_TYPE = "reversal"


def _amount(value, *, field: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise JournalEntryCreationError(
            f"Line {field} must be an integer amount of minor units, got {value!r}"
        )
    return value


def _resolve_account(account) -> Account:
    if account is None:
        raise JournalEntryCreationError("Posting missing account")

    if not isinstance(account, Account):
        code = str(account).strip()
        try:
            account = Account.objects.get(code=code)
        except Account.DoesNotExist as exc:
            raise JournalEntryCreationError(f"Unknown account code {code!r}") from exc

    if not account.is_active:
        raise JournalEntryCreationError(f"Account {account.code} is inactive")

    if account.is_parent:
        raise JournalEntryCreationError(
            f"Account {account.code} is a parent account and cannot receive direct postings"
        )

    return account


def _normalize_lines(lines) -> tuple[list[dict], int, int]:
    if not lines or len(lines) < 2:
        raise JournalEntryCreationError("Journal entry must contain at least two lines")

    total_debits = 0
    total_credits = 0
    normalized: list[dict] = []

    for line in lines:
        if not isinstance(line, dict):
            raise JournalEntryCreationError("Each line must be an object/dict")

        account = _resolve_account(line.get("account"))
        debit = _amount(line.get("debit"), field="debit")
        credit = _amount(line.get("credit"), field="credit")

        if debit < 0 or credit < 0:
            raise JournalEntryCreationError("Debit or credit cannot be negative")

        if debit > 0 and credit > 0:
            raise JournalEntryCreationError("A line cannot have both debit and credit")

        if debit == 0 and credit == 0:
            raise JournalEntryCreationError("A line must have either debit or credit")

        metadata = line.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise JournalEntryCreationError("Line metadata must be an object/dict")

        total_debits += debit
        total_credits += credit

        normalized.append(
            {"account": account, "debit": debit, "credit": credit, "metadata": metadata}
        )

    if total_debits != total_credits:
        raise UnbalancedEntryError(total_debits, total_credits)

    return normalized, total_debits, total_credits


def _enforce_session_open(session_id) -> None:
    """
    Postings attributed to a cashier session are only accepted while it is OPEN.

    IMPORTANT:
    - Lazy import to avoid circular imports during Django app loading.
    - The cashier app depends on accounting; accounting must not depend on it at import time.
    - SessionNotOpenError propagates unchanged to the caller.
    """
    try:
        from cashier.services.session_gate import assert_session_accepts_postings
    except ImportError as exc:
        raise JournalEntryCreationError(
            "Cashier session attribution requested, but the session gate could not be imported."
        ) from exc

    assert_session_accepts_postings(session_id)


def _find_existing(source_type: str, source_id: str, idempotency_key: str):
    return (
        JournalEntry.objects.filter(
            source_type=source_type,
            source_id=source_id,
            idempotency_key=idempotency_key,
        )
        .order_by("id")
        .first()
    )


@transaction.atomic
def create_journal_entry(
    *,
    memo: str,
    lines: list,
    source_type: str,
    source_id,
    idempotency_key: str = "",
    entry_date: date | None = None,
    cashier_session=None,
    reversal_of: JournalEntry | None = None,
    created_by: str = "",
    replay: bool = False,
) -> JournalEntry:
    """
    Post one balanced journal entry.

    lines: [{"account": Account | code, "debit": int, "credit": int, "metadata": {...}}, ...]

    Raises:
    - UnbalancedEntryError when debits != credits
    - JournalEntryCreationError for malformed lines/accounts/memo/source
    - DuplicatePostingError when the source was already posted (unless replay=True,
      in which case the prior entry is returned)
    - cashier SessionNotOpenError when cashier_session is given and not OPEN
    """
    memo = (memo or "").strip()
    if not memo:
        raise JournalEntryCreationError("Journal entry memo is required")

    source_type = str(source_type or "").strip()
    source_id = str(source_id or "").strip()
    idempotency_key = str(idempotency_key or "").strip()
    if not source_type or not source_id:
        raise JournalEntryCreationError("Journal entry source_type and source_id are required")

    reference = JournalEntry.build_reference(source_type, source_id, idempotency_key)

    # Clear error before any validation work or DB constraint race handling
    existing = _find_existing(source_type, source_id, idempotency_key)
    if existing is not None:
        if replay:
            logger.info(
                "Journal entry replayed",
                extra={"reference": reference, "journal_entry_id": existing.id},
            )
            return existing
        raise DuplicatePostingError(reference, existing)

    normalized, total_debits, _ = _normalize_lines(lines)

    if cashier_session is not None:
        _enforce_session_open(cashier_session)

    try:
        with transaction.atomic():
            journal_entry = JournalEntry.objects.create(
                source_type=source_type,
                source_id=source_id,
                idempotency_key=idempotency_key,
                memo=memo,
                entry_date=entry_date or timezone.localdate(),
                posted_at=timezone.now(),
                cashier_session=cashier_session,
                reversal_of=reversal_of,
                created_by=created_by or "",
            )
    except IntegrityError as exc:
        existing = _find_existing(source_type, source_id, idempotency_key)
        if existing is not None:
            if replay:
                return existing
            raise DuplicatePostingError(reference, existing) from exc
        raise JournalEntryCreationError(f"Failed to create journal entry: {exc}") from exc

    JournalLine.objects.bulk_create(
        [
            JournalLine(
                journal_entry=journal_entry,
                line_no=i,
                account=line["account"],
                debit=line["debit"],
                credit=line["credit"],
                metadata=line["metadata"],
            )
            for i, line in enumerate(normalized, start=1)
        ]
    )

    logger.info(
        "Journal entry posted",
        extra={
            "journal_entry_id": journal_entry.id,
            "reference": reference,
            "amount": total_debits,
            "line_count": len(normalized),
            "cashier_session": str(cashier_session) if cashier_session else None,
        },
    )
    return journal_entry


@transaction.atomic
def reverse_journal_entry(
    entry_or_id,
    *,
    memo: str = "",
    cashier_session=None,
    created_by: str = "",
) -> JournalEntry:
    """
    Correct a posted entry by posting its mirror image (debits <-> credits).

    Journal rows are never edited; a reversal is the only correction path.
    """
    entry_id = entry_or_id.pk if isinstance(entry_or_id, JournalEntry) else entry_or_id

    try:
        entry = JournalEntry.objects.select_for_update().get(pk=entry_id)
    except JournalEntry.DoesNotExist as exc:
        raise ReversalError(f"Journal entry {entry_id} not found") from exc

    if entry.reversal_of_id is not None:
        raise ReversalError("A reversing entry cannot itself be reversed")

    if JournalEntry.objects.filter(reversal_of=entry).exists():
        raise ReversalError(f"Journal entry {entry.id} has already been reversed")

    mirrored = [
        {
            "account": line.account,
            "debit": line.credit,
            "credit": line.debit,
            "metadata": {**(line.metadata or {}), "reverses_line": line.line_no},
        }
        for line in entry.lines.select_related("account").order_by("line_no")
    ]

    return create_journal_entry(
        memo=memo or f"Reversal of {entry.reference}",
        lines=mirrored,
        source_type=REVERSAL_SOURCE_TYPE,
        source_id=str(entry.id),
        cashier_session=cashier_session,
        reversal_of=entry,
        created_by=created_by,
    )
