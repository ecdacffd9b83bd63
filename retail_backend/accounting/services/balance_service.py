# accounting/services/balance_service.py

"""
BALANCE & AUDIT SERVICE (AUTHORITATIVE)

Read-only ledger aggregation helpers.

RULES:
- READ-ONLY: no writes, ever
- JournalLine is the single source of truth; no balance is ever stored
- as_of as a date filters on JournalEntry.entry_date (accounting date);
  as_of as a datetime filters on JournalEntry.posted_at (write timeline)
- Parent accounts roll up their children
"""

from __future__ import annotations

from datetime import date, datetime

from django.db.models import Count, F, Q, QuerySet, Sum
from django.db.models.functions import Coalesce
from django.utils import timezone

from accounting.models.account import Account
from accounting.models.journal import JournalEntry
from accounting.models.journal_line import JournalLine
from accounting.services.exceptions import AccountResolutionError


class BalanceServiceError(Exception):
    """Base error for balance and reporting services."""


def _as_aware_dt(dt: datetime) -> datetime:
    if timezone.is_naive(dt):
        return timezone.make_aware(dt, timezone.get_current_timezone())
    return dt


def _apply_as_of(qs: QuerySet, as_of: date | datetime | None) -> QuerySet:
    if as_of is None:
        return qs
    if isinstance(as_of, datetime):
        return qs.filter(journal_entry__posted_at__lte=_as_aware_dt(as_of))
    if isinstance(as_of, date):
        return qs.filter(journal_entry__entry_date__lte=as_of)
    raise BalanceServiceError(f"Invalid as_of value: {as_of!r}")


def _coerce_account(account_or_code) -> Account:
    if account_or_code is None:
        raise BalanceServiceError("Account is required")
    if isinstance(account_or_code, Account):
        return account_or_code

    code = str(account_or_code).strip()
    try:
        return Account.objects.get(code=code)
    except Account.DoesNotExist as exc:
        raise AccountResolutionError(f"Account with code={code} not found") from exc


def _descendant_ids(account: Account) -> list[int]:
    ids = [account.id]
    frontier = [account.id]
    while frontier:
        frontier = list(
            Account.objects.filter(parent_id__in=frontier).values_list("id", flat=True)
        )
        ids.extend(frontier)
    return ids


def _signed(account: Account, debit: int, credit: int) -> int:
    """
    Balance rule:
    - Assets & Expenses -> Debit balance  (debits - credits)
    - Liabilities, Equity & Income -> Credit balance (credits - debits)
    """
    if account.is_debit_normal:
        return debit - credit
    return credit - debit


def get_account_totals(
    account_or_code,
    *,
    as_of: date | datetime | None = None,
    cashier_session=None,
    include_children: bool = True,
) -> dict:
    account = _coerce_account(account_or_code)

    account_ids = _descendant_ids(account) if include_children else [account.id]
    qs = JournalLine.objects.filter(account_id__in=account_ids)
    qs = _apply_as_of(qs, as_of)
    if cashier_session is not None:
        qs = qs.filter(journal_entry__cashier_session=cashier_session)

    aggregates = qs.aggregate(
        debit_total=Coalesce(Sum("debit"), 0),
        credit_total=Coalesce(Sum("credit"), 0),
    )
    debit = int(aggregates["debit_total"])
    credit = int(aggregates["credit_total"])

    return {
        "account": account,
        "debit_total": debit,
        "credit_total": credit,
        "balance": _signed(account, debit, credit),
    }


def get_account_balance(
    account_or_code,
    *,
    as_of: date | datetime | None = None,
    cashier_session=None,
    include_children: bool = True,
) -> int:
    """
    Signed balance of an account in minor units, in its normal direction.

    cashier_session restricts the sum to postings attributed to that session
    (the session's net movement on the account).
    """
    return get_account_totals(
        account_or_code,
        as_of=as_of,
        cashier_session=cashier_session,
        include_children=include_children,
    )["balance"]


def get_entries_for_source(source_type: str, source_id) -> list[JournalEntry]:
    """Every entry produced by one domain event (audit / idempotency lookup)."""
    return list(
        JournalEntry.objects.filter(
            source_type=str(source_type).strip(),
            source_id=str(source_id).strip(),
        )
        .prefetch_related("lines__account")
        .order_by("posted_at", "id")
    )


def get_trial_balance(*, as_of: date | datetime | None = None) -> dict:
    """
    Bulk trial balance (no N+1). Postings only ever land on leaf accounts,
    so rows are per posting account; grand totals must be equal.
    """
    accounts = list(
        Account.objects.filter(is_parent=False)
        .only("id", "code", "name", "account_type")
        .order_by("code")
    )

    qs = _apply_as_of(JournalLine.objects.all(), as_of)
    rows = qs.values("account_id").annotate(
        debit_total=Coalesce(Sum("debit"), 0),
        credit_total=Coalesce(Sum("credit"), 0),
    )
    totals_by = {r["account_id"]: (int(r["debit_total"]), int(r["credit_total"])) for r in rows}

    results = []
    total_debits = 0
    total_credits = 0
    for acc in accounts:
        if acc.id not in totals_by:
            continue
        debit, credit = totals_by[acc.id]
        total_debits += debit
        total_credits += credit
        results.append(
            {
                "account_id": acc.id,
                "code": acc.code,
                "name": acc.name,
                "account_type": acc.account_type,
                "debit_total": debit,
                "credit_total": credit,
                "balance": _signed(acc, debit, credit),
            }
        )

    return {
        "rows": results,
        "total_debits": total_debits,
        "total_credits": total_credits,
        "is_balanced": total_debits == total_credits,
    }


def find_unbalanced_entries() -> list[dict]:
    """Integrity scan: entries whose lines do not net to zero, or that have fewer than two lines."""
    rows = (
        JournalLine.objects.values("journal_entry_id")
        .annotate(
            debit_total=Coalesce(Sum("debit"), 0),
            credit_total=Coalesce(Sum("credit"), 0),
        )
        .filter(~Q(debit_total=F("credit_total")))
        .order_by("journal_entry_id")
    )
    unbalanced = [
        {
            "journal_entry_id": r["journal_entry_id"],
            "debit_total": int(r["debit_total"]),
            "credit_total": int(r["credit_total"]),
        }
        for r in rows
    ]

    short = (
        JournalEntry.objects.annotate(line_count=Count("lines"))
        .filter(line_count__lt=2)
        .values_list("id", flat=True)
    )
    seen = {row["journal_entry_id"] for row in unbalanced}
    for entry_id in short:
        if entry_id not in seen:
            unbalanced.append({"journal_entry_id": entry_id, "debit_total": 0, "credit_total": 0})

    return unbalanced
