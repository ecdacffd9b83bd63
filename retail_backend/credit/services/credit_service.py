# credit/services/credit_service.py

"""
======================================================
PATH: credit/services/credit_service.py
======================================================
CREDIT POLICY ENGINE

Rules:
- outstanding is the signed balance of the party's ledger sub-account
  (AR for customers, AP for suppliers), read fresh on every call.
  No function here accepts an outstanding amount from a caller.
- available = max(limit - outstanding, 0). A negative outstanding means the
  party is in credit with us and raises available credit above the limit.
- validate fails closed: not approved or frozen -> any nonzero amount invalid.
- Approval / limit / duration / freeze never touch the ledger.
- Read-check-write spans (validate + commit a credit sale) must hold
  lock_credit_profile() inside one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from accounting.services.account_resolver import get_party_account
from accounting.services.balance_service import get_account_balance
from accounting.services.exceptions import AccountResolutionError
from accounting.types import MinorUnits, PartyId
from credit.models.credit_profile import CreditProfile, default_credit_duration_days
from credit.models.party import Party
from credit.services.exceptions import (
    CreditFrozenError,
    CreditLimitExceededError,
    CreditNotApprovedError,
    CreditPolicyError,
)
from credit.services.party_service import get_party

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreditSummary:
    party_id: PartyId
    party_type: str
    approved: bool
    limit: int
    outstanding: int
    available: int
    frozen: bool
    duration: int
    last_repayment_at: datetime | None
    last_repayment_amount: int | None


@dataclass(frozen=True)
class CreditValidation:
    is_valid: bool
    would_exceed_limit: bool
    reason: str
    outstanding: int
    available: int
    amount: int


# ------------------------------------------------------------
# HELPERS
# ------------------------------------------------------------


def _require_int(value, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CreditPolicyError(f"{field} must be an integer amount of minor units")
    return value


def _validate_limit(credit_limit) -> int:
    credit_limit = _require_int(credit_limit, field="credit_limit")
    if credit_limit < 0:
        raise CreditPolicyError("Credit limit cannot be negative")
    return credit_limit


def _validate_duration(days) -> int:
    if isinstance(days, bool) or not isinstance(days, int):
        raise CreditPolicyError("Credit duration must be a whole number of days")
    if days < 1:
        raise CreditPolicyError("Credit duration must be at least 1 day")
    return days


def _profile_for_read(party: Party) -> CreditProfile:
    profile = CreditProfile.objects.filter(party=party).first()
    if profile is None:
        # Unsaved default: reads never write.
        profile = CreditProfile(party=party, credit_duration_days=default_credit_duration_days())
    return profile


def available_credit(limit: int, outstanding: int) -> int:
    return max(limit - outstanding, 0)


def get_outstanding(party) -> int:
    """
    What the party owes (customer) or is owed by us (supplier), from the ledger.
    Parties without a sub-account yet owe nothing.
    """
    party = get_party(party)
    try:
        account = get_party_account(party, create=False)
    except AccountResolutionError:
        return 0
    return get_account_balance(account)


def _summary(party: Party, profile: CreditProfile) -> CreditSummary:
    outstanding = get_outstanding(party)
    return CreditSummary(
        party_id=party.pk,
        party_type=party.party_type,
        approved=profile.is_approved,
        limit=profile.credit_limit,
        outstanding=outstanding,
        available=available_credit(profile.credit_limit, outstanding),
        frozen=profile.is_frozen,
        duration=profile.credit_duration_days,
        last_repayment_at=profile.last_repayment_at,
        last_repayment_amount=profile.last_repayment_amount,
    )


# ------------------------------------------------------------
# LOCKING (PER-PARTY SERIALIZATION POINT)
# ------------------------------------------------------------


def lock_credit_profile(party_id: PartyId) -> CreditProfile:
    """
    Lock the party's credit profile row for the rest of the current transaction.

    Every validate+commit (credit invoice) and allocate+post (payment) span
    takes this lock first, so two writers for the same party never act on
    the same stale outstanding balance. Must be called inside transaction.atomic.
    """
    party = get_party(party_id)
    CreditProfile.objects.get_or_create(party=party)
    return CreditProfile.objects.select_for_update().select_related("party").get(party=party)


# ------------------------------------------------------------
# QUERIES
# ------------------------------------------------------------


def get_credit_summary(party_id: PartyId) -> CreditSummary:
    party = get_party(party_id)
    return _summary(party, _profile_for_read(party))


def _evaluate(profile: CreditProfile, outstanding: int, amount: int) -> CreditValidation:
    available = available_credit(profile.credit_limit, outstanding)
    would_exceed = outstanding + amount > profile.credit_limit

    if amount == 0:
        return CreditValidation(True, False, "", outstanding, available, amount)

    if not profile.is_approved:
        reason = "Credit is not approved for this party"
        is_valid = False
    elif profile.is_frozen:
        reason = "Credit account is frozen"
        is_valid = False
    elif would_exceed:
        reason = (
            f"Amount {amount} exceeds available credit {available} "
            f"(outstanding {outstanding}, limit {profile.credit_limit})"
        )
        is_valid = False
    else:
        reason = ""
        is_valid = True

    return CreditValidation(is_valid, would_exceed, reason, outstanding, available, amount)


def validate_credit(party_id: PartyId, amount: MinorUnits) -> CreditValidation:
    """
    Would a new credit transaction of `amount` be allowed right now?

    Advisory on its own: a caller that goes on to commit must redo the check
    under lock_credit_profile() (see assert_credit_available).
    """
    amount = _require_int(amount, field="amount")
    if amount < 0:
        raise CreditPolicyError("Prospective credit amount cannot be negative")

    party = get_party(party_id)
    profile = _profile_for_read(party)
    result = _evaluate(profile, get_outstanding(party), amount)

    if not result.is_valid:
        logger.info(
            "Credit validation refused",
            extra={"party_id": str(party.pk), "amount": amount, "reason": result.reason},
        )
    return result


def assert_credit_available(profile: CreditProfile, amount: int) -> CreditValidation:
    """Raising form of validate for a (locked) profile."""
    amount = _require_int(amount, field="amount")
    if amount < 0:
        raise CreditPolicyError("Prospective credit amount cannot be negative")

    outstanding = get_outstanding(profile.party)
    result = _evaluate(profile, outstanding, amount)
    if result.is_valid:
        return result

    logger.warning(
        "Credit refused",
        extra={
            "party_id": str(profile.party_id),
            "amount": amount,
            "outstanding": outstanding,
            "limit": profile.credit_limit,
            "reason": result.reason,
        },
    )

    if not profile.is_approved:
        raise CreditNotApprovedError(result.reason)
    if profile.is_frozen:
        raise CreditFrozenError(result.reason)
    raise CreditLimitExceededError(
        result.reason, outstanding=outstanding, amount=amount, limit=profile.credit_limit
    )


# ------------------------------------------------------------
# MUTATIONS (PROFILE ONLY, NEVER THE LEDGER)
# ------------------------------------------------------------


@transaction.atomic
def approve_credit(
    party_id: PartyId,
    *,
    approved: bool,
    credit_limit: int | None = None,
    credit_duration_days: int | None = None,
    actor: str = "",
) -> CreditSummary:
    if credit_limit is not None:
        credit_limit = _validate_limit(credit_limit)
    if credit_duration_days is not None:
        credit_duration_days = _validate_duration(credit_duration_days)

    profile = lock_credit_profile(party_id)

    profile.is_approved = bool(approved)
    if approved:
        profile.approved_by = actor or ""
        profile.approved_at = timezone.now()
    if credit_limit is not None:
        profile.credit_limit = credit_limit
    if credit_duration_days is not None:
        profile.credit_duration_days = credit_duration_days
    profile.save()

    logger.info(
        "Credit approval updated",
        extra={
            "party_id": str(profile.party_id),
            "approved": profile.is_approved,
            "limit": profile.credit_limit,
            "duration": profile.credit_duration_days,
            "actor": actor,
        },
    )
    return _summary(profile.party, profile)


@transaction.atomic
def update_credit_limit(
    party_id: PartyId,
    *,
    credit_limit: int,
    credit_duration_days: int | None = None,
    actor: str = "",
) -> CreditSummary:
    credit_limit = _validate_limit(credit_limit)
    if credit_duration_days is not None:
        credit_duration_days = _validate_duration(credit_duration_days)

    profile = lock_credit_profile(party_id)
    previous = profile.credit_limit

    profile.credit_limit = credit_limit
    if credit_duration_days is not None:
        profile.credit_duration_days = credit_duration_days
    profile.save()

    summary = _summary(profile.party, profile)
    logger.info(
        "Credit limit updated",
        extra={
            "party_id": str(profile.party_id),
            "previous_limit": previous,
            "limit": credit_limit,
            "outstanding": summary.outstanding,
            "actor": actor,
        },
    )
    return summary


@transaction.atomic
def update_credit_duration(party_id: PartyId, *, credit_duration_days: int, actor: str = "") -> CreditSummary:
    credit_duration_days = _validate_duration(credit_duration_days)

    profile = lock_credit_profile(party_id)
    profile.credit_duration_days = credit_duration_days
    profile.save(update_fields=["credit_duration_days", "updated_at"])

    logger.info(
        "Credit duration updated",
        extra={"party_id": str(profile.party_id), "duration": credit_duration_days, "actor": actor},
    )
    return _summary(profile.party, profile)


@transaction.atomic
def set_credit_frozen(party_id: PartyId, *, frozen: bool, actor: str = "") -> CreditSummary:
    profile = lock_credit_profile(party_id)

    profile.is_frozen = bool(frozen)
    profile.frozen_at = timezone.now() if frozen else None
    profile.save(update_fields=["is_frozen", "frozen_at", "updated_at"])

    logger.info(
        "Credit frozen" if frozen else "Credit unfrozen",
        extra={"party_id": str(profile.party_id), "actor": actor},
    )
    return _summary(profile.party, profile)


@transaction.atomic
def record_repayment(party_id: PartyId, amount: MinorUnits, *, at: datetime | None = None) -> CreditProfile:
    """
    Informational repayment tracking (the ledger already holds the truth).
    Called by the payment allocator inside its own locked transaction.
    """
    amount = _require_int(amount, field="amount")
    if amount <= 0:
        raise CreditPolicyError("Repayment amount must be positive")

    profile = lock_credit_profile(party_id)
    profile.last_repayment_at = at or timezone.now()
    profile.last_repayment_amount = amount
    profile.save(update_fields=["last_repayment_at", "last_repayment_amount", "updated_at"])
    return profile
