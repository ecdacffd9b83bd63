# PATH: accounting/services/account_resolver.py

"""
PATH: accounting/services/account_resolver.py

ACCOUNT RESOLVER (AUTHORITATIVE)

This module answers ONE question:
"Which account should be used for this purpose?"

- Semantic keys (CASH, AR, CASH_SHORT_OVER, ...) map to account codes.
  Codes may be overridden with settings.LEDGER["ACCOUNT_CODES"].
- Payment methods map to settlement accounts (exact match first, then pattern).
- Each party owns one sub-account under AR (customers) or AP (suppliers);
  the parent is a control account whose balance is the rollup.

Design goals:
- deterministic
- hard-fail on missing setup (so we don't post to wrong accounts)
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from accounting.models.account import Account
from accounting.services.exceptions import AccountResolutionError
from accounting.types import AccountCode

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# SEMANTIC CODES
# ------------------------------------------------------------

CASH = "CASH"
MOBILE_MONEY = "MOBILE_MONEY"
BANK = "BANK"
AR = "AR"
AP = "AP"
SALES = "SALES"
PURCHASES = "PURCHASES"
CASH_SHORT_OVER = "CASH_SHORT_OVER"

DEFAULT_CODES = {
    CASH: "1000",
    BANK: "1010",
    MOBILE_MONEY: "1020",
    AR: "1100",
    AP: "2000",
    SALES: "4000",
    PURCHASES: "5000",
    CASH_SHORT_OVER: "5900",
}

# (semantic key, name, type, is_parent)
DEFAULT_CHART = [
    (CASH, "Cash on Hand", Account.ASSET, False),
    (BANK, "Bank", Account.ASSET, False),
    (MOBILE_MONEY, "M-Pesa Clearing", Account.ASSET, False),
    (AR, "Accounts Receivable", Account.ASSET, True),
    (AP, "Accounts Payable", Account.LIABILITY, True),
    (SALES, "Sales Revenue", Account.INCOME, False),
    (PURCHASES, "Purchases", Account.EXPENSE, False),
    (CASH_SHORT_OVER, "Cash Short and Over", Account.EXPENSE, False),
]

# ------------------------------------------------------------
# PAYMENT METHOD -> SETTLEMENT ACCOUNT
# ------------------------------------------------------------

PAYMENT_METHOD_MAP = {
    "cash": CASH,
    "mpesa": MOBILE_MONEY,
    "m-pesa": MOBILE_MONEY,
    "mobile_money": MOBILE_MONEY,
    "bank": BANK,
    "bank_transfer": BANK,
    "card": BANK,
    "cheque": BANK,
}

# Checked in order after an exact miss, e.g. "mpesa-till-2" -> MOBILE_MONEY
PAYMENT_METHOD_PATTERNS = [
    ("mpesa", MOBILE_MONEY),
    ("m-pesa", MOBILE_MONEY),
    ("mobile", MOBILE_MONEY),
    ("cash", CASH),
    ("bank", BANK),
    ("card", BANK),
]

CUSTOMER = "CUSTOMER"
SUPPLIER = "SUPPLIER"


def _norm(s: str) -> str:
    if s is None:
        return ""
    return "_".join(str(s).strip().lower().split())


def _codes() -> dict:
    overrides = getattr(settings, "LEDGER", {}).get("ACCOUNT_CODES") or {}
    return {**DEFAULT_CODES, **{str(k).upper(): str(v) for k, v in overrides.items()}}


# ------------------------------------------------------------
# INTERNAL RESOLUTION HELPERS
# ------------------------------------------------------------


def resolve_code(semantic_key: str) -> AccountCode:
    semantic_key = (semantic_key or "").strip().upper()
    if not semantic_key:
        raise AccountResolutionError("semantic_key is required")

    code = (_codes().get(semantic_key) or "").strip()
    if not code:
        raise AccountResolutionError(
            f"Missing mapping for semantic key '{semantic_key}'. "
            "Update LEDGER['ACCOUNT_CODES'] and ensure seed_chart creates the account code."
        )
    return AccountCode(code)


def get_account_by_code(code: AccountCode) -> Account:
    code = (code or "").strip()
    if not code:
        raise AccountResolutionError("Account code is required")

    try:
        return Account.objects.get(code=code, is_active=True)
    except Account.DoesNotExist as exc:
        raise AccountResolutionError(
            f"Account with code={code} not found (or inactive). "
            "Run the seed_chart command (or add the account manually) and ensure is_active=True."
        ) from exc


def get_account(semantic_key: str) -> Account:
    return get_account_by_code(resolve_code(semantic_key))


def missing_chart_keys() -> list[str]:
    """Semantic keys whose mapped account is absent or inactive (empty once seed_chart ran)."""
    codes = {key: resolve_code(key) for key, *_ in DEFAULT_CHART}
    present = set(
        Account.objects.filter(code__in=codes.values(), is_active=True).values_list("code", flat=True)
    )
    return [key for key, code in codes.items() if code not in present]


def ensure_default_chart() -> list[Account]:
    """Create the default accounts if missing (idempotent)."""
    accounts = []
    with transaction.atomic():
        for key, name, account_type, is_parent in DEFAULT_CHART:
            account, created = Account.objects.get_or_create(
                code=resolve_code(key),
                defaults={"name": name, "account_type": account_type, "is_parent": is_parent},
            )
            if created:
                logger.info("Seeded account %s (%s)", account.code, key)
            accounts.append(account)
    return accounts


# ------------------------------------------------------------
# PUBLIC RESOLVERS
# ------------------------------------------------------------


def get_cash_account() -> Account:
    return get_account(CASH)


def get_mobile_money_account() -> Account:
    return get_account(MOBILE_MONEY)


def get_bank_account() -> Account:
    return get_account(BANK)


def get_accounts_receivable_account() -> Account:
    return get_account(AR)


def get_accounts_payable_account() -> Account:
    return get_account(AP)


def get_sales_account() -> Account:
    return get_account(SALES)


def get_purchases_account() -> Account:
    return get_account(PURCHASES)


def get_cash_short_over_account() -> Account:
    return get_account(CASH_SHORT_OVER)


def semantic_key_for_payment_method(payment_method: str) -> str:
    method = _norm(payment_method)
    if not method:
        raise AccountResolutionError("payment_method is required")

    if method in PAYMENT_METHOD_MAP:
        return PAYMENT_METHOD_MAP[method]

    for pattern, key in PAYMENT_METHOD_PATTERNS:
        if pattern in method:
            return key

    raise AccountResolutionError(
        f"No settlement account mapping for payment method '{payment_method}'"
    )


SETTLEMENT_KEYS = (CASH, BANK, MOBILE_MONEY)


def settlement_account_codes() -> set[str]:
    """CASH / BANK / MOBILE_MONEY codes plus LEDGER["SETTLEMENT_ACCOUNT_CODES"] (extra tills, bank accounts)."""
    extra = getattr(settings, "LEDGER", {}).get("SETTLEMENT_ACCOUNT_CODES") or ()
    return {resolve_code(key) for key in SETTLEMENT_KEYS} | {str(c).strip() for c in extra if str(c).strip()}


def get_settlement_account(
    payment_method: str | None = "cash",
    *,
    account_code: str | None = None,
) -> Account:
    """
    The asset account that actually receives (or pays out) the money.

    An explicit account_code wins; otherwise the payment method is mapped.
    Only money accounts qualify (settlement_account_codes); party sub-accounts never do.
    """
    if account_code:
        account = get_account_by_code(account_code)
    else:
        account = get_account(semantic_key_for_payment_method(payment_method or ""))

    if account.is_parent:
        raise AccountResolutionError(
            f"Account {account.code} is a parent account and cannot be a settlement account"
        )
    if account.account_type != Account.ASSET:
        raise AccountResolutionError(
            f"Settlement account {account.code} must be an asset account"
        )
    if account.parent_id is not None and account.parent.is_parent:
        raise AccountResolutionError(
            f"Account {account.code} is a party sub-account and cannot settle payments"
        )
    if account.code not in settlement_account_codes():
        raise AccountResolutionError(
            f"Account {account.code} is not a settlement account; "
            "add it to LEDGER['SETTLEMENT_ACCOUNT_CODES'] to accept payments into it"
        )
    return account


def party_account_code(party) -> AccountCode:
    parent_key = AP if getattr(party, "party_type", CUSTOMER) == SUPPLIER else AR
    return AccountCode(f"{resolve_code(parent_key)}-{party.pk}")


def get_party_account(party, *, create: bool = True) -> Account:
    """
    The party's own receivable (customer) or payable (supplier) sub-account.

    Created on first use under the AR/AP control account.
    """
    if party is None or party.pk is None:
        raise AccountResolutionError("A saved party is required")

    parent_key = AP if getattr(party, "party_type", CUSTOMER) == SUPPLIER else AR
    code = party_account_code(party)

    account = Account.objects.filter(code=code).first()
    if account is not None:
        return account
    if not create:
        raise AccountResolutionError(f"Party account {code} does not exist")

    parent = get_account(parent_key)
    if not parent.is_parent:
        raise AccountResolutionError(
            f"Account {parent.code} must be a parent (control) account to hold party sub-accounts"
        )

    try:
        with transaction.atomic():
            account = Account.objects.create(
                code=code,
                name=f"{parent.name} – {party.name}"[:150],
                account_type=parent.account_type,
                parent=parent,
            )
    except (IntegrityError, ValidationError):
        # Concurrent first use: the other writer won.
        existing = Account.objects.filter(code=code).first()
        if existing is None:
            raise
        return existing

    logger.info(
        "Created party sub-account",
        extra={"account_code": code, "party_id": str(party.pk), "parent": parent.code},
    )
    return account
