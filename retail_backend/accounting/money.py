# accounting/money.py

"""
MONEY CONVERSION (BOUNDARY ONLY)

Amounts arrive from the API as decimals in major units ("1250.50") and are
converted ONCE into integer minor units (125050). Everything below the
serializer layer is integer arithmetic.

Rules:
- Half-up rounding at the currency exponent (same rule the ledger always used)
- bool is never money
- float input goes through str() so 0.1 stays 0.1
- |minor units| <= 2**63 - 1 (BigIntegerField)
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings

from accounting.types import MinorUnits


# Largest amount a BigIntegerField column can hold.
MAX_MINOR_UNITS = 2**63 - 1


class MoneyConversionError(ValueError):
    """Raised when a value cannot be interpreted as money."""


def ledger_currency() -> str:
    return settings.LEDGER["CURRENCY"]


def currency_exponent() -> int:
    return int(settings.LEDGER["CURRENCY_EXPONENT"])


def _quantum() -> Decimal:
    return Decimal(1).scaleb(-currency_exponent())


def to_minor_units(value) -> MinorUnits:
    """
    Convert a major-unit amount (Decimal / str / int / float) to minor units.

    to_minor_units("12.345") -> 1235 (KES, exponent 2)
    """
    if value is None or value == "":
        raise MoneyConversionError("Amount is required")
    if isinstance(value, bool):
        raise MoneyConversionError(f"Invalid money value: {value!r}")

    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise MoneyConversionError(f"Invalid money value: {value!r}") from exc

    if not amount.is_finite():
        raise MoneyConversionError(f"Invalid money value: {value!r}")

    try:
        quantized = amount.quantize(_quantum(), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise MoneyConversionError(f"Amount out of range: {value!r}") from exc

    minor = int(quantized.scaleb(currency_exponent()))
    if abs(minor) > MAX_MINOR_UNITS:
        raise MoneyConversionError(f"Amount out of range: {value!r}")
    return MinorUnits(minor)


def to_major_units(minor: int) -> Decimal:
    """1235 -> Decimal("12.35")"""
    if isinstance(minor, bool) or not isinstance(minor, int):
        raise MoneyConversionError(f"Minor units must be an integer, got {minor!r}")
    return Decimal(minor).scaleb(-currency_exponent()).quantize(_quantum())


def format_money(minor: int) -> str:
    return f"{ledger_currency()} {to_major_units(minor):,}"
