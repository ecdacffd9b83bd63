# cashier/models/__init__.py

"""
CASHIER MODELS PACKAGE EXPORTS

Keep this file imports-only.
"""

from cashier.models.cash_count import CashCount
from cashier.models.cashier_session import CashierSession
from cashier.models.mobile_money_verification import MobileMoneyVerification
from cashier.models.reconciliation import Reconciliation, ReconciliationLine

__all__ = [
    "CashierSession",
    "CashCount",
    "MobileMoneyVerification",
    "Reconciliation",
    "ReconciliationLine",
]
