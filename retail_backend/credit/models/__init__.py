# credit/models/__init__.py

"""
CREDIT MODELS PACKAGE EXPORTS

Keep this file imports-only.
"""

from credit.models.credit_profile import CreditProfile
from credit.models.party import Party

__all__ = [
    "Party",
    "CreditProfile",
]
