# accounting/types.py

"""
DOMAIN IDENTIFIER TYPES

Identifiers travel through services as distinct types so an invoice id can't
be passed where a party id is expected. Money is always an integer count of
minor units of settings.LEDGER["CURRENCY"].
"""

from __future__ import annotations

from typing import NewType
from uuid import UUID

AccountCode = NewType("AccountCode", str)
PartyId = NewType("PartyId", UUID)
InvoiceId = NewType("InvoiceId", UUID)
SessionId = NewType("SessionId", UUID)
MinorUnits = NewType("MinorUnits", int)
