# credit/services/party_service.py

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction

from accounting.services.account_resolver import get_party_account
from accounting.types import PartyId
from credit.models.credit_profile import CreditProfile
from credit.models.party import Party
from credit.services.exceptions import CreditPolicyError, PartyNotFoundError

logger = logging.getLogger(__name__)


def get_party(party_id: PartyId) -> Party:
    if isinstance(party_id, Party):
        return party_id
    try:
        return Party.objects.get(pk=party_id)
    except (Party.DoesNotExist, ValidationError, ValueError) as exc:
        raise PartyNotFoundError(f"Party {party_id} not found") from exc


@transaction.atomic
def create_party(
    *,
    name: str,
    party_type: str = Party.CUSTOMER,
    phone: str = "",
    external_ref: str = "",
) -> Party:
    """
    Register a customer/supplier with the engine.

    Also opens its ledger sub-account and an (unapproved) credit profile,
    so a party always has both from the start.
    """
    if party_type not in (Party.CUSTOMER, Party.SUPPLIER):
        raise CreditPolicyError(f"Invalid party_type {party_type!r}")

    try:
        party = Party.objects.create(
            name=name,
            party_type=party_type,
            phone=phone or "",
            external_ref=external_ref or "",
        )
    except ValidationError as exc:
        raise CreditPolicyError("; ".join(exc.messages)) from exc

    get_party_account(party)
    CreditProfile.objects.create(party=party)

    logger.info(
        "Party created",
        extra={"party_id": str(party.pk), "party_type": party.party_type},
    )
    return party
