"""Card catalogue logic: lookup, creation and updates."""

from __future__ import annotations

import dataclasses
import uuid
from typing import Any

import structlog

from sharkband.auth.dependencies import business_id_for, ensure_card_access
from sharkband.ledger.clock import Clock
from sharkband.ledger.errors import CardNotFound, NotFoundError, PermissionDenied, ValidationError
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Card, Role, User

logger = structlog.get_logger()

_UPDATABLE_FIELDS = frozenset({"name", "description", "logo", "background_color", "is_active", "metadata"})


async def get_card(store: LedgerStore, card_id: str) -> Card:
    """Fetch a card or raise CardNotFound."""
    card = await store.get_card(card_id)
    if card is None:
        raise CardNotFound(card_id)
    return card


async def create_card(
    store: LedgerStore,
    clock: Clock,
    principal: User,
    name: str,
    description: str | None = None,
    logo: str | None = None,
    background_color: str | None = None,
    metadata: dict[str, Any] | None = None,
    business_id: str | None = None,
) -> Card:
    """
    Issue a new active card.

    Business users always issue for their own business. Admins may name
    any existing business and default to the demo business.

    Raises:
        PermissionDenied: Principal is a plain member.
        NotFoundError: Target business does not exist.
    """
    if principal.role not in (Role.ADMIN, Role.BUSINESS):
        raise PermissionDenied("Only admins and businesses can create cards")

    if principal.role == Role.ADMIN and business_id:
        target = business_id
    else:
        target = business_id_for(principal)
    if await store.get_business(target) is None:
        raise NotFoundError(f"Business {target} not found")

    now = clock()
    card = await store.add_card(Card(
        id=str(uuid.uuid4()),
        business_id=target,
        name=name,
        description=description,
        logo=logo,
        background_color=background_color,
        is_active=True,
        metadata=metadata,
        created_at=now,
        updated_at=now,
    ))
    logger.info("card_created", card_id=card.id, business_id=target, created_by=principal.id)
    return card


async def update_card(
    store: LedgerStore,
    clock: Clock,
    principal: User,
    card_id: str,
    changes: dict[str, Any],
) -> Card:
    """
    Apply a partial update. Deactivating a card only blocks new check-ins;
    its history and wallet entries stay.

    Raises:
        CardNotFound: Unknown card.
        PermissionDenied: Principal neither admin nor owning business.
        ValidationError: Unknown field in ``changes``.
    """
    unknown = set(changes) - _UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    for required in ("name", "is_active"):
        if required in changes and changes[required] is None:
            raise ValidationError(f"{required} cannot be null")

    card = await get_card(store, card_id)
    ensure_card_access(principal, card)

    updated = await store.update_card(dataclasses.replace(card, **changes, updated_at=clock()))
    logger.info("card_updated", card_id=card_id, fields=sorted(changes), updated_by=principal.id)
    return updated
