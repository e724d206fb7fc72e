"""Card catalogue endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sharkband.auth.dependencies import get_current_user, require_staff
from sharkband.cards.schemas import CardResponse, CreateCardRequest, UpdateCardRequest
from sharkband.cards.service import create_card, get_card, update_card
from sharkband.dependencies import get_clock, get_store
from sharkband.ledger.clock import Clock
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import User

router = APIRouter(prefix="/api/v1/cards", tags=["Cards"])


@router.get("", response_model=list[CardResponse])
async def list_cards(
    _user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """All active cards."""
    return [CardResponse.from_card(c) for c in await store.list_cards(active_only=True)]


@router.get("/{card_id}", response_model=CardResponse)
async def get_card_detail(
    card_id: str,
    _user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Single card, active or not."""
    return CardResponse.from_card(await get_card(store, card_id))


@router.post("", response_model=CardResponse, status_code=201)
async def create(
    body: CreateCardRequest,
    user: User = Depends(require_staff),
    store: LedgerStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Create a card (admin/business)."""
    card = await create_card(
        store,
        clock,
        user,
        name=body.name,
        description=body.description,
        logo=body.logo,
        background_color=body.background_color,
        metadata=body.metadata,
        business_id=body.business_id,
    )
    return CardResponse.from_card(card)


@router.put("/{card_id}", response_model=CardResponse)
async def update(
    card_id: str,
    body: UpdateCardRequest,
    user: User = Depends(require_staff),
    store: LedgerStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Update a card, including activation (admin/owning business)."""
    card = await update_card(store, clock, user, card_id, body.model_dump(exclude_unset=True))
    return CardResponse.from_card(card)
