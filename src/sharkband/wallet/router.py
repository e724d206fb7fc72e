"""Wallet endpoints for the authenticated member."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sharkband.auth.dependencies import get_current_user
from sharkband.cards.schemas import CardResponse
from sharkband.dependencies import get_clock, get_store
from sharkband.ledger.clock import Clock
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Card, User, WalletEntry
from sharkband.wallet.schemas import WalletEntryResponse, WalletRemovedResponse
from sharkband.wallet.service import add_to_wallet, list_wallet, remove_from_wallet

router = APIRouter(prefix="/api/v1/wallet", tags=["Wallet"])


def _entry_response(entry: WalletEntry, card: Card | None) -> WalletEntryResponse:
    return WalletEntryResponse(
        user_id=entry.user_id,
        card_id=entry.card_id,
        added_at=entry.added_at,
        last_check_in=entry.last_check_in,
        card=CardResponse.from_card(card) if card else None,
    )


@router.get("", response_model=list[WalletEntryResponse])
async def get_wallet(
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Current user's wallet with card details."""
    return [_entry_response(entry, card) for entry, card in await list_wallet(store, user.id)]


@router.post("/{card_id}", response_model=WalletEntryResponse, status_code=201)
async def add_card(
    card_id: str,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Add a card to the current user's wallet."""
    entry, card = await add_to_wallet(store, clock, user.id, card_id)
    return _entry_response(entry, card)


@router.delete("/{card_id}", response_model=WalletRemovedResponse)
async def remove_card(
    card_id: str,
    user: User = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    """Remove a card from the current user's wallet."""
    await remove_from_wallet(store, user.id, card_id)
    return WalletRemovedResponse(message="Card removed from wallet", card_id=card_id)
