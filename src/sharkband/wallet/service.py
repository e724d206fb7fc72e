"""Wallet membership logic."""

from __future__ import annotations

import structlog

from sharkband.cards.service import get_card
from sharkband.ledger.clock import Clock
from sharkband.ledger.errors import CardInactive, WalletEntryNotFound
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Card, WalletEntry

logger = structlog.get_logger()


async def add_to_wallet(store: LedgerStore, clock: Clock, user_id: str, card_id: str) -> tuple[WalletEntry, Card]:
    """
    Add an active card to a user's wallet.

    A card removed and added again keeps its check-in history, so
    ``last_check_in`` is seeded from the newest event for the pair.

    Raises:
        CardNotFound: Unknown card.
        CardInactive: Card is deactivated.
        AlreadyInWallet: Card is already in the wallet.
    """
    card = await get_card(store, card_id)
    if not card.is_active:
        raise CardInactive(card_id)

    entry = await store.add_wallet_entry(WalletEntry(
        user_id=user_id,
        card_id=card_id,
        added_at=clock(),
        last_check_in=await store.last_event_timestamp(user_id, card_id),
    ))
    logger.info("wallet_card_added", user_id=user_id, card_id=card_id)
    return entry, card


async def remove_from_wallet(store: LedgerStore, user_id: str, card_id: str) -> None:
    """
    Remove a card from a user's wallet. Past check-ins stay in the log.

    Raises:
        WalletEntryNotFound: Card was not in the wallet.
    """
    if not await store.remove_wallet_entry(user_id, card_id):
        raise WalletEntryNotFound(user_id, card_id)
    logger.info("wallet_card_removed", user_id=user_id, card_id=card_id)


async def list_wallet(store: LedgerStore, user_id: str) -> list[tuple[WalletEntry, Card | None]]:
    """Wallet entries paired with their current card record."""
    entries = await store.list_wallet(user_id)
    return [(entry, await store.get_card(entry.card_id)) for entry in entries]
