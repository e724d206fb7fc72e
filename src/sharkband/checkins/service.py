"""Staff-facing check-in queries."""

from __future__ import annotations

from sharkband.auth.dependencies import ensure_card_access
from sharkband.cards.service import get_card
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import CheckInEvent, User


async def list_card_check_ins(
    store: LedgerStore,
    principal: User,
    card_id: str,
) -> list[tuple[CheckInEvent, User | None]]:
    """
    All check-ins on a card, newest first, paired with the user who made them.

    Raises:
        CardNotFound: Unknown card.
        PermissionDenied: Principal neither admin nor owning business.
    """
    card = await get_card(store, card_id)
    ensure_card_access(principal, card)

    events = await store.list_by_card(card_id).to_list()
    events.reverse()

    users: dict[str, User | None] = {}
    for user_id in {e.user_id for e in events}:
        users[user_id] = await store.get_user(user_id)
    return [(event, users.get(event.user_id)) for event in events]
