"""User check-in history with card details resolved at read time."""

from __future__ import annotations

from sharkband.ledger.errors import ValidationError
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Card, HistoryItem, HistoryPage


async def get_user_history(
    store: LedgerStore,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
    max_limit: int = 200,
) -> HistoryPage:
    """Fetch a newest-first page of a user's check-ins.

    Card name and logo come from the card as it is now, not as it was when
    the check-in happened; events never store them.

    Args:
        store: Ledger store.
        user_id: Whose history to read.
        limit: Page size (1..max_limit).
        offset: Number of newest events to skip.
        max_limit: Upper bound for ``limit``.

    Raises:
        ValidationError: If limit or offset is out of range.
    """
    if limit < 1 or limit > max_limit:
        raise ValidationError(f"limit must be between 1 and {max_limit}")
    if offset < 0:
        raise ValidationError("offset must be >= 0")

    total = await store.count_by_user(user_id)
    events = await store.page_by_user(user_id, limit, offset)

    cards: dict[str, Card | None] = {}
    for card_id in {e.card_id for e in events}:
        cards[card_id] = await store.get_card(card_id)

    items = []
    for event in events:
        card = cards.get(event.card_id)
        items.append(HistoryItem(
            event=event,
            card_name=card.name if card else None,
            card_logo=card.logo if card else None,
        ))

    return HistoryPage(items=items, total=total, limit=limit, offset=offset)
