"""Demo seed data: the demo business, its admin and three cards."""

from __future__ import annotations

import logging

from sharkband.ledger.clock import Clock
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Business, Card, Role, User

logger = logging.getLogger(__name__)

DEMO_ADMIN_ID = "admin-1"
DEMO_BUSINESS_ID = "business-1"

DEMO_CARDS: list[dict] = [
    {
        "id": "card-1",
        "name": "Coffee Loyalty Card",
        "description": "Buy 10 coffees, get 1 free!",
        "logo": "☕",
        "background_color": "#6F4E37",
    },
    {
        "id": "card-2",
        "name": "Gym Membership",
        "description": "Track your gym visits and earn rewards",
        "logo": "💪",
        "background_color": "#FF6B6B",
    },
    {
        "id": "card-3",
        "name": "VIP Access Pass",
        "description": "Exclusive access to premium events",
        "logo": "⭐",
        "background_color": "#4ECDC4",
    },
]


async def seed_demo_data(store: LedgerStore, clock: Clock) -> int:
    """Insert missing demo records. Returns how many records were created."""
    now = clock()
    seeded = 0

    if await store.get_user(DEMO_ADMIN_ID) is None:
        await store.add_user(User(
            id=DEMO_ADMIN_ID,
            email="admin@sharkband.com",
            name="SharkBand Admin",
            role=Role.ADMIN,
            created_at=now,
        ))
        seeded += 1

    if await store.get_business(DEMO_BUSINESS_ID) is None:
        await store.add_business(Business(
            id=DEMO_BUSINESS_ID,
            name="SharkBand Demo Business",
            email="demo@sharkband.com",
            owner_id=DEMO_ADMIN_ID,
            logo="https://via.placeholder.com/150",
            created_at=now,
        ))
        seeded += 1

    for data in DEMO_CARDS:
        if await store.get_card(data["id"]) is not None:
            continue
        await store.add_card(Card(
            business_id=DEMO_BUSINESS_ID,
            is_active=True,
            created_at=now,
            updated_at=now,
            **data,
        ))
        seeded += 1

    logger.info("Seeded %d demo records", seeded)
    return seeded
