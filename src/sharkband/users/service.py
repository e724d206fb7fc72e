"""User registration logic."""

from __future__ import annotations

import uuid

import structlog

from sharkband.auth.dependencies import business_id_for
from sharkband.ledger.clock import Clock
from sharkband.ledger.errors import DuplicateEmail
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Business, Role, User

logger = structlog.get_logger()


async def register_user(
    store: LedgerStore,
    clock: Clock,
    email: str,
    name: str,
    role: Role = Role.USER,
) -> User:
    """
    Create a user record.

    Business users also get their business record, so cards they create
    have an owner from the start.

    Raises:
        DuplicateEmail: If the email is already registered (case-insensitive).
    """
    if await store.get_user_by_email(email) is not None:
        msg = f"Email {email} is already registered"
        raise DuplicateEmail(msg)

    now = clock()
    user = await store.add_user(User(
        id=str(uuid.uuid4()),
        email=email,
        name=name,
        role=role,
        created_at=now,
    ))

    if role == Role.BUSINESS:
        await store.add_business(Business(
            id=business_id_for(user),
            name=name,
            email=email,
            owner_id=user.id,
            created_at=now,
        ))

    logger.info("user_registered", user_id=user.id, role=role.value)
    return user
