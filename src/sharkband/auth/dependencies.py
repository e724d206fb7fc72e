"""FastAPI authentication dependencies.

The gateway in front of the service authenticates callers and forwards the
user id in ``X-User-Id``. This module only resolves that id to a user and
enforces roles.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, Header, HTTPException

from sharkband.dependencies import get_store
from sharkband.ledger.errors import PermissionDenied
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import Card, Role, User

DEFAULT_BUSINESS_ID = "business-1"


async def get_current_user(
    x_user_id: str | None = Header(default=None),
    store: LedgerStore = Depends(get_store),
) -> User:
    """Resolve the gateway-supplied principal. Raises 401 when missing or unknown."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = await store.get_user(x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(*roles: Role) -> Callable[..., Awaitable[User]]:
    """Build a dependency that admits only the given roles."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDenied(f"Requires role: {', '.join(r.value for r in roles)}")
        return user

    return dependency


require_staff = require_role(Role.ADMIN, Role.BUSINESS)


def business_id_for(user: User) -> str:
    """Business a principal acts for. Business users own ``business-<user id>``."""
    if user.role == Role.BUSINESS:
        return f"business-{user.id}"
    return DEFAULT_BUSINESS_ID


def ensure_card_access(user: User, card: Card) -> None:
    """Admins manage every card; business users only their own."""
    if user.role == Role.ADMIN:
        return
    if user.role == Role.BUSINESS and card.business_id == business_id_for(user):
        return
    raise PermissionDenied("You can only manage your own cards")
