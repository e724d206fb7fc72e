"""User endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from sharkband.auth.dependencies import get_current_user
from sharkband.dependencies import get_clock, get_orchestrator, get_store
from sharkband.ledger.clock import Clock
from sharkband.ledger.orchestrator import CheckInOrchestrator
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import User
from sharkband.users.schemas import RegisterRequest, UserResponse
from sharkband.users.service import register_user

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=201)
async def register(
    body: RegisterRequest,
    store: LedgerStore = Depends(get_store),
    clock: Clock = Depends(get_clock),
):
    """Register a member, admin or business account."""
    user = await register_user(store, clock, body.email, body.name, body.role)
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        points=0,
        created_at=user.created_at,
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: User = Depends(get_current_user),
    orchestrator: CheckInOrchestrator = Depends(get_orchestrator),
):
    """Current user's profile with committed point balance."""
    balance = await orchestrator.get_balance(user.id)
    return UserResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        points=balance.points,
        created_at=user.created_at,
    )
