"""Check-in orchestration: validate, award, append, apply.

Each request moves through

    REQUESTED -> VALIDATED -> POINTS_COMPUTED -> APPENDED -> BALANCE_UPDATED -> COMPLETED

and may fail out of any of the first four states. Once APPENDED the event is
durable, so the balance update runs to completion even if the caller goes
away: it is retried (idempotently, keyed by event id) and, if it still fails,
left for ``reconcile()``. Events a user has pending that way are applied
under the same lock before that user's next check-in or balance read, so
a returned total always matches the replay of the log.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

import structlog

from sharkband.ledger.clock import Clock, MonotonicClock
from sharkband.ledger.errors import (
    BalanceApplyPending,
    CardInactive,
    CardNotFound,
    LedgerError,
    NotInWallet,
    PersistenceFailure,
    ValidationError,
)
from sharkband.ledger.locks import UserLockRegistry
from sharkband.ledger.points_policy import FixedPointsPolicy, PointsPolicy, award_points
from sharkband.ledger.store import LedgerStore
from sharkband.ledger.types import (
    Card,
    CheckInContext,
    CheckInEvent,
    CheckInResult,
    UserBalance,
)

logger = structlog.get_logger()

MAX_LOCATION_LENGTH = 256


class CheckInState(str, Enum):
    REQUESTED = "requested"
    VALIDATED = "validated"
    POINTS_COMPUTED = "points_computed"
    APPENDED = "appended"
    BALANCE_UPDATED = "balance_updated"
    COMPLETED = "completed"


def _new_event_id() -> str:
    return str(uuid.uuid4())


class CheckInOrchestrator:
    """Single entry point for recording check-ins and reading balances."""

    def __init__(
        self,
        store: LedgerStore,
        policy: PointsPolicy | None = None,
        clock: Clock | None = None,
        locks: UserLockRegistry | None = None,
        max_apply_attempts: int = 5,
        apply_backoff_seconds: float = 0.05,
        id_factory: Callable[[], str] = _new_event_id,
    ) -> None:
        if max_apply_attempts < 1:
            msg = "max_apply_attempts must be at least 1"
            raise ValueError(msg)
        self.store = store
        self.policy: PointsPolicy = policy or FixedPointsPolicy()
        self.clock: Clock = clock or MonotonicClock()
        self.locks = locks or UserLockRegistry()
        self.max_apply_attempts = max_apply_attempts
        self.apply_backoff_seconds = apply_backoff_seconds
        self._id_factory = id_factory

    async def record_check_in(
        self,
        user_id: str,
        card_id: str,
        location: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> CheckInResult:
        """Record a check-in and return the event with the new point total.

        Raises:
            ValidationError: malformed ids, location or metadata.
            CardNotFound: unknown card.
            CardInactive: card is deactivated.
            NotInWallet: the user never added the card.
            PointsPolicyError: the policy returned an invalid award.
            PersistenceFailure: the append failed; nothing was recorded.
            BalanceApplyPending: recorded, but the balance update is deferred.
        """
        _validate_request(user_id, card_id, location, metadata)
        log = logger.bind(user_id=user_id, card_id=card_id)
        state = CheckInState.REQUESTED

        try:
            async with self.locks.for_user(user_id):
                await self._settle_pending(user_id)
                card = await self._validate(user_id, card_id)
                state = CheckInState.VALIDATED

                timestamp = self.clock()
                context = CheckInContext(
                    user_id=user_id,
                    card_id=card_id,
                    business_id=card.business_id,
                    timestamp=timestamp,
                    location=location,
                    metadata=dict(metadata) if metadata is not None else None,
                )
                points = award_points(self.policy, context)
                state = CheckInState.POINTS_COMPUTED

                event = CheckInEvent(
                    id=self._id_factory(),
                    user_id=user_id,
                    card_id=card_id,
                    business_id=card.business_id,
                    points_earned=points,
                    timestamp=timestamp,
                    location=location,
                    metadata=context.metadata,
                )
                stored = await self.store.append(event)
                state = CheckInState.APPENDED

                balance = await self._complete(stored)
                state = CheckInState.BALANCE_UPDATED
        except LedgerError as exc:
            log.info("checkin_rejected", state=state.value, code=exc.code, error=exc.message)
            raise

        log.info(
            "checkin_recorded",
            state=CheckInState.COMPLETED.value,
            event_id=stored.id,
            sequence=stored.sequence,
            points_earned=stored.points_earned,
            total_points=balance.points,
        )
        return CheckInResult(event=stored, total_points=balance.points)

    async def get_balance(self, user_id: str) -> UserBalance:
        """Committed balance. Waits for any in-flight check-in of this user.

        Raises:
            BalanceApplyPending: an earlier event still cannot be applied.
        """
        async with self.locks.for_user(user_id):
            await self._settle_pending(user_id)
            return await self.store.get_balance(user_id)

    async def replay_balance(self, user_id: str) -> int:
        """Recompute a balance from the event log alone."""
        return await self.store.list_by_user(user_id).total_points()

    async def reconcile(self) -> int:
        """Apply every appended-but-unapplied event. Returns how many were applied."""
        pending = await self.store.list_unapplied()
        applied = 0
        for event in pending:
            async with self.locks.for_user(event.user_id):
                await self._apply_with_retry(event)
            applied += 1
            logger.info("reconcile_applied", event_id=event.id, user_id=event.user_id)
        if applied:
            logger.warning("reconcile_completed", applied=applied)
        return applied

    # ------------------------------------------------------------------

    async def _settle_pending(self, user_id: str) -> None:
        # Caller holds the user lock.
        for event in await self.store.list_unapplied(user_id):
            await self._apply_with_retry(event)
            logger.info("pending_event_applied", event_id=event.id, user_id=user_id)

    async def _validate(self, user_id: str, card_id: str) -> Card:
        card = await self.store.get_card(card_id)
        if card is None:
            raise CardNotFound(card_id)
        if not card.is_active:
            raise CardInactive(card_id)
        if await self.store.get_wallet_entry(user_id, card_id) is None:
            raise NotInWallet(user_id, card_id)
        return card

    async def _complete(self, event: CheckInEvent) -> UserBalance:
        """Run the balance update to completion, even if the caller is cancelled."""
        task = asyncio.ensure_future(self._apply_with_retry(event))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Keep holding the user lock until the durable event is applied.
            await asyncio.wait({task})
            raise

    async def _apply_with_retry(self, event: CheckInEvent) -> UserBalance:
        delay = self.apply_backoff_seconds
        for attempt in range(1, self.max_apply_attempts + 1):
            try:
                return await self.store.apply(event)
            except PersistenceFailure as exc:
                if attempt == self.max_apply_attempts:
                    logger.critical(
                        "balance_apply_exhausted",
                        event_id=event.id,
                        user_id=event.user_id,
                        attempts=attempt,
                        error=str(exc),
                    )
                    raise BalanceApplyPending(event.id, attempt) from exc
                logger.warning(
                    "balance_apply_retry",
                    event_id=event.id,
                    user_id=event.user_id,
                    attempt=attempt,
                    error=str(exc),
                )
                await asyncio.sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")


def _validate_request(
    user_id: str,
    card_id: str,
    location: str | None,
    metadata: Mapping[str, Any] | None,
) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user_id is required")
    if not isinstance(card_id, str) or not card_id.strip():
        raise ValidationError("card_id is required")
    if location is not None and (not isinstance(location, str) or len(location) > MAX_LOCATION_LENGTH):
        raise ValidationError(f"location must be a string of at most {MAX_LOCATION_LENGTH} characters")
    if metadata is not None and not isinstance(metadata, Mapping):
        raise ValidationError("metadata must be a mapping")
