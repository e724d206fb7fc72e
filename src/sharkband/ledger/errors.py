"""Ledger error taxonomy.

Every error carries a stable ``code`` so the HTTP layer can map it without
string matching. ``status_code`` is the suggested HTTP status.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code = "ledger_error"
    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or self.__class__.__doc__ or self.code


# --- Caller input ---


class ValidationError(LedgerError):
    """Malformed input."""

    code = "validation_error"
    status_code = 400


# --- Missing records ---


class NotFoundError(LedgerError):
    """Requested record does not exist."""

    code = "not_found"
    status_code = 404


class CardNotFound(NotFoundError):
    """Card not found."""

    code = "card_not_found"

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id


class UserNotFound(NotFoundError):
    """User not found."""

    code = "user_not_found"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class WalletEntryNotFound(NotFoundError):
    """Card not in wallet."""

    code = "wallet_entry_not_found"

    def __init__(self, user_id: str, card_id: str) -> None:
        super().__init__(f"Card {card_id} is not in the wallet of user {user_id}")
        self.user_id = user_id
        self.card_id = card_id


# --- Business rule conflicts ---


class ConflictError(LedgerError):
    """Request conflicts with current state."""

    code = "conflict"
    status_code = 409


class CardInactive(ConflictError):
    """Card is not active."""

    code = "card_inactive"

    def __init__(self, card_id: str) -> None:
        super().__init__(f"Card {card_id} is not active")
        self.card_id = card_id


class NotInWallet(ConflictError):
    """Card not in your wallet. Please add it first."""

    code = "not_in_wallet"

    def __init__(self, user_id: str, card_id: str) -> None:
        super().__init__(f"Card {card_id} is not in the wallet of user {user_id}. Please add it first.")
        self.user_id = user_id
        self.card_id = card_id


class AlreadyInWallet(ConflictError):
    """Card already in wallet."""

    code = "already_in_wallet"

    def __init__(self, user_id: str, card_id: str) -> None:
        super().__init__(f"Card {card_id} is already in the wallet of user {user_id}")
        self.user_id = user_id
        self.card_id = card_id


class DuplicateEmail(ConflictError):
    """Email already registered."""

    code = "duplicate_email"


# --- Authorization ---


class PermissionDenied(LedgerError):
    """Principal is not allowed to perform this operation."""

    code = "permission_denied"
    status_code = 403


# --- Storage ---


class PersistenceFailure(LedgerError):
    """Storage fault."""

    code = "persistence_failure"
    status_code = 503


class BalanceApplyPending(PersistenceFailure):
    """Check-in recorded but the balance update is still pending."""

    code = "balance_apply_pending"

    def __init__(self, event_id: str, attempts: int) -> None:
        super().__init__(
            f"Check-in {event_id} was recorded but its balance update failed after "
            f"{attempts} attempts; it will be applied by reconciliation"
        )
        self.event_id = event_id
        self.attempts = attempts


# --- Configuration / programming ---


class PointsPolicyError(LedgerError):
    """Points policy produced an invalid award."""

    code = "points_policy_error"
    status_code = 500
