from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import SettlementValidation


class LedgerError(ValueError):
    """Base class for every error raised by the ledger and settlement engine."""

    code = "ledger_error"


class DomainValidationError(LedgerError):
    """Raised when a ledger rule is violated."""

    code = "validation_error"


class SessionNotFound(LedgerError):
    code = "session_not_found"


class PlayerNotFound(LedgerError):
    code = "player_not_found"


class TransactionNotFound(LedgerError):
    code = "transaction_not_found"


class InvalidPlayerState(LedgerError):
    code = "invalid_player_state"


class SessionNotActive(LedgerError):
    code = "session_not_active"


class UnbalancedLedger(LedgerError):
    code = "unbalanced_ledger"

    def __init__(self, message: str, discrepancy: int) -> None:
        super().__init__(message)
        self.discrepancy = discrepancy


class SettlementRejected(LedgerError):
    """Raised when a computed settlement fails validation and must not be finalized."""

    code = "settlement_rejected"

    def __init__(self, message: str, validation: SettlementValidation) -> None:
        super().__init__(message)
        self.validation = validation
