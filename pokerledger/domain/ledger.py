from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol

from .errors import DomainValidationError, SessionNotFound


class SessionStatus(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    SETTLING = "settling"
    COMPLETED = "completed"


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    CASHED_OUT = "cashed_out"


class TransactionType(str, Enum):
    BUY_IN = "buy_in"
    CASH_OUT = "cash_out"


@dataclass(frozen=True)
class SessionInfo:
    id: str
    name: str
    status: SessionStatus
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class Player:
    """A seat in a session. Amounts are cents."""

    id: str
    name: str
    status: PlayerStatus = PlayerStatus.ACTIVE
    total_buy_ins: int = 0
    total_cash_outs: int = 0
    # net cents already received (minus paid) through earlier settlement payments
    prior_settlement: int = 0

    @property
    def current_balance(self) -> int:
        return self.total_buy_ins - self.total_cash_outs

    @property
    def is_active(self) -> bool:
        return self.status == PlayerStatus.ACTIVE


@dataclass(frozen=True)
class Transaction:
    id: str
    player_id: str
    type: TransactionType
    amount: int
    timestamp: datetime
    voided: bool = False
    void_reason: str | None = None
    voided_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise DomainValidationError("transaction amount must be positive")

    def void(self, reason: str, at: datetime | None = None) -> "Transaction":
        if self.voided:
            raise DomainValidationError(f"transaction {self.id} is already voided")
        return replace(
            self,
            voided=True,
            void_reason=reason,
            voided_at=at or datetime.now(timezone.utc),
        )


@dataclass(frozen=True)
class NetPosition:
    player_id: str
    balance: int


@dataclass(frozen=True)
class BankBalance:
    total_buy_ins: int
    total_cash_outs: int

    @property
    def available(self) -> int:
        return self.total_buy_ins - self.total_cash_outs


class LedgerView(Protocol):
    """Read-only access to a session's ledger."""

    def get_session(self, session_id: str) -> SessionInfo | None: ...

    def get_players(self, session_id: str) -> list[Player]: ...

    def get_non_voided_transactions(self, session_id: str) -> list[Transaction]: ...


@dataclass(frozen=True)
class LedgerSnapshot:
    session: SessionInfo
    players: tuple[Player, ...] = field(default_factory=tuple)
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ids = [player.id for player in self.players]
        if len(set(ids)) != len(ids):
            raise DomainValidationError("players in a snapshot must be unique")
        object.__setattr__(
            self,
            "transactions",
            tuple(transaction for transaction in self.transactions if not transaction.voided),
        )

    @classmethod
    def load(cls, view: LedgerView, session_id: str) -> "LedgerSnapshot":
        session = view.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"session {session_id} not found")
        return cls(
            session=session,
            players=tuple(view.get_players(session_id)),
            transactions=tuple(view.get_non_voided_transactions(session_id)),
        )

    def find_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None


def bank_balance(transactions: Iterable[Transaction]) -> BankBalance:
    buy_ins = 0
    cash_outs = 0
    for transaction in transactions:
        if transaction.voided:
            continue
        if transaction.type == TransactionType.BUY_IN:
            buy_ins += transaction.amount
        else:
            cash_outs += transaction.amount
    return BankBalance(total_buy_ins=buy_ins, total_cash_outs=cash_outs)


def net_positions(players: Iterable[Player]) -> list[NetPosition]:
    """Positive balance: the player is owed money. Negative: the player owes money."""
    positions = [
        NetPosition(
            player_id=player.id,
            balance=player.total_cash_outs - player.total_buy_ins - player.prior_settlement,
        )
        for player in players
    ]
    return sorted(positions, key=lambda position: position.player_id)


def balances_by_player(players: Iterable[Player]) -> dict[str, int]:
    return {position.player_id: position.balance for position in net_positions(players)}
