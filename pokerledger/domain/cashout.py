"""Early cash-out projection for a player leaving an active session."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .errors import InvalidPlayerState, SessionNotActive
from .ledger import LedgerSnapshot, SessionStatus, bank_balance


class CashOutType(str, Enum):
    PAYMENT_TO_PLAYER = "payment_to_player"
    PAYMENT_FROM_PLAYER = "payment_from_player"
    EVEN = "even"


@dataclass(frozen=True)
class EarlyCashOutRequest:
    session_id: str
    player_id: str
    requested_at: datetime | None = None


@dataclass(frozen=True)
class EarlyCashOutResult:
    player_id: str
    cash_out_amount: int
    remaining_pot_share: int
    shortfall: int
    settlement_type: CashOutType
    pot_before: int
    computed_at: datetime

    @property
    def is_capped(self) -> bool:
        return self.shortfall > 0


def calculate_early_cash_out(request: EarlyCashOutRequest, snapshot: LedgerSnapshot) -> EarlyCashOutResult:
    """Project what a player would take home if they left the table now.

    The player receives their full current balance when the collectible pot
    covers it. Otherwise they get a pro-rata share of the pot, weighted
    against the positive balances of the other active players, and the
    uncovered remainder is reported as ``shortfall``.
    """
    if snapshot.session.status != SessionStatus.ACTIVE:
        raise SessionNotActive(
            f"session {snapshot.session.id} is {snapshot.session.status.value}, expected active"
        )

    player = snapshot.find_player(request.player_id)
    if player is None:
        raise InvalidPlayerState(f"player {request.player_id} not found in session {snapshot.session.id}")
    if not player.is_active:
        raise InvalidPlayerState(f"player {request.player_id} is {player.status.value}, expected active")

    pot = max(0, bank_balance(snapshot.transactions).available)
    amount = player.current_balance
    shortfall = 0

    if amount < 0:
        settlement_type = CashOutType.PAYMENT_FROM_PLAYER
        cash_out_amount = amount
    elif amount == 0:
        settlement_type = CashOutType.EVEN
        cash_out_amount = 0
    else:
        settlement_type = CashOutType.PAYMENT_TO_PLAYER
        cash_out_amount = amount if amount <= pot else _pro_rata_share(amount, pot, snapshot, player.id)
        shortfall = amount - cash_out_amount

    return EarlyCashOutResult(
        player_id=player.id,
        cash_out_amount=cash_out_amount,
        remaining_pot_share=pot - cash_out_amount,
        shortfall=shortfall,
        settlement_type=settlement_type,
        pot_before=pot,
        computed_at=request.requested_at or datetime.now(timezone.utc),
    )


def _pro_rata_share(amount: int, pot: int, snapshot: LedgerSnapshot, player_id: str) -> int:
    other_claims = sum(
        other.current_balance
        for other in snapshot.players
        if other.id != player_id and other.is_active and other.current_balance > 0
    )
    share = pot * amount // (amount + other_claims)
    return min(share, pot)
