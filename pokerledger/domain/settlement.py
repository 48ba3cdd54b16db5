"""Settlement optimization: turning net balances into peer-to-peer payments."""

from __future__ import annotations

import heapq
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from types import MappingProxyType

from .errors import DomainValidationError, UnbalancedLedger
from .money import normalize_balances


@dataclass(frozen=True)
class Payment:
    from_player_id: str
    to_player_id: str
    amount: int


@dataclass(frozen=True)
class OptimizedSettlement:
    session_id: str
    payments: tuple[Payment, ...]
    balances: Mapping[str, int]
    total_amount_moved: int
    computed_at: datetime
    rounding_adjustment: int = 0
    direct_payment_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "balances", MappingProxyType(dict(self.balances)))

    @property
    def is_empty(self) -> bool:
        return not self.payments

    @property
    def reduction_percentage(self) -> float:
        if not self.direct_payment_count:
            return 0.0
        return (self.direct_payment_count - len(self.payments)) / self.direct_payment_count * 100


def build_payments(balances: Mapping[str, int]) -> list[Payment]:
    """Greedy debt netting: largest remaining debtor pays largest remaining creditor.

    Ties on magnitude consume the lexicographically smaller player id first.
    Each round settles at least one party, so ``n`` parties yield at most
    ``n - 1`` payments.
    """
    creditors = [(-amount, player_id) for player_id, amount in balances.items() if amount > 0]
    debtors = [(amount, player_id) for player_id, amount in balances.items() if amount < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    payments: list[Payment] = []
    while creditors and debtors:
        neg_credit, creditor_id = heapq.heappop(creditors)
        neg_debt, debtor_id = heapq.heappop(debtors)
        credit, debt = -neg_credit, -neg_debt

        amount = min(credit, debt)
        payments.append(Payment(from_player_id=debtor_id, to_player_id=creditor_id, amount=amount))

        if credit > amount:
            heapq.heappush(creditors, (-(credit - amount), creditor_id))
        if debt > amount:
            heapq.heappush(debtors, (-(debt - amount), debtor_id))

    if creditors or debtors:
        remaining = -sum(key for key, _ in creditors) + sum(key for key, _ in debtors)
        raise UnbalancedLedger("balances left unsettled after netting", discrepancy=remaining)
    return payments


def build_hub_payments(balances: Mapping[str, int]) -> list[Payment]:
    """Unoptimized reference plan routed through the largest creditor."""
    creditors = sorted(
        ((player_id, amount) for player_id, amount in balances.items() if amount > 0),
        key=lambda item: (-item[1], item[0]),
    )
    debtors = sorted(
        ((player_id, -amount) for player_id, amount in balances.items() if amount < 0),
        key=lambda item: (-item[1], item[0]),
    )
    if not creditors or not debtors:
        return []

    hub_id = creditors[0][0]
    payments = [Payment(from_player_id=debtor_id, to_player_id=hub_id, amount=debt) for debtor_id, debt in debtors]
    payments.extend(
        Payment(from_player_id=hub_id, to_player_id=creditor_id, amount=credit)
        for creditor_id, credit in creditors[1:]
    )
    return payments


def check_balances(balances: Mapping[str, int]) -> None:
    for player_id, amount in balances.items():
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise DomainValidationError(f"balance for {player_id} must be integer cents, got {amount!r}")

    total = sum(balances.values())
    if total != 0:
        raise UnbalancedLedger(f"balances sum to {total} cents, expected 0", discrepancy=total)


def optimize_settlement(
    session_id: str,
    balances: Mapping[str, int],
    *,
    computed_at: datetime | None = None,
    rounding_adjustment: int = 0,
) -> OptimizedSettlement:
    check_balances(balances)
    payments = build_payments(balances)
    return OptimizedSettlement(
        session_id=session_id,
        payments=tuple(payments),
        balances=balances,
        total_amount_moved=total_moved(payments),
        computed_at=computed_at or datetime.now(timezone.utc),
        rounding_adjustment=rounding_adjustment,
        direct_payment_count=len(build_hub_payments(balances)),
    )


def total_moved(payments: Sequence[Payment]) -> int:
    return sum(payment.amount for payment in payments)


def optimize_decimal_settlement(
    session_id: str,
    balances: Mapping[str, Decimal],
    *,
    computed_at: datetime | None = None,
) -> OptimizedSettlement:
    """Settle balances given in currency units; residual cents go to the largest creditor."""
    cents, adjustment = normalize_balances(balances)
    return optimize_settlement(session_id, cents, computed_at=computed_at, rounding_adjustment=adjustment)
