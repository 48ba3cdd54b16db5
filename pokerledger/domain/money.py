"""Conversion between display decimals and the integer cents used by the engine."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_EVEN, Decimal

from .errors import DomainValidationError, UnbalancedLedger

CENT = Decimal("0.01")


def to_cents(amount: Decimal | int | str) -> int:
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if not value.is_finite():
        raise DomainValidationError(f"amount must be a finite number: {amount}")
    return int((value * 100).to_integral_value(rounding=ROUND_HALF_EVEN))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal(100)).quantize(CENT)


def normalize_balances(balances: Mapping[str, Decimal]) -> tuple[dict[str, int], int]:
    """Convert decimal balances to cents that sum to exactly zero.

    The exact decimal sum must be within one cent of zero. Rounding each
    balance to cents can still leave an integer residual; it is absorbed by
    the participant with the largest original balance (the largest creditor,
    smaller id on ties). Returns the cent balances and the absorbed amount.
    """
    exact_total = sum((Decimal(str(value)) for value in balances.values()), Decimal(0))
    if abs(exact_total) >= CENT:
        raise UnbalancedLedger(
            f"balances sum to {exact_total}, expected 0.00",
            discrepancy=to_cents(exact_total),
        )

    cents = {player_id: to_cents(value) for player_id, value in balances.items()}
    residual = sum(cents.values())
    if residual:
        absorber, _ = min(
            balances.items(),
            key=lambda item: (-Decimal(str(item[1])), item[0]),
        )
        cents[absorber] -= residual
    return cents, -residual
