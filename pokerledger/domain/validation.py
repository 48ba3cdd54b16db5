"""Soundness checks run on every settlement before it is surfaced."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .settlement import OptimizedSettlement, Payment, total_moved

CHECK_CONSERVATION = "conservation"
CHECK_WELL_FORMED = "well_formed"
CHECK_TOTAL_AMOUNT = "total_amount"


@dataclass(frozen=True)
class ValidationCheck:
    name: str
    passed: bool
    detail: str


@dataclass(frozen=True)
class SettlementValidation:
    is_valid: bool
    checks: tuple[ValidationCheck, ...]
    balance_discrepancy: int

    @property
    def failed_checks(self) -> tuple[ValidationCheck, ...]:
        return tuple(check for check in self.checks if not check.passed)

    def check(self, name: str) -> ValidationCheck:
        for item in self.checks:
            if item.name == name:
                return item
        raise KeyError(name)


def validate_settlement(settlement: OptimizedSettlement) -> SettlementValidation:
    conservation, discrepancy = _check_conservation(settlement)
    checks = (
        conservation,
        _check_well_formed(settlement),
        _check_total_amount(settlement),
    )
    return SettlementValidation(
        is_valid=all(check.passed for check in checks),
        checks=checks,
        balance_discrepancy=discrepancy,
    )


def replay_residuals(balances: Mapping[str, int], payments: Iterable[Payment]) -> dict[str, int]:
    """Apply payments to balances; a sound plan leaves every residual at zero."""
    residuals = dict(balances)
    for payment in payments:
        residuals[payment.from_player_id] = residuals.get(payment.from_player_id, 0) + payment.amount
        residuals[payment.to_player_id] = residuals.get(payment.to_player_id, 0) - payment.amount
    return residuals


def _check_conservation(settlement: OptimizedSettlement) -> tuple[ValidationCheck, int]:
    residuals = replay_residuals(settlement.balances, settlement.payments)

    unsettled = sorted((player_id, amount) for player_id, amount in residuals.items() if amount != 0)
    if not unsettled:
        return (
            ValidationCheck(CHECK_CONSERVATION, True, "every balance replays to exactly zero"),
            0,
        )

    detail = "unsettled residuals (cents): " + ", ".join(f"{player_id}={amount:+d}" for player_id, amount in unsettled)
    return ValidationCheck(CHECK_CONSERVATION, False, detail), _discrepancy(settlement, residuals, unsettled)


def _discrepancy(
    settlement: OptimizedSettlement,
    residuals: dict[str, int],
    unsettled: list[tuple[str, int]],
) -> int:
    # positive: creditors still owed; negative: creditors overpaid
    owed = sum(amount for player_id, amount in residuals.items() if settlement.balances.get(player_id, 0) > 0)
    if owed:
        return owed
    largest = 0
    for _, amount in unsettled:
        if abs(amount) > abs(largest):
            largest = amount
    return largest


def _check_well_formed(settlement: OptimizedSettlement) -> ValidationCheck:
    problems: list[str] = []
    for index, payment in enumerate(settlement.payments, start=1):
        if payment.amount <= 0:
            problems.append(f"payment #{index} has non-positive amount {payment.amount}")
        if payment.from_player_id == payment.to_player_id:
            problems.append(f"payment #{index} is a self-payment by {payment.from_player_id}")

    if problems:
        return ValidationCheck(CHECK_WELL_FORMED, False, "; ".join(problems))
    return ValidationCheck(CHECK_WELL_FORMED, True, f"{len(settlement.payments)} payments are well-formed")


def _check_total_amount(settlement: OptimizedSettlement) -> ValidationCheck:
    expected = sum(amount for amount in settlement.balances.values() if amount > 0)
    moved = total_moved(settlement.payments)

    if moved == expected and settlement.total_amount_moved == expected:
        return ValidationCheck(CHECK_TOTAL_AMOUNT, True, f"{moved} cents moved, matching total credit")
    return ValidationCheck(
        CHECK_TOTAL_AMOUNT,
        False,
        f"payments move {moved} cents and record {settlement.total_amount_moved}, expected {expected}",
    )
