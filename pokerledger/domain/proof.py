"""Step-by-step arithmetic proof that a settlement pays out every balance exactly."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .alternatives import SettlementAlgorithm, build_alternative
from .money import from_cents
from .settlement import OptimizedSettlement, build_hub_payments, total_moved
from .validation import replay_residuals

PROOF_ALGORITHMS = (
    SettlementAlgorithm.DIRECT,
    SettlementAlgorithm.GREEDY,
    SettlementAlgorithm.BALANCED_FLOW,
)


@dataclass(frozen=True)
class ProofStep:
    number: int
    operation: str
    description: str
    calculation: str
    result: int
    verified: bool
    inputs: Mapping[str, int] = field(default_factory=dict)
    player_id: str | None = None


@dataclass(frozen=True)
class AlgorithmCheck:
    algorithm: SettlementAlgorithm
    payment_count: int
    total_amount_moved: int
    is_valid: bool


@dataclass(frozen=True)
class SettlementProof:
    session_id: str
    steps: tuple[ProofStep, ...]
    algorithm_checks: tuple[AlgorithmCheck, ...]
    checksum: str
    generated_at: datetime

    @property
    def is_valid(self) -> bool:
        return all(step.verified for step in self.steps) and all(check.is_valid for check in self.algorithm_checks)

    @property
    def failed_steps(self) -> tuple[ProofStep, ...]:
        return tuple(step for step in self.steps if not step.verified)

    def summary_text(self, names: Mapping[str, str] | None = None) -> str:
        names = names or {}
        lines = [f"Settlement proof for session {self.session_id}: {'VALID' if self.is_valid else 'INVALID'}"]
        for step in self.steps:
            subject = f" ({names.get(step.player_id, step.player_id)})" if step.player_id else ""
            mark = "ok" if step.verified else "FAILED"
            lines.append(f"{step.number}. [{mark}] {step.description}{subject}: {step.calculation}")
        lines.append("Cross-checks:")
        for check in self.algorithm_checks:
            status = "valid" if check.is_valid else "INVALID"
            lines.append(
                f"  {check.algorithm.value}: {check.payment_count} payments, "
                f"{from_cents(check.total_amount_moved)} moved, {status}"
            )
        lines.append(f"Checksum: {self.checksum}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "is_valid": self.is_valid,
            "checksum": self.checksum,
            "generated_at": self.generated_at.isoformat(),
            "steps": [
                {
                    "number": step.number,
                    "operation": step.operation,
                    "description": step.description,
                    "calculation": step.calculation,
                    "result": step.result,
                    "verified": step.verified,
                    "inputs": dict(step.inputs),
                    "player_id": step.player_id,
                }
                for step in self.steps
            ],
            "algorithm_checks": [
                {
                    "algorithm": check.algorithm.value,
                    "payment_count": check.payment_count,
                    "total_amount_moved": check.total_amount_moved,
                    "is_valid": check.is_valid,
                }
                for check in self.algorithm_checks
            ],
        }


def _money(cents: int) -> str:
    return str(from_cents(cents))


def _checksum(settlement: OptimizedSettlement, steps: tuple[ProofStep, ...]) -> str:
    payload = {
        "session_id": settlement.session_id,
        "payments": [[p.from_player_id, p.to_player_id, p.amount] for p in settlement.payments],
        "steps": [[step.operation, step.player_id, step.result, step.verified] for step in steps],
    }
    return hashlib.sha256(json.dumps(payload, sort_keys=True).encode("utf-8")).hexdigest()


def generate_proof(settlement: OptimizedSettlement, *, generated_at: datetime | None = None) -> SettlementProof:
    """Replay a settlement and record each arithmetic check as a numbered step.

    Steps, in order: balances sum to zero, payments move exactly the total
    credit, credits cancel debits, one replay per player, the plan is no
    larger than the hub plan, and every amount is a positive whole cent.
    """
    balances = dict(settlement.balances)
    payments = settlement.payments
    credit = sum(amount for amount in balances.values() if amount > 0)
    debit = -sum(amount for amount in balances.values() if amount < 0)
    moved = total_moved(payments)
    steps: list[ProofStep] = []

    def add(operation: str, description: str, calculation: str, result: int, verified: bool, **kwargs: Any) -> None:
        steps.append(ProofStep(len(steps) + 1, operation, description, calculation, result, verified, **kwargs))

    net = sum(balances.values())
    add(
        "zero_sum",
        "net positions sum to zero",
        " + ".join(_money(balances[player_id]) for player_id in sorted(balances)) + f" = {_money(net)}"
        if balances
        else f"no balances = {_money(net)}",
        net,
        net == 0,
        inputs=balances,
    )
    add(
        "total_payments",
        "payments move exactly the total credit",
        f"{_money(moved)} moved vs {_money(credit)} owed",
        moved - credit,
        moved == credit,
        inputs={"moved": moved, "credit": credit},
    )
    add(
        "credit_debit",
        "credits cancel debits",
        f"{_money(credit)} - {_money(debit)} = {_money(credit - debit)}",
        credit - debit,
        credit == debit,
        inputs={"credit": credit, "debit": debit},
    )

    residuals = replay_residuals(balances, payments)
    for player_id in sorted(residuals):
        received = sum(p.amount for p in payments if p.to_player_id == player_id)
        paid = sum(p.amount for p in payments if p.from_player_id == player_id)
        balance = balances.get(player_id, 0)
        add(
            "player_balance",
            "received minus paid equals net position",
            f"{_money(received)} - {_money(paid)} = {_money(received - paid)} vs {_money(balance)}",
            residuals[player_id],
            residuals[player_id] == 0,
            inputs={"received": received, "paid": paid, "balance": balance},
            player_id=player_id,
        )

    hub_count = len(build_hub_payments(balances))
    add(
        "optimality",
        "plan needs no more payments than the hub plan",
        f"{len(payments)} <= {hub_count}",
        len(payments),
        len(payments) <= hub_count,
        inputs={"payments": len(payments), "hub_payments": hub_count},
    )
    bad = [p for p in payments if not isinstance(p.amount, int) or isinstance(p.amount, bool) or p.amount <= 0]
    add(
        "payment_amounts",
        "every payment is a positive whole number of cents",
        f"{len(payments) - len(bad)} of {len(payments)} payments are positive",
        len(bad),
        not bad,
    )

    checks = []
    if net == 0:
        for algorithm in PROOF_ALGORITHMS:
            plan = build_alternative(settlement.session_id, algorithm, balances, computed_at=settlement.computed_at)
            checks.append(AlgorithmCheck(algorithm, plan.transaction_count, plan.total_amount_moved, plan.is_valid))

    frozen_steps = tuple(steps)
    return SettlementProof(
        session_id=settlement.session_id,
        steps=frozen_steps,
        algorithm_checks=tuple(checks),
        checksum=_checksum(settlement, frozen_steps),
        generated_at=generated_at or datetime.now(timezone.utc),
    )
