"""Alternative settlement plans, scored side by side with a recommendation."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .errors import DomainValidationError
from .settlement import OptimizedSettlement, Payment, build_hub_payments, build_payments, check_balances, total_moved
from .validation import SettlementValidation, validate_settlement

LARGE_PAYMENT_CENTS = 10000
SMALL_PAYMENT_CENTS = 100


class SettlementAlgorithm(str, Enum):
    GREEDY = "greedy_debt_reduction"
    DIRECT = "direct_settlement"
    HUB_BASED = "hub_based"
    BALANCED_FLOW = "balanced_flow"
    MINIMAL_TRANSACTIONS = "minimal_transactions"
    ROUND_ROBIN = "round_robin"


DEFAULT_ALGORITHMS = (
    SettlementAlgorithm.GREEDY,
    SettlementAlgorithm.DIRECT,
    SettlementAlgorithm.HUB_BASED,
    SettlementAlgorithm.BALANCED_FLOW,
    SettlementAlgorithm.MINIMAL_TRANSACTIONS,
    SettlementAlgorithm.ROUND_ROBIN,
)


@dataclass(frozen=True)
class PriorityWeights:
    simplicity: float = 0.25
    fairness: float = 0.25
    efficiency: float = 0.25
    user_friendliness: float = 0.25

    def __post_init__(self) -> None:
        values = (self.simplicity, self.fairness, self.efficiency, self.user_friendliness)
        if any(value < 0 for value in values):
            raise DomainValidationError("priority weights must not be negative")
        if sum(values) <= 0:
            raise DomainValidationError("at least one priority weight must be positive")

    def score(self, simplicity: float, fairness: float, efficiency: float, user_friendliness: float) -> float:
        total = self.simplicity + self.fairness + self.efficiency + self.user_friendliness
        weighted = (
            simplicity * self.simplicity
            + fairness * self.fairness
            + efficiency * self.efficiency
            + user_friendliness * self.user_friendliness
        )
        return round(weighted / total, 2)


@dataclass(frozen=True)
class AlternativeSettlement:
    algorithm: SettlementAlgorithm
    name: str
    description: str
    payments: tuple[Payment, ...]
    total_amount_moved: int
    reduction_percentage: float
    simplicity: float
    fairness: float
    efficiency: float
    user_friendliness: float
    score: float
    pros: tuple[str, ...]
    cons: tuple[str, ...]
    validation: SettlementValidation

    @property
    def transaction_count(self) -> int:
        return len(self.payments)

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


@dataclass(frozen=True)
class SettlementRecommendation:
    algorithm: SettlementAlgorithm
    confidence: float
    reasoning: str
    considerations: tuple[str, ...]
    complexity_level: str
    dispute_risk: str


@dataclass(frozen=True)
class SettlementComparison:
    session_id: str
    alternatives: tuple[AlternativeSettlement, ...]
    recommendation: SettlementRecommendation | None
    computed_at: datetime

    @property
    def recommended(self) -> AlternativeSettlement | None:
        if self.recommendation is None:
            return None
        return self.alternative(self.recommendation.algorithm)

    def alternative(self, algorithm: SettlementAlgorithm) -> AlternativeSettlement:
        for item in self.alternatives:
            if item.algorithm == algorithm:
                return item
        raise KeyError(algorithm)

    @property
    def fewest_payments(self) -> int:
        return min((item.transaction_count for item in self.alternatives), default=0)


def _creditors(balances: Mapping[str, int]) -> list[tuple[str, int]]:
    return [(player_id, amount) for player_id, amount in balances.items() if amount > 0]


def _debtors(balances: Mapping[str, int]) -> list[tuple[str, int]]:
    return [(player_id, -amount) for player_id, amount in balances.items() if amount < 0]


def _pair_in_order(debtors: Sequence[tuple[str, int]], creditors: Sequence[tuple[str, int]]) -> list[Payment]:
    """Walk both lists once, in the order given, settling the smaller side each step."""
    debts = [amount for _, amount in debtors]
    credits = [amount for _, amount in creditors]
    payments: list[Payment] = []
    i = j = 0
    while i < len(debts) and j < len(credits):
        amount = min(debts[i], credits[j])
        payments.append(Payment(from_player_id=debtors[i][0], to_player_id=creditors[j][0], amount=amount))
        debts[i] -= amount
        credits[j] -= amount
        if debts[i] == 0:
            i += 1
        if credits[j] == 0:
            j += 1
    return payments


def build_hub_based_payments(balances: Mapping[str, int]) -> list[Payment]:
    """Everyone settles with the player whose balance is closest to zero."""
    active = sorted((player_id, amount) for player_id, amount in balances.items() if amount != 0)
    if not active:
        return []
    hub_id, _ = min(active, key=lambda item: (abs(item[1]), item[0]))
    payments: list[Payment] = []
    for player_id, amount in active:
        if player_id == hub_id:
            continue
        if amount > 0:
            payments.append(Payment(from_player_id=hub_id, to_player_id=player_id, amount=amount))
        else:
            payments.append(Payment(from_player_id=player_id, to_player_id=hub_id, amount=-amount))
    return payments


def build_balanced_flow_payments(balances: Mapping[str, int]) -> list[Payment]:
    """Smallest debts meet the largest credits first, spreading amounts evenly."""
    debtors = sorted(_debtors(balances), key=lambda item: (item[1], item[0]))
    creditors = sorted(_creditors(balances), key=lambda item: (-item[1], item[0]))
    return _pair_in_order(debtors, creditors)


def build_minimal_transaction_payments(balances: Mapping[str, int]) -> list[Payment]:
    debtors = sorted(_debtors(balances), key=lambda item: (-item[1], item[0]))
    creditors = sorted(_creditors(balances), key=lambda item: (-item[1], item[0]))
    return _pair_in_order(debtors, creditors)


def build_round_robin_payments(balances: Mapping[str, int]) -> list[Payment]:
    """Each debtor pays every creditor in proportion to that creditor's share.

    Proportional amounts are floored to cents; the leftover cents are placed
    north-west corner style so every row and column still sums exactly.
    """
    debtors = sorted(_debtors(balances))
    creditors = sorted(_creditors(balances))
    total = sum(amount for _, amount in creditors)
    if not total:
        return []

    matrix = [[debt * credit // total for _, credit in creditors] for _, debt in debtors]
    row_gap = [debt - sum(row) for (_, debt), row in zip(debtors, matrix)]
    col_gap = [credit - sum(row[j] for row in matrix) for j, (_, credit) in enumerate(creditors)]
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        step = min(row_gap[i], col_gap[j])
        matrix[i][j] += step
        row_gap[i] -= step
        col_gap[j] -= step
        if row_gap[i] == 0:
            i += 1
        if col_gap[j] == 0:
            j += 1

    return [
        Payment(from_player_id=debtor_id, to_player_id=creditor_id, amount=matrix[i][j])
        for i, (debtor_id, _) in enumerate(debtors)
        for j, (creditor_id, _) in enumerate(creditors)
        if matrix[i][j] > 0
    ]


_BUILDERS: dict[SettlementAlgorithm, Callable[[Mapping[str, int]], list[Payment]]] = {
    SettlementAlgorithm.GREEDY: build_payments,
    SettlementAlgorithm.DIRECT: build_hub_payments,
    SettlementAlgorithm.HUB_BASED: build_hub_based_payments,
    SettlementAlgorithm.BALANCED_FLOW: build_balanced_flow_payments,
    SettlementAlgorithm.MINIMAL_TRANSACTIONS: build_minimal_transaction_payments,
    SettlementAlgorithm.ROUND_ROBIN: build_round_robin_payments,
}

_DESCRIPTIONS: dict[SettlementAlgorithm, tuple[str, str, tuple[str, ...], tuple[str, ...]]] = {
    SettlementAlgorithm.GREEDY: (
        "Greedy debt reduction",
        "Largest debtor pays largest creditor until every balance is zero.",
        ("few payments", "deterministic"),
        ("payment sizes can vary widely",),
    ),
    SettlementAlgorithm.DIRECT: (
        "Direct settlement",
        "Every debtor pays the biggest winner, who then pays the other winners.",
        ("one person to pay", "easy to explain"),
        ("the biggest winner handles all the money",),
    ),
    SettlementAlgorithm.HUB_BASED: (
        "Hub settlement",
        "Everyone settles with the player whose result was closest to even.",
        ("single point of contact",),
        ("the hub moves money that is not theirs", "more payments than needed"),
    ),
    SettlementAlgorithm.BALANCED_FLOW: (
        "Balanced flow",
        "Smallest debts are matched with largest credits to even out payment sizes.",
        ("similar payment sizes",),
        ("can need more payments than greedy",),
    ),
    SettlementAlgorithm.MINIMAL_TRANSACTIONS: (
        "Minimal transactions",
        "Debtors and creditors are sorted by size and settled in one pass.",
        ("few payments", "large amounts clear first"),
        ("small balances can end up split",),
    ),
    SettlementAlgorithm.ROUND_ROBIN: (
        "Round robin",
        "Each loser pays every winner in proportion to what the winner is owed.",
        ("obviously fair split",),
        ("most payments of any plan", "odd amounts"),
    ),
}


def _clamp(value: float) -> float:
    return round(max(1.0, min(10.0, value)), 2)


def _simplicity(payment_count: int, participants: int) -> float:
    if participants < 2:
        return 10.0
    return _clamp(10 - payment_count / (participants * (participants - 1)) * 9)


def _fairness(payments: Sequence[Payment]) -> float:
    if not payments:
        return 10.0
    average = total_moved(payments) / len(payments)
    variance = sum((payment.amount - average) ** 2 for payment in payments) / len(payments)
    return _clamp(10 - variance / average**2 * 2)


def _efficiency(reduction_percentage: float) -> float:
    return _clamp((reduction_percentage / 10 + 10) / 2)


def _user_friendliness(payments: Sequence[Payment]) -> float:
    if not payments:
        return 10.0
    average_units = total_moved(payments) / len(payments) / 100
    value = 10 - abs(math.log10(average_units)) * 2
    if any(payment.amount < SMALL_PAYMENT_CENTS for payment in payments):
        value -= 1
    if any(payment.amount > LARGE_PAYMENT_CENTS for payment in payments):
        value -= 0.5
    return _clamp(value)


def build_alternative(
    session_id: str,
    algorithm: SettlementAlgorithm,
    balances: Mapping[str, int],
    *,
    weights: PriorityWeights | None = None,
    computed_at: datetime | None = None,
) -> AlternativeSettlement:
    weights = weights or PriorityWeights()
    payments = tuple(_BUILDERS[algorithm](balances))
    baseline = len(build_hub_payments(balances))
    reduction = (baseline - len(payments)) / baseline * 100 if baseline else 0.0
    participants = sum(1 for amount in balances.values() if amount != 0)

    plan = OptimizedSettlement(
        session_id=session_id,
        payments=payments,
        balances=balances,
        total_amount_moved=total_moved(payments),
        computed_at=computed_at or datetime.now(timezone.utc),
        direct_payment_count=baseline,
    )
    simplicity = _simplicity(len(payments), participants)
    fairness = _fairness(payments)
    efficiency = _efficiency(reduction)
    user_friendliness = _user_friendliness(payments)
    name, description, pros, cons = _DESCRIPTIONS[algorithm]
    return AlternativeSettlement(
        algorithm=algorithm,
        name=name,
        description=description,
        payments=payments,
        total_amount_moved=plan.total_amount_moved,
        reduction_percentage=round(reduction, 2),
        simplicity=simplicity,
        fairness=fairness,
        efficiency=efficiency,
        user_friendliness=user_friendliness,
        score=weights.score(simplicity, fairness, efficiency, user_friendliness),
        pros=pros,
        cons=cons,
        validation=validate_settlement(plan),
    )


def recommend(alternatives: Sequence[AlternativeSettlement]) -> SettlementRecommendation | None:
    """Pick the best-scoring valid plan; fewer payments, then listing order, break ties."""
    ranked = sorted(
        (item for item in enumerate(alternatives) if item[1].is_valid),
        key=lambda item: (-item[1].score, item[1].transaction_count, item[0]),
    )
    if not ranked:
        return None
    best = ranked[0][1]

    considerations: list[str] = []
    large = any(payment.amount > LARGE_PAYMENT_CENTS for payment in best.payments)
    odd = any(payment.amount % 100 for payment in best.payments)
    if large:
        considerations.append("includes payments over 100.00")
    if odd:
        considerations.append("includes amounts that are not whole units")
    if best.transaction_count > min(item.transaction_count for item in alternatives):
        considerations.append("another plan needs fewer payments")

    if best.transaction_count <= 4:
        complexity = "low"
    elif best.transaction_count <= 8:
        complexity = "medium"
    else:
        complexity = "high"

    return SettlementRecommendation(
        algorithm=best.algorithm,
        confidence=round(min(0.95, max(0.6, best.score / 10)), 2),
        reasoning=f"{best.name} scores {best.score:.2f}/10 with {best.transaction_count} payments",
        considerations=tuple(considerations),
        complexity_level=complexity,
        dispute_risk="high" if large and odd else "medium" if large or odd else "low",
    )


def generate_alternatives(
    session_id: str,
    balances: Mapping[str, int],
    *,
    algorithms: Sequence[SettlementAlgorithm] = DEFAULT_ALGORITHMS,
    weights: PriorityWeights | None = None,
    computed_at: datetime | None = None,
) -> SettlementComparison:
    if not algorithms:
        raise DomainValidationError("at least one settlement algorithm is required")
    check_balances(balances)

    computed_at = computed_at or datetime.now(timezone.utc)
    alternatives = tuple(
        build_alternative(session_id, algorithm, balances, weights=weights, computed_at=computed_at)
        for algorithm in dict.fromkeys(algorithms)
    )
    return SettlementComparison(
        session_id=session_id,
        alternatives=alternatives,
        recommendation=recommend(alternatives),
        computed_at=computed_at,
    )
