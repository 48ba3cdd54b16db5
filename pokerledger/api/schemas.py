from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from pokerledger.domain import (
    AlternativeSettlement,
    EarlyCashOutResult,
    OptimizedSettlement,
    Payment,
    Player,
    SessionInfo,
    SettlementComparison,
    SettlementProof,
    SettlementValidation,
    Transaction,
    from_cents,
)


class CreateSessionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128, examples=["Friday night"])


class AddPlayerRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128, examples=["alice"])

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("player name must be non-empty")
        return value


class RecordTransactionRequest(BaseModel):
    player_id: str
    type: Literal["buy_in", "cash_out"]
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2, description="Amount in currency units")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"player_id": "3ed7c88a-c4d5-453a-a437-1ad033f89a4a", "type": "buy_in", "amount": "50.00"}
            ]
        }
    }


class VoidTransactionRequest(BaseModel):
    reason: str = Field(default="", max_length=500)


class EarlyCashOutRequestBody(BaseModel):
    player_id: str
    requested_at: datetime | None = None


class SessionResponse(BaseModel):
    id: str
    name: str
    status: str
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_domain(cls, session: SessionInfo) -> "SessionResponse":
        return cls(
            id=session.id,
            name=session.name,
            status=session.status.value,
            created_at=session.created_at,
            started_at=session.started_at,
            completed_at=session.completed_at,
        )


class PlayerResponse(BaseModel):
    id: str
    name: str
    status: str
    total_buy_ins: Decimal
    total_cash_outs: Decimal
    current_balance: Decimal

    @classmethod
    def from_domain(cls, player: Player) -> "PlayerResponse":
        return cls(
            id=player.id,
            name=player.name,
            status=player.status.value,
            total_buy_ins=from_cents(player.total_buy_ins),
            total_cash_outs=from_cents(player.total_cash_outs),
            current_balance=from_cents(player.current_balance),
        )


class TransactionResponse(BaseModel):
    id: str
    player_id: str
    type: str
    amount: Decimal
    timestamp: datetime
    voided: bool
    void_reason: str | None = None
    voided_at: datetime | None = None

    @classmethod
    def from_domain(cls, transaction: Transaction) -> "TransactionResponse":
        return cls(
            id=transaction.id,
            player_id=transaction.player_id,
            type=transaction.type.value,
            amount=from_cents(transaction.amount),
            timestamp=transaction.timestamp,
            voided=transaction.voided,
            void_reason=transaction.void_reason,
            voided_at=transaction.voided_at,
        )


class SessionStateResponse(BaseModel):
    session: SessionResponse
    players: list[PlayerResponse]
    transactions: list[TransactionResponse]
    pot: Decimal


class EarlyCashOutResponse(BaseModel):
    player_id: str
    cash_out_amount: Decimal
    remaining_pot_share: Decimal
    shortfall: Decimal
    settlement_type: str
    pot_before: Decimal
    computed_at: datetime

    @classmethod
    def from_domain(cls, result: EarlyCashOutResult) -> "EarlyCashOutResponse":
        return cls(
            player_id=result.player_id,
            cash_out_amount=from_cents(result.cash_out_amount),
            remaining_pot_share=from_cents(result.remaining_pot_share),
            shortfall=from_cents(result.shortfall),
            settlement_type=result.settlement_type.value,
            pot_before=from_cents(result.pot_before),
            computed_at=result.computed_at,
        )


class PaymentResponse(BaseModel):
    from_player_id: str
    to_player_id: str
    amount: Decimal

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            from_player_id=payment.from_player_id,
            to_player_id=payment.to_player_id,
            amount=from_cents(payment.amount),
        )


class ValidationCheckResponse(BaseModel):
    name: str
    passed: bool
    detail: str


class ValidationResponse(BaseModel):
    is_valid: bool
    checks: list[ValidationCheckResponse]
    balance_discrepancy: Decimal

    @classmethod
    def from_domain(cls, validation: SettlementValidation) -> "ValidationResponse":
        return cls(
            is_valid=validation.is_valid,
            checks=[
                ValidationCheckResponse(name=check.name, passed=check.passed, detail=check.detail)
                for check in validation.checks
            ],
            balance_discrepancy=from_cents(validation.balance_discrepancy),
        )


class SettlementResponse(BaseModel):
    session_id: str
    payments: list[PaymentResponse]
    total_amount_moved: Decimal
    computed_at: datetime
    direct_payment_count: int
    reduction_percentage: float
    rounding_adjustment: Decimal
    validation: ValidationResponse

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "session_id": "3ed7c88a-c4d5-453a-a437-1ad033f89a4a",
                    "payments": [
                        {"from_player_id": "carol", "to_player_id": "alice", "amount": "50.00"},
                        {"from_player_id": "carol", "to_player_id": "bob", "amount": "50.00"},
                    ],
                    "total_amount_moved": "100.00",
                    "computed_at": "2025-01-01T22:00:00Z",
                    "direct_payment_count": 2,
                    "reduction_percentage": 0.0,
                    "rounding_adjustment": "0.00",
                    "validation": {"is_valid": True, "checks": [], "balance_discrepancy": "0.00"},
                }
            ]
        }
    }

    @classmethod
    def from_domain(cls, settlement: OptimizedSettlement, validation: SettlementValidation) -> "SettlementResponse":
        return cls(
            session_id=settlement.session_id,
            payments=[PaymentResponse.from_domain(payment) for payment in settlement.payments],
            total_amount_moved=from_cents(settlement.total_amount_moved),
            computed_at=settlement.computed_at,
            direct_payment_count=settlement.direct_payment_count,
            reduction_percentage=settlement.reduction_percentage,
            rounding_adjustment=from_cents(settlement.rounding_adjustment),
            validation=ValidationResponse.from_domain(validation),
        )


class AlternativeResponse(BaseModel):
    algorithm: str
    name: str
    description: str
    payments: list[PaymentResponse]
    transaction_count: int
    total_amount_moved: Decimal
    reduction_percentage: float
    simplicity: float
    fairness: float
    efficiency: float
    user_friendliness: float
    score: float
    pros: list[str]
    cons: list[str]
    is_valid: bool

    @classmethod
    def from_domain(cls, alternative: AlternativeSettlement) -> "AlternativeResponse":
        return cls(
            algorithm=alternative.algorithm.value,
            name=alternative.name,
            description=alternative.description,
            payments=[PaymentResponse.from_domain(payment) for payment in alternative.payments],
            transaction_count=alternative.transaction_count,
            total_amount_moved=from_cents(alternative.total_amount_moved),
            reduction_percentage=alternative.reduction_percentage,
            simplicity=alternative.simplicity,
            fairness=alternative.fairness,
            efficiency=alternative.efficiency,
            user_friendliness=alternative.user_friendliness,
            score=alternative.score,
            pros=list(alternative.pros),
            cons=list(alternative.cons),
            is_valid=alternative.is_valid,
        )


class RecommendationResponse(BaseModel):
    algorithm: str
    confidence: float
    reasoning: str
    considerations: list[str]
    complexity_level: Literal["low", "medium", "high"]
    dispute_risk: Literal["low", "medium", "high"]


class SettlementComparisonResponse(BaseModel):
    session_id: str
    alternatives: list[AlternativeResponse]
    recommendation: RecommendationResponse | None = None
    computed_at: datetime

    @classmethod
    def from_domain(cls, comparison: SettlementComparison) -> "SettlementComparisonResponse":
        recommendation = comparison.recommendation
        return cls(
            session_id=comparison.session_id,
            alternatives=[AlternativeResponse.from_domain(item) for item in comparison.alternatives],
            recommendation=(
                RecommendationResponse(
                    algorithm=recommendation.algorithm.value,
                    confidence=recommendation.confidence,
                    reasoning=recommendation.reasoning,
                    considerations=list(recommendation.considerations),
                    complexity_level=recommendation.complexity_level,
                    dispute_risk=recommendation.dispute_risk,
                )
                if recommendation is not None
                else None
            ),
            computed_at=comparison.computed_at,
        )


class ProofStepResponse(BaseModel):
    number: int
    operation: str
    description: str
    calculation: str
    verified: bool
    player_id: str | None = None


class AlgorithmCheckResponse(BaseModel):
    algorithm: str
    payment_count: int
    total_amount_moved: Decimal
    is_valid: bool


class SettlementProofResponse(BaseModel):
    session_id: str
    is_valid: bool
    steps: list[ProofStepResponse]
    algorithm_checks: list[AlgorithmCheckResponse]
    checksum: str
    generated_at: datetime
    summary: str

    @classmethod
    def from_domain(cls, proof: SettlementProof, names: dict[str, str] | None = None) -> "SettlementProofResponse":
        return cls(
            session_id=proof.session_id,
            is_valid=proof.is_valid,
            steps=[
                ProofStepResponse(
                    number=step.number,
                    operation=step.operation,
                    description=step.description,
                    calculation=step.calculation,
                    verified=step.verified,
                    player_id=step.player_id,
                )
                for step in proof.steps
            ],
            algorithm_checks=[
                AlgorithmCheckResponse(
                    algorithm=check.algorithm.value,
                    payment_count=check.payment_count,
                    total_amount_moved=from_cents(check.total_amount_moved),
                    is_valid=check.is_valid,
                )
                for check in proof.algorithm_checks
            ],
            checksum=proof.checksum,
            generated_at=proof.generated_at,
            summary=proof.summary_text(names),
        )
