from .alternatives import (
    AlternativeSettlement,
    PriorityWeights,
    SettlementAlgorithm,
    SettlementComparison,
    SettlementRecommendation,
    generate_alternatives,
)
from .cashout import CashOutType, EarlyCashOutRequest, EarlyCashOutResult, calculate_early_cash_out
from .errors import (
    DomainValidationError,
    InvalidPlayerState,
    LedgerError,
    PlayerNotFound,
    SessionNotActive,
    SessionNotFound,
    SettlementRejected,
    TransactionNotFound,
    UnbalancedLedger,
)
from .ledger import (
    BankBalance,
    LedgerSnapshot,
    LedgerView,
    NetPosition,
    Player,
    PlayerStatus,
    SessionInfo,
    SessionStatus,
    Transaction,
    TransactionType,
    balances_by_player,
    bank_balance,
    net_positions,
)
from .money import from_cents, normalize_balances, to_cents
from .proof import AlgorithmCheck, ProofStep, SettlementProof, generate_proof
from .settlement import (
    OptimizedSettlement,
    Payment,
    build_hub_payments,
    build_payments,
    check_balances,
    optimize_decimal_settlement,
    optimize_settlement,
    total_moved,
)
from .validation import (
    CHECK_CONSERVATION,
    CHECK_TOTAL_AMOUNT,
    CHECK_WELL_FORMED,
    SettlementValidation,
    ValidationCheck,
    replay_residuals,
    validate_settlement,
)

__all__ = [
    "AlgorithmCheck",
    "AlternativeSettlement",
    "BankBalance",
    "CHECK_CONSERVATION",
    "CHECK_TOTAL_AMOUNT",
    "CHECK_WELL_FORMED",
    "CashOutType",
    "DomainValidationError",
    "EarlyCashOutRequest",
    "EarlyCashOutResult",
    "InvalidPlayerState",
    "LedgerError",
    "LedgerSnapshot",
    "LedgerView",
    "NetPosition",
    "OptimizedSettlement",
    "Payment",
    "Player",
    "PlayerNotFound",
    "PlayerStatus",
    "PriorityWeights",
    "ProofStep",
    "SessionInfo",
    "SessionNotActive",
    "SessionNotFound",
    "SessionStatus",
    "SettlementAlgorithm",
    "SettlementComparison",
    "SettlementProof",
    "SettlementRecommendation",
    "SettlementRejected",
    "SettlementValidation",
    "Transaction",
    "TransactionNotFound",
    "TransactionType",
    "UnbalancedLedger",
    "ValidationCheck",
    "balances_by_player",
    "bank_balance",
    "build_hub_payments",
    "build_payments",
    "calculate_early_cash_out",
    "check_balances",
    "from_cents",
    "generate_alternatives",
    "generate_proof",
    "net_positions",
    "normalize_balances",
    "optimize_decimal_settlement",
    "optimize_settlement",
    "replay_residuals",
    "to_cents",
    "total_moved",
    "validate_settlement",
]
