from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from pokerledger.domain import (
    DomainValidationError,
    EarlyCashOutRequest,
    EarlyCashOutResult,
    InvalidPlayerState,
    LedgerError,
    LedgerSnapshot,
    LedgerView,
    OptimizedSettlement,
    Player,
    PlayerNotFound,
    PlayerStatus,
    PriorityWeights,
    SessionInfo,
    SessionNotActive,
    SessionNotFound,
    SessionStatus,
    SettlementComparison,
    SettlementProof,
    SettlementRejected,
    SettlementValidation,
    Transaction,
    TransactionNotFound,
    TransactionType,
    UnbalancedLedger,
    balances_by_player,
    calculate_early_cash_out,
    generate_alternatives,
    generate_proof,
    optimize_settlement,
    validate_settlement,
)
from pokerledger.storage.repository import LedgerRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    session: SessionInfo
    players: list[Player]
    transactions: list[Transaction]


@dataclass(frozen=True)
class SettlementReport:
    settlement: OptimizedSettlement
    validation: SettlementValidation


class LedgerService:
    """Session, player and transaction bookkeeping around the settlement engine."""

    def __init__(self, repo: LedgerRepository, undo_window_seconds: int = 30) -> None:
        self.repo = repo
        self.undo_window = timedelta(seconds=undo_window_seconds)

    def create_session(self, name: str) -> SessionInfo:
        name = name.strip()
        if not name:
            raise DomainValidationError("session name must be non-empty")
        session = self.repo.create_session(name)
        logger.info("session %s created: %s", session.id, session.name)
        return session

    def start_session(self, session_id: str) -> SessionInfo:
        session = self._session_or_raise(session_id)
        if session.status != SessionStatus.CREATED:
            raise DomainValidationError(f"session {session_id} is already {session.status.value}")
        return self.repo.update_session_status(session_id, SessionStatus.ACTIVE, expected_status=SessionStatus.CREATED)

    def add_player(self, session_id: str, name: str) -> Player:
        session = self._session_or_raise(session_id)
        if session.status not in (SessionStatus.CREATED, SessionStatus.ACTIVE):
            raise SessionNotActive(f"cannot add players to a {session.status.value} session")
        name = name.strip()
        if not name:
            raise DomainValidationError("player name must be non-empty")
        if self.repo.player_name_taken(session_id, name):
            raise DomainValidationError(f"player {name} already joined this session")
        player = self.repo.add_player(session_id, name)
        logger.info("player %s (%s) joined session %s", player.id, player.name, session_id)
        return player

    def record_buy_in(self, session_id: str, player_id: str, amount: int) -> Transaction:
        self._ensure_can_transact(session_id, player_id, amount)
        transaction = self.repo.record_transaction(session_id, player_id, TransactionType.BUY_IN, amount)
        logger.info("buy-in %s: player %s +%d cents", transaction.id, player_id, amount)
        return transaction

    def record_cash_out(self, session_id: str, player_id: str, amount: int) -> Transaction:
        self._ensure_can_transact(session_id, player_id, amount)
        transaction = self.repo.record_transaction(
            session_id,
            player_id,
            TransactionType.CASH_OUT,
            amount,
            player_status=PlayerStatus.CASHED_OUT,
        )
        logger.info("cash-out %s: player %s -%d cents", transaction.id, player_id, amount)
        return transaction

    def void_transaction(
        self,
        session_id: str,
        transaction_id: str,
        reason: str,
        now: datetime | None = None,
    ) -> Transaction:
        session = self._session_or_raise(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActive(f"transactions can only be voided in an active session, not {session.status.value}")

        transaction = self.repo.get_transaction(session_id, transaction_id)
        if transaction is None:
            raise TransactionNotFound(f"transaction {transaction_id} not found in session {session_id}")

        now = now or datetime.now(timezone.utc)
        if now - transaction.timestamp > self.undo_window:
            raise DomainValidationError(
                f"transactions can only be voided within {int(self.undo_window.total_seconds())} seconds"
            )

        voided = transaction.void(reason.strip() or "voided", at=now)
        restore = PlayerStatus.ACTIVE if transaction.type == TransactionType.CASH_OUT else None
        saved = self.repo.save_void(voided, player_status=restore)
        logger.info("transaction %s voided: %s", transaction_id, saved.void_reason)
        return saved

    def get_session_state(self, session_id: str) -> SessionState:
        session = self._session_or_raise(session_id)
        return SessionState(
            session=session,
            players=self.repo.get_players(session_id),
            transactions=self.repo.get_transactions(session_id),
        )

    def _session_or_raise(self, session_id: str) -> SessionInfo:
        session = self.repo.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"session {session_id} not found")
        return session

    def _ensure_can_transact(self, session_id: str, player_id: str, amount: int) -> None:
        if amount <= 0:
            raise DomainValidationError("amount must be positive")
        session = self._session_or_raise(session_id)
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActive(f"transactions are only allowed in an active session, not {session.status.value}")
        player = self.repo.get_player(session_id, player_id)
        if player is None:
            raise PlayerNotFound(f"player {player_id} not found in session {session_id}")
        if not player.is_active:
            raise InvalidPlayerState(f"player {player_id} is {player.status.value}")


class SettlementService:
    """Runs the settlement engine over snapshots read through a ``LedgerView``."""

    def __init__(self, ledger: LedgerView, repo: LedgerRepository | None = None) -> None:
        self.ledger = ledger
        self.repo = repo

    def calculate_early_cash_out(self, request: EarlyCashOutRequest) -> EarlyCashOutResult:
        snapshot = LedgerSnapshot.load(self.ledger, request.session_id)
        result = calculate_early_cash_out(request, snapshot)
        if result.is_capped:
            logger.info(
                "early cash-out for %s in session %s capped at %d cents, shortfall %d",
                result.player_id,
                request.session_id,
                result.cash_out_amount,
                result.shortfall,
            )
        return result

    def optimize_settlement(self, session_id: str) -> OptimizedSettlement:
        snapshot = LedgerSnapshot.load(self.ledger, session_id)
        balances = balances_by_player(snapshot.players)
        try:
            settlement = optimize_settlement(session_id, balances)
        except UnbalancedLedger as exc:
            logger.warning("session %s is unbalanced by %d cents", session_id, exc.discrepancy)
            raise
        logger.info(
            "settlement for session %s: %d payments (hub plan %d), %d cents moved",
            session_id,
            len(settlement.payments),
            settlement.direct_payment_count,
            settlement.total_amount_moved,
        )
        return settlement

    def validate_settlement(self, settlement: OptimizedSettlement) -> SettlementValidation:
        validation = validate_settlement(settlement)
        for check in validation.failed_checks:
            logger.warning("settlement for session %s failed %s: %s", settlement.session_id, check.name, check.detail)
        return validation

    def preview_settlement(self, session_id: str) -> SettlementReport:
        settlement = self.optimize_settlement(session_id)
        return SettlementReport(settlement=settlement, validation=self.validate_settlement(settlement))

    def compare_settlements(self, session_id: str, weights: PriorityWeights | None = None) -> SettlementComparison:
        snapshot = LedgerSnapshot.load(self.ledger, session_id)
        comparison = generate_alternatives(session_id, balances_by_player(snapshot.players), weights=weights)
        if comparison.recommendation is not None:
            logger.info(
                "session %s: %d settlement plans compared, recommending %s",
                session_id,
                len(comparison.alternatives),
                comparison.recommendation.algorithm.value,
            )
        return comparison

    def prove_settlement(self, session_id: str) -> SettlementProof:
        proof = generate_proof(self.optimize_settlement(session_id))
        for step in proof.failed_steps:
            logger.warning("settlement proof for session %s failed step %d %s", session_id, step.number, step.operation)
        return proof

    def settle_session(self, session_id: str) -> SettlementReport:
        """Freeze the session, compute and validate its settlement, then complete it.

        The move to settling is a conditional update, so only one caller can
        claim the session. An unbalanced ledger or a failed validation puts the
        session back to active and raises; an invalid settlement is never
        finalized.
        """
        if self.repo is None:
            raise RuntimeError("settle_session requires a ledger repository")

        session = self.ledger.get_session(session_id)
        if session is None:
            raise SessionNotFound(f"session {session_id} not found")
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActive(f"session {session_id} is {session.status.value}, expected active")

        self.repo.update_session_status(session_id, SessionStatus.SETTLING, expected_status=SessionStatus.ACTIVE)
        try:
            report = self.preview_settlement(session_id)
            if not report.validation.is_valid:
                raise SettlementRejected(
                    f"settlement for session {session_id} failed validation",
                    validation=report.validation,
                )
        except LedgerError:
            self.repo.update_session_status(session_id, SessionStatus.ACTIVE, expected_status=SessionStatus.SETTLING)
            raise

        self.repo.update_session_status(session_id, SessionStatus.COMPLETED, expected_status=SessionStatus.SETTLING)
        return report
