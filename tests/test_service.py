from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pokerledger.domain import (
    DomainValidationError,
    EarlyCashOutRequest,
    InvalidPlayerState,
    PlayerStatus,
    PriorityWeights,
    SessionNotActive,
    SessionNotFound,
    SessionStatus,
    SettlementAlgorithm,
    SettlementRejected,
    SettlementValidation,
    TransactionNotFound,
    TransactionType,
    UnbalancedLedger,
    ValidationCheck,
)
from pokerledger.runtime import Services
from pokerledger.storage.database import Base


def make_services(undo_window_seconds: int = 30) -> Services:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    return Services(TestingSessionLocal, undo_window_seconds=undo_window_seconds)


def open_table(services: Services, *names: str):
    session = services.ledger.create_session("Friday")
    players = {name: services.ledger.add_player(session.id, name) for name in names}
    services.ledger.start_session(session.id)
    return session, players


def test_full_night_settles_and_completes() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob", "carol")
    for player in players.values():
        services.ledger.record_buy_in(session.id, player.id, 10000)
    services.ledger.record_cash_out(session.id, players["alice"].id, 15000)
    services.ledger.record_cash_out(session.id, players["bob"].id, 15000)

    report = services.settlement.settle_session(session.id)

    names = {player.id: name for name, player in players.items()}
    payments = {(names[p.from_player_id], names[p.to_player_id], p.amount) for p in report.settlement.payments}
    assert payments == {("carol", "alice", 5000), ("carol", "bob", 5000)}
    assert report.validation.is_valid
    assert report.settlement.total_amount_moved == 10000
    state = services.ledger.get_session_state(session.id)
    assert state.session.status == SessionStatus.COMPLETED
    assert state.session.completed_at is not None


def test_preview_does_not_change_session_status() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob")
    services.ledger.record_buy_in(session.id, players["alice"].id, 5000)
    services.ledger.record_cash_out(session.id, players["alice"].id, 5000)

    report = services.settlement.preview_settlement(session.id)

    assert report.settlement.is_empty
    assert report.validation.is_valid
    assert services.ledger.get_session_state(session.id).session.status == SessionStatus.ACTIVE


def test_unbalanced_session_goes_back_to_active() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob")
    services.ledger.record_buy_in(session.id, players["alice"].id, 10000)

    with pytest.raises(UnbalancedLedger) as exc_info:
        services.settlement.settle_session(session.id)

    assert exc_info.value.discrepancy == -10000
    assert services.ledger.get_session_state(session.id).session.status == SessionStatus.ACTIVE


def test_failed_validation_blocks_settlement(monkeypatch: pytest.MonkeyPatch) -> None:
    services = make_services()
    session, _ = open_table(services, "alice")
    rejected = SettlementValidation(
        is_valid=False,
        checks=(ValidationCheck("conservation", False, "unsettled residuals (cents): alice=+1"),),
        balance_discrepancy=1,
    )
    monkeypatch.setattr(services.settlement, "validate_settlement", lambda settlement: rejected)

    with pytest.raises(SettlementRejected) as exc_info:
        services.settlement.settle_session(session.id)

    assert exc_info.value.validation is rejected
    assert services.ledger.get_session_state(session.id).session.status == SessionStatus.ACTIVE


def test_settle_requires_active_session() -> None:
    services = make_services()
    session = services.ledger.create_session("Friday")

    with pytest.raises(SessionNotActive):
        services.settlement.settle_session(session.id)
    with pytest.raises(SessionNotFound):
        services.settlement.settle_session("missing")


def test_cash_out_closes_the_seat() -> None:
    services = make_services()
    session, players = open_table(services, "alice")
    alice = players["alice"]
    services.ledger.record_buy_in(session.id, alice.id, 10000)
    services.ledger.record_cash_out(session.id, alice.id, 8000)

    state = services.ledger.get_session_state(session.id)
    assert state.players[0].status == PlayerStatus.CASHED_OUT
    with pytest.raises(InvalidPlayerState):
        services.ledger.record_buy_in(session.id, alice.id, 1000)


def test_void_cash_out_reopens_the_seat() -> None:
    services = make_services()
    session, players = open_table(services, "alice")
    cash_out = services.ledger.record_cash_out(session.id, players["alice"].id, 8000)

    voided = services.ledger.void_transaction(session.id, cash_out.id, "  ")

    assert voided.voided
    assert voided.void_reason == "voided"
    state = services.ledger.get_session_state(session.id)
    assert state.players[0].status == PlayerStatus.ACTIVE
    assert state.players[0].total_cash_outs == 0
    with pytest.raises(DomainValidationError):
        services.ledger.void_transaction(session.id, cash_out.id, "again")


def test_void_outside_undo_window_is_rejected() -> None:
    services = make_services(undo_window_seconds=30)
    session, players = open_table(services, "alice")
    buy_in = services.ledger.record_buy_in(session.id, players["alice"].id, 10000)

    with pytest.raises(DomainValidationError):
        services.ledger.void_transaction(session.id, buy_in.id, "late", now=buy_in.timestamp + timedelta(seconds=31))
    with pytest.raises(TransactionNotFound):
        services.ledger.void_transaction(session.id, "missing", "typo")


def test_transactions_need_an_active_session() -> None:
    services = make_services()
    session = services.ledger.create_session("Friday")
    alice = services.ledger.add_player(session.id, "alice")

    with pytest.raises(SessionNotActive):
        services.ledger.record_buy_in(session.id, alice.id, 1000)
    services.ledger.start_session(session.id)
    with pytest.raises(DomainValidationError):
        services.ledger.record_buy_in(session.id, alice.id, 0)
    with pytest.raises(DomainValidationError):
        services.ledger.start_session(session.id)


def test_duplicate_player_names_are_rejected() -> None:
    services = make_services()
    session, _ = open_table(services, "alice")

    with pytest.raises(DomainValidationError):
        services.ledger.add_player(session.id, " ALICE ")


def test_early_cash_out_reads_current_ledger() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob")
    services.ledger.record_buy_in(session.id, players["alice"].id, 20000)
    services.ledger.record_buy_in(session.id, players["bob"].id, 10000)
    services.ledger.record_cash_out(session.id, players["bob"].id, 15000)

    result = services.settlement.calculate_early_cash_out(
        EarlyCashOutRequest(session_id=session.id, player_id=players["alice"].id)
    )

    assert result.cash_out_amount == 15000
    assert result.shortfall == 5000
    assert result.remaining_pot_share == 0


def test_settling_session_takes_no_new_transactions() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob")
    buy_in = services.ledger.record_buy_in(session.id, players["alice"].id, 10000)
    services.repo.update_session_status(session.id, SessionStatus.SETTLING, expected_status=SessionStatus.ACTIVE)

    with pytest.raises(SessionNotActive):
        services.ledger.record_buy_in(session.id, players["bob"].id, 5000)
    with pytest.raises(SessionNotActive):
        services.ledger.record_cash_out(session.id, players["alice"].id, 5000)
    with pytest.raises(SessionNotActive):
        services.ledger.void_transaction(session.id, buy_in.id, "typo")

    state = services.ledger.get_session_state(session.id)
    assert [t.id for t in state.transactions] == [buy_in.id]
    assert not state.transactions[0].voided


def test_write_checked_before_settlement_cannot_land_after_it() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob")
    bob = players["bob"]

    # bob's buy-in passes its checks, then the session settles before the insert
    assert services.ledger.get_session_state(session.id).session.status == SessionStatus.ACTIVE
    report = services.settlement.settle_session(session.id)

    with pytest.raises(SessionNotActive):
        services.repo.record_transaction(session.id, bob.id, TransactionType.BUY_IN, 5000)

    state = services.ledger.get_session_state(session.id)
    assert state.session.status == SessionStatus.COMPLETED
    assert report.settlement.is_empty
    assert state.transactions == []


def test_second_settle_cannot_claim_a_claimed_session() -> None:
    services = make_services()
    session, _ = open_table(services, "alice")
    services.repo.update_session_status(session.id, SessionStatus.SETTLING, expected_status=SessionStatus.ACTIVE)

    with pytest.raises(SessionNotActive):
        services.settlement.settle_session(session.id)
    with pytest.raises(SessionNotActive):
        services.repo.update_session_status(session.id, SessionStatus.SETTLING, expected_status=SessionStatus.ACTIVE)


def test_compare_settlements_reads_current_balances() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob", "carol")
    for player in players.values():
        services.ledger.record_buy_in(session.id, player.id, 10000)
    services.ledger.record_cash_out(session.id, players["alice"].id, 15000)
    services.ledger.record_cash_out(session.id, players["bob"].id, 15000)

    comparison = services.settlement.compare_settlements(session.id)
    weighted = services.settlement.compare_settlements(
        session.id, PriorityWeights(simplicity=0, fairness=1, efficiency=0, user_friendliness=0)
    )

    assert comparison.session_id == session.id
    assert all(item.is_valid and item.total_amount_moved == 10000 for item in comparison.alternatives)
    assert comparison.recommendation.algorithm == SettlementAlgorithm.GREEDY
    assert all(item.score == item.fairness for item in weighted.alternatives)
    assert services.ledger.get_session_state(session.id).session.status == SessionStatus.ACTIVE


def test_prove_settlement_covers_every_player() -> None:
    services = make_services()
    session, players = open_table(services, "alice", "bob")
    services.ledger.record_buy_in(session.id, players["alice"].id, 10000)
    services.ledger.record_cash_out(session.id, players["bob"].id, 10000)

    proof = services.settlement.prove_settlement(session.id)

    assert proof.is_valid
    assert {step.player_id for step in proof.steps if step.player_id} == {player.id for player in players.values()}

    services.ledger.record_cash_out(session.id, players["alice"].id, 100)
    with pytest.raises(UnbalancedLedger):
        services.settlement.prove_settlement(session.id)
