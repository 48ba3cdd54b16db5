from datetime import datetime, timezone

import pytest

from pokerledger.domain import (
    DomainValidationError,
    LedgerSnapshot,
    NetPosition,
    Player,
    PlayerStatus,
    SessionInfo,
    SessionNotFound,
    SessionStatus,
    Transaction,
    TransactionType,
    balances_by_player,
    bank_balance,
    net_positions,
)

NOW = datetime(2025, 1, 1, 20, 0, tzinfo=timezone.utc)


def _tx(tx_id: str, player_id: str, kind: TransactionType, amount: int) -> Transaction:
    return Transaction(id=tx_id, player_id=player_id, type=kind, amount=amount, timestamp=NOW)


class FakeLedger:
    def __init__(self, session=None, players=(), transactions=()):
        self.session = session
        self.players = list(players)
        self.transactions = list(transactions)

    def get_session(self, session_id):
        return self.session

    def get_players(self, session_id):
        return self.players

    def get_non_voided_transactions(self, session_id):
        return [t for t in self.transactions if not t.voided]


@pytest.mark.parametrize("amount", [0, -100])
def test_transaction_amount_must_be_positive(amount):
    with pytest.raises(DomainValidationError):
        _tx("t1", "A", TransactionType.BUY_IN, amount)


def test_void_returns_a_voided_copy():
    original = _tx("t1", "A", TransactionType.BUY_IN, 5000)

    voided = original.void("typo", at=NOW)

    assert not original.voided
    assert voided.voided
    assert voided.void_reason == "typo"
    assert voided.voided_at == NOW
    with pytest.raises(DomainValidationError):
        voided.void("again")


def test_bank_balance_ignores_voided_transactions():
    transactions = [
        _tx("t1", "A", TransactionType.BUY_IN, 10000),
        _tx("t2", "B", TransactionType.BUY_IN, 5000).void("mistake", at=NOW),
        _tx("t3", "A", TransactionType.CASH_OUT, 4000),
    ]

    balance = bank_balance(transactions)

    assert balance.total_buy_ins == 10000
    assert balance.total_cash_outs == 4000
    assert balance.available == 6000


def test_net_positions_are_positive_for_winners_and_sorted_by_id():
    players = [
        Player("b", "bob", status=PlayerStatus.CASHED_OUT, total_buy_ins=10000, total_cash_outs=15000),
        Player("a", "alice", total_buy_ins=10000, total_cash_outs=5000),
        Player("c", "carol", total_buy_ins=2000, total_cash_outs=2000, prior_settlement=500),
    ]

    assert net_positions(players) == [
        NetPosition("a", -5000),
        NetPosition("b", 5000),
        NetPosition("c", -500),
    ]
    assert balances_by_player(players) == {"a": -5000, "b": 5000, "c": -500}


def test_current_balance_is_buy_ins_minus_cash_outs():
    player = Player("a", "alice", total_buy_ins=10000, total_cash_outs=2500)

    assert player.current_balance == 7500
    assert player.is_active


def test_snapshot_drops_voided_transactions():
    snapshot = LedgerSnapshot(
        session=SessionInfo("s1", "Friday", SessionStatus.ACTIVE),
        players=(Player("A", "alice"),),
        transactions=(
            _tx("t1", "A", TransactionType.BUY_IN, 100),
            _tx("t2", "A", TransactionType.BUY_IN, 200).void("dup", at=NOW),
        ),
    )

    assert [t.id for t in snapshot.transactions] == ["t1"]
    assert snapshot.find_player("A").name == "alice"
    assert snapshot.find_player("Z") is None


def test_snapshot_rejects_duplicate_players():
    with pytest.raises(DomainValidationError):
        LedgerSnapshot(
            session=SessionInfo("s1", "Friday", SessionStatus.ACTIVE),
            players=(Player("A", "alice"), Player("A", "alice again")),
        )


def test_snapshot_loads_through_ledger_view():
    ledger = FakeLedger(
        session=SessionInfo("s1", "Friday", SessionStatus.ACTIVE),
        players=[Player("A", "alice", total_buy_ins=100)],
        transactions=[_tx("t1", "A", TransactionType.BUY_IN, 100)],
    )

    snapshot = LedgerSnapshot.load(ledger, "s1")

    assert snapshot.session.id == "s1"
    assert len(snapshot.players) == 1
    assert len(snapshot.transactions) == 1


def test_snapshot_load_missing_session():
    with pytest.raises(SessionNotFound):
        LedgerSnapshot.load(FakeLedger(), "missing")
