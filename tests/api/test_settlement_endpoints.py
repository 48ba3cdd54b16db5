import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pokerledger.main import app
from pokerledger.runtime import Services, get_services
from pokerledger.storage.database import Base


@pytest.fixture
def client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
    services = Services(TestingSessionLocal)

    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def open_table(client: TestClient, *names: str) -> tuple[str, dict[str, str]]:
    session_id = client.post("/sessions", json={"name": "Friday"}).json()["id"]
    players = {
        name: client.post(f"/sessions/{session_id}/players", json={"name": name}).json()["id"] for name in names
    }
    client.post(f"/sessions/{session_id}/start")
    return session_id, players


def record(client: TestClient, session_id: str, player_id: str, kind: str, amount: str) -> None:
    response = client.post(
        f"/sessions/{session_id}/transactions",
        json={"player_id": player_id, "type": kind, "amount": amount},
    )
    assert response.status_code == 201


def test_early_cash_out_is_capped_at_pot(client: TestClient) -> None:
    session_id, players = open_table(client, "alice", "bob")
    record(client, session_id, players["alice"], "buy_in", "200.00")
    record(client, session_id, players["bob"], "buy_in", "100.00")
    record(client, session_id, players["bob"], "cash_out", "150.00")

    response = client.post(f"/sessions/{session_id}/early-cash-out", json={"player_id": players["alice"]})

    assert response.status_code == 200
    data = response.json()
    assert data["cash_out_amount"] == "150.00"
    assert data["shortfall"] == "50.00"
    assert data["remaining_pot_share"] == "0.00"
    assert data["pot_before"] == "150.00"
    assert data["settlement_type"] == "payment_to_player"


def test_early_cash_out_for_cashed_out_player_is_a_conflict(client: TestClient) -> None:
    session_id, players = open_table(client, "alice")
    record(client, session_id, players["alice"], "cash_out", "10.00")

    response = client.post(f"/sessions/{session_id}/early-cash-out", json={"player_id": players["alice"]})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "invalid_player_state"


def test_preview_then_settle(client: TestClient) -> None:
    session_id, players = open_table(client, "alice", "bob", "carol")
    for player_id in players.values():
        record(client, session_id, player_id, "buy_in", "100.00")
    record(client, session_id, players["alice"], "cash_out", "150.00")
    record(client, session_id, players["bob"], "cash_out", "150.00")

    preview = client.get(f"/sessions/{session_id}/settlement/preview")
    assert preview.status_code == 200
    assert client.get(f"/sessions/{session_id}").json()["session"]["status"] == "active"

    settle = client.post(f"/sessions/{session_id}/settlement")
    assert settle.status_code == 200
    data = settle.json()
    assert data["payments"] == preview.json()["payments"]
    assert data["total_amount_moved"] == "100.00"
    assert data["validation"]["is_valid"] is True
    assert data["validation"]["balance_discrepancy"] == "0.00"
    assert data["direct_payment_count"] == 2
    assert sorted((p["from_player_id"], p["to_player_id"], p["amount"]) for p in data["payments"]) == sorted(
        [
            (players["carol"], players["alice"], "50.00"),
            (players["carol"], players["bob"], "50.00"),
        ]
    )

    session = client.get(f"/sessions/{session_id}").json()["session"]
    assert session["status"] == "completed"

    again = client.post(f"/sessions/{session_id}/settlement")
    assert again.status_code == 409


def test_unbalanced_settlement_reports_discrepancy(client: TestClient) -> None:
    session_id, players = open_table(client, "alice", "bob")
    record(client, session_id, players["alice"], "buy_in", "100.00")

    response = client.post(f"/sessions/{session_id}/settlement")

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["code"] == "unbalanced_ledger"
    assert detail["details"] == {"discrepancy": "-100.00"}
    assert client.get(f"/sessions/{session_id}").json()["session"]["status"] == "active"


def test_settlement_for_unknown_session(client: TestClient) -> None:
    response = client.get("/sessions/missing/settlement/preview")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "session_not_found"


def test_alternatives_are_scored_and_recommended(client: TestClient) -> None:
    session_id, players = open_table(client, "alice", "bob", "carol")
    for player_id in players.values():
        record(client, session_id, player_id, "buy_in", "100.00")
    record(client, session_id, players["alice"], "cash_out", "150.00")
    record(client, session_id, players["bob"], "cash_out", "150.00")

    response = client.get(f"/sessions/{session_id}/settlement/alternatives")

    assert response.status_code == 200
    data = response.json()
    assert [item["algorithm"] for item in data["alternatives"]] == [
        "greedy_debt_reduction",
        "direct_settlement",
        "hub_based",
        "balanced_flow",
        "minimal_transactions",
        "round_robin",
    ]
    assert all(item["is_valid"] and item["total_amount_moved"] == "100.00" for item in data["alternatives"])
    assert data["recommendation"]["algorithm"] == "greedy_debt_reduction"
    assert data["recommendation"]["complexity_level"] == "low"


def test_alternatives_reject_all_zero_weights(client: TestClient) -> None:
    session_id, _ = open_table(client, "alice")
    params = {"simplicity": 0, "fairness": 0, "efficiency": 0, "user_friendliness": 0}

    response = client.get(f"/sessions/{session_id}/settlement/alternatives", params=params)

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "validation_error"
    assert client.get(f"/sessions/{session_id}/settlement/alternatives", params={"fairness": -1}).status_code == 422


def test_proof_names_players_in_summary(client: TestClient) -> None:
    session_id, players = open_table(client, "alice", "bob")
    record(client, session_id, players["alice"], "buy_in", "80.00")
    record(client, session_id, players["bob"], "cash_out", "80.00")

    response = client.get(f"/sessions/{session_id}/settlement/proof")

    assert response.status_code == 200
    data = response.json()
    assert data["is_valid"] is True
    assert data["steps"][0]["operation"] == "zero_sum"
    assert "(alice)" in data["summary"]
    assert "(bob)" in data["summary"]
    assert {check["algorithm"] for check in data["algorithm_checks"]} == {
        "direct_settlement",
        "greedy_debt_reduction",
        "balanced_flow",
    }
    assert client.get("/sessions/missing/settlement/proof").status_code == 404
