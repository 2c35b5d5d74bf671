import pytest

fastapi = pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from cashgame.config import EngineSettings
from cashgame.main import app
from cashgame.runtime import build_runtime, get_ledger, get_service
from cashgame.service import SettlementService
from cashgame.services.settlement_run import GENERIC_FAILURE_MESSAGE


class _BrokenLedger:
    async def get_transaction_history(self, session_id):
        raise OSError("disk gone")

    async def get_players(self, session_id):
        raise OSError("disk gone")

    async def get_snapshot(self, session_id):
        raise OSError("disk gone")


@pytest.fixture
def client(tmp_path):
    runtime = build_runtime(EngineSettings(database_url=f"sqlite:///{tmp_path / 'api.db'}"))
    app.dependency_overrides[get_ledger] = lambda: runtime.ledger
    app.dependency_overrides[get_service] = lambda: runtime.service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def broken_client():
    app.dependency_overrides[get_service] = lambda: SettlementService(_BrokenLedger())
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _seat_table(client: TestClient, session_id: str = "friday") -> None:
    for pid, chips in [("a", "150.00"), ("b", "80.00"), ("c", "80.00"), ("d", "90.00")]:
        seated = client.post(
            f"/sessions/{session_id}/players",
            json={"player_id": pid, "name": pid.upper(), "current_chips": chips},
        )
        assert seated.status_code == 201
        bought = client.post(
            f"/sessions/{session_id}/transactions",
            json={"player_id": pid, "kind": "buy_in", "amount": "100.00"},
        )
        assert bought.status_code == 201


def test_full_settlement_contract(client: TestClient) -> None:
    _seat_table(client)

    response = client.post("/sessions/friday/settlement")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["failure"] is None
    settlement = body["settlement"]
    assert settlement["total_amount"] == "50.00"
    assert settlement["transaction_count"] == 3
    assert settlement["direct_transaction_count"] == 4
    assert [(p["from_player_id"], p["to_player_id"], p["amount"]) for p in settlement["payment_plan"]] == [
        ("b", "a", "20.00"),
        ("c", "a", "20.00"),
        ("d", "a", "10.00"),
    ]
    assert body["validation"]["is_valid"] is True
    assert len(body["validation"]["audit_trail"]) == 4


def test_validate_endpoint_rechecks_posted_plan(client: TestClient) -> None:
    _seat_table(client)
    settlement = client.post("/sessions/friday/settlement").json()["settlement"]

    clean = client.post("/settlements/validate", json=settlement)
    assert clean.status_code == 200
    assert clean.json()["is_valid"] is True

    settlement["payment_plan"][0]["amount"] = "20.02"
    tampered = client.post("/settlements/validate", json=settlement)

    assert tampered.status_code == 200
    body = tampered.json()
    assert body["is_valid"] is False
    affected = {player for issue in body["errors"] for player in issue["affected_players"]}
    assert {"a", "b"} <= affected


def test_unbalanced_table_reports_error_with_report(client: TestClient) -> None:
    client.post("/sessions/odd/players", json={"player_id": "a", "name": "A", "current_chips": "130.00"})
    client.post("/sessions/odd/players", json={"player_id": "b", "name": "B", "current_chips": "80.00"})
    for pid in ("a", "b"):
        client.post("/sessions/odd/transactions", json={"player_id": pid, "kind": "buy_in", "amount": "100.00"})

    response = client.post("/sessions/odd/settlement")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "error"
    assert body["settlement"]["is_balanced"] is False
    assert body["failure"]["code"] == "SETTLEMENT_INVALID"


def test_bank_balance_and_early_cash_out(client: TestClient) -> None:
    _seat_table(client)
    cashed = client.post(
        "/sessions/friday/transactions",
        json={"player_id": "b", "kind": "cash_out", "amount": "385.00"},
    )
    assert cashed.status_code == 201

    balance = client.get("/sessions/friday/bank-balance")
    assert balance.status_code == 200
    assert balance.json() == {
        "total_buy_ins": "400.00",
        "total_cash_outs": "385.00",
        "available_for_cash_out": "15.00",
        "is_balanced": True,
    }

    quote = client.get("/sessions/friday/players/a/early-cash-out")
    assert quote.status_code == 200
    body = quote.json()
    assert body["owes_or_owed"] == "owed"
    assert body["settlement_amount"] == "50.00"
    assert body["can_payout"] is False
    assert body["message"] == "insufficient pot: try up to $15.00"


def test_void_and_chip_updates(client: TestClient) -> None:
    _seat_table(client)
    extra = client.post(
        "/sessions/friday/transactions",
        json={"player_id": "a", "kind": "buy_in", "amount": "50.00"},
    ).json()

    voided = client.post(f"/sessions/friday/transactions/{extra['id']}/void")
    assert voided.status_code == 200
    assert voided.json() == {"status": "voided", "transaction_id": extra["id"]}

    chips = client.put("/sessions/friday/players/a/chips", json={"current_chips": "160.00"})
    assert chips.status_code == 200
    assert chips.json()["current_chips"] == "160.00"

    balance = client.get("/sessions/friday/bank-balance").json()
    assert balance["total_buy_ins"] == "400.00"


def test_ledger_write_errors(client: TestClient) -> None:
    _seat_table(client)

    duplicate = client.post("/sessions/friday/players", json={"player_id": "a", "name": "A"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "player_already_seated"

    blank = client.post("/sessions/friday/players", json={"player_id": "e", "name": "   "})
    assert blank.status_code == 400
    assert blank.json()["detail"]["code"] == "invalid_ledger_entry"

    missing = client.put("/sessions/friday/players/zed/chips", json={"current_chips": "1.00"})
    assert missing.status_code == 404

    unknown_tx = client.post("/sessions/friday/transactions/nope/void")
    assert unknown_tx.status_code == 404
    assert unknown_tx.json()["detail"]["code"] == "ledger_row_not_found"

    sub_cent = client.post(
        "/sessions/friday/transactions",
        json={"player_id": "a", "kind": "buy_in", "amount": "1.005"},
    )
    assert sub_cent.status_code == 422


def test_unknown_player_cash_out_is_404(client: TestClient) -> None:
    _seat_table(client)

    response = client.get("/sessions/friday/players/zed/early-cash-out")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "PLAYER_NOT_FOUND"


def test_store_failures_map_to_503(broken_client: TestClient) -> None:
    balance = broken_client.get("/sessions/friday/bank-balance")
    assert balance.status_code == 503
    assert balance.json()["detail"]["code"] == "BANK_BALANCE_FAILED"
    assert "try again" in balance.json()["detail"]["message"]

    settlement = broken_client.post("/sessions/friday/settlement")
    assert settlement.status_code == 503
    assert settlement.json()["detail"]["code"] == "OPTIMIZATION_FAILED"
    assert settlement.json()["detail"]["message"] == GENERIC_FAILURE_MESSAGE


def test_transaction_for_unseated_player_is_404(client: TestClient) -> None:
    _seat_table(client)

    response = client.post(
        "/sessions/friday/transactions",
        json={"player_id": "zed", "kind": "buy_in", "amount": "10.00"},
    )

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "ledger_row_not_found"
    assert client.get("/sessions/friday/bank-balance").json()["total_buy_ins"] == "400.00"


def test_alternatives_endpoint_compares_plans(client: TestClient) -> None:
    _seat_table(client)

    response = client.get("/sessions/friday/settlement/alternatives")

    assert response.status_code == 200
    body = response.json()
    assert [alt["algorithm"] for alt in body["alternatives"]] == [
        "roster_order",
        "balanced_flow",
        "largest_first",
        "direct",
    ]
    assert body["recommended"] == "roster_order"
    assert (body["min_transactions"], body["max_transactions"]) == (3, 3)
    assert all(alt["is_valid"] for alt in body["alternatives"])
    assert all(alt["settlement"]["total_amount"] == "50.00" for alt in body["alternatives"])


def test_proof_endpoint_walks_through_a_settlement(client: TestClient) -> None:
    _seat_table(client)
    settlement = client.post("/sessions/friday/settlement").json()["settlement"]

    sound = client.post("/settlements/proof", json=settlement)
    assert sound.status_code == 200
    body = sound.json()
    assert body["is_valid"] is True
    assert len(body["steps"]) == 7
    assert body["steps"][1]["result"] == "50.00"
    assert len(body["checksum"]) == 64

    settlement["payment_plan"][0]["amount"] = "20.02"
    tampered = client.post("/settlements/proof", json=settlement).json()
    assert tampered["is_valid"] is False
    assert tampered["checksum"] != body["checksum"]
    assert [step["step_number"] for step in tampered["steps"] if not step["verified"]] == [3, 4, 5]


def test_alternatives_store_failure_is_503(broken_client: TestClient) -> None:
    response = broken_client.get("/sessions/friday/settlement/alternatives")

    assert response.status_code == 503
    assert response.json()["detail"]["code"] == "ALTERNATIVE_GENERATION_FAILED"
