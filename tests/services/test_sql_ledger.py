import asyncio
import threading
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from cashgame.config import EngineSettings
from cashgame.domain import DomainValidationError, TransactionKind, calculate_player_settlements
from cashgame.errors import ErrorCode, SettlementError
from cashgame.runtime import build_runtime
from cashgame.service import SettlementService
from cashgame.storage.database import build_engine, build_session_factory
from cashgame.storage.repository import LedgerRowNotFound, SqlLedger


@pytest.fixture
def ledger(tmp_path) -> SqlLedger:
    engine = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    store = SqlLedger(build_session_factory(engine))
    store.create_tables()
    return store


def test_roster_reads_back_in_seating_order(ledger: SqlLedger):
    ledger.add_player("s1", "bob", "Bob", "80")
    ledger.add_player("s1", "alice", "Alice", "175.50")
    ledger.add_player("s2", "carol", "Carol")

    players = asyncio.run(ledger.get_players("s1"))

    assert [p.player_id for p in players] == ["bob", "alice"]
    assert players[1].current_chips == Decimal("175.50")


def test_transactions_round_trip_with_void_flag(ledger: SqlLedger):
    ledger.add_player("s1", "alice", "Alice")
    ledger.add_player("s2", "alice", "Alice")
    kept = ledger.record_transaction("s1", "alice", TransactionKind.BUY_IN, "100")
    dropped = ledger.record_transaction("s1", "alice", "buy_in", "50")
    ledger.record_transaction("s2", "alice", "buy_in", "10")
    ledger.void_transaction("s1", dropped.id)

    history = asyncio.run(ledger.get_transaction_history("s1"))

    by_id = {tx.id: tx for tx in history}
    assert set(by_id) == {kept.id, dropped.id}
    assert by_id[kept.id].amount == Decimal("100.00")
    assert by_id[kept.id].voided is False
    assert by_id[dropped.id].voided is True


def test_set_chips_updates_existing_player(ledger: SqlLedger):
    ledger.add_player("s1", "alice", "Alice", "10")

    record = ledger.set_chips("s1", "alice", "42.10")

    assert record.current_chips == Decimal("42.10")
    (player,) = asyncio.run(ledger.get_players("s1"))
    assert player.current_chips == Decimal("42.10")


def test_missing_rows_raise_not_found(ledger: SqlLedger):
    with pytest.raises(LedgerRowNotFound):
        ledger.set_chips("s1", "ghost", "1")
    with pytest.raises(LedgerRowNotFound):
        ledger.void_transaction("s1", "missing")

    ledger.add_player("s1", "alice", "Alice")
    tx = ledger.record_transaction("s1", "alice", "buy_in", "5")
    with pytest.raises(LedgerRowNotFound):
        ledger.void_transaction("other-session", tx.id)


def test_duplicate_player_violates_unique_seat(ledger: SqlLedger):
    ledger.add_player("s1", "alice", "Alice")
    with pytest.raises(IntegrityError):
        ledger.add_player("s1", "alice", "Alice")


def test_sub_cent_values_are_rejected_not_rounded(ledger: SqlLedger):
    with pytest.raises(DomainValidationError):
        ledger.record_transaction("s1", "alice", "buy_in", "10.005")
    with pytest.raises(DomainValidationError):
        ledger.add_player("s1", "alice", "Alice", "1.999")
    assert asyncio.run(ledger.get_transaction_history("s1")) == []


def test_service_settles_from_sql_store(ledger: SqlLedger):
    for pid, chips in [("a", "150"), ("b", "80"), ("c", "80"), ("d", "90")]:
        ledger.add_player("s1", pid, pid.upper(), chips)
        ledger.record_transaction("s1", pid, "buy_in", "100")

    report = asyncio.run(SettlementService(ledger).settle_session("s1"))

    assert report.validation.is_valid
    assert report.settlement.total_amount == Decimal("50.00")
    assert [p.from_player_id for p in report.settlement.payment_plan] == ["b", "c", "d"]


def test_runtime_wires_store_and_service(tmp_path):
    runtime = build_runtime(EngineSettings(database_url=f"sqlite:///{tmp_path / 'runtime.db'}"))

    runtime.ledger.add_player("s1", "alice", "Alice", "0")

    assert runtime.service.ledger is runtime.ledger
    balance = asyncio.run(runtime.service.calculate_bank_balance("s1"))
    assert balance.total_buy_ins == Decimal("0.00")


def test_runtime_reports_unusable_database_url():
    with pytest.raises(SettlementError) as excinfo:
        build_runtime(EngineSettings(database_url="not a database url"))
    assert excinfo.value.code == ErrorCode.SETTLEMENT_INIT_FAILED


def test_unseated_player_cannot_record_transactions(ledger: SqlLedger):
    ledger.add_player("s1", "alice", "Alice")

    with pytest.raises(LedgerRowNotFound):
        ledger.record_transaction("s1", "ghost", "buy_in", "10")
    with pytest.raises(LedgerRowNotFound):
        ledger.record_transaction("s2", "alice", "buy_in", "10")

    assert asyncio.run(ledger.get_transaction_history("s1")) == []
    assert asyncio.run(ledger.get_transaction_history("s2")) == []


class _InterleavedWriteLedger(SqlLedger):
    """Starts a rebuy from another thread right after the roster has been read."""

    writer: threading.Thread | None = None
    writer_blocked = False

    def _rebuy(self, session_id: str) -> None:
        self.set_chips(session_id, "b", "100")
        self.record_transaction(session_id, "b", "buy_in", "50")

    def _player_rows(self, db, session_id):
        rows = super()._player_rows(db, session_id)
        if self.writer is None:
            self.writer = threading.Thread(target=self._rebuy, args=(session_id,))
            self.writer.start()
            self.writer.join(timeout=0.3)
            self.writer_blocked = self.writer.is_alive()
        return rows


def _nets(snapshot):
    return {s.player_id: s.net_amount for s in calculate_player_settlements(snapshot.players, snapshot.transactions)}


def test_snapshot_is_not_torn_by_a_concurrent_write(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'interleaved.db'}")
    store = _InterleavedWriteLedger(build_session_factory(engine))
    store.create_tables()
    store.add_player("s1", "a", "A", "150")
    store.add_player("s1", "b", "B", "50")
    store.record_transaction("s1", "a", "buy_in", "100")
    store.record_transaction("s1", "b", "buy_in", "100")

    before = asyncio.run(store.get_snapshot("s1"))
    store.writer.join()
    after = asyncio.run(store.get_snapshot("s1"))

    assert store.writer_blocked is True
    assert _nets(before) == {"a": Decimal("50.00"), "b": Decimal("-50.00")}
    assert len(before.transactions) == 2
    assert _nets(after) == {"a": Decimal("50.00"), "b": Decimal("-50.00")}
    assert len(after.transactions) == 3
