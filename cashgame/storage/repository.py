from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from cashgame.domain import LedgerSnapshot, PlayerRecord, Transaction, TransactionKind
from cashgame.storage.database import Base
from cashgame.storage.models import PlayerRow, TransactionRow


class LedgerRowNotFound(LookupError):
    """Raised by write helpers when the targeted player or transaction does not exist."""


def _player(row: PlayerRow) -> PlayerRecord:
    return PlayerRecord(player_id=row.player_id, name=row.name, current_chips=row.current_chips)


def _transaction(row: TransactionRow) -> Transaction:
    return Transaction(
        id=row.id,
        session_id=row.session_id,
        player_id=row.player_id,
        kind=TransactionKind(row.kind),
        amount=row.amount,
        timestamp=row.timestamp,
        voided=row.voided,
    )


class SqlLedger:
    """SQLAlchemy-backed roster and transaction store.

    Reads satisfy the async ``LedgerReader`` protocol by running the blocking
    query in a worker thread. Writes and ``get_snapshot`` share one lock, so a
    snapshot never pairs a roster from before a commit with transactions from
    after it. Writers in other processes are not covered by that lock.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory
        self._write_lock = threading.RLock()

    def create_tables(self) -> None:
        with self._session_factory() as db:
            Base.metadata.create_all(bind=db.get_bind())

    def _seat(self, db: Session, session_id: str, player_id: str) -> PlayerRow | None:
        return db.scalars(
            select(PlayerRow).where(PlayerRow.session_id == session_id, PlayerRow.player_id == player_id)
        ).first()

    def add_player(self, session_id: str, player_id: str, name: str, current_chips: Decimal | str = "0") -> PlayerRecord:
        record = PlayerRecord(player_id=player_id, name=name, current_chips=Decimal(str(current_chips)))
        with self._write_lock, self._session_factory() as db:
            db.add(
                PlayerRow(
                    session_id=session_id,
                    player_id=record.player_id,
                    name=record.name,
                    current_chips=record.current_chips,
                )
            )
            db.commit()
        return record

    def set_chips(self, session_id: str, player_id: str, current_chips: Decimal | str) -> PlayerRecord:
        with self._write_lock, self._session_factory() as db:
            row = self._seat(db, session_id, player_id)
            if row is None:
                raise LedgerRowNotFound(f"player {player_id} not found in session {session_id}")
            record = PlayerRecord(player_id=row.player_id, name=row.name, current_chips=Decimal(str(current_chips)))
            row.current_chips = record.current_chips
            db.commit()
            return record

    def record_transaction(
        self,
        session_id: str,
        player_id: str,
        kind: TransactionKind,
        amount: Decimal | str,
        *,
        timestamp: datetime | None = None,
    ) -> Transaction:
        transaction = Transaction(
            id=uuid4().hex,
            session_id=session_id,
            player_id=player_id,
            kind=kind,
            amount=Decimal(str(amount)),
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        with self._write_lock, self._session_factory() as db:
            if self._seat(db, transaction.session_id, transaction.player_id) is None:
                raise LedgerRowNotFound(f"player {transaction.player_id} not found in session {session_id}")
            db.add(
                TransactionRow(
                    id=transaction.id,
                    session_id=transaction.session_id,
                    player_id=transaction.player_id,
                    kind=transaction.kind.value,
                    amount=transaction.amount,
                    timestamp=transaction.timestamp,
                    voided=False,
                )
            )
            db.commit()
        return transaction

    def void_transaction(self, session_id: str, transaction_id: str) -> None:
        with self._write_lock, self._session_factory() as db:
            row = db.get(TransactionRow, transaction_id)
            if row is None or row.session_id != session_id:
                raise LedgerRowNotFound(f"transaction {transaction_id} not found in session {session_id}")
            row.voided = True
            db.commit()

    def _player_rows(self, db: Session, session_id: str) -> list[PlayerRow]:
        return list(db.scalars(select(PlayerRow).where(PlayerRow.session_id == session_id).order_by(PlayerRow.id)))

    def _transaction_rows(self, db: Session, session_id: str) -> list[TransactionRow]:
        return list(
            db.scalars(
                select(TransactionRow)
                .where(TransactionRow.session_id == session_id)
                .order_by(TransactionRow.timestamp, TransactionRow.id)
            )
        )

    def _load_transactions(self, session_id: str) -> list[Transaction]:
        with self._session_factory() as db:
            return [_transaction(row) for row in self._transaction_rows(db, session_id)]

    def _load_players(self, session_id: str) -> list[PlayerRecord]:
        with self._session_factory() as db:
            return [_player(row) for row in self._player_rows(db, session_id)]

    def _load_snapshot(self, session_id: str) -> LedgerSnapshot:
        with self._write_lock, self._session_factory() as db:
            players = tuple(_player(row) for row in self._player_rows(db, session_id))
            transactions = tuple(_transaction(row) for row in self._transaction_rows(db, session_id))
        return LedgerSnapshot(session_id=session_id, players=players, transactions=transactions)

    async def get_transaction_history(self, session_id: str) -> list[Transaction]:
        return await asyncio.to_thread(self._load_transactions, session_id)

    async def get_players(self, session_id: str) -> list[PlayerRecord]:
        return await asyncio.to_thread(self._load_players, session_id)

    async def get_snapshot(self, session_id: str) -> LedgerSnapshot:
        return await asyncio.to_thread(self._load_snapshot, session_id)
