from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Protocol, runtime_checkable

from cashgame.domain import LedgerSnapshot, PlayerRecord, Transaction


@runtime_checkable
class LedgerReader(Protocol):
    async def get_transaction_history(self, session_id: str) -> list[Transaction]: ...

    async def get_players(self, session_id: str) -> list[PlayerRecord]: ...

    async def get_snapshot(self, session_id: str) -> LedgerSnapshot:
        """Roster and transactions read together, with no write landing in between."""
        ...


class InMemoryLedger:
    """Dict-backed ledger used in tests and when embedding the engine without a database."""

    def __init__(self) -> None:
        self._players: dict[str, list[PlayerRecord]] = defaultdict(list)
        self._transactions: dict[str, list[Transaction]] = defaultdict(list)

    def add_player(self, session_id: str, player: PlayerRecord) -> None:
        self._players[session_id].append(player)

    def set_chips(self, session_id: str, player_id: str, chips: Decimal | str) -> None:
        roster = self._players[session_id]
        for idx, player in enumerate(roster):
            if player.player_id == player_id:
                roster[idx] = PlayerRecord(player_id=player.player_id, name=player.name, current_chips=chips)
                return
        raise KeyError(player_id)

    def record(self, transaction: Transaction) -> None:
        seated = {p.player_id for p in self._players.get(transaction.session_id, [])}
        if transaction.player_id not in seated:
            raise KeyError(transaction.player_id)
        self._transactions[transaction.session_id].append(transaction)

    def void(self, session_id: str, transaction_id: str) -> None:
        history = self._transactions[session_id]
        for idx, tx in enumerate(history):
            if tx.id == transaction_id:
                history[idx] = Transaction(
                    id=tx.id,
                    session_id=tx.session_id,
                    player_id=tx.player_id,
                    kind=tx.kind,
                    amount=tx.amount,
                    timestamp=tx.timestamp,
                    voided=True,
                )
                return
        raise KeyError(transaction_id)

    async def get_transaction_history(self, session_id: str) -> list[Transaction]:
        return list(self._transactions.get(session_id, []))

    async def get_players(self, session_id: str) -> list[PlayerRecord]:
        return list(self._players.get(session_id, []))

    async def get_snapshot(self, session_id: str) -> LedgerSnapshot:
        return LedgerSnapshot(
            session_id=session_id,
            players=tuple(self._players.get(session_id, [])),
            transactions=tuple(self._transactions.get(session_id, [])),
        )
