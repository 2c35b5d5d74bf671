from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Iterable

from .money import ZERO, is_valid_amount, to_money


class DomainValidationError(ValueError):
    """Raised when a ledger row or roster entry is malformed."""


class TransactionKind(str, Enum):
    BUY_IN = "buy_in"
    CASH_OUT = "cash_out"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_id(value: str, field_name: str) -> str:
    normalized = str(value).strip()
    if not normalized:
        raise DomainValidationError(f"{field_name} must be non-empty")
    return normalized


@dataclass(frozen=True)
class Transaction:
    id: str
    session_id: str
    player_id: str
    kind: TransactionKind
    amount: Decimal
    timestamp: datetime = field(default_factory=utc_now)
    voided: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", normalize_id(self.id, "transaction id"))
        object.__setattr__(self, "session_id", normalize_id(self.session_id, "session id"))
        object.__setattr__(self, "player_id", normalize_id(self.player_id, "player id"))
        try:
            object.__setattr__(self, "kind", TransactionKind(self.kind))
        except ValueError as exc:
            raise DomainValidationError(f"unknown transaction kind: {self.kind}") from exc
        if not is_valid_amount(self.amount):
            raise DomainValidationError(f"transaction {self.id}: amount must have at most two decimals")
        amount = to_money(self.amount)
        if amount <= ZERO:
            raise DomainValidationError(f"transaction {self.id}: amount must be positive")
        object.__setattr__(self, "amount", amount)

    @property
    def is_buy_in(self) -> bool:
        return self.kind == TransactionKind.BUY_IN

    @property
    def is_cash_out(self) -> bool:
        return self.kind == TransactionKind.CASH_OUT


@dataclass(frozen=True)
class PlayerRecord:
    player_id: str
    name: str
    current_chips: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "player_id", normalize_id(self.player_id, "player id"))
        object.__setattr__(self, "name", normalize_id(self.name, "player name"))
        if not is_valid_amount(self.current_chips):
            raise DomainValidationError(f"player {self.player_id}: chips must have at most two decimals")
        chips = to_money(self.current_chips)
        if chips < ZERO:
            raise DomainValidationError(f"player {self.player_id}: chips cannot be negative")
        object.__setattr__(self, "current_chips", chips)


@dataclass(frozen=True)
class LedgerSnapshot:
    """One consistent read of a session's roster and transactions."""

    session_id: str
    players: tuple[PlayerRecord, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    taken_at: datetime = field(default_factory=utc_now)

    def find_player(self, player_id: str) -> PlayerRecord | None:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None


def active_transactions(transactions: Iterable[Transaction], session_id: str | None = None) -> list[Transaction]:
    """Drop voided rows, and rows from other sessions when a session id is given."""
    return [
        tx
        for tx in transactions
        if not tx.voided and (session_id is None or tx.session_id == session_id)
    ]


def unique_roster(players: Iterable[PlayerRecord]) -> list[PlayerRecord]:
    seen: set[str] = set()
    result: list[PlayerRecord] = []
    for player in players:
        if player.player_id in seen:
            raise DomainValidationError(f"duplicate player in roster: {player.player_id}")
        seen.add(player.player_id)
        result.append(player)
    return result
