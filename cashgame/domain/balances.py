"""Per-player net positions and pot totals derived from the transaction ledger."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from .ledger import PlayerRecord, Transaction, active_transactions, unique_roster
from .money import ZERO, add_amounts, subtract_amounts, sum_amounts


class SettlementDirection(str, Enum):
    OWED = "owed"
    OWES = "owes"


def direction_for(net_amount: Decimal) -> SettlementDirection:
    return SettlementDirection.OWED if net_amount >= ZERO else SettlementDirection.OWES


@dataclass(frozen=True)
class PlayerSettlement:
    player_id: str
    player_name: str
    current_chips: Decimal
    total_buy_ins: Decimal
    total_cash_outs: Decimal
    net_amount: Decimal
    owes_or_owed: SettlementDirection

    @property
    def is_debtor(self) -> bool:
        return self.net_amount < ZERO

    @property
    def is_creditor(self) -> bool:
        return self.net_amount > ZERO


@dataclass(frozen=True)
class BankBalance:
    total_buy_ins: Decimal
    total_cash_outs: Decimal
    available_for_cash_out: Decimal
    is_balanced: bool


def settle_player(player: PlayerRecord, transactions: Iterable[Transaction]) -> PlayerSettlement:
    buy_ins = ZERO
    cash_outs = ZERO
    for tx in active_transactions(transactions):
        if tx.player_id != player.player_id:
            continue
        if tx.is_buy_in:
            buy_ins = add_amounts(buy_ins, tx.amount)
        elif tx.is_cash_out:
            cash_outs = add_amounts(cash_outs, tx.amount)

    net = subtract_amounts(player.current_chips, buy_ins)
    return PlayerSettlement(
        player_id=player.player_id,
        player_name=player.name,
        current_chips=player.current_chips,
        total_buy_ins=buy_ins,
        total_cash_outs=cash_outs,
        net_amount=net,
        owes_or_owed=direction_for(net),
    )


def calculate_player_settlements(
    players: Sequence[PlayerRecord],
    transactions: Sequence[Transaction],
) -> list[PlayerSettlement]:
    """One settlement per roster player, in roster order.

    ``net_amount = current_chips - total_buy_ins``; cash-outs are reported but do
    not enter the net. Voided transactions are ignored.
    """
    roster = unique_roster(players)
    live = active_transactions(transactions)
    return [settle_player(player, live) for player in roster]


def calculate_bank_balance(transactions: Iterable[Transaction]) -> BankBalance:
    live = active_transactions(transactions)
    total_buy_ins = sum_amounts(tx.amount for tx in live if tx.is_buy_in)
    total_cash_outs = sum_amounts(tx.amount for tx in live if tx.is_cash_out)
    available = subtract_amounts(total_buy_ins, total_cash_outs)
    return BankBalance(
        total_buy_ins=total_buy_ins,
        total_cash_outs=total_cash_outs,
        available_for_cash_out=available,
        is_balanced=available >= ZERO,
    )


def net_total(settlements: Iterable[PlayerSettlement]) -> Decimal:
    return sum_amounts(s.net_amount for s in settlements)
