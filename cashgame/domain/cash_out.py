from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from .balances import BankBalance, SettlementDirection, calculate_bank_balance, settle_player
from .ledger import PlayerRecord, Transaction, utc_now
from .money import add_amounts, subtract_amounts, to_money
from .result import Fail, Ok, Result


@dataclass(frozen=True)
class EarlyCashOutResult:
    session_id: str
    player_id: str
    player_name: str
    current_chips: Decimal
    total_buy_ins: Decimal
    net_amount: Decimal
    owes_or_owed: SettlementDirection
    settlement_amount: Decimal
    can_payout: bool
    bank_balance: Decimal
    bank_balance_after: Decimal
    message: str
    calculated_at: datetime = field(default_factory=utc_now)


def _message(direction: SettlementDirection, amount: Decimal, can_payout: bool, available: Decimal) -> str:
    if direction == SettlementDirection.OWES:
        return f"player pays the pot ${amount}"
    if not can_payout:
        return f"insufficient pot: try up to ${max(available, to_money(0))}"
    return f"pot pays player ${amount}"


def quote_early_cash_out(
    session_id: str,
    player: PlayerRecord,
    transactions: Sequence[Transaction],
    bank: BankBalance | None = None,
) -> EarlyCashOutResult:
    """Quote what a departing player receives or owes right now.

    Running short of pot funds is reported through ``can_payout``; the caller
    decides whether to block, override or queue the cash-out.
    """
    bank = bank or calculate_bank_balance(transactions)
    position = settle_player(player, transactions)
    direction = position.owes_or_owed
    amount = abs(position.net_amount)
    available = bank.available_for_cash_out

    if direction == SettlementDirection.OWED:
        can_payout = amount <= available
        after = subtract_amounts(available, amount)
    else:
        can_payout = True
        after = add_amounts(available, amount)

    return EarlyCashOutResult(
        session_id=session_id,
        player_id=position.player_id,
        player_name=position.player_name,
        current_chips=position.current_chips,
        total_buy_ins=position.total_buy_ins,
        net_amount=position.net_amount,
        owes_or_owed=direction,
        settlement_amount=to_money(amount),
        can_payout=can_payout,
        bank_balance=available,
        bank_balance_after=after,
        message=_message(direction, to_money(amount), can_payout, available),
    )


def authorize_payout(quote: EarlyCashOutResult) -> Result[EarlyCashOutResult]:
    if quote.can_payout:
        return Ok(quote)
    return Fail(
        code="INSUFFICIENT_BANK_BALANCE",
        message=quote.message,
        details={
            "player_id": quote.player_id,
            "requested": str(quote.settlement_amount),
            "available": str(quote.bank_balance),
        },
    )
