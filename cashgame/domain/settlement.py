"""Reduction of net positions to a payment plan."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from .balances import PlayerSettlement, net_total
from .ledger import utc_now
from .money import EPSILON, ZERO, subtract_amounts, sum_amounts, to_money


@dataclass(frozen=True)
class Payment:
    from_player_id: str
    from_player_name: str
    to_player_id: str
    to_player_name: str
    amount: Decimal


@dataclass(frozen=True)
class OptimizedSettlement:
    session_id: str
    player_settlements: tuple[PlayerSettlement, ...]
    payment_plan: tuple[Payment, ...]
    total_amount: Decimal
    transaction_count: int
    direct_transaction_count: int
    transaction_reduction: int
    reduction_percentage: Decimal
    is_balanced: bool
    calculated_at: datetime = field(default_factory=utc_now)
    is_fallback: bool = False


def _payment(debtor: PlayerSettlement, creditor: PlayerSettlement, amount: Decimal) -> Payment:
    return Payment(
        from_player_id=debtor.player_id,
        from_player_name=debtor.player_name,
        to_player_id=creditor.player_id,
        to_player_name=creditor.player_name,
        amount=to_money(amount),
    )


def match_greedily(
    debtors: Sequence[PlayerSettlement],
    creditors: Sequence[PlayerSettlement],
) -> list[Payment]:
    """Pair the current first debtor with the current first creditor, in the order given.

    The smaller of the two remainders is paid and whichever side drops below a
    cent moves on. Callers choose the ordering.
    """
    creditor_left = [(s, s.net_amount) for s in creditors]
    debtor_left = [(s, -s.net_amount) for s in debtors]

    plan: list[Payment] = []
    creditor_idx = 0
    debtor_idx = 0
    while creditor_idx < len(creditor_left) and debtor_idx < len(debtor_left):
        creditor, creditor_amount = creditor_left[creditor_idx]
        debtor, debtor_amount = debtor_left[debtor_idx]

        amount = min(creditor_amount, debtor_amount)
        if amount >= EPSILON:
            plan.append(_payment(debtor, creditor, amount))

        creditor_amount = subtract_amounts(creditor_amount, amount)
        debtor_amount = subtract_amounts(debtor_amount, amount)
        creditor_left[creditor_idx] = (creditor, creditor_amount)
        debtor_left[debtor_idx] = (debtor, debtor_amount)

        if creditor_amount < EPSILON:
            creditor_idx += 1
        if debtor_amount < EPSILON:
            debtor_idx += 1

    return plan


def build_payment_plan(settlements: Sequence[PlayerSettlement]) -> list[Payment]:
    """Greedy debtor/creditor matching.

    Both sides keep roster order; the current first debtor pays the current
    first creditor the smaller of the two remainders. This stays within
    ``debtors + creditors - 1`` payments but is not always the minimum.
    """
    creditors = [s for s in settlements if s.net_amount > ZERO]
    debtors = [s for s in settlements if s.net_amount < ZERO]
    return match_greedily(debtors, creditors)


def _spans(members: Sequence[PlayerSettlement]) -> list[tuple[PlayerSettlement, Decimal, Decimal]]:
    spans = []
    start = ZERO
    for member in members:
        end = start + abs(member.net_amount)
        spans.append((member, start, end))
        start = end
    return spans


def build_direct_plan(settlements: Sequence[PlayerSettlement]) -> list[Payment]:
    """Unoptimized plan from laying debts and credits end to end in roster order.

    Every overlap between a debtor's span and a creditor's span is one payment.
    A single pass with exact cent comparisons; it does no remainder bookkeeping
    and never calls the optimizer.
    """
    debts = _spans([s for s in settlements if s.net_amount < ZERO])
    credits = _spans([s for s in settlements if s.net_amount > ZERO])

    plan: list[Payment] = []
    d_idx = c_idx = 0
    while d_idx < len(debts) and c_idx < len(credits):
        debtor, d_start, d_end = debts[d_idx]
        creditor, c_start, c_end = credits[c_idx]
        overlap = min(d_end, c_end) - max(d_start, c_start)
        if overlap > ZERO:
            plan.append(_payment(debtor, creditor, overlap))
        if d_end <= c_end:
            d_idx += 1
        else:
            c_idx += 1
    return plan


def count_direct_transactions(settlements: Sequence[PlayerSettlement]) -> int:
    return sum(1 for s in settlements if s.net_amount != ZERO)


def reduction_percentage(direct_count: int, actual_count: int) -> Decimal:
    if direct_count <= 0:
        return ZERO
    return to_money(Decimal(direct_count - actual_count) * 100 / Decimal(direct_count))


def build_optimized_settlement(
    session_id: str,
    settlements: Sequence[PlayerSettlement],
    *,
    plan: Sequence[Payment] | None = None,
    is_fallback: bool = False,
    calculated_at: datetime | None = None,
) -> OptimizedSettlement:
    payments = tuple(build_payment_plan(settlements) if plan is None else plan)
    direct_count = count_direct_transactions(settlements)
    return OptimizedSettlement(
        session_id=session_id,
        player_settlements=tuple(settlements),
        payment_plan=payments,
        total_amount=sum_amounts(p.amount for p in payments),
        transaction_count=len(payments),
        direct_transaction_count=direct_count,
        transaction_reduction=direct_count - len(payments),
        reduction_percentage=reduction_percentage(direct_count, len(payments)),
        is_balanced=abs(net_total(settlements)) <= EPSILON,
        calculated_at=calculated_at or utc_now(),
        is_fallback=is_fallback,
    )


def build_direct_settlement(
    session_id: str,
    settlements: Sequence[PlayerSettlement],
    *,
    calculated_at: datetime | None = None,
) -> OptimizedSettlement:
    """Direct plan flagged as a fallback, for when the configured optimizer overruns."""
    return build_optimized_settlement(
        session_id,
        settlements,
        plan=build_direct_plan(settlements),
        is_fallback=True,
        calculated_at=calculated_at,
    )
