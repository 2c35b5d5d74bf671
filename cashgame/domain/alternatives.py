"""Side-by-side payment plans built with different pairing orders."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from .balances import PlayerSettlement
from .ledger import utc_now
from .money import ZERO
from .settlement import (
    OptimizedSettlement,
    build_direct_plan,
    build_optimized_settlement,
    build_payment_plan,
    match_greedily,
)
from .validation import SettlementValidation, validate_settlement


class SettlementAlgorithm(str, Enum):
    ROSTER_ORDER = "roster_order"
    BALANCED_FLOW = "balanced_flow"
    LARGEST_FIRST = "largest_first"
    DIRECT = "direct"


@dataclass(frozen=True)
class AlternativeSettlement:
    algorithm: SettlementAlgorithm
    name: str
    description: str
    settlement: OptimizedSettlement
    validation: SettlementValidation

    @property
    def transaction_count(self) -> int:
        return self.settlement.transaction_count

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid


@dataclass(frozen=True)
class SettlementComparison:
    session_id: str
    alternatives: tuple[AlternativeSettlement, ...]
    recommended: AlternativeSettlement
    min_transactions: int
    max_transactions: int
    generated_at: datetime = field(default_factory=utc_now, compare=False)


def _debtors(settlements: Sequence[PlayerSettlement]) -> list[PlayerSettlement]:
    return [s for s in settlements if s.net_amount < ZERO]


def _creditors(settlements: Sequence[PlayerSettlement]) -> list[PlayerSettlement]:
    return [s for s in settlements if s.net_amount > ZERO]


def balanced_flow_plan(settlements: Sequence[PlayerSettlement]):
    # smallest debts meet the largest credits first
    debtors = sorted(_debtors(settlements), key=lambda s: abs(s.net_amount))
    creditors = sorted(_creditors(settlements), key=lambda s: s.net_amount, reverse=True)
    return match_greedily(debtors, creditors)


def largest_first_plan(settlements: Sequence[PlayerSettlement]):
    debtors = sorted(_debtors(settlements), key=lambda s: abs(s.net_amount), reverse=True)
    creditors = sorted(_creditors(settlements), key=lambda s: s.net_amount, reverse=True)
    return match_greedily(debtors, creditors)


ALGORITHMS = (
    (
        SettlementAlgorithm.ROSTER_ORDER,
        "Optimized settlement",
        "Greedy matching in seating order; the plan used for settling the session.",
        build_payment_plan,
    ),
    (
        SettlementAlgorithm.BALANCED_FLOW,
        "Balanced flow",
        "Smallest debts are paired with the largest winnings to spread payment sizes.",
        balanced_flow_plan,
    ),
    (
        SettlementAlgorithm.LARGEST_FIRST,
        "Largest first",
        "Biggest losers pay biggest winners first, which often removes a payment.",
        largest_first_plan,
    ),
    (
        SettlementAlgorithm.DIRECT,
        "Direct settlement",
        "Debts and winnings laid end to end in seating order without optimization.",
        build_direct_plan,
    ),
)


def compare_settlements(session_id: str, settlements: Sequence[PlayerSettlement]) -> SettlementComparison:
    """Build and validate every alternative plan for the same net positions.

    The recommendation is the valid plan with the fewest payments; ties go to
    the earlier entry in ``ALGORITHMS``, so the seating-order plan wins unless
    another is strictly shorter. When no plan validates the first one is
    recommended.
    """
    calculated_at = utc_now()
    alternatives = []
    for algorithm, name, description, planner in ALGORITHMS:
        settlement = build_optimized_settlement(
            session_id,
            settlements,
            plan=planner(settlements),
            calculated_at=calculated_at,
        )
        alternatives.append(
            AlternativeSettlement(
                algorithm=algorithm,
                name=name,
                description=description,
                settlement=settlement,
                validation=validate_settlement(settlement),
            )
        )

    valid = [alt for alt in alternatives if alt.is_valid]
    recommended = min(valid, key=lambda alt: alt.transaction_count) if valid else alternatives[0]
    counts = [alt.transaction_count for alt in alternatives]
    return SettlementComparison(
        session_id=session_id,
        alternatives=tuple(alternatives),
        recommended=recommended,
        min_transactions=min(counts),
        max_transactions=max(counts),
    )


def reduction_spread(comparison: SettlementComparison) -> tuple[Decimal, Decimal]:
    percentages = [alt.settlement.reduction_percentage for alt in comparison.alternatives]
    return min(percentages), max(percentages)
