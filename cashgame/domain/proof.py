"""Step-by-step arithmetic proof that a settlement pays everyone what they are owed.

Each step records its inputs, the formula applied and the result, so the proof
can be read by a person or re-checked by a machine. The checksum covers the
settlement's identity and every step result.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from .ledger import utc_now
from .money import EPSILON, ZERO, subtract_amounts, sum_amounts
from .settlement import OptimizedSettlement


@dataclass(frozen=True)
class ProofStep:
    step_number: int
    operation: str
    description: str
    inputs: dict[str, str]
    calculation: str
    result: Decimal
    verified: bool
    tolerance: Decimal = EPSILON


@dataclass(frozen=True)
class PlayerFlow:
    player_id: str
    player_name: str
    paid: Decimal
    received: Decimal
    settled: Decimal
    net_amount: Decimal
    discrepancy: Decimal

    @property
    def verified(self) -> bool:
        return abs(self.discrepancy) <= EPSILON


@dataclass(frozen=True)
class SettlementProof:
    session_id: str
    steps: tuple[ProofStep, ...]
    player_flows: tuple[PlayerFlow, ...]
    summary: tuple[str, ...]
    checksum: str
    is_valid: bool
    generated_at: datetime = field(default_factory=utc_now, compare=False)


def _flows(settlement: OptimizedSettlement) -> list[PlayerFlow]:
    flows = []
    for player in settlement.player_settlements:
        paid = sum_amounts(p.amount for p in settlement.payment_plan if p.from_player_id == player.player_id)
        received = sum_amounts(p.amount for p in settlement.payment_plan if p.to_player_id == player.player_id)
        settled = subtract_amounts(received, paid)
        flows.append(
            PlayerFlow(
                player_id=player.player_id,
                player_name=player.player_name,
                paid=paid,
                received=received,
                settled=settled,
                net_amount=player.net_amount,
                discrepancy=subtract_amounts(settled, player.net_amount),
            )
        )
    return flows


def _checksum(settlement: OptimizedSettlement, steps: list[ProofStep]) -> str:
    digest = hashlib.sha256()
    digest.update(settlement.session_id.encode())
    for payment in settlement.payment_plan:
        digest.update(f"|{payment.from_player_id}>{payment.to_player_id}:{payment.amount}".encode())
    for step in steps:
        digest.update(f"|{step.step_number}:{step.result}:{int(step.verified)}".encode())
    return digest.hexdigest()


def build_settlement_proof(settlement: OptimizedSettlement) -> SettlementProof:
    players = settlement.player_settlements
    plan = settlement.payment_plan
    steps: list[ProofStep] = []

    net_sum = sum_amounts(p.net_amount for p in players)
    steps.append(
        ProofStep(
            step_number=1,
            operation="Net position calculation",
            description="Each player's net position is current chips minus buy-ins; the table nets to zero",
            inputs={
                "player_count": str(len(players)),
                "total_current_chips": str(sum_amounts(p.current_chips for p in players)),
                "total_buy_ins": str(sum_amounts(p.total_buy_ins for p in players)),
            },
            calculation="sum(current_chips - buy_ins)",
            result=net_sum,
            verified=abs(net_sum) <= EPSILON,
        )
    )

    plan_total = sum_amounts(p.amount for p in plan)
    steps.append(
        ProofStep(
            step_number=2,
            operation="Payment total",
            description="Sum of every payment in the plan",
            inputs={
                "payment_count": str(len(plan)),
                "direct_transaction_count": str(settlement.direct_transaction_count),
            },
            calculation="sum(payment.amount)",
            result=plan_total,
            verified=all(p.amount > ZERO for p in plan),
        )
    )

    owed = sum_amounts(-p.net_amount for p in players if p.net_amount < ZERO)
    gap = subtract_amounts(plan_total, owed)
    steps.append(
        ProofStep(
            step_number=3,
            operation="Balance verification",
            description="Money paid out by the plan equals money owed by losing players",
            inputs={"total_paid": str(plan_total), "total_owed": str(owed)},
            calculation="total_paid - total_owed",
            result=gap,
            verified=abs(gap) <= EPSILON,
        )
    )

    flows = _flows(settlement)
    for number, flow in enumerate(flows, start=4):
        steps.append(
            ProofStep(
                step_number=number,
                operation=f"Player check: {flow.player_name}",
                description=f"Payments to and from {flow.player_name} cover their net position",
                inputs={
                    "received": str(flow.received),
                    "paid": str(flow.paid),
                    "net_amount": str(flow.net_amount),
                },
                calculation="(received - paid) - net_amount",
                result=flow.discrepancy,
                verified=flow.verified,
            )
        )

    is_valid = all(step.verified for step in steps)
    failed = [step.step_number for step in steps if not step.verified]
    summary = [
        f"{len(players)} player(s) settle with {len(plan)} payment(s) totalling {plan_total}.",
        f"Losing players owe {owed}; the plan differs from that by {abs(gap)}.",
        f"{sum(1 for f in flows if f.verified)} of {len(flows)} player(s) end exactly at their net position.",
    ]
    if is_valid:
        summary.append("Every step verifies within one cent.")
    else:
        summary.append("Failed step(s): " + ", ".join(str(n) for n in failed) + ".")

    return SettlementProof(
        session_id=settlement.session_id,
        steps=tuple(steps),
        player_flows=tuple(flows),
        summary=tuple(summary),
        checksum=_checksum(settlement, steps),
        is_valid=is_valid,
    )
