"""Independent re-derivation of a settlement's soundness, with a readable audit trail."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from .ledger import utc_now
from .money import EPSILON, ZERO, is_valid_amount, subtract_amounts, sum_amounts
from .settlement import OptimizedSettlement


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class IssueCode(str, Enum):
    UNBALANCED_SETTLEMENT = "UNBALANCED_SETTLEMENT"
    INVALID_PLAYER_STATE = "INVALID_PLAYER_STATE"
    FRACTIONAL_CENT_ERROR = "FRACTIONAL_CENT_ERROR"


@dataclass(frozen=True)
class ValidationIssue:
    code: IssueCode
    message: str
    severity: Severity
    affected_players: tuple[str, ...] = ()


@dataclass(frozen=True)
class SettlementValidation:
    is_valid: bool
    errors: tuple[ValidationIssue, ...]
    warnings: tuple[ValidationIssue, ...]
    audit_trail: tuple[str, ...]
    validated_at: datetime = field(default_factory=utc_now, compare=False)


def _player_flow(settlement: OptimizedSettlement, player_id: str) -> Decimal:
    received = sum_amounts(p.amount for p in settlement.payment_plan if p.to_player_id == player_id)
    paid = sum_amounts(p.amount for p in settlement.payment_plan if p.from_player_id == player_id)
    return subtract_amounts(received, paid)


def validate_settlement(settlement: OptimizedSettlement) -> SettlementValidation:
    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []
    audit: list[str] = []

    total_debits = sum_amounts(p.amount for p in settlement.payment_plan)
    total_credits = sum_amounts(-s.net_amount for s in settlement.player_settlements if s.net_amount < ZERO)
    balance_gap = abs(subtract_amounts(total_debits, total_credits))
    balanced = balance_gap <= EPSILON
    audit.append(
        f"Step 1: balance check - plan pays {total_debits}, debtors owe {total_credits}, "
        f"difference {balance_gap}: {'pass' if balanced else 'FAIL'}"
    )
    if not balanced:
        errors.append(
            ValidationIssue(
                code=IssueCode.UNBALANCED_SETTLEMENT,
                message=f"plan total {total_debits} does not match total owed {total_credits} (difference {balance_gap})",
                severity=Severity.CRITICAL,
            )
        )

    mismatched = 0
    for player in settlement.player_settlements:
        flow = _player_flow(settlement, player.player_id)
        gap = abs(subtract_amounts(flow, player.net_amount))
        if gap > EPSILON:
            mismatched += 1
            errors.append(
                ValidationIssue(
                    code=IssueCode.INVALID_PLAYER_STATE,
                    message=(
                        f"player {player.player_name} settles {flow} but net position is "
                        f"{player.net_amount} (difference {gap})"
                    ),
                    severity=Severity.CRITICAL,
                    affected_players=(player.player_id,),
                )
            )
    checked = len(settlement.player_settlements)
    audit.append(
        f"Step 2: per-player check - {checked - mismatched} of {checked} players match their net position"
    )

    bad_amounts = 0
    for payment in settlement.payment_plan:
        if payment.amount <= ZERO or not is_valid_amount(payment.amount):
            bad_amounts += 1
            errors.append(
                ValidationIssue(
                    code=IssueCode.FRACTIONAL_CENT_ERROR,
                    message=(
                        f"payment from {payment.from_player_name} to {payment.to_player_name} "
                        f"has invalid amount {payment.amount}"
                    ),
                    severity=Severity.MAJOR,
                    affected_players=(payment.from_player_id, payment.to_player_id),
                )
            )
    audit.append(
        f"Step 3: precision check - {len(settlement.payment_plan) - bad_amounts} of "
        f"{len(settlement.payment_plan)} payments are positive whole-cent amounts"
    )

    is_valid = not errors
    audit.append(
        f"Step 4: summary - {'valid' if is_valid else 'invalid'} with "
        f"{len(errors)} error(s) and {len(warnings)} warning(s)"
    )

    return SettlementValidation(
        is_valid=is_valid,
        errors=tuple(errors),
        warnings=tuple(warnings),
        audit_trail=tuple(audit),
    )
