from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cashgame.domain import (
    IssueCode,
    OptimizedSettlement,
    Payment,
    PlayerSettlement,
    SettlementAlgorithm,
    SettlementDirection,
    Severity,
    TransactionKind,
)


class Schema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(Schema):
    code: str
    message: str
    details: Any | None = None


class AddPlayerRequest(Schema):
    player_id: str = Field(..., min_length=1, examples=["alice"])
    name: str = Field(..., min_length=1, examples=["Alice"])
    current_chips: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2, examples=["0.00"])


class SetChipsRequest(Schema):
    current_chips: Decimal = Field(..., ge=0, decimal_places=2, examples=["120.00"])


class PlayerResponse(Schema):
    player_id: str
    name: str
    current_chips: Decimal


class RecordTransactionRequest(Schema):
    player_id: str = Field(..., min_length=1, examples=["alice"])
    kind: TransactionKind = Field(..., examples=["buy_in"])
    amount: Decimal = Field(..., gt=0, decimal_places=2, examples=["100.00"])


class TransactionResponse(Schema):
    id: str
    session_id: str
    player_id: str
    kind: TransactionKind
    amount: Decimal
    timestamp: datetime
    voided: bool


class BankBalanceResponse(Schema):
    total_buy_ins: Decimal
    total_cash_outs: Decimal
    available_for_cash_out: Decimal
    is_balanced: bool


class EarlyCashOutResponse(Schema):
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
    calculated_at: datetime


class PlayerSettlementSchema(Schema):
    player_id: str
    player_name: str
    current_chips: Decimal
    total_buy_ins: Decimal
    total_cash_outs: Decimal = Decimal("0.00")
    net_amount: Decimal
    owes_or_owed: SettlementDirection

    def to_domain(self) -> PlayerSettlement:
        return PlayerSettlement(**self.model_dump())


class PaymentSchema(Schema):
    from_player_id: str
    from_player_name: str
    to_player_id: str
    to_player_name: str
    amount: Decimal

    def to_domain(self) -> Payment:
        return Payment(**self.model_dump())


class OptimizedSettlementSchema(Schema):
    session_id: str
    player_settlements: list[PlayerSettlementSchema]
    payment_plan: list[PaymentSchema]
    total_amount: Decimal
    transaction_count: int
    direct_transaction_count: int
    transaction_reduction: int
    reduction_percentage: Decimal
    is_balanced: bool
    calculated_at: datetime
    is_fallback: bool = False

    def to_domain(self) -> OptimizedSettlement:
        return OptimizedSettlement(
            session_id=self.session_id,
            player_settlements=tuple(p.to_domain() for p in self.player_settlements),
            payment_plan=tuple(p.to_domain() for p in self.payment_plan),
            total_amount=self.total_amount,
            transaction_count=self.transaction_count,
            direct_transaction_count=self.direct_transaction_count,
            transaction_reduction=self.transaction_reduction,
            reduction_percentage=self.reduction_percentage,
            is_balanced=self.is_balanced,
            calculated_at=self.calculated_at,
            is_fallback=self.is_fallback,
        )


class ValidationIssueSchema(Schema):
    code: IssueCode
    message: str
    severity: Severity
    affected_players: list[str]


class SettlementValidationResponse(Schema):
    is_valid: bool
    errors: list[ValidationIssueSchema]
    warnings: list[ValidationIssueSchema]
    audit_trail: list[str]
    validated_at: datetime


class SettlementRunResponse(Schema):
    status: str
    settlement: OptimizedSettlementSchema
    validation: SettlementValidationResponse
    failure: ErrorResponse | None = None

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "examples": [
                {
                    "status": "completed",
                    "settlement": {
                        "session_id": "friday-night",
                        "player_settlements": [],
                        "payment_plan": [
                            {
                                "from_player_id": "bob",
                                "from_player_name": "Bob",
                                "to_player_id": "alice",
                                "to_player_name": "Alice",
                                "amount": "20.00",
                            }
                        ],
                        "total_amount": "20.00",
                        "transaction_count": 1,
                        "direct_transaction_count": 2,
                        "transaction_reduction": 1,
                        "reduction_percentage": "50.00",
                        "is_balanced": True,
                        "calculated_at": "2025-01-01T22:00:00Z",
                        "is_fallback": False,
                    },
                    "validation": {
                        "is_valid": True,
                        "errors": [],
                        "warnings": [],
                        "audit_trail": ["Step 1: balance check - plan pays 20.00, debtors owe 20.00"],
                        "validated_at": "2025-01-01T22:00:00Z",
                    },
                }
            ]
        },
    )


class AlternativeSettlementSchema(Schema):
    algorithm: SettlementAlgorithm
    name: str
    description: str
    transaction_count: int
    is_valid: bool
    settlement: OptimizedSettlementSchema
    validation: SettlementValidationResponse


class SettlementComparisonResponse(Schema):
    session_id: str
    alternatives: list[AlternativeSettlementSchema]
    recommended: SettlementAlgorithm
    min_transactions: int
    max_transactions: int
    generated_at: datetime


class ProofStepSchema(Schema):
    step_number: int
    operation: str
    description: str
    inputs: dict[str, str]
    calculation: str
    result: Decimal
    verified: bool
    tolerance: Decimal


class PlayerFlowSchema(Schema):
    player_id: str
    player_name: str
    paid: Decimal
    received: Decimal
    settled: Decimal
    net_amount: Decimal
    discrepancy: Decimal
    verified: bool


class SettlementProofResponse(Schema):
    session_id: str
    steps: list[ProofStepSchema]
    player_flows: list[PlayerFlowSchema]
    summary: list[str]
    checksum: str
    is_valid: bool
    generated_at: datetime
