from .alternatives import (
    AlternativeSettlement,
    SettlementAlgorithm,
    SettlementComparison,
    balanced_flow_plan,
    compare_settlements,
    largest_first_plan,
)
from .balances import (
    BankBalance,
    PlayerSettlement,
    SettlementDirection,
    calculate_bank_balance,
    calculate_player_settlements,
    settle_player,
)
from .cash_out import EarlyCashOutResult, authorize_payout, quote_early_cash_out
from .ledger import (
    DomainValidationError,
    LedgerSnapshot,
    PlayerRecord,
    Transaction,
    TransactionKind,
)
from .money import add_amounts, is_valid_amount, parse_amount, subtract_amounts, to_money
from .proof import PlayerFlow, ProofStep, SettlementProof, build_settlement_proof
from .result import Fail, Ok, Result
from .settlement import (
    OptimizedSettlement,
    Payment,
    build_direct_plan,
    build_direct_settlement,
    build_optimized_settlement,
    build_payment_plan,
    count_direct_transactions,
    match_greedily,
)
from .validation import IssueCode, Severity, SettlementValidation, ValidationIssue, validate_settlement

__all__ = [
    "AlternativeSettlement",
    "BankBalance",
    "DomainValidationError",
    "EarlyCashOutResult",
    "Fail",
    "IssueCode",
    "LedgerSnapshot",
    "Ok",
    "OptimizedSettlement",
    "Payment",
    "PlayerFlow",
    "PlayerRecord",
    "PlayerSettlement",
    "ProofStep",
    "Result",
    "SettlementAlgorithm",
    "SettlementComparison",
    "SettlementDirection",
    "SettlementProof",
    "SettlementValidation",
    "Severity",
    "Transaction",
    "TransactionKind",
    "ValidationIssue",
    "add_amounts",
    "authorize_payout",
    "balanced_flow_plan",
    "build_direct_plan",
    "build_direct_settlement",
    "build_optimized_settlement",
    "build_payment_plan",
    "build_settlement_proof",
    "calculate_bank_balance",
    "calculate_player_settlements",
    "compare_settlements",
    "count_direct_transactions",
    "is_valid_amount",
    "largest_first_plan",
    "match_greedily",
    "parse_amount",
    "quote_early_cash_out",
    "settle_player",
    "subtract_amounts",
    "to_money",
    "validate_settlement",
]
