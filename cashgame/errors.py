from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    EARLY_CASHOUT_FAILED = "EARLY_CASHOUT_FAILED"
    OPTIMIZATION_FAILED = "OPTIMIZATION_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    BANK_BALANCE_FAILED = "BANK_BALANCE_FAILED"
    SETTLEMENT_INIT_FAILED = "SETTLEMENT_INIT_FAILED"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    ALTERNATIVE_GENERATION_FAILED = "ALTERNATIVE_GENERATION_FAILED"
    PROOF_GENERATION_FAILED = "PROOF_GENERATION_FAILED"


class SettlementError(RuntimeError):
    """Raised for infrastructure failures: unreadable ledger, corrupt rows, bad setup.

    Business outcomes (insufficient pot, unbalanced plan) are never raised; they
    are reported on result objects instead.
    """

    def __init__(self, code: ErrorCode, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }
