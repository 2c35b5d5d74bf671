from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_DATABASE_URL = "sqlite:///./cashgame.db"
DEFAULT_BUDGET_SECONDS = 2.0


@dataclass(frozen=True)
class EngineSettings:
    database_url: str = DEFAULT_DATABASE_URL
    budget_seconds: float = DEFAULT_BUDGET_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        raw_budget = os.getenv("CASHGAME_SETTLEMENT_BUDGET_SECONDS", str(DEFAULT_BUDGET_SECONDS))
        try:
            budget = float(raw_budget)
        except ValueError as exc:
            raise ValueError(f"CASHGAME_SETTLEMENT_BUDGET_SECONDS must be a number, got {raw_budget!r}") from exc

        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            budget_seconds=budget,
            log_level=os.getenv("CASHGAME_LOG_LEVEL", "INFO").upper(),
        )
