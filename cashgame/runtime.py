from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.exc import SQLAlchemyError

from cashgame.config import EngineSettings
from cashgame.errors import ErrorCode, SettlementError
from cashgame.service import SettlementService
from cashgame.storage.database import build_engine, build_session_factory
from cashgame.storage.repository import SqlLedger


@dataclass(frozen=True)
class Runtime:
    ledger: SqlLedger
    service: SettlementService


def build_runtime(settings: EngineSettings) -> Runtime:
    try:
        engine = build_engine(settings.database_url)
        ledger = SqlLedger(build_session_factory(engine))
        ledger.create_tables()
    except SQLAlchemyError as exc:
        raise SettlementError(
            ErrorCode.SETTLEMENT_INIT_FAILED,
            "could not initialise the ledger store",
            details={"database_url": settings.database_url, "cause": repr(exc)},
        ) from exc
    return Runtime(ledger=ledger, service=SettlementService(ledger, settings))


@lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    return build_runtime(EngineSettings.from_env())


def get_ledger() -> SqlLedger:
    return get_runtime().ledger


def get_service() -> SettlementService:
    return get_runtime().service
