from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

from cashgame.config import EngineSettings
from cashgame.domain import (
    BankBalance,
    EarlyCashOutResult,
    LedgerSnapshot,
    OptimizedSettlement,
    PlayerSettlement,
    SettlementComparison,
    SettlementProof,
    SettlementValidation,
    build_direct_settlement,
    build_optimized_settlement,
    build_settlement_proof,
    calculate_bank_balance,
    calculate_player_settlements,
    compare_settlements,
    quote_early_cash_out,
    validate_settlement,
)
from cashgame.domain.ledger import active_transactions
from cashgame.errors import ErrorCode, SettlementError
from cashgame.repository import LedgerReader

logger = logging.getLogger(__name__)

Optimizer = Callable[[str, Sequence[PlayerSettlement]], OptimizedSettlement]
T = TypeVar("T")


@dataclass(frozen=True)
class SettlementReport:
    settlement: OptimizedSettlement
    validation: SettlementValidation


@contextmanager
def _system_errors(code: ErrorCode, message: str, **details: Any) -> Iterator[None]:
    try:
        yield
    except SettlementError:
        raise
    except Exception as exc:
        logger.exception("%s: %s", message, details)
        raise SettlementError(code, message, details={**details, "cause": repr(exc)}) from exc


def _settlements_for(snapshot: LedgerSnapshot) -> list[PlayerSettlement]:
    live = active_transactions(snapshot.transactions, snapshot.session_id)
    return calculate_player_settlements(snapshot.players, live)


class SettlementService:
    """Reads a session's ledger and runs the settlement engine against it.

    Only one optimization per session is in flight at a time; other sessions
    proceed concurrently. Each optimization works from a single snapshot of the
    roster and transactions and must finish inside ``settings.budget_seconds``,
    otherwise the direct plan for the same snapshot is returned. Worker threads
    cannot be cancelled, so an overrunning optimizer keeps the session busy: the
    next settlement of that session waits for it before starting its own.
    """

    def __init__(
        self,
        ledger: LedgerReader,
        settings: EngineSettings | None = None,
        *,
        optimizer: Optimizer = build_optimized_settlement,
    ) -> None:
        settings = settings or EngineSettings()
        if settings.budget_seconds <= 0:
            raise SettlementError(
                ErrorCode.SETTLEMENT_INIT_FAILED,
                "settlement time budget must be positive",
                details={"budget_seconds": settings.budget_seconds},
            )
        self.ledger = ledger
        self.settings = settings
        self._optimizer = optimizer
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._overruns: dict[str, set[asyncio.Future]] = {}

    def _evict(self, session_id: str) -> None:
        if session_id in self._lock_users or session_id in self._overruns:
            return
        self._session_locks.pop(session_id, None)

    @asynccontextmanager
    async def _session_guard(self, session_id: str) -> AsyncIterator[None]:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = self._session_locks[session_id] = asyncio.Lock()
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                pending = self._overruns.get(session_id)
                if pending:
                    logger.info("Session %s waits for %d overrunning worker(s)", session_id, len(pending))
                    await asyncio.wait(set(pending))
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
            self._evict(session_id)

    def _track_overrun(self, session_id: str, worker: asyncio.Future) -> None:
        pending = self._overruns.setdefault(session_id, set())
        pending.add(worker)

        def _finished(done: asyncio.Future) -> None:
            pending.discard(done)
            if not pending and self._overruns.get(session_id) is pending:
                del self._overruns[session_id]
            if not done.cancelled() and done.exception() is not None:
                logger.error(
                    "Overrunning worker for session %s failed after its result was discarded",
                    session_id,
                    exc_info=done.exception(),
                )
            self._evict(session_id)

        worker.add_done_callback(_finished)

    async def _within_budget(self, session_id: str, func: Callable[[LedgerSnapshot], T], snapshot: LedgerSnapshot) -> T:
        worker = asyncio.ensure_future(asyncio.to_thread(func, snapshot))
        try:
            return await asyncio.wait_for(asyncio.shield(worker), timeout=self.settings.budget_seconds)
        except (asyncio.TimeoutError, asyncio.CancelledError):
            if not worker.done():
                self._track_overrun(session_id, worker)
            raise

    async def _snapshot(self, session_id: str) -> LedgerSnapshot:
        return await self.ledger.get_snapshot(session_id)

    def _compute(self, snapshot: LedgerSnapshot) -> SettlementReport:
        settlement = self._optimizer(snapshot.session_id, _settlements_for(snapshot))
        return SettlementReport(settlement=settlement, validation=validate_settlement(settlement))

    def _fallback(self, snapshot: LedgerSnapshot) -> SettlementReport:
        settlement = build_direct_settlement(snapshot.session_id, _settlements_for(snapshot))
        return SettlementReport(settlement=settlement, validation=validate_settlement(settlement))

    async def _run_within_budget(self, snapshot: LedgerSnapshot) -> SettlementReport:
        session_id = snapshot.session_id
        try:
            return await self._within_budget(session_id, self._compute, snapshot)
        except asyncio.TimeoutError:
            logger.warning(
                "Optimization for session %s exceeded %.2fs, using direct settlement",
                session_id,
                self.settings.budget_seconds,
            )

        try:
            return await self._within_budget(session_id, self._fallback, snapshot)
        except asyncio.TimeoutError as exc:
            raise SettlementError(
                ErrorCode.OPTIMIZATION_FAILED,
                "direct settlement also exceeded the time budget",
                details={"session_id": session_id, "budget_seconds": self.settings.budget_seconds},
            ) from exc

    async def settle_session(self, session_id: str) -> SettlementReport:
        async with self._session_guard(session_id):
            with _system_errors(ErrorCode.OPTIMIZATION_FAILED, "settlement optimization failed", session_id=session_id):
                snapshot = await self._snapshot(session_id)
                report = await self._run_within_budget(snapshot)

        settlement = report.settlement
        logger.info(
            "Session %s settled with %d payment(s) instead of %d, total %s, valid=%s, fallback=%s",
            session_id,
            settlement.transaction_count,
            settlement.direct_transaction_count,
            settlement.total_amount,
            report.validation.is_valid,
            settlement.is_fallback,
        )
        return report

    async def optimize_settlement(self, session_id: str) -> OptimizedSettlement:
        report = await self.settle_session(session_id)
        return report.settlement

    async def validate_settlement(self, settlement: OptimizedSettlement) -> SettlementValidation:
        session_id = getattr(settlement, "session_id", None)
        with _system_errors(ErrorCode.VALIDATION_FAILED, "settlement validation failed", session_id=session_id):
            return validate_settlement(settlement)

    async def compare_settlements(self, session_id: str) -> SettlementComparison:
        with _system_errors(
            ErrorCode.ALTERNATIVE_GENERATION_FAILED,
            "alternative settlement generation failed",
            session_id=session_id,
        ):
            snapshot = await self._snapshot(session_id)
            comparison = await asyncio.to_thread(compare_settlements, session_id, _settlements_for(snapshot))

        logger.info(
            "Compared %d settlement plan(s) for session %s, recommending %s with %d payment(s)",
            len(comparison.alternatives),
            session_id,
            comparison.recommended.algorithm.value,
            comparison.recommended.transaction_count,
        )
        return comparison

    async def build_settlement_proof(self, settlement: OptimizedSettlement) -> SettlementProof:
        session_id = getattr(settlement, "session_id", None)
        with _system_errors(ErrorCode.PROOF_GENERATION_FAILED, "settlement proof generation failed", session_id=session_id):
            proof = build_settlement_proof(settlement)
        logger.info("Proof for session %s: %d step(s), valid=%s", session_id, len(proof.steps), proof.is_valid)
        return proof

    async def calculate_bank_balance(self, session_id: str) -> BankBalance:
        with _system_errors(ErrorCode.BANK_BALANCE_FAILED, "bank balance calculation failed", session_id=session_id):
            transactions = await self.ledger.get_transaction_history(session_id)
            return calculate_bank_balance(active_transactions(transactions, session_id))

    async def calculate_early_cash_out(self, session_id: str, player_id: str) -> EarlyCashOutResult:
        with _system_errors(
            ErrorCode.EARLY_CASHOUT_FAILED,
            "early cash-out calculation failed",
            session_id=session_id,
            player_id=player_id,
        ):
            snapshot = await self._snapshot(session_id)
            player = snapshot.find_player(player_id)
            if player is None:
                raise SettlementError(
                    ErrorCode.PLAYER_NOT_FOUND,
                    f"player {player_id} is not part of session {session_id}",
                    details={"session_id": session_id, "player_id": player_id},
                )
            quote = quote_early_cash_out(
                session_id,
                player,
                active_transactions(snapshot.transactions, session_id),
            )

        logger.info(
            "Early cash-out for %s in session %s: %s %s, can_payout=%s",
            player_id,
            session_id,
            quote.owes_or_owed.value,
            quote.settlement_amount,
            quote.can_payout,
        )
        return quote
