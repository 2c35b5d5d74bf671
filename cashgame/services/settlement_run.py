from __future__ import annotations

import logging
from enum import Enum

from cashgame.domain import Fail, Ok, Result
from cashgame.errors import SettlementError
from cashgame.service import SettlementReport, SettlementService

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Settlement could not be calculated. Please try again."


class RunState(str, Enum):
    IDLE = "idle"
    OPTIMIZING = "optimizing"
    COMPLETED = "completed"
    ERROR = "error"


class InvalidTransition(Exception):
    pass


ALLOWED = {
    RunState.IDLE: {RunState.OPTIMIZING},
    RunState.OPTIMIZING: {RunState.COMPLETED, RunState.ERROR},
    RunState.COMPLETED: set(),
    RunState.ERROR: set(),
}


def assert_transition(old: RunState, new: RunState) -> None:
    if new not in ALLOWED.get(old, set()):
        raise InvalidTransition(f"Illegal settlement transition: {old.value} -> {new.value}")


class SettlementRun:
    """Caller-side lifecycle of one settlement attempt for a session.

    ``completed`` is reached only when the computed plan validates; system
    errors and invalid plans both end in ``error``. ``reset`` returns a finished
    run to ``idle`` so it can be attempted again.
    """

    def __init__(self, service: SettlementService, session_id: str) -> None:
        self.service = service
        self.session_id = session_id
        self.state = RunState.IDLE
        self.report: SettlementReport | None = None
        self.failure: Fail | None = None

    def _move(self, new_state: RunState) -> None:
        assert_transition(self.state, new_state)
        logger.debug("Settlement run for %s: %s -> %s", self.session_id, self.state.value, new_state.value)
        self.state = new_state

    async def run(self) -> Result[SettlementReport]:
        self._move(RunState.OPTIMIZING)
        try:
            report = await self.service.settle_session(self.session_id)
        except SettlementError as exc:
            self._move(RunState.ERROR)
            self.failure = Fail(
                code=exc.code.value,
                message=GENERIC_FAILURE_MESSAGE,
                details={**exc.details, "reason": exc.message},
            )
            return self.failure

        self.report = report
        if not report.validation.is_valid:
            self._move(RunState.ERROR)
            self.failure = Fail(
                code="SETTLEMENT_INVALID",
                message="; ".join(issue.message for issue in report.validation.errors),
                details={
                    "session_id": self.session_id,
                    "affected_players": sorted(
                        {player for issue in report.validation.errors for player in issue.affected_players}
                    ),
                },
            )
            return self.failure

        self._move(RunState.COMPLETED)
        return Ok(report)

    def reset(self) -> None:
        if self.state == RunState.OPTIMIZING:
            raise InvalidTransition("cannot reset a settlement run while optimizing")
        self.state = RunState.IDLE
        self.report = None
        self.failure = None
