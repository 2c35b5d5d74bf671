from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError

from cashgame.api.errors import api_error
from cashgame.api.schemas import (
    AddPlayerRequest,
    PlayerResponse,
    RecordTransactionRequest,
    SetChipsRequest,
    TransactionResponse,
)
from cashgame.domain import DomainValidationError
from cashgame.runtime import get_ledger
from cashgame.storage.repository import LedgerRowNotFound, SqlLedger

router = APIRouter(prefix="/sessions", tags=["ledger"])


def _invalid(exc: DomainValidationError, **details: Any):
    return api_error(code="invalid_ledger_entry", message=str(exc), details=details or None)


def _not_found(exc: LedgerRowNotFound, **details: Any):
    return api_error(
        code="ledger_row_not_found",
        message=str(exc),
        details=details,
        status_code=status.HTTP_404_NOT_FOUND,
    )


@router.post(
    "/{session_id}/players",
    response_model=PlayerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Seat a player in the session",
)
def add_player(
    session_id: str,
    payload: AddPlayerRequest,
    ledger: SqlLedger = Depends(get_ledger),
) -> PlayerResponse:
    try:
        record = ledger.add_player(session_id, payload.player_id, payload.name, payload.current_chips)
    except DomainValidationError as exc:
        raise _invalid(exc, player_id=payload.player_id) from exc
    except IntegrityError as exc:
        raise api_error(
            code="player_already_seated",
            message=f"player {payload.player_id} is already in session {session_id}",
            details={"session_id": session_id, "player_id": payload.player_id},
            status_code=status.HTTP_409_CONFLICT,
        ) from exc
    return PlayerResponse.model_validate(record)


@router.put(
    "/{session_id}/players/{player_id}/chips",
    response_model=PlayerResponse,
    summary="Update a player's current chip count",
)
def set_chips(
    session_id: str,
    player_id: str,
    payload: SetChipsRequest,
    ledger: SqlLedger = Depends(get_ledger),
) -> PlayerResponse:
    try:
        record = ledger.set_chips(session_id, player_id, payload.current_chips)
    except LedgerRowNotFound as exc:
        raise _not_found(exc, session_id=session_id, player_id=player_id) from exc
    except DomainValidationError as exc:
        raise _invalid(exc, player_id=player_id) from exc
    return PlayerResponse.model_validate(record)


@router.post(
    "/{session_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a buy-in or cash-out",
)
def record_transaction(
    session_id: str,
    payload: RecordTransactionRequest,
    ledger: SqlLedger = Depends(get_ledger),
) -> TransactionResponse:
    try:
        transaction = ledger.record_transaction(session_id, payload.player_id, payload.kind, payload.amount)
    except DomainValidationError as exc:
        raise _invalid(exc, player_id=payload.player_id) from exc
    except LedgerRowNotFound as exc:
        raise _not_found(exc, session_id=session_id, player_id=payload.player_id) from exc
    return TransactionResponse.model_validate(transaction)


@router.post(
    "/{session_id}/transactions/{transaction_id}/void",
    summary="Void a recorded transaction",
)
def void_transaction(
    session_id: str,
    transaction_id: str,
    ledger: SqlLedger = Depends(get_ledger),
) -> dict[str, str]:
    try:
        ledger.void_transaction(session_id, transaction_id)
    except LedgerRowNotFound as exc:
        raise _not_found(exc, session_id=session_id, transaction_id=transaction_id) from exc
    return {"status": "voided", "transaction_id": transaction_id}
