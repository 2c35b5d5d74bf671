from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from cashgame.errors import ErrorCode, SettlementError

TRY_AGAIN_MESSAGE = "Something went wrong while reading the game ledger. Please try again."


def api_error(
    *,
    code: str,
    message: str,
    details: Any | None = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "code": code,
            "message": message,
            "details": details,
        },
    )


async def settlement_error_handler(request: Request, exc: SettlementError) -> JSONResponse:
    if exc.code == ErrorCode.PLAYER_NOT_FOUND:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.to_dict()})

    payload = exc.to_dict()
    payload["message"] = TRY_AGAIN_MESSAGE
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": payload})
