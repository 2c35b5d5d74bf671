from __future__ import annotations

from fastapi import FastAPI

from cashgame.api.errors import settlement_error_handler
from cashgame.api.ledger import router as ledger_router
from cashgame.api.settlements import router as settlements_router
from cashgame.errors import SettlementError

app = FastAPI(title="Cash Game Settlement API")
app.include_router(ledger_router)
app.include_router(settlements_router)
app.add_exception_handler(SettlementError, settlement_error_handler)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
