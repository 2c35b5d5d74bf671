from __future__ import annotations

from fastapi import APIRouter, Depends, status

from cashgame.api.errors import api_error
from cashgame.api.schemas import (
    AlternativeSettlementSchema,
    BankBalanceResponse,
    EarlyCashOutResponse,
    ErrorResponse,
    OptimizedSettlementSchema,
    SettlementComparisonResponse,
    SettlementProofResponse,
    SettlementRunResponse,
    SettlementValidationResponse,
)
from cashgame.runtime import get_service
from cashgame.service import SettlementService
from cashgame.services.settlement_run import SettlementRun

router = APIRouter(tags=["settlements"])


@router.get(
    "/sessions/{session_id}/bank-balance",
    response_model=BankBalanceResponse,
    summary="Pot totals for the session",
)
async def bank_balance(
    session_id: str,
    service: SettlementService = Depends(get_service),
) -> BankBalanceResponse:
    balance = await service.calculate_bank_balance(session_id)
    return BankBalanceResponse.model_validate(balance)


@router.get(
    "/sessions/{session_id}/players/{player_id}/early-cash-out",
    response_model=EarlyCashOutResponse,
    summary="Quote an early cash-out for a departing player",
)
async def early_cash_out(
    session_id: str,
    player_id: str,
    service: SettlementService = Depends(get_service),
) -> EarlyCashOutResponse:
    quote = await service.calculate_early_cash_out(session_id, player_id)
    return EarlyCashOutResponse.model_validate(quote)


@router.post(
    "/sessions/{session_id}/settlement",
    response_model=SettlementRunResponse,
    summary="Compute and validate the end-of-session payment plan",
)
async def settle_session(
    session_id: str,
    service: SettlementService = Depends(get_service),
) -> SettlementRunResponse:
    run = SettlementRun(service, session_id)
    result = await run.run()
    if run.report is None:
        raise api_error(
            code=result.code,
            message=result.message,
            details=result.details,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return SettlementRunResponse(
        status=run.state.value,
        settlement=OptimizedSettlementSchema.model_validate(run.report.settlement),
        validation=SettlementValidationResponse.model_validate(run.report.validation),
        failure=None if result.ok else ErrorResponse(code=result.code, message=result.message, details=result.details),
    )


@router.post(
    "/settlements/validate",
    response_model=SettlementValidationResponse,
    summary="Re-check a previously computed settlement",
)
async def validate(
    payload: OptimizedSettlementSchema,
    service: SettlementService = Depends(get_service),
) -> SettlementValidationResponse:
    validation = await service.validate_settlement(payload.to_domain())
    return SettlementValidationResponse.model_validate(validation)


@router.get(
    "/sessions/{session_id}/settlement/alternatives",
    response_model=SettlementComparisonResponse,
    summary="Compare payment plans built with different pairing orders",
)
async def alternatives(
    session_id: str,
    service: SettlementService = Depends(get_service),
) -> SettlementComparisonResponse:
    comparison = await service.compare_settlements(session_id)
    return SettlementComparisonResponse(
        session_id=comparison.session_id,
        alternatives=[AlternativeSettlementSchema.model_validate(alt) for alt in comparison.alternatives],
        recommended=comparison.recommended.algorithm,
        min_transactions=comparison.min_transactions,
        max_transactions=comparison.max_transactions,
        generated_at=comparison.generated_at,
    )


@router.post(
    "/settlements/proof",
    response_model=SettlementProofResponse,
    summary="Step-by-step arithmetic proof for a settlement",
)
async def proof(
    payload: OptimizedSettlementSchema,
    service: SettlementService = Depends(get_service),
) -> SettlementProofResponse:
    result = await service.build_settlement_proof(payload.to_domain())
    return SettlementProofResponse.model_validate(result)
