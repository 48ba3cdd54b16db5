from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from pokerledger.api.errors import to_http_error
from pokerledger.api.schemas import (
    EarlyCashOutRequestBody,
    EarlyCashOutResponse,
    SettlementComparisonResponse,
    SettlementProofResponse,
    SettlementResponse,
)
from pokerledger.domain import EarlyCashOutRequest, LedgerError, PriorityWeights
from pokerledger.runtime import Services, get_services

router = APIRouter(prefix="/sessions", tags=["settlement"])


@router.post(
    "/{session_id}/early-cash-out",
    response_model=EarlyCashOutResponse,
    summary="Project a player's early cash-out",
)
def early_cash_out(
    session_id: str,
    payload: EarlyCashOutRequestBody,
    services: Services = Depends(get_services),
) -> EarlyCashOutResponse:
    request = EarlyCashOutRequest(
        session_id=session_id,
        player_id=payload.player_id,
        requested_at=payload.requested_at,
    )
    try:
        result = services.settlement.calculate_early_cash_out(request)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return EarlyCashOutResponse.from_domain(result)


@router.get(
    "/{session_id}/settlement/preview",
    response_model=SettlementResponse,
    summary="Compute the settlement without closing the session",
)
def preview_settlement(session_id: str, services: Services = Depends(get_services)) -> SettlementResponse:
    try:
        report = services.settlement.preview_settlement(session_id)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SettlementResponse.from_domain(report.settlement, report.validation)


@router.get(
    "/{session_id}/settlement/alternatives",
    response_model=SettlementComparisonResponse,
    summary="Compare alternative settlement plans",
)
def compare_settlements(
    session_id: str,
    simplicity: float = Query(default=0.25, ge=0),
    fairness: float = Query(default=0.25, ge=0),
    efficiency: float = Query(default=0.25, ge=0),
    user_friendliness: float = Query(default=0.25, ge=0),
    services: Services = Depends(get_services),
) -> SettlementComparisonResponse:
    try:
        weights = PriorityWeights(
            simplicity=simplicity,
            fairness=fairness,
            efficiency=efficiency,
            user_friendliness=user_friendliness,
        )
        comparison = services.settlement.compare_settlements(session_id, weights)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SettlementComparisonResponse.from_domain(comparison)


@router.get(
    "/{session_id}/settlement/proof",
    response_model=SettlementProofResponse,
    summary="Prove the settlement step by step",
)
def prove_settlement(session_id: str, services: Services = Depends(get_services)) -> SettlementProofResponse:
    try:
        proof = services.settlement.prove_settlement(session_id)
        players = services.ledger.get_session_state(session_id).players
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SettlementProofResponse.from_domain(proof, {player.id: player.name for player in players})


@router.post(
    "/{session_id}/settlement",
    response_model=SettlementResponse,
    summary="Settle and complete the session",
)
def settle_session(session_id: str, services: Services = Depends(get_services)) -> SettlementResponse:
    try:
        report = services.settlement.settle_session(session_id)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SettlementResponse.from_domain(report.settlement, report.validation)
