from __future__ import annotations

from fastapi import APIRouter, Depends, status

from pokerledger.api.errors import to_http_error
from pokerledger.api.schemas import (
    AddPlayerRequest,
    CreateSessionRequest,
    PlayerResponse,
    RecordTransactionRequest,
    SessionResponse,
    SessionStateResponse,
    TransactionResponse,
    VoidTransactionRequest,
)
from pokerledger.domain import LedgerError, bank_balance, from_cents, to_cents
from pokerledger.runtime import Services, get_services

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a poker session",
)
def create_session(payload: CreateSessionRequest, services: Services = Depends(get_services)) -> SessionResponse:
    try:
        session = services.ledger.create_session(payload.name)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SessionResponse.from_domain(session)


@router.get("/{session_id}", response_model=SessionStateResponse, summary="Session ledger state")
def get_session(session_id: str, services: Services = Depends(get_services)) -> SessionStateResponse:
    try:
        state = services.ledger.get_session_state(session_id)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SessionStateResponse(
        session=SessionResponse.from_domain(state.session),
        players=[PlayerResponse.from_domain(player) for player in state.players],
        transactions=[TransactionResponse.from_domain(transaction) for transaction in state.transactions],
        pot=from_cents(bank_balance(state.transactions).available),
    )


@router.post("/{session_id}/start", response_model=SessionResponse, summary="Open the table")
def start_session(session_id: str, services: Services = Depends(get_services)) -> SessionResponse:
    try:
        session = services.ledger.start_session(session_id)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return SessionResponse.from_domain(session)


@router.post(
    "/{session_id}/players",
    response_model=PlayerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Seat a player",
)
def add_player(
    session_id: str,
    payload: AddPlayerRequest,
    services: Services = Depends(get_services),
) -> PlayerResponse:
    try:
        player = services.ledger.add_player(session_id, payload.name)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return PlayerResponse.from_domain(player)


@router.post(
    "/{session_id}/transactions",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a buy-in or cash-out",
)
def record_transaction(
    session_id: str,
    payload: RecordTransactionRequest,
    services: Services = Depends(get_services),
) -> TransactionResponse:
    try:
        amount = to_cents(payload.amount)
        if payload.type == "buy_in":
            transaction = services.ledger.record_buy_in(session_id, payload.player_id, amount)
        else:
            transaction = services.ledger.record_cash_out(session_id, payload.player_id, amount)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return TransactionResponse.from_domain(transaction)


@router.post(
    "/{session_id}/transactions/{transaction_id}/void",
    response_model=TransactionResponse,
    summary="Undo a recent transaction",
)
def void_transaction(
    session_id: str,
    transaction_id: str,
    payload: VoidTransactionRequest,
    services: Services = Depends(get_services),
) -> TransactionResponse:
    try:
        transaction = services.ledger.void_transaction(session_id, transaction_id, payload.reason)
    except LedgerError as exc:
        raise to_http_error(exc) from exc
    return TransactionResponse.from_domain(transaction)
