from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status

from pokerledger.api.schemas import ValidationResponse
from pokerledger.domain import (
    InvalidPlayerState,
    LedgerError,
    PlayerNotFound,
    SessionNotActive,
    SessionNotFound,
    SettlementRejected,
    TransactionNotFound,
    UnbalancedLedger,
    from_cents,
)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (SessionNotFound, status.HTTP_404_NOT_FOUND),
    (PlayerNotFound, status.HTTP_404_NOT_FOUND),
    (TransactionNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidPlayerState, status.HTTP_409_CONFLICT),
    (SessionNotActive, status.HTTP_409_CONFLICT),
    (UnbalancedLedger, 422),
    (SettlementRejected, 422),
)


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


def to_http_error(exc: LedgerError) -> HTTPException:
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = mapped
            break

    details: Any | None = None
    if isinstance(exc, UnbalancedLedger):
        details = {"discrepancy": str(from_cents(exc.discrepancy))}
    elif isinstance(exc, SettlementRejected):
        details = ValidationResponse.from_domain(exc.validation).model_dump(mode="json")

    return api_error(code=exc.code, message=str(exc), details=details, status_code=status_code)
