"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from camledger.domain.errors import (
    BuildingNotFoundError,
    CamLedgerError,
    DivisionByZeroAreaError,
    DuplicatePeriodError,
    ExpenseNotFoundError,
    InvalidAreaError,
    InvalidCostInputError,
    InvalidPeriodError,
    InvalidStatusTransitionError,
    NoUnitsDefinedError,
    UnauthorizedError,
)
from camledger.repository.data_repository import DataRepository
from camledger.services.auth_service import AuthService
from camledger.services.expense_service import ExpenseLifecycleService
from camledger.utils.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)

_STATUS_BY_ERROR: tuple[tuple[type[CamLedgerError], int], ...] = (
    (InvalidPeriodError, status.HTTP_400_BAD_REQUEST),
    (InvalidCostInputError, status.HTTP_400_BAD_REQUEST),
    (InvalidAreaError, status.HTTP_400_BAD_REQUEST),
    (BuildingNotFoundError, status.HTTP_404_NOT_FOUND),
    (ExpenseNotFoundError, status.HTTP_404_NOT_FOUND),
    (NoUnitsDefinedError, 422),
    (DivisionByZeroAreaError, 422),
    (DuplicatePeriodError, status.HTTP_409_CONFLICT),
    (InvalidStatusTransitionError, status.HTTP_409_CONFLICT),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
)


def to_http_exception(exc: CamLedgerError) -> HTTPException:
    """Translate a domain failure into an HTTP error with structured detail."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped_status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = mapped_status
            break
    return HTTPException(status_code=status_code, detail=exc.to_dict())


def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        service = AuthService(settings=get_settings())
        request.app.state.auth_service = service
    return service


def get_expense_service(request: Request) -> ExpenseLifecycleService:
    service = getattr(request.app.state, "expense_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if isinstance(repository, DataRepository):
            service = ExpenseLifecycleService(repository=repository, settings=get_settings())
            request.app.state.expense_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Expense service is not initialized",
        )
    return service


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> None:
    if not auth_service.auth_enabled:
        return
    if credentials is None:
        raise to_http_exception(
            UnauthorizedError("Authorization header with Bearer token is required")
        )
    try:
        auth_service.validate_bearer_token(credentials.credentials)
    except UnauthorizedError as exc:
        raise to_http_exception(exc) from exc
