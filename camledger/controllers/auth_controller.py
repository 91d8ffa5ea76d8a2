"""Controller layer for admin session endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field

from camledger.controllers.dependencies import (
    bearer_scheme,
    get_auth_service,
    require_admin,
    to_http_exception,
)
from camledger.services.auth_service import AuthenticationError, AuthService
from camledger.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["auth"])


class LoginRequest(BaseModel):
    admin_token: str = Field(min_length=1)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        bearer = auth_service.login(payload.admin_token)
        logger.info("Admin session opened")
        return LoginResponse(access_token=bearer)
    except AuthenticationError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover
        logger.exception("Unexpected login failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to login",
        ) from exc


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def logout(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Response:
    if credentials is not None:
        auth_service.logout(credentials.credentials)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
