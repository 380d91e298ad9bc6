"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from comms_service.application.dto.principal import Principal
from comms_service.application.ports.auth import TokenVerifier
from comms_service.application.uow import UnitOfWork
from comms_service.config import settings
from comms_service.infrastructure.auth.hs256_verifier import HS256Verifier
from comms_service.infrastructure.auth.jwks_verifier import JWKSVerifier
from comms_service.infrastructure.ws.manager import ConnectionManager
from comms_service.infrastructure.ws.offline_queue import OfflineMessageQueue

_bearer_scheme = HTTPBearer()


async def get_uow(request: Request) -> AsyncIterator[UnitOfWork]:
    async with request.app.state.uow_factory() as uow:
        yield uow


UoWDep = Annotated[UnitOfWork, Depends(get_uow)]


def _get_verifier() -> TokenVerifier:
    if settings.JWT_VERIFY_MODE == "jwks":
        assert settings.JWKS_URL, "JWKS_URL must be set when JWT_VERIFY_MODE=jwks"
        return JWKSVerifier(settings.JWKS_URL)
    return HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = _get_verifier()
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_current_admin(principal: CurrentPrincipal) -> Principal:
    if not principal.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


CurrentAdmin = Annotated[Principal, Depends(get_current_admin)]


def get_manager(request: Request) -> ConnectionManager:
    return request.app.state.manager


def get_queue(request: Request) -> OfflineMessageQueue:
    return request.app.state.offline_queue


ManagerDep = Annotated[ConnectionManager, Depends(get_manager)]
QueueDep = Annotated[OfflineMessageQueue, Depends(get_queue)]
