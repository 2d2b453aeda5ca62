"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from swapride_chat.devserver.auth import HS256Verifier, Principal
from swapride_chat.devserver.rooms import RoomManager
from swapride_chat.devserver.store import InMemoryChatStore

_bearer_scheme = HTTPBearer()


def get_store(request: Request) -> InMemoryChatStore:
    return request.app.state.store


def get_rooms(request: Request) -> RoomManager:
    return request.app.state.rooms


def get_verifier(request: Request) -> HS256Verifier:
    return request.app.state.verifier


StoreDep = Annotated[InMemoryChatStore, Depends(get_store)]
RoomsDep = Annotated[RoomManager, Depends(get_rooms)]


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
    verifier: Annotated[HS256Verifier, Depends(get_verifier)],
) -> Principal:
    try:
        return verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
