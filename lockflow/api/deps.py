"""
Service handles built once in the app lifespan (lockflow.main.build_services) and read from app.state.
"""
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status
from redis import Redis

from lockflow.services.identity.client import AuthUser, SupabaseIdentityProvider
from lockflow.services.storage.base import Storage
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.registry import UnlockSessionRegistry


@dataclass
class Services:
    identity: SupabaseIdentityProvider
    storage: Storage
    grant: ResourceAccessGrant
    registry: UnlockSessionRegistry
    redis: Redis | None = None


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_creator(
    authorization: str | None = Header(default=None),
    services: Services = Depends(get_services),
) -> AuthUser:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    user = services.identity.get_current_user(token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
