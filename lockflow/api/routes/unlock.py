"""
Unlock session routes. A session lives from POST .../unlock-sessions until DELETE (visitor leaves)
or idle expiry; its token is the only handle the client holds.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from lockflow.api.deps import Services, get_services
from lockflow.db.session import get_db
from lockflow.schemas.unlock import SubmitCodeIn, UnlockSessionOut
from lockflow.services.resources.service import ResourceService
from lockflow.unlock.session import UnlockSession


router = APIRouter(tags=["unlock"])


def _out(token: str, session: UnlockSession) -> UnlockSessionOut:
    return UnlockSessionOut(token=token, **session.snapshot().model_dump())


@router.post(
    "/resources/{resource_id}/unlock-sessions",
    response_model=UnlockSessionOut,
    status_code=status.HTTP_201_CREATED,
)
async def open_unlock_session(
    resource_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> UnlockSessionOut:
    resource = await run_in_threadpool(ResourceService(db).get_locked, resource_id)
    token, session = services.registry.open(resource)
    return _out(token, session)


@router.get("/unlock-sessions/{token}", response_model=UnlockSessionOut)
async def get_unlock_session(token: str, services: Services = Depends(get_services)) -> UnlockSessionOut:
    return _out(token, services.registry.get(token))


@router.post("/unlock-sessions/{token}/submit", response_model=UnlockSessionOut)
async def submit_code(
    token: str,
    body: SubmitCodeIn,
    services: Services = Depends(get_services),
) -> UnlockSessionOut:
    session = services.registry.get(token)
    await session.submit(body.code)
    return _out(token, session)


@router.post("/unlock-sessions/{token}/start", response_model=UnlockSessionOut)
async def start_unlock(token: str, services: Services = Depends(get_services)) -> UnlockSessionOut:
    session = services.registry.get(token)
    await session.start()
    return _out(token, session)


@router.post("/unlock-sessions/{token}/retry", response_model=UnlockSessionOut)
async def retry_grant(token: str, services: Services = Depends(get_services)) -> UnlockSessionOut:
    session = services.registry.get(token)
    await session.retry()
    return _out(token, session)


@router.delete("/unlock-sessions/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def close_unlock_session(token: str, services: Services = Depends(get_services)) -> Response:
    services.registry.close(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
