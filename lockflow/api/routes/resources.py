"""
Public creator page and resource view. Visitors never see codes or file references here.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from lockflow.api.deps import Services, get_services
from lockflow.db.session import get_db
from lockflow.models.resource import Resource
from lockflow.schemas.resources import CreatorOut, PublicProfileOut, PublicResourceOut
from lockflow.services.resources.service import ResourceService
from lockflow.unlock.errors import CollaboratorUnavailable, DataIntegrityError
from lockflow.unlock.evaluator import parse_delay_seconds
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.models import UnlockMethod

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resources"])


async def to_public(resource: Resource, grant: ResourceAccessGrant) -> PublicResourceOut:
    preview_url = None
    if resource.preview_image:
        try:
            preview_url = await grant.resolve_download_url(resource.preview_image)
        except CollaboratorUnavailable:
            logger.warning("preview_unavailable", extra={"resource_id": resource.id})
    delay_seconds = None
    if resource.unlock_method == UnlockMethod.TIME_DELAY.value:
        try:
            delay_seconds = parse_delay_seconds(resource.unlock_requirement)
        except DataIntegrityError:
            delay_seconds = None
    return PublicResourceOut(
        id=resource.id,
        creator_id=resource.creator_id,
        title=resource.title,
        description=resource.description or "",
        file_type=resource.file_type,
        preview_image_url=preview_url,
        unlock_method=resource.unlock_method,
        delay_seconds=delay_seconds,
        unlock_count=resource.unlock_count,
    )


@router.get("/creators/{username}/resources", response_model=PublicProfileOut)
async def public_profile(
    username: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> PublicProfileOut:
    creator, resources = await run_in_threadpool(ResourceService(db).list_for_username, username)
    return PublicProfileOut(
        creator=CreatorOut.model_validate(creator),
        resources=[await to_public(r, services.grant) for r in resources],
    )


@router.get("/resources/{resource_id}", response_model=PublicResourceOut)
async def get_resource(
    resource_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> PublicResourceOut:
    resource = await run_in_threadpool(ResourceService(db).get, resource_id)
    return await to_public(resource, services.grant)
