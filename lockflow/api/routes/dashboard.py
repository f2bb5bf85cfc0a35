"""
Creator dashboard: own resources and unlock stats. Requires a bearer token from the identity provider.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from lockflow.api.deps import Services, get_current_creator, get_services
from lockflow.db.session import get_db
from lockflow.schemas.resources import CreatorStatsOut, ResourceCreateIn, ResourceOut
from lockflow.services.identity.client import AuthUser
from lockflow.services.resources.service import ResourceService


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/resources", response_model=list[ResourceOut])
def list_my_resources(
    user: AuthUser = Depends(get_current_creator),
    db: Session = Depends(get_db),
) -> list[ResourceOut]:
    resources = ResourceService(db).list_for_creator(user.id)
    return [ResourceOut.model_validate(r) for r in resources]


@router.post("/resources", response_model=ResourceOut, status_code=status.HTTP_201_CREATED)
def create_resource(
    payload: ResourceCreateIn,
    user: AuthUser = Depends(get_current_creator),
    db: Session = Depends(get_db),
) -> ResourceOut:
    resource = ResourceService(db).create(user.id, payload.model_dump())
    return ResourceOut.model_validate(resource)


@router.delete("/resources/{resource_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_resource(
    resource_id: str,
    user: AuthUser = Depends(get_current_creator),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> Response:
    service = ResourceService(db)
    resource = service.find(resource_id)
    if resource is None or resource.creator_id != user.id:
        raise HTTPException(404, "Resource not found")
    service.delete(resource, services.storage)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/stats", response_model=CreatorStatsOut)
def creator_stats(
    user: AuthUser = Depends(get_current_creator),
    db: Session = Depends(get_db),
) -> CreatorStatsOut:
    return CreatorStatsOut(**ResourceService(db).creator_stats(user.id))
