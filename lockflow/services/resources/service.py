import logging
from uuid import uuid4

from sqlalchemy import func, update
from sqlalchemy.orm import Session as DBSession

from lockflow.models.creator import Creator
from lockflow.models.resource import Resource
from lockflow.services.storage.base import Storage, StorageError
from lockflow.unlock.errors import CreatorNotFound, ResourceNotFound
from lockflow.unlock.evaluator import coerce_method, validate_requirement
from lockflow.unlock.models import LockedResource
from lockflow.unlock.references import internal_paths

logger = logging.getLogger(__name__)


class ResourceService:
    def __init__(self, db: DBSession):
        self.db = db

    def find(self, resource_id: str) -> Resource | None:
        return self.db.query(Resource).filter(Resource.id == resource_id).one_or_none()

    def get(self, resource_id: str) -> Resource:
        resource = self.find(resource_id)
        if resource is None:
            raise ResourceNotFound(f"Resource not found: {resource_id}")
        return resource

    def get_locked(self, resource_id: str) -> LockedResource:
        """Detached copy for an unlock session (outlives this DB session)."""
        return LockedResource.model_validate(self.get(resource_id))

    def list_for_creator(self, creator_id: str) -> list[Resource]:
        return (
            self.db.query(Resource)
            .filter(Resource.creator_id == creator_id)
            .order_by(Resource.created_at.desc())
            .all()
        )

    def get_creator_by_username(self, username: str) -> Creator:
        creator = self.db.query(Creator).filter(Creator.username == username).one_or_none()
        if creator is None:
            raise CreatorNotFound(f"Creator not found: {username}")
        return creator

    def list_for_username(self, username: str) -> tuple[Creator, list[Resource]]:
        creator = self.get_creator_by_username(username)
        return creator, self.list_for_creator(creator.id)

    def create(self, creator_id: str, data: dict) -> Resource:
        """Requirement is parsed for its method before insert; raises DataIntegrityError otherwise."""
        method = coerce_method(data["unlock_method"])
        resource = Resource(
            id=str(uuid4()),
            creator_id=creator_id,
            title=data["title"],
            description=data.get("description") or "",
            file_type=data.get("file_type") or "PDF",
            file_url=data["file_url"],
            preview_image=data.get("preview_image"),
            unlock_method=method.value,
            unlock_requirement=validate_requirement(method, data["unlock_requirement"]),
            unlock_count=0,
        )
        self.db.add(resource)
        self.db.commit()
        self.db.refresh(resource)
        logger.info(
            "resource_created",
            extra={"resource_id": resource.id, "creator_id": creator_id, "method": method.value},
        )
        return resource

    def delete(self, resource: Resource, storage: Storage | None = None) -> None:
        """Delete the row, then best-effort removal of the stored file and preview."""
        paths = internal_paths(resource.file_url, resource.preview_image)
        resource_id = resource.id
        self.db.delete(resource)
        self.db.commit()
        logger.info("resource_deleted", extra={"resource_id": resource_id})
        if storage is None or not paths:
            return
        try:
            storage.remove(paths)
        except StorageError as e:
            logger.error(
                "resource_storage_cleanup_failed",
                extra={"resource_id": resource_id, "error": str(e)},
            )

    def increment_unlock_count(self, resource_id: str) -> bool:
        """Atomically increment unlock_count. Returns False if the resource no longer exists."""
        result = self.db.execute(
            update(Resource)
            .where(Resource.id == resource_id)
            .values(unlock_count=Resource.unlock_count + 1)
        )
        self.db.flush()
        return result.rowcount > 0

    def creator_stats(self, creator_id: str) -> dict:
        resources, unlocks = (
            self.db.query(
                func.count(Resource.id),
                func.coalesce(func.sum(Resource.unlock_count), 0),
            )
            .filter(Resource.creator_id == creator_id)
            .one()
        )
        return {"total_resources": int(resources), "total_unlocks": int(unlocks)}
