"""
Unlock counter backends. Both end in ResourceService.increment_unlock_count (one atomic UPDATE);
the counter is never read, modified and written back from the unlock flow.
"""
from abc import ABC, abstractmethod


class UnlockCounter(ABC):
    @abstractmethod
    def increment(self, resource_id: str) -> None:
        raise NotImplementedError


class CeleryUnlockCounter(UnlockCounter):
    """Enqueue the increment for a Celery worker."""

    def increment(self, resource_id: str) -> None:
        from lockflow.workers.tasks.unlock_counter import increment_unlock_count

        increment_unlock_count.delay(resource_id)


class DatabaseUnlockCounter(UnlockCounter):
    """Run the atomic UPDATE directly with a short-lived DB session."""

    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory

    def increment(self, resource_id: str) -> None:
        from lockflow.services.resources.service import ResourceService
        from lockflow.unlock.errors import ResourceNotFound

        if self._session_factory is None:
            from lockflow.db.session import SessionLocal

            self._session_factory = SessionLocal
        db = self._session_factory()
        try:
            updated = ResourceService(db).increment_unlock_count(resource_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        if not updated:
            raise ResourceNotFound(f"Resource not found: {resource_id}")
