"""
Celery task: atomic unlock counter increment, enqueued by the unlock flow after a successful grant.
Failures are logged and not retried.
"""
import logging

from lockflow.core.celery_app import celery_app
from lockflow.db.session import SessionLocal
from lockflow.services.resources.service import ResourceService

logger = logging.getLogger(__name__)


@celery_app.task(name="lockflow.workers.tasks.unlock_counter.increment_unlock_count")
def increment_unlock_count(resource_id: str) -> dict:
    db = SessionLocal()
    try:
        updated = ResourceService(db).increment_unlock_count(resource_id)
        db.commit()
        if not updated:
            logger.warning("unlock_counter_resource_missing", extra={"resource_id": resource_id})
        return {"updated": updated}
    except Exception:
        db.rollback()
        logger.exception("unlock_counter_error", extra={"resource_id": resource_id})
        return {"updated": False, "error": "exception"}
    finally:
        db.close()
