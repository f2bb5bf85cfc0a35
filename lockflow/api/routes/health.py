from fastapi import APIRouter, Depends, Response
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lockflow.api.deps import Services, get_services
from lockflow.db.session import get_db


router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> dict:
    """Readiness probe: database and the shared Redis client. 503 if either is down."""
    checks: dict[str, str] = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as e:
        checks["database"] = str(e)
    if services.redis is not None:
        try:
            services.redis.ping()
            checks["redis"] = "ok"
        except RedisError as e:
            checks["redis"] = str(e)

    if all(v == "ok" for v in checks.values()):
        return {"status": "ready", "checks": checks}
    response.status_code = 503
    return {"status": "not_ready", "checks": checks}
