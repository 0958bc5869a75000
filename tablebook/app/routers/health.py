import structlog
from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError

from tablebook.app.core import redis_client as redis_module
from tablebook.app.core.config import settings
from tablebook.app.core.errors import RepositoryUnavailable
from tablebook.app.db.session import get_store
from tablebook.app.db.store import RecordStore


router = APIRouter()
logger = structlog.get_logger()


@router.get("/healthz")
async def healthz() -> dict[str, bool]:
    """Basic liveness probe."""
    return {"ok": True}


@router.get("/readiness")
async def readiness(store: RecordStore = Depends(get_store)) -> dict[str, bool]:
    """Ensure the record store and, when configured, Redis are reachable."""
    try:
        await store.ping(settings.RESERVATIONS_TABLE)
    except RepositoryUnavailable as exc:
        raise HTTPException(status_code=503, detail="Record store unavailable") from exc

    if settings.REDIS_URL:
        if redis_module.redis_client is None:
            raise HTTPException(status_code=503, detail="Redis unavailable")
        try:
            await redis_module.redis_client.ping()
        except RedisError as exc:
            logger.error("Redis ping failed", error=str(exc))
            raise HTTPException(status_code=503, detail="Redis unavailable") from exc

    return {"ready": True}
