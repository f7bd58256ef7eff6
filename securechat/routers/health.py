from fastapi import APIRouter, Depends, HTTPException
import logging

from securechat.dependencies import get_key_store
from securechat.domain.e2ee.ports import KeyValueStore
from securechat.errors import StorageError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health/live")
async def liveness():
    """Liveness probe: Service is running."""
    return {"status": "ok", "checks": {"api": "ok"}}


@router.get("/health/ready")
async def readiness(store: KeyValueStore = Depends(get_key_store)):
    """Readiness probe: Key store reachable."""
    health = {"status": "ok", "checks": {}}

    try:
        await store.ping()
        health["checks"]["key_store"] = "ok"
    except StorageError as e:
        logger.error(f"Health check failed (key_store): {e}")
        health["checks"]["key_store"] = "failed"
        health["status"] = "failed"

    if health["status"] == "failed":
        raise HTTPException(status_code=503, detail=health)

    return health
