"""SecureChat local key agent - Main Application."""
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from securechat.api.envelopes import router as envelopes_router
from securechat.api.keys import router as keys_router
from securechat.core.config import settings
from securechat.logging_hardening import configure_logging, setup_logging_redaction
from securechat.routers import health

logger = logging.getLogger(__name__)

# Initialize logging redaction filters early
configure_logging(settings.LOG_LEVEL)
setup_logging_redaction()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    mode = settings.MODE.lower()
    if mode == "prod" and settings.KEY_STORE_BACKEND == "memory":
        raise RuntimeError("In PROD, KEY_STORE_BACKEND must be durable (json, postgres or redis)")

    from securechat.dependencies import get_key_store
    get_key_store()
    logger.info(f"SecureChat key agent started (mode={mode}, backend={settings.KEY_STORE_BACKEND})")

    yield
    # Shutdown
    if settings.KEY_STORE_BACKEND == "redis":
        from securechat.adapters.redis.client import close_redis
        await close_redis()
    logger.info("Shutdown complete.")


app = FastAPI(
    title="SecureChat Key Agent",
    description="End-to-end message encryption core for SecureChat clients",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router)
app.include_router(keys_router.router)
app.include_router(envelopes_router.router)
