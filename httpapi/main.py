"""FastAPI application entrypoint for the HTTP API."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from httpapi.core.config import get_settings
from httpapi.core.handlers import register_error_handlers
from httpapi.validation.engine import get_validator

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Build the rule registry before the first request is served."""
    validator = get_validator()
    logger.info("Validation ready with frozen registry=%s", validator.registry.frozen)
    yield


app = FastAPI(title="httpapi", lifespan=lifespan)
register_error_handlers(app)


@app.get("/health")
def health() -> dict[str, str]:
    """Health check endpoint for service readiness."""
    return {"status": "ok"}
