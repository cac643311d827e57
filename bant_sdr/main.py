"""
FastAPI application entrypoint - BANT sales agent API.
"""

from __future__ import annotations

# Load .env file before other imports
from dotenv import load_dotenv
load_dotenv()

from contextlib import asynccontextmanager

from fastapi import FastAPI

from bant_sdr.api.routes import close_orchestrator, router
from bant_sdr.core.config import settings
from bant_sdr.core.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    logger.info("BANT SDR API shutting down")
    await close_orchestrator()


app = FastAPI(
    title="BANT SDR API",
    description="Conversational sales agent driven by the BANT qualification framework",
    version="1.0.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(router)

logger.info(
    f"BANT SDR API ready (model={settings.model.name}, "
    f"store={'redis' if settings.redis_url else 'memory'}, llm={'on' if settings.has_api_key else 'off'})"
)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/config")
async def get_config() -> dict:
    """Get non-sensitive configuration."""
    return settings.to_dict()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("bant_sdr.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
