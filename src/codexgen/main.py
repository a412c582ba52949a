"""FastAPI application entry point."""

import logging

from fastapi import FastAPI

from codexgen.api import definitions_router, queue_router, runs_router, sections_router
from codexgen.api.errors import install_error_handlers
from codexgen.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    debug=settings.debug,
)

install_error_handlers(app)

for router in (runs_router, sections_router, queue_router, definitions_router):
    app.include_router(router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "codexgen API", "status": "ok"}


@app.get("/health")
@app.get(f"{settings.api_v1_prefix}/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
