"""Map codexgen exceptions to HTTP error responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from codexgen.core.errors import (
    CircularDependencyError,
    CodexGenError,
    ConfigurationError,
    DefinitionNotFoundError,
    IllegalTransitionError,
    NotFoundError,
    SectionTemplateNotFoundError,
)

logger = logging.getLogger(__name__)


def status_for(exc: CodexGenError) -> int:
    if isinstance(exc, (NotFoundError, DefinitionNotFoundError, SectionTemplateNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (IllegalTransitionError, CircularDependencyError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ConfigurationError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def codexgen_error_handler(request: Request, exc: CodexGenError) -> JSONResponse:
    code = status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CodexGenError, codexgen_error_handler)
