import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gitaura.core.exceptions import AuraError

logger = structlog.get_logger()


def setup_error_handlers(app: FastAPI) -> None:
    """Map engine errors to JSON responses."""

    @app.exception_handler(AuraError)
    async def aura_error_handler(request: Request, exc: AuraError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
