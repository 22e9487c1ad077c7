"""
Translation of domain errors into HTTP responses.

Controller errors answer with their own status and a ``{"code", "error"}``
body that clients match on. Other domain errors answer with ``detail``.
Launcher failures that escape a request are reported as a bad gateway.
"""

from typing import TYPE_CHECKING

from fastapi import Request, status
from fastapi.responses import JSONResponse

from snapline.utils.logger import logger

if TYPE_CHECKING:
    from fastapi import FastAPI


def setup_exception_handlers(app: "FastAPI") -> None:
    """Register the handlers on ``app``.

    Starlette picks the handler of the closest class in the exception's MRO,
    so ``ControllerError`` subclasses that also derive from a generic error
    are answered by the controller handler.
    """
    from snapline.exceptions.domain import (
        ControllerError,
        EntityNotFoundError,
        LauncherError,
        ValidationError,
    )

    @app.exception_handler(ControllerError)
    async def handle_controller_error(_: Request, exc: ControllerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "error": str(exc)},
        )

    @app.exception_handler(EntityNotFoundError)
    async def handle_entity_not_found(_: Request, exc: EntityNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc) or "Resource not found"},
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc) or "Validation failed"},
        )

    @app.exception_handler(LauncherError)
    async def handle_launcher_error(_: Request, exc: LauncherError) -> JSONResponse:
        logger.warning(f"Launcher call failed: {exc}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": str(exc) or "Instance launcher command failed"},
        )
