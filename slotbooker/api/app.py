"""
FastAPI application factory.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..bootstrap import Services
from ..domain.exceptions import BookingConflictError, InvalidBookingError, InvalidRangeError
from .routes import router

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidRangeError)
    async def invalid_range_handler(request: Request, exc: InvalidRangeError):
        logger.info("[InvalidRange] %s | Path=%s", exc, request.url.path)
        return _error(400, str(exc))

    @app.exception_handler(InvalidBookingError)
    async def invalid_booking_handler(request: Request, exc: InvalidBookingError):
        logger.info("[InvalidBooking] %s | Path=%s", exc, request.url.path)
        return _error(400, str(exc))

    @app.exception_handler(BookingConflictError)
    async def booking_conflict_handler(request: Request, exc: BookingConflictError):
        logger.info("[BookingConflict] %s | Path=%s", exc, request.url.path)
        return _error(409, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("[ValidationError] Path=%s | %s", request.url.path, exc.errors())
        fields = ", ".join(
            str(error["loc"][-1]) for error in exc.errors() if error.get("loc")
        )
        return _error(400, f"Invalid request parameters: {fields}" if fields else "Invalid request")


def create_app(services: Services) -> FastAPI:
    """
    Build the HTTP application around already constructed services.

    Services are created once per process and shared across requests.
    """
    app = FastAPI(
        title="slotbooker",
        version=__version__,
    )
    app.state.services = services

    if services.config.api.allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=services.config.api.allowed_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    register_exception_handlers(app)
    app.include_router(router)
    return app
