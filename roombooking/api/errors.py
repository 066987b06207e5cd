import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import BookingEngineError, PersistenceError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingEngineError)
    async def booking_engine_error_handler(request: Request, exc: BookingEngineError) -> JSONResponse:
        if isinstance(exc, PersistenceError):
            logger.error("Request failed on storage", extra={"path": request.url.path})
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})
