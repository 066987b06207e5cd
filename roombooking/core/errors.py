"""Error taxonomy shared by the booking engine services.

Services raise these; the API layer maps them to HTTP responses in
``roombooking.api.errors``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class BookingEngineError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Any:
        return self.message


class ValidationError(BookingEngineError):
    status_code = 400


class NotFoundError(BookingEngineError):
    status_code = 404


class ForbiddenError(BookingEngineError):
    status_code = 403


class ConflictError(BookingEngineError):
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        next_available: datetime | None = None,
        conflicts: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.next_available = next_available
        self.conflicts = conflicts or []

    def to_detail(self) -> Any:
        if self.next_available is None and not self.conflicts:
            return self.message
        return {
            "message": self.message,
            "next_available": self.next_available.isoformat() if self.next_available else None,
            "conflicts": self.conflicts,
        }


class GatewayError(BookingEngineError):
    """Payment provider failure or timeout."""

    status_code = 502


class PersistenceError(BookingEngineError):
    status_code = 503
