from __future__ import annotations

from ..db import models
from .context import Actor
from .errors import ForbiddenError


class AuthorizationPolicy:
    """Ownership and role rules consumed by the ledger and payment machine."""

    def is_owner(self, actor: Actor, booking: models.Booking) -> bool:
        return booking.requester_id == actor.requester_id

    def can_view_booking(self, actor: Actor, booking: models.Booking) -> bool:
        return actor.is_admin or self.is_owner(actor, booking)

    def can_cancel_booking(self, actor: Actor, booking: models.Booking) -> bool:
        return actor.is_admin or self.is_owner(actor, booking)

    def can_pay_booking(self, actor: Actor, booking: models.Booking) -> bool:
        return actor.is_admin or self.is_owner(actor, booking)

    def can_book_for(self, actor: Actor, requester_id: int) -> bool:
        return actor.is_admin or requester_id == actor.requester_id

    def require_booking_access(self, actor: Actor, booking: models.Booking) -> None:
        if not self.can_view_booking(actor, booking):
            raise ForbiddenError("You do not have access to this booking")

    def require_admin(self, actor: Actor) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Administrator role required")
