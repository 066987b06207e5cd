from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum as PyEnum


class Role(str, PyEnum):
    customer = "customer"
    admin = "admin"


class ContextLogger(logging.LoggerAdapter):
    """Merges call-site ``extra`` with the request fields instead of replacing it."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


@dataclass(frozen=True)
class Actor:
    requester_id: int
    role: Role = Role.customer

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


@dataclass
class RequestContext:
    """Per-call actor and logger handed to every ledger/payment operation."""

    actor: Actor
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    logger: ContextLogger = field(init=False)

    def __post_init__(self) -> None:
        self.logger = ContextLogger(
            logging.getLogger("roombooking.request"),
            {"request_id": self.request_id, "requester_id": self.actor.requester_id},
        )
