from sqlalchemy.orm import Session

from ..core.context import Actor
from ..db import models


def actor_type(actor: Actor | None) -> models.ActorType:
    if actor is None:
        return models.ActorType.system
    return models.ActorType.admin if actor.is_admin else models.ActorType.user


def log_audit(
    db: Session,
    actor: Actor | None,
    action: str,
    entity_type: str,
    entity_id: int | None,
    payload: dict | None = None,
) -> None:
    db.add(
        models.AuditLog(
            actor_type=actor_type(actor),
            actor_id=actor.requester_id if actor else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload or {},
        )
    )
