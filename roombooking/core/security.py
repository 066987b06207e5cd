from typing import Any, Dict

from jose import JWTError, jwt

from ..config import get_settings
from .context import Actor, Role

ALGORITHM = "HS256"


class InvalidTokenError(Exception):
    pass


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError("Could not validate credentials") from exc


def actor_from_claims(claims: Dict[str, Any]) -> Actor:
    subject = claims.get("sub")
    if subject is None:
        raise InvalidTokenError("Token has no subject")
    try:
        requester_id = int(subject)
        role = Role(claims.get("role", Role.customer.value))
    except ValueError as exc:
        raise InvalidTokenError("Malformed token claims") from exc
    return Actor(requester_id=requester_id, role=role)
