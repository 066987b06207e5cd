from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..config import get_settings
from ..core.context import Actor, RequestContext
from ..core.policy import AuthorizationPolicy
from ..core.security import InvalidTokenError, actor_from_claims, decode_access_token
from ..db.session import get_db
from ..services import payments
from ..services.booking_service import BookingLedger
from ..services.payment_service import PaymentStateMachine

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Actor:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception
    try:
        return actor_from_claims(decode_access_token(credentials.credentials))
    except InvalidTokenError as exc:
        raise credentials_exception from exc


def get_context(
    request: Request,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> RequestContext:
    request_id = request.headers.get("X-Request-ID")
    if request_id:
        return RequestContext(actor=actor, request_id=request_id)
    return RequestContext(actor=actor)


def require_admin(ctx: Annotated[RequestContext, Depends(get_context)]) -> RequestContext:
    if not ctx.actor.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return ctx


def get_policy() -> AuthorizationPolicy:
    return AuthorizationPolicy()


def get_gateway() -> payments.BasePaymentGateway:
    return payments.get_gateway(get_settings())


def get_ledger(
    db: Annotated[Session, Depends(get_db)],
    policy: Annotated[AuthorizationPolicy, Depends(get_policy)],
) -> BookingLedger:
    return BookingLedger(db, policy)


def get_payment_machine(
    db: Annotated[Session, Depends(get_db)],
    gateway: Annotated[payments.BasePaymentGateway, Depends(get_gateway)],
    policy: Annotated[AuthorizationPolicy, Depends(get_policy)],
) -> PaymentStateMachine:
    return PaymentStateMachine(db, policy, gateway)
