import pytest
from jose import jwt

from roombooking.api import deps
from roombooking.config import get_settings
from roombooking.core.context import Role
from roombooking.core.security import ALGORITHM, InvalidTokenError, actor_from_claims, decode_access_token


def token_for(claims, secret=None):
    return jwt.encode(claims, secret or get_settings().jwt_secret, algorithm=ALGORITHM)


def test_claims_become_actor():
    actor = actor_from_claims(decode_access_token(token_for({"sub": "42", "role": "admin"})))
    assert actor.requester_id == 42
    assert actor.role == Role.admin
    assert actor_from_claims({"sub": "7"}).role == Role.customer


@pytest.mark.parametrize("claims", [{}, {"sub": "abc"}, {"sub": "1", "role": "owner"}])
def test_malformed_claims_are_rejected(claims):
    with pytest.raises(InvalidTokenError):
        actor_from_claims(claims)


def test_token_signed_with_other_secret_is_rejected():
    with pytest.raises(InvalidTokenError):
        decode_access_token(token_for({"sub": "1"}, secret="not-the-secret"))


def test_bearer_token_is_required(api_client):
    client, _, _ = api_client
    client.app.dependency_overrides.pop(deps.get_current_actor)

    assert client.get("/api/v1/rooms").status_code == 401
    bad = client.get("/api/v1/rooms", headers={"Authorization": "Bearer garbage"})
    assert bad.status_code == 401

    customer = {"Authorization": f"Bearer {token_for({'sub': '101'})}"}
    assert client.get("/api/v1/rooms", headers=customer).status_code == 200
    assert client.post("/api/v1/rooms/sync", headers=customer).status_code == 403

    admin = {"Authorization": f"Bearer {token_for({'sub': '1', 'role': 'admin'})}"}
    assert client.post("/api/v1/rooms/sync", headers=admin).status_code == 200
