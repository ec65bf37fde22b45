import asyncio
import time

import jwt
import pytest

from conftest import bearer, make_client, make_services, register

from chatrelay.errors import AuthError
from chatrelay.security import TokenSigner, hash_password, verify_password


def test_register_then_login_returns_token(client):
    response = client.post(
        "/api/auth/register",
        json={"identity": "A@X.com ", "password": "pw123", "displayName": "Ada"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["identity"] == "a@x.com"
    assert body["user"]["displayName"] == "Ada"

    login = client.post("/api/auth/login", json={"identity": "a@x.com", "password": "pw123"})
    assert login.status_code == 200
    assert login.json()["user"]["id"] == body["user"]["id"]


def test_register_accepts_email_or_username_field(client):
    by_email = client.post("/api/auth/register", json={"email": "e@x.com", "password": "pw"})
    by_username = client.post("/api/auth/register", json={"username": "someone", "password": "pw"})

    assert by_email.status_code == 200
    assert by_username.status_code == 200
    assert by_username.json()["user"]["displayName"] == "someone"


def test_duplicate_registration_conflicts(client):
    register(client)
    response = client.post("/api/auth/register", json={"identity": "A@x.com", "password": "other"})

    assert response.status_code == 409
    assert response.json()["error"] == "User already exists"


def test_register_requires_fields(client):
    missing_password = client.post("/api/auth/register", json={"identity": "a@x.com"})
    missing_identity = client.post("/api/auth/register", json={"password": "pw"})

    assert missing_password.status_code == 400
    assert missing_password.json()["field"] == "password"
    assert missing_identity.status_code == 400
    assert missing_identity.json()["field"] == "identity"


def test_login_failure_does_not_reveal_identity(client):
    register(client)
    wrong_password = client.post("/api/auth/login", json={"identity": "a@x.com", "password": "nope"})
    unknown_user = client.post("/api/auth/login", json={"identity": "b@x.com", "password": "pw123"})

    assert wrong_password.status_code == 401
    assert unknown_user.status_code == 401
    assert wrong_password.json() == unknown_user.json() == {"error": "Invalid credentials"}


def test_invalid_bearer_token_is_rejected_on_optional_endpoint(client):
    response = client.post("/api/chat", json={"prompt": "hello"}, headers=bearer("not-a-token"))

    assert response.status_code == 401


def test_required_auth_endpoint_rejects_anonymous(client):
    response = client.get("/api/messages")

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_token_round_trip_carries_identity():
    signer = TokenSigner(secret="s" * 32, ttl_seconds=60)
    claims = signer.verify(signer.issue("user-1", "a@x.com"))

    assert claims.user_id == "user-1"
    assert claims.identity == "a@x.com"
    assert claims.expires_at - claims.issued_at == 60


def test_expired_token_raises_auth_error():
    signer = TokenSigner(secret="s" * 32, ttl_seconds=60)
    token = signer.issue("user-1", "a@x.com", now=int(time.time()) - 3600)

    with pytest.raises(AuthError, match="expired"):
        signer.verify(token)


def test_tampered_token_raises_auth_error():
    signer = TokenSigner(secret="s" * 32)
    forged = jwt.encode(
        {"sub": "user-1", "identity": "a@x.com", "iat": int(time.time()), "exp": int(time.time()) + 60},
        "another-secret-another-secret-xx",
        algorithm="HS256",
    )

    with pytest.raises(AuthError, match="Invalid token"):
        signer.verify(forged)
    with pytest.raises(AuthError):
        signer.verify("")


def test_password_hash_is_salted_and_verifies():
    first = hash_password("pw123", rounds=4)
    second = hash_password("pw123", rounds=4)

    assert first != second
    assert "pw123" not in first
    assert verify_password("pw123", first)
    assert not verify_password("wrong", first)
    assert not verify_password("pw123", "not-a-bcrypt-hash")


def test_persistent_verify_rejects_deleted_user():
    services = make_services()
    services.auth.persistent = True
    token = services.auth.signer.issue("missing-user", "ghost@x.com")

    with pytest.raises(AuthError):
        asyncio.run(services.auth.verify(token))


def test_memory_mode_verify_does_not_need_user_record():
    services = make_services()
    token = services.auth.signer.issue("missing-user", "ghost@x.com")

    claims = asyncio.run(services.auth.verify(token))

    assert claims.user_id == "missing-user"


def test_token_from_one_app_works_after_login():
    services = make_services()
    with make_client(services) as client:
        register(client, "c@x.com", "pw")
        token = client.post("/api/auth/login", json={"identity": "c@x.com", "password": "pw"}).json()["token"]
        response = client.get("/api/messages", headers=bearer(token))

    assert response.status_code == 200
    assert response.json() == {"messages": []}
