from collections.abc import Generator
from uuid import UUID

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from idcore.db.session import get_db
from idcore.main import app


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    def _override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _register(client: TestClient, **overrides):
    payload = {"email": "a@x.com", "username": "alice01", "password": "Abcdef12"}
    payload.update(overrides)
    return client.post("/api/auth/register", json=payload)


def _assert_error(resp, status_code: int, code: str) -> dict:
    assert resp.status_code == status_code, resp.text
    body = resp.json()
    assert body["request_id"]
    assert body["error"]["code"] == code
    return body["error"]


def test_health_live(client):
    resp = client.get("/api/health/live", headers={"X-Request-Id": "req-1"})

    assert resp.status_code == 200
    assert resp.headers["X-Request-Id"] == "req-1"
    body = resp.json()
    assert body["request_id"] == "req-1"
    assert body["data"] == {"status": "ok"}


def test_health_ready(client):
    resp = client.get("/api/health/ready")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "ready"


def test_register_returns_identity_envelope_without_secrets(client):
    resp = _register(client)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    data = body["data"]
    UUID(data["auth"]["id"])
    assert data["auth"]["email"] == "a@x.com"
    assert data["auth"]["has_password"] is True
    assert data["profile"]["username"] == "alice01"
    assert body["meta"]["path"] == "/api/auth/register"
    for secret_field in ("password", "password_hash", "password_salt", "two_factor_secret"):
        assert secret_field not in data["auth"]
    assert "Abcdef12" not in resp.text


def test_register_conflicts_report_field(client):
    assert _register(client).status_code == 201

    error = _assert_error(_register(client, email="b@x.com"), 409, "USERNAME_TAKEN")
    assert error["details"]["field"] == "username"

    error = _assert_error(_register(client, username="alice02"), 409, "EMAIL_TAKEN")
    assert error["details"]["field"] == "email"


@pytest.mark.parametrize(
    "overrides",
    [
        {"email": "not-an-email"},
        {"username": "ab"},
        {"username": "bad name"},
        {"password": "short1A"},
        {"password": "alllowercase1"},
    ],
)
def test_register_rejects_invalid_input(client, overrides):
    error = _assert_error(_register(client, **overrides), 422, "VALIDATION_ERROR")
    assert error["details"]["errors"]


def test_login_and_failures(client):
    _register(client)

    resp = client.post("/api/auth/login", json={"identifier": "a@x.com", "password": "Abcdef12"})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["identity"]["auth"]["username"] == "alice01"
    assert data["identity"]["auth"]["last_login"] is not None
    assert data["two_factor_required"] is False

    wrong = client.post("/api/auth/login", json={"identifier": "alice01", "password": "Wrongpass1"})
    unknown = client.post("/api/auth/login", json={"identifier": "ghost01", "password": "Abcdef12"})
    first = _assert_error(wrong, 401, "INVALID_CREDENTIAL")
    second = _assert_error(unknown, 401, "INVALID_CREDENTIAL")
    assert first["message"] == second["message"]


def test_identity_lookup(client):
    _register(client)

    by_username = client.get("/api/identities/alice01")
    by_email = client.get("/api/identities/A@x.com")
    assert by_username.status_code == 200
    assert by_username.json()["data"] == by_email.json()["data"]

    _assert_error(client.get("/api/identities/ALICE01"), 404, "IDENTITY_NOT_FOUND")


def test_password_reset_flow(client):
    _register(client)

    unknown = client.post("/api/auth/password/forgot", json={"email": "nobody@x.com"})
    assert unknown.status_code == 200
    assert unknown.json()["data"] == {"accepted": True, "expires_at": None, "reset_token": None}

    issued = client.post("/api/auth/password/forgot", json={"email": "a@x.com"})
    token = issued.json()["data"]["reset_token"]
    assert token

    done = client.post("/api/auth/password/reset", json={"token": token, "new_password": "Newpass99"})
    assert done.status_code == 200
    assert done.json()["data"] == {"reset": True}

    reused = client.post("/api/auth/password/reset", json={"token": token, "new_password": "Other999x"})
    _assert_error(reused, 400, "RESET_TOKEN_INVALID")

    login = client.post("/api/auth/login", json={"identifier": "alice01", "password": "Newpass99"})
    assert login.status_code == 200


def test_reset_token_hidden_outside_debug(client, monkeypatch):
    from idcore.core.config import get_settings

    _register(client)
    monkeypatch.setenv("IDC_APP_DEBUG", "false")
    get_settings.cache_clear()

    resp = client.post("/api/auth/password/forgot", json={"email": "a@x.com"})
    assert resp.status_code == 200
    assert resp.json()["data"]["reset_token"] is None


def test_store_outage_maps_to_503(client, monkeypatch):
    from idcore.services import credential_repository

    def _broken(*_args, **_kwargs):
        raise OperationalError("select", {}, Exception("connection refused"))

    monkeypatch.setattr(credential_repository, "_find_auth", _broken)

    error = _assert_error(client.get("/api/identities/alice01"), 503, "STORE_UNAVAILABLE")
    assert error["details"]["retryable"] is True
