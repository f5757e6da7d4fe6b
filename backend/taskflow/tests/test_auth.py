from datetime import datetime, timedelta, timezone

from taskflow.models import RefreshToken, User
from taskflow.services.ledger import RefreshTokenLedger


def _register(client, email="alice@example.com", password="secret1", name="Alice"):
    response = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


def _login(client, email="alice@example.com", password="secret1"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_returns_tokens_and_public_user(client):
    data = _register(client, email="a@x.com", name="Alice")
    assert data["access_token"]
    assert data["refresh_token"]
    assert data["token_type"] == "bearer"
    assert set(data["user"]) == {"id", "email", "name"}
    assert data["user"]["email"] == "a@x.com"
    assert data["user"]["name"] == "Alice"


def test_register_duplicate_email(client, db):
    _register(client, email="a@x.com", password="secret1", name="Alice")
    response = client.post("/api/auth/register", json={"email": "a@x.com", "password": "other2", "name": "Bobby"})
    assert response.status_code == 400
    assert response.json()["code"] == "duplicate_user"
    assert db.query(User).count() == 1


def test_register_email_match_is_case_sensitive(client):
    _register(client, email="a@x.com")
    response = client.post("/api/auth/register", json={"email": "A@x.com", "password": "secret1", "name": "Alice"})
    assert response.status_code == 201


def test_register_validation_errors_are_field_level(client):
    response = client.post("/api/auth/register", json={"email": "nope", "password": "123", "name": "Al"})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    assert {"email", "password", "name"} <= set(body["errors"])


def test_register_trims_name(client):
    data = _register(client, name="  Alice  ")
    assert data["user"]["name"] == "Alice"


def test_register_stores_one_refresh_token(client, db):
    _register(client)
    assert db.query(RefreshToken).count() == 1


def test_login_success(client):
    _register(client)
    response = _login(client)
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" in data
    assert data["user"]["email"] == "alice@example.com"


def test_login_failures_are_indistinguishable(client):
    _register(client)
    wrong_password = _login(client, password="not-the-password")
    unknown_email = _login(client, email="nobody@example.com", password="secret1")
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_two_logins_give_two_independent_sessions(client):
    _register(client)
    first = _login(client).json()["refresh_token"]
    second = _login(client).json()["refresh_token"]
    assert first != second
    assert client.post("/api/auth/refresh", json={"refresh_token": first}).status_code == 200
    assert client.post("/api/auth/refresh", json={"refresh_token": second}).status_code == 200


def test_login_prunes_only_expired_tokens(client, db):
    data = _register(client)
    user_id = data["user"]["id"]
    past = datetime.now(timezone.utc) - timedelta(days=1)
    RefreshTokenLedger(db).store("stale-token", user_id, past)
    db.commit()
    assert db.query(RefreshToken).count() == 2

    assert _login(client).status_code == 200
    db.expire_all()
    assert RefreshTokenLedger(db).find_by_token("stale-token") is None
    assert db.query(RefreshToken).count() == 2
    response = client.post("/api/auth/refresh", json={"refresh_token": data["refresh_token"]})
    assert response.status_code == 200


def test_refresh_rotates_and_is_single_use(client):
    original = _register(client)["refresh_token"]
    response = client.post("/api/auth/refresh", json={"refresh_token": original})
    assert response.status_code == 200
    data = response.json()
    assert "user" not in data
    rotated = data["refresh_token"]
    assert rotated != original

    replay = client.post("/api/auth/refresh", json={"refresh_token": original})
    assert replay.status_code == 401
    assert replay.json()["code"] == "invalid_refresh_token"

    assert client.post("/api/auth/refresh", json={"refresh_token": rotated}).status_code == 200


def test_refresh_rejects_access_token(client):
    access = _register(client)["access_token"]
    response = client.post("/api/auth/refresh", json={"refresh_token": access})
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_refresh_token"


def test_refresh_rejects_garbage(client):
    response = client.post("/api/auth/refresh", json={"refresh_token": "not-a-jwt"})
    assert response.status_code == 401


def test_refresh_requires_token_field(client):
    response = client.post("/api/auth/refresh", json={})
    assert response.status_code == 400
    assert "refresh_token" in response.json()["errors"]


def test_logout_is_idempotent_and_revokes(client):
    token = _register(client)["refresh_token"]
    first = client.post("/api/auth/logout", json={"refresh_token": token})
    second = client.post("/api/auth/logout", json={"refresh_token": token})
    assert first.status_code == second.status_code == 200
    assert first.json() == {"status": "ok"}
    assert client.post("/api/auth/refresh", json={"refresh_token": token}).status_code == 401


def test_logout_with_unknown_token_succeeds(client):
    response = client.post("/api/auth/logout", json={"refresh_token": "whatever"})
    assert response.status_code == 200


def test_logout_leaves_other_sessions(client):
    first = _register(client)["refresh_token"]
    second = _login(client).json()["refresh_token"]
    client.post("/api/auth/logout", json={"refresh_token": first})
    assert client.post("/api/auth/refresh", json={"refresh_token": second}).status_code == 200


def test_me_requires_bearer(client):
    response = client.get("/api/users/me")
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_me_with_access_token(client):
    data = _register(client)
    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert response.status_code == 200
    assert response.json() == data["user"]


def test_me_rejects_refresh_token_as_bearer(client):
    data = _register(client)
    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {data['refresh_token']}"})
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_access_token"


def test_refreshed_access_token_works(client):
    data = _register(client)
    access = client.post("/api/auth/refresh", json={"refresh_token": data["refresh_token"]}).json()["access_token"]
    response = client.get("/api/users/me", headers={"Authorization": f"Bearer {access}"})
    assert response.status_code == 200


def test_register_password_length_ignores_surrounding_whitespace(client):
    response = client.post("/api/auth/register", json={"email": "a@x.com", "password": "     a", "name": "Alice"})
    assert response.status_code == 400
    assert "password" in response.json()["errors"]


def test_password_is_trimmed_at_register_and_login(client):
    _register(client, password="  secret1  ")
    assert _login(client, password="secret1").status_code == 200
    assert _login(client, password=" secret1 ").status_code == 200
