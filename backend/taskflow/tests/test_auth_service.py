from datetime import datetime, timedelta, timezone

import pytest
from taskflow.core.errors import ConflictError, DuplicateUser, InvalidCredentials, InvalidRefreshToken
from taskflow.models import RefreshToken, User
from taskflow.services.auth import AuthService
from taskflow.services.ledger import RefreshTokenLedger


@pytest.fixture()
def service(db, settings):
    return AuthService(db, settings)


def test_register_then_duplicate(service):
    result = service.register("a@x.com", "secret1", "Alice")
    assert result.user.email == "a@x.com"
    with pytest.raises(DuplicateUser):
        service.register("a@x.com", "other2", "Bobby")


def test_register_never_stores_plain_password(service, db):
    service.register("a@x.com", "secret1", "Alice")
    user = db.query(User).one()
    assert user.hashed_password != "secret1"
    assert user.hashed_password.startswith("$argon2")


def test_login_failure_reasons_are_kept_internally(service):
    service.register("a@x.com", "secret1", "Alice")
    with pytest.raises(InvalidCredentials) as unknown:
        service.login("b@x.com", "secret1")
    with pytest.raises(InvalidCredentials) as wrong:
        service.login("a@x.com", "secret2")
    assert unknown.value.reason == InvalidCredentials.UNKNOWN_EMAIL
    assert wrong.value.reason == InvalidCredentials.WRONG_PASSWORD
    assert unknown.value.message == wrong.value.message
    assert unknown.value.status_code == wrong.value.status_code == 401


def test_register_is_atomic_when_ledger_write_fails(service, db, monkeypatch):
    def failing_store(self, token, user_id, expires_at):
        raise ConflictError("Refresh token already stored")

    monkeypatch.setattr(RefreshTokenLedger, "store", failing_store)
    with pytest.raises(ConflictError):
        service.register("a@x.com", "secret1", "Alice")
    assert db.query(User).count() == 0
    assert db.query(RefreshToken).count() == 0


def test_refresh_token_expiring_exactly_now_is_rejected(service, db, settings):
    token = service.register("a@x.com", "secret1", "Alice").refresh_token
    boundary = datetime.now(timezone.utc).replace(microsecond=0)
    row = db.query(RefreshToken).one()
    row.expires_at = boundary
    db.commit()

    frozen = AuthService(db, settings, clock=lambda: boundary)
    with pytest.raises(InvalidRefreshToken):
        frozen.refresh(token)
    assert db.query(RefreshToken).count() == 1


def test_refresh_token_just_before_expiry_is_accepted(service, db, settings):
    token = service.register("a@x.com", "secret1", "Alice").refresh_token
    boundary = datetime.now(timezone.utc).replace(microsecond=0)
    row = db.query(RefreshToken).one()
    row.expires_at = boundary
    db.commit()

    frozen = AuthService(db, settings, clock=lambda: boundary - timedelta(seconds=1))
    result = frozen.refresh(token)
    assert result.refresh_token != token


def test_refresh_loses_race_to_concurrent_rotation(service, db, session_factory, monkeypatch):
    token = service.register("a@x.com", "secret1", "Alice").refresh_token
    original_find = RefreshTokenLedger.find_by_token

    def find_then_lose_race(self, value, for_update=False):
        found = original_find(self, value, for_update=for_update)
        other = session_factory()
        try:
            RefreshTokenLedger(other).delete_by_token(value)
            other.commit()
        finally:
            other.close()
        return found

    monkeypatch.setattr(RefreshTokenLedger, "find_by_token", find_then_lose_race)
    with pytest.raises(InvalidRefreshToken):
        service.refresh(token)
    monkeypatch.undo()
    assert db.query(RefreshToken).count() == 0


def test_logout_twice(service):
    token = service.register("a@x.com", "secret1", "Alice").refresh_token
    service.logout(token)
    service.logout(token)
    with pytest.raises(InvalidRefreshToken):
        service.refresh(token)
