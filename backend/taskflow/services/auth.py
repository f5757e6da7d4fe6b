"""Register, login, refresh and logout flows.

Session states: anonymous -> authenticated(access, refresh) ->
refreshed(access', refresh') -> logged out. Each flow that writes runs in a
single transaction: it commits once at the end and rolls back on any error.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from taskflow.core.errors import DuplicateUser, InvalidCredentials, InvalidRefreshToken
from taskflow.core.security import TokenIssuer, TokenPayload, hash_password, utcnow, verify_password
from taskflow.models import User
from taskflow.services.ledger import RefreshTokenLedger
from taskflow.services.users import CredentialStore

logger = logging.getLogger(__name__)

_dummy_hash: Optional[str] = None


def _timing_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("taskflow-timing-equalizer")
    return _dummy_hash


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user: Optional[User] = None


class AuthService:
    def __init__(self, db: Session, settings, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.users = CredentialStore(db)
        self.ledger = RefreshTokenLedger(db)
        self.tokens = TokenIssuer(settings)
        self.clock = clock

    @contextmanager
    def _atomic(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def register(self, email: str, password: str, name: str) -> AuthResult:
        if self.users.get_by_email(email) is not None:
            logger.warning("Registration rejected: email already in use")
            raise DuplicateUser()
        hashed = hash_password(password)
        with self._atomic():
            try:
                user = self.users.create(email=email, name=name, hashed_password=hashed)
            except IntegrityError as exc:
                # Lost a race on the unique email index.
                raise DuplicateUser() from exc
            result = self._open_session(user)
        logger.info("Registered user %s", user.id)
        return result

    def login(self, email: str, password: str) -> AuthResult:
        user = self.users.get_by_email(email)
        if user is None:
            verify_password(password, _timing_hash())
            logger.warning("Login failed: %s", InvalidCredentials.UNKNOWN_EMAIL)
            raise InvalidCredentials(InvalidCredentials.UNKNOWN_EMAIL)
        if not verify_password(password, user.hashed_password):
            logger.warning("Login failed for user %s: %s", user.id, InvalidCredentials.WRONG_PASSWORD)
            raise InvalidCredentials(InvalidCredentials.WRONG_PASSWORD)
        with self._atomic():
            result = self._open_session(user)
        logger.info("User %s logged in", user.id)
        return result

    def refresh(self, refresh_token: str) -> AuthResult:
        try:
            payload = self.tokens.verify_refresh(refresh_token)
        except InvalidRefreshToken as exc:
            logger.warning("Refresh rejected: %s", exc.message)
            raise
        now = self.clock()
        with self._atomic():
            stored = self.ledger.find_by_token(refresh_token, for_update=True)
            if stored is None:
                logger.warning("Refresh rejected for user %s: token not in ledger", payload.user_id)
                raise InvalidRefreshToken()
            if stored.is_expired(now) or stored.user_id != payload.user_id:
                logger.warning("Refresh rejected for user %s: ledger entry expired or mismatched", payload.user_id)
                raise InvalidRefreshToken()
            access_token, _ = self.tokens.issue_access(payload, now)
            new_refresh_token, expires_at = self.tokens.issue_refresh(payload, now)
            self.ledger.rotate(refresh_token, new_refresh_token, payload.user_id, expires_at)
        logger.info("Rotated refresh token for user %s", payload.user_id)
        return AuthResult(access_token=access_token, refresh_token=new_refresh_token)

    def logout(self, refresh_token: str) -> None:
        with self._atomic():
            deleted = self.ledger.delete_by_token(refresh_token)
        logger.info("Logout revoked %s refresh token(s)", deleted)

    def _open_session(self, user: User) -> AuthResult:
        now = self.clock()
        payload = TokenPayload(user_id=user.id, email=user.email)
        access_token, _ = self.tokens.issue_access(payload, now)
        refresh_token, expires_at = self.tokens.issue_refresh(payload, now)
        self.ledger.prune_expired_for_user(user.id, now)
        self.ledger.store(refresh_token, user.id, expires_at)
        return AuthResult(access_token=access_token, refresh_token=refresh_token, user=user)
