"""Persisted refresh tokens.

Rows are keyed by the SHA-256 digest of the token. Every method works inside
the caller's session; committing is the caller's job so a whole auth flow
lands in one transaction.
"""
import hashlib
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from taskflow.core.errors import ConflictError, InvalidRefreshToken
from taskflow.core.security import utcnow
from taskflow.models import RefreshToken

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class RefreshTokenLedger:
    def __init__(self, db: Session):
        self.db = db

    def store(self, token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        entry = RefreshToken(user_id=user_id, token_hash=hash_token(token), expires_at=expires_at)
        self.db.add(entry)
        try:
            self.db.flush()
        except IntegrityError as exc:
            logger.error("Refresh token collision for user %s", user_id)
            raise ConflictError("Refresh token already stored") from exc
        return entry

    def find_by_token(self, token: str, for_update: bool = False) -> Optional[RefreshToken]:
        query = self.db.query(RefreshToken).filter(RefreshToken.token_hash == hash_token(token))
        if for_update:
            query = query.with_for_update()
        return query.first()

    def delete_by_token(self, token: str) -> int:
        result = self.db.execute(
            delete(RefreshToken).where(RefreshToken.token_hash == hash_token(token))
        )
        return result.rowcount

    def prune_expired_for_user(self, user_id: str, now: datetime) -> int:
        result = self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.expires_at < now)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def prune_expired(self, now: datetime) -> int:
        result = self.db.execute(
            delete(RefreshToken)
            .where(RefreshToken.expires_at < now)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    def rotate(self, old_token: str, new_token: str, user_id: str, expires_at: datetime) -> RefreshToken:
        # Zero rows means another request consumed the token first.
        if self.delete_by_token(old_token) == 0:
            raise InvalidRefreshToken()
        return self.store(new_token, user_id, expires_at)


def sweep_expired(db: Session, now: Optional[datetime] = None) -> int:
    """Delete every expired refresh token and commit."""
    count = RefreshTokenLedger(db).prune_expired(now or utcnow())
    db.commit()
    logger.info("Pruned %s expired refresh tokens", count)
    return count
