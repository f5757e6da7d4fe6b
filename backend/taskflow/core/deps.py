from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from taskflow.core.config import Settings, get_settings
from taskflow.core.database import get_db
from taskflow.core.errors import InvalidAccessToken
from taskflow.core.security import TokenIssuer
from taskflow.services.auth import AuthService
from taskflow.services.rate_limit import RateLimiter
from taskflow.services.tasks import TaskService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity attached to a request by the access guard."""

    user_id: str
    email: str


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings)


def get_auth_service(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)) -> AuthService:
    return AuthService(db, settings)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return RateLimiter.from_settings(get_settings())


def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> AuthContext:
    # Signature and expiry only: access tokens are never looked up in the ledger,
    # so a leaked one stays usable until JWT_ACCESS_EXPIRY elapses.
    if not token:
        raise InvalidAccessToken("Missing bearer token")
    payload = issuer.verify_access(token)
    return AuthContext(user_id=payload.user_id, email=payload.email)


def get_task_service(
    principal: AuthContext = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> TaskService:
    return TaskService(db, principal.user_id)
