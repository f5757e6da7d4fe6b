import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from taskflow.core.errors import InvalidAccessToken, InvalidConfiguration, InvalidRefreshToken

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

_DURATION_RE = re.compile(r"([0-9]+)([mhd])")
_DURATION_UNITS = {"m": "minutes", "h": "hours", "d": "days"}

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(password, hashed)
    except (ValueError, TypeError):
        return False


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(value: str) -> timedelta:
    """Parse ``<integer><m|h|d>`` into a timedelta."""
    match = _DURATION_RE.fullmatch(value or "")
    if not match:
        raise InvalidConfiguration(f"Invalid expiry format: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def compute_expiry(duration: str, now: Optional[datetime] = None) -> datetime:
    return (now or utcnow()) + parse_duration(duration)


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    email: str


class TokenIssuer:
    """Signs and verifies access/refresh JWTs.

    Access and refresh tokens use separate secrets and carry a ``type`` claim,
    so neither kind verifies as the other.
    """

    def __init__(self, settings) -> None:
        self.access_secret = settings.jwt_access_secret
        self.refresh_secret = settings.jwt_refresh_secret
        self.access_expiry = settings.jwt_access_expiry
        self.refresh_expiry = settings.jwt_refresh_expiry
        self.algorithm = settings.jwt_algorithm

    def issue_access(self, payload: TokenPayload, now: Optional[datetime] = None) -> tuple[str, datetime]:
        expires_at = compute_expiry(self.access_expiry, now)
        return self._encode(payload, ACCESS, self.access_secret, expires_at, now), expires_at

    def issue_refresh(self, payload: TokenPayload, now: Optional[datetime] = None) -> tuple[str, datetime]:
        expires_at = compute_expiry(self.refresh_expiry, now)
        return self._encode(payload, REFRESH, self.refresh_secret, expires_at, now), expires_at

    def verify_access(self, token: str) -> TokenPayload:
        try:
            return self._decode(token, ACCESS, self.access_secret)
        except ExpiredSignatureError as exc:
            raise InvalidAccessToken("Access token expired") from exc
        except JWTError as exc:
            raise InvalidAccessToken(f"Invalid access token: {exc}") from exc

    def verify_refresh(self, token: str) -> TokenPayload:
        try:
            return self._decode(token, REFRESH, self.refresh_secret)
        except ExpiredSignatureError as exc:
            raise InvalidRefreshToken("Refresh token expired") from exc
        except JWTError as exc:
            raise InvalidRefreshToken(f"Invalid refresh token: {exc}") from exc

    def _encode(
        self,
        payload: TokenPayload,
        token_type: str,
        secret: str,
        expires_at: datetime,
        now: Optional[datetime],
    ) -> str:
        to_encode = {
            "sub": payload.user_id,
            "email": payload.email,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now or utcnow(),
            "exp": expires_at,
        }
        return jwt.encode(to_encode, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> TokenPayload:
        claims = jwt.decode(token, secret, algorithms=[self.algorithm])
        if claims.get("type") != token_type:
            raise JWTError("wrong token type")
        user_id = claims.get("sub")
        email = claims.get("email")
        if not user_id or not email:
            raise JWTError("missing claims")
        return TokenPayload(user_id=str(user_id), email=str(email))
