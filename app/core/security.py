"""
Password hashing, device fingerprinting & JWT issuing.

- Passwords are hashed with bcrypt directly.
- Device ids are a heuristic key derived from (user agent, IP); they
  are not a security boundary.
- JWTs carry only the user id.  Whether a token is still usable is
  decided by the session registry on every request, not by the token.
- The signing secret lives on a ``TokenIssuer`` built from settings and
  stored on ``app.state``; nothing here reads a module-level secret.
"""

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from app.core.config import Settings
from app.core.exceptions import InvalidTokenError

# bcrypt rejects passwords longer than this
MAX_PASSWORD_BYTES = 72

# ── Password hashing ────────────────────────────────────────────────


def hash_password(plain: str, rounds: int = 10) -> str:
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# ── Device fingerprint ──────────────────────────────────────────────


def fingerprint_device(user_agent: str | None, remote_ip: str | None, length: int = 32) -> str:
    """
    Deterministic device id for a (user agent, IP) pairing.

    The inputs are joined in a fixed order and digested, so the same
    browser on the same network always maps to the same id.  A changed
    IP (mobile networks, proxies) yields a new id.
    """
    raw = f"{user_agent or ''}-{remote_ip or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:length]


# ── JWT ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenIssuer:
    """Signs and verifies bearer tokens with an explicitly injected secret."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_days: int = 7):
        if not secret_key:
            raise ValueError("TokenIssuer requires a non-empty secret key")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.lifetime = timedelta(days=expire_days)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_days=settings.ACCESS_TOKEN_EXPIRE_DAYS,
        )

    def issue(self, user_id: uuid.UUID | str, now: datetime | None = None) -> IssuedToken:
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + self.lifetime
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": expires_at,
            # Unique per token so a same-second rotation still changes the value
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> uuid.UUID:
        """Return the user id embedded in ``token`` or raise InvalidTokenError."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
            return uuid.UUID(str(payload["sub"]))
        except (JWTError, KeyError, ValueError, TypeError):
            raise InvalidTokenError() from None
