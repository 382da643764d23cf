"""Password hashing and bearer token signing."""

from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any

from jose import jwt
from passlib.context import CryptContext

from .config import settings


@lru_cache(maxsize=1)
def _password_context() -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


def hash_password(password: str) -> str:
    """Return a salted one-way hash of a plaintext password."""
    return _password_context().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check of a plaintext password against a stored hash."""
    if not password or not password_hash:
        return False
    try:
        return _password_context().verify(password, password_hash)
    except ValueError:
        # Unrecognised or corrupt hash
        return False


def create_token(username: str, expires_minutes: int | None = None) -> str:
    """Create a signed JWT for a user.

    Args:
        username: The username to encode as the token subject.
        expires_minutes: Token lifetime. Defaults to ``settings.jwt_expiration_minutes``.

    Returns:
        Encoded JWT token as string.
    """
    now = datetime.now(UTC)
    lifetime = settings.jwt_expiration_minutes if expires_minutes is None else expires_minutes
    payload = {
        "sub": username,
        "exp": now + timedelta(minutes=lifetime),
        "iat": now,
    }
    token: str = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry of a token and return its claims.

    Raises:
        jose.JWTError: If the token is malformed, tampered with or expired.
    """
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
