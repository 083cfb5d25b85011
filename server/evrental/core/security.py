"""Password hashing and access token helpers."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from jwt import ExpiredSignatureError, PyJWTError

from .config import settings
from .exceptions import AuthenticationError

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash or over-long password
        return False


def create_access_token(subject: str, role: str, expires_minutes: Optional[int] = None) -> str:
    """
    Issue a signed access token.

    Args:
        subject: User id placed in the "sub" claim
        role: User role placed in the "role" claim
        expires_minutes: Lifetime override, defaults to settings.jwt_expires_minutes

    Returns:
        str: Encoded JWT
    """
    now = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    payload = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Validate an access token and return its claims.

    Raises:
        AuthenticationError: If the token is expired, malformed or badly signed
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired", code="TOKEN_EXPIRED") from e
    except PyJWTError as e:
        raise AuthenticationError("Invalid or expired token", code="INVALID_TOKEN") from e
