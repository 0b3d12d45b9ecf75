from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from hms_ledger.core.config import get_settings

settings = get_settings()

ALGORITHM = "HS256"


def create_access_token(subject: str | int, expires_delta_minutes: int = 60) -> str:
    """
    Create a JWT access token whose subject is the actor (user) id.

    Token issuing belongs to the identity service; this is used by
    scripts and tests to talk to the API.
    """
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_delta_minutes)
    to_encode: dict[str, Any] = {
        "sub": str(subject),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a JWT token.
    Raises ValueError with descriptive message if token is invalid or expired.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError as exc:
        error_str = str(exc).lower()
        if "expired" in error_str:
            raise ValueError("Token has expired. Please log in again.") from None
        raise ValueError("Invalid token") from exc
    return payload
