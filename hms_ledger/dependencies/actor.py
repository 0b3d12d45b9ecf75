# hms_ledger/dependencies/actor.py
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from hms_ledger.core.security import decode_token

# Tokens are issued by the identity service; this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_actor_id(token: str = Depends(oauth2_scheme)) -> int:
    """
    Dependency returning the authenticated actor (user) id from the JWT
    subject. Passed explicitly into every mutating service call.
    """
    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
