from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from quizproctor.auth import jwt_handler

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The caller as described by a verified bearer token."""

    user_id: str
    email: str
    is_admin: bool


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No token provided")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

    return Identity(
        user_id=user_id,
        email=payload.get("email", ""),
        is_admin=bool(payload.get("is_admin", False)),
    )


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return identity


def require_self_or_admin(user_id: str, identity: Identity) -> None:
    if identity.user_id != user_id and not identity.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
