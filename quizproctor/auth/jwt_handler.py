from datetime import datetime, timedelta, timezone

import jwt

from quizproctor.core import config


def create_access_token(
    subject: str,
    email: str,
    is_admin: bool,
    expires_minutes: int | None = None,
) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "email": email,
        "is_admin": is_admin,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
