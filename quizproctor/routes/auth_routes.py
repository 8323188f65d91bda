import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from quizproctor.auth import jwt_handler
from quizproctor.auth.dependencies import Identity, get_current_identity
from quizproctor.auth.passwords import hash_password, is_admin_secret, verify_password
from quizproctor.core.errors import internal_error
from quizproctor.core.schemas import APIModel
from quizproctor.core.violations import DEFAULT_BLOCK_REASON
from quizproctor.database import get_db
from quizproctor.models.user import User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


class RegisterRequest(APIModel):
    email: str | None = None
    password: str | None = None
    display_name: str | None = Field(default=None, alias='displayName')
    admin_secret_key: str | None = Field(default=None, alias='adminSecretKey')


class LoginRequest(APIModel):
    email: str | None = None
    password: str | None = None
    admin_secret_key: str | None = Field(default=None, alias='adminSecretKey')


class UserSummary(APIModel):
    id: str
    email: str
    display_name: str | None = Field(default=None, alias='displayName')
    is_admin: bool = Field(alias='isAdmin')


class AuthResponse(APIModel):
    message: str
    user: UserSummary
    token: str


class ProfileResponse(UserSummary):
    is_blocked: bool = Field(alias='isBlocked')
    warning_count: int = Field(alias='warningCount')
    restart_count: int = Field(alias='restartCount')
    blocked_reason: str | None = Field(default=None, alias='blockedReason')


def normalize_email(email: str | None) -> str:
    return (email or '').strip().lower()


def require_credentials(email: str | None, password: str | None) -> str:
    normalized = normalize_email(email)
    if not normalized or not password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Email and password are required',
        )
    return normalized


def find_user_id_by_email(db: Session, email: str) -> str | None:
    row = db.query(User.id).filter(User.email == email).first()
    return row[0] if row else None


def issue_token(user: User) -> str:
    return jwt_handler.create_access_token(
        subject=user.id,
        email=user.email,
        is_admin=bool(user.is_admin),
    )


def summarize(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_admin=bool(user.is_admin),
    )


@router.post('/register', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    email = require_credentials(data.email, data.password)

    try:
        if find_user_id_by_email(db, email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='User already exists',
            )

        user = User(
            email=email,
            password_hash=hash_password(data.password),
            display_name=(data.display_name or '').strip() or email.split('@')[0],
            is_admin=is_admin_secret(data.admin_secret_key),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        # lost a race with a concurrent registration of the same email
        db.rollback()
        logger.info('Duplicate registration for %s rejected at commit', email)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='User already exists',
        ) from exc
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'registering a user', db) from exc

    logger.info('Registered user %s (admin=%s)', user.id, user.is_admin)

    return AuthResponse(
        message='User registered successfully',
        user=summarize(user),
        token=issue_token(user),
    )


@router.post('/login', response_model=AuthResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    email = require_credentials(data.email, data.password)

    try:
        user = db.query(User).filter(User.email == email).first()
        if user is None or not verify_password(data.password, user.password_hash):
            logger.info('Failed login for %s', email)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail='Invalid credentials',
            )

        if user.is_blocked:
            logger.info('Blocked user %s attempted to log in', user.id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    'error': 'Account blocked',
                    'blockedReason': user.blocked_reason or DEFAULT_BLOCK_REASON,
                },
            )

        if is_admin_secret(data.admin_secret_key) and not user.is_admin:
            user.is_admin = True
            db.commit()
            db.refresh(user)
            logger.warning('Promoted user %s to admin via secret key', user.id)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'logging in', db) from exc

    return AuthResponse(
        message='Login successful',
        user=summarize(user),
        token=issue_token(user),
    )


@router.get('/me', response_model=ProfileResponse)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    try:
        user = db.get(User, identity.user_id)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'loading the current user') from exc

    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')

    return ProfileResponse(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        is_admin=bool(user.is_admin),
        is_blocked=bool(user.is_blocked),
        warning_count=user.warning_count or 0,
        restart_count=user.quiz_restart_count or 0,
        blocked_reason=user.blocked_reason,
    )
