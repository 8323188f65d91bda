import os

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')
os.environ.setdefault('ADMIN_SECRET_KEY', 'test-admin-secret')
os.environ.setdefault('BCRYPT_ROUNDS', '4')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from quizproctor.auth import jwt_handler  # noqa: E402
from quizproctor.auth.dependencies import Identity  # noqa: E402
from quizproctor.auth.passwords import hash_password  # noqa: E402
from quizproctor.database import Base, get_db  # noqa: E402
from quizproctor.main import app  # noqa: E402
from quizproctor.models.user import User  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(email: str = 'student@example.com', password: str = 'pw123456', **fields) -> User:
        user = User(email=email, password_hash=hash_password(password), **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def identity_for():
    def _identity_for(user: User) -> Identity:
        return Identity(user_id=user.id, email=user.email, is_admin=bool(user.is_admin))

    return _identity_for


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = jwt_handler.create_access_token(subject=user.id, email=user.email, is_admin=bool(user.is_admin))
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers
