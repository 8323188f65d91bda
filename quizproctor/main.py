import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizproctor.core import config
from quizproctor.core.errors import (
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from quizproctor.core.logging_config import setup_logging
from quizproctor.database import Base, engine, ensure_quiz_result_schema, ensure_user_schema
from quizproctor.models import quiz_result, user  # noqa: F401
from quizproctor.routes import admin_routes, auth_routes, quiz_routes

setup_logging()

app = FastAPI(title='Quiz Proctor API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_user_schema()
        ensure_quiz_result_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')


@app.get('/health')
def health():
    return {'status': 'ok', 'message': 'Server is running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(quiz_routes.router, prefix='/quiz')
app.include_router(admin_routes.router, prefix='/admin')
