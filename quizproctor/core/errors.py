import logging

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = 'Internal server error'


def internal_error(exc: SQLAlchemyError, action: str, db: Session | None = None) -> HTTPException:
    if db is not None:
        db.rollback()
    logger.exception('Database failure while %s', action, exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=INTERNAL_ERROR_MESSAGE,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {'error': exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
    logger.info('Rejected %s %s: %s', request.method, request.url.path, message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'error': message, 'details': jsonable_errors(errors)},
    )


def jsonable_errors(errors) -> list[dict]:
    return [
        {'loc': list(error.get('loc', ())), 'msg': error.get('msg', '')}
        for error in errors
    ]


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'error': INTERNAL_ERROR_MESSAGE},
    )
