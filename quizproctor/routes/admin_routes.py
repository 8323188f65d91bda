import logging
from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field, StrictInt
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizproctor.auth.dependencies import Identity, get_current_identity, require_admin, require_self_or_admin
from quizproctor.core import violations
from quizproctor.core.aggregation import compute_stats, summarize_users
from quizproctor.core.errors import internal_error
from quizproctor.core.schemas import APIModel
from quizproctor.database import get_db
from quizproctor.models.quiz_result import RESULT_STATUSES, QuizResult
from quizproctor.models.user import User
from quizproctor.routes.quiz_routes import QuizResultResponse, serialize_result

router = APIRouter(tags=['admin'])

logger = logging.getLogger(__name__)


class MessageResponse(APIModel):
    message: str


class AdminUserResponse(APIModel):
    id: str
    name: str
    email: str
    status: str
    quiz_type: str | None = Field(default=None, alias='quizType')
    score: int | None = None
    completed_at: datetime | None = Field(default=None, alias='completedAt')
    latest_quiz_id: str | None = Field(default=None, alias='latestQuizId')
    is_blocked: bool = Field(alias='isBlocked')
    warning_count: int = Field(alias='warningCount')
    restart_count: int = Field(alias='restartCount')
    blocked_reason: str | None = Field(default=None, alias='blockedReason')
    blocked_at: datetime | None = Field(default=None, alias='blockedAt')


class AdminUserListResponse(APIModel):
    users: list[AdminUserResponse]
    total: int


class AdminResultListResponse(APIModel):
    results: list[QuizResultResponse]
    total: int


class StatsResponse(APIModel):
    total_attempts: int = Field(alias='totalAttempts')
    unique_users: int = Field(alias='uniqueUsers')
    average_score: int = Field(alias='averageScore')
    average_time: int = Field(alias='averageTime')
    total_correct: int = Field(alias='totalCorrect')
    total_wrong: int = Field(alias='totalWrong')
    plugin_attempts: int = Field(alias='pluginAttempts')
    theme_attempts: int = Field(alias='themeAttempts')


class UpdateStatusRequest(APIModel):
    status: str | None = None


class WarningCountRequest(APIModel):
    warning_count: StrictInt | None = Field(default=None, alias='warningCount')


class RestartCountRequest(APIModel):
    restart_count: StrictInt | None = Field(default=None, alias='restartCount')


class WarningCountResponse(APIModel):
    warning_count: int = Field(alias='warningCount')
    is_blocked: bool = Field(alias='isBlocked')


class RestartCountResponse(APIModel):
    restart_count: int = Field(alias='restartCount')
    is_blocked: bool = Field(alias='isBlocked')


class RecordViolationRequest(APIModel):
    violation_type: str | None = Field(default=None, alias='violationType')


class PolicyOutcomeResponse(APIModel):
    outcome: str
    warning_count: int = Field(alias='warningCount')
    restart_count: int = Field(alias='restartCount')
    is_blocked: bool = Field(alias='isBlocked')
    blocked_reason: str | None = Field(default=None, alias='blockedReason')
    remaining: int


class BlockUserRequest(APIModel):
    reason: str | None = None


def get_user_or_404(user_id: str, db: Session) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return user


def validate_count(value: int | None, label: str) -> int:
    if value is None or value < 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f'Invalid {label}')
    return value


def outcome_response(outcome: violations.PolicyOutcome) -> PolicyOutcomeResponse:
    return PolicyOutcomeResponse(
        outcome=outcome.outcome,
        warning_count=outcome.warning_count,
        restart_count=outcome.restart_count,
        is_blocked=outcome.is_blocked,
        blocked_reason=outcome.blocked_reason,
        remaining=outcome.remaining,
    )


@router.get('/users', response_model=AdminUserListResponse)
def list_users(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        users = db.query(User).order_by(User.created_at.desc()).all()
        results = db.query(QuizResult).order_by(QuizResult.completed_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'listing users') from exc

    summaries = [AdminUserResponse(**asdict(summary)) for summary in summarize_users(users, results)]
    return AdminUserListResponse(users=summaries, total=len(summaries))


@router.get('/results', response_model=AdminResultListResponse)
def list_results(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        results = db.query(QuizResult).order_by(QuizResult.completed_at.desc()).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'listing quiz results') from exc

    return AdminResultListResponse(
        results=[serialize_result(result) for result in results],
        total=len(results),
    )


@router.patch('/users/{user_id}/status', response_model=MessageResponse)
def update_user_status(
    user_id: str,
    data: UpdateStatusRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if data.status not in RESULT_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid status. Must be "selected" or "pending"',
        )

    try:
        # every attempt of the user carries the status, not only the latest one
        updated = db.query(QuizResult).filter(QuizResult.user_id == user_id).update(
            {QuizResult.status: data.status},
            synchronize_session=False,
        )
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'updating user status', db) from exc

    logger.info('Admin %s set status of user %s to %s (%d results)', admin.user_id, user_id, data.status, updated)
    return MessageResponse(message=f'User status updated to {data.status}')


@router.delete('/users/{user_id}/results', response_model=MessageResponse)
def delete_user_results(
    user_id: str,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        deleted = db.query(QuizResult).filter(QuizResult.user_id == user_id).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'deleting user results', db) from exc

    logger.info('Admin %s deleted %d results of user %s', admin.user_id, deleted, user_id)
    return MessageResponse(message='User quiz results deleted successfully')


@router.get('/stats', response_model=StatsResponse)
def dashboard_stats(_: Identity = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        results = db.query(QuizResult).all()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'computing dashboard stats') from exc

    stats = compute_stats(results)
    return StatsResponse(
        total_attempts=stats.total_attempts,
        unique_users=stats.unique_users,
        average_score=stats.average_score,
        average_time=stats.average_time,
        total_correct=stats.total_correct,
        total_wrong=stats.total_wrong,
        plugin_attempts=stats.attempts_by_type.get('plugin', 0),
        theme_attempts=stats.attempts_by_type.get('theme', 0),
    )


@router.get('/users/{user_id}/warnings', response_model=WarningCountResponse)
def get_user_warnings(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self_or_admin(user_id, identity)

    try:
        user = get_user_or_404(user_id, db)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'loading warnings') from exc

    return WarningCountResponse(warning_count=user.warning_count or 0, is_blocked=bool(user.is_blocked))


@router.patch('/users/{user_id}/warnings', response_model=MessageResponse)
def update_user_warnings(
    user_id: str,
    data: WarningCountRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self_or_admin(user_id, identity)
    warning_count = validate_count(data.warning_count, 'warning count')

    try:
        user = get_user_or_404(user_id, db)
        user.warning_count = warning_count
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'updating warnings', db) from exc

    return MessageResponse(message='Warning count updated successfully')


@router.post('/users/{user_id}/violations', response_model=PolicyOutcomeResponse)
def record_user_violation(
    user_id: str,
    data: RecordViolationRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self_or_admin(user_id, identity)
    violation_type = (data.violation_type or '').strip()
    if not violation_type:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Violation type is required')

    try:
        user = get_user_or_404(user_id, db)
        outcome = violations.record_violation(user, violation_type)
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'recording a violation', db) from exc

    return outcome_response(outcome)


@router.get('/users/{user_id}/restarts', response_model=RestartCountResponse)
def get_user_restarts(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self_or_admin(user_id, identity)

    try:
        user = get_user_or_404(user_id, db)
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'loading restarts') from exc

    return RestartCountResponse(restart_count=user.quiz_restart_count or 0, is_blocked=bool(user.is_blocked))


@router.patch('/users/{user_id}/restarts', response_model=MessageResponse)
def update_user_restarts(
    user_id: str,
    data: RestartCountRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self_or_admin(user_id, identity)
    restart_count = validate_count(data.restart_count, 'restart count')

    try:
        user = get_user_or_404(user_id, db)
        user.quiz_restart_count = restart_count
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'updating restarts', db) from exc

    return MessageResponse(message='Restart count updated successfully')


@router.post('/users/{user_id}/restarts', response_model=PolicyOutcomeResponse)
def record_user_restart(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    require_self_or_admin(user_id, identity)

    try:
        user = get_user_or_404(user_id, db)
        outcome = violations.record_restart(user)
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'recording a restart', db) from exc

    return outcome_response(outcome)


@router.post('/users/{user_id}/block', response_model=MessageResponse)
def block_user(
    user_id: str,
    data: BlockUserRequest,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reason = (data.reason or '').strip()
    if not reason:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Block reason is required')

    try:
        user = get_user_or_404(user_id, db)
        violations.block_user(user, reason)
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'blocking a user', db) from exc

    return MessageResponse(message='User blocked successfully')


@router.post('/users/{user_id}/unblock', response_model=MessageResponse)
def unblock_user(
    user_id: str,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(user_id, db)
        violations.unblock_user(user)
        db.commit()
    except SQLAlchemyError as exc:
        raise internal_error(exc, 'unblocking a user', db) from exc

    return MessageResponse(message='User unblocked successfully')
