"""Per-user summaries and dashboard statistics for the admin views."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from quizproctor.models.quiz_result import DEFAULT_STATUS, QuizResult, round_half_up
from quizproctor.models.user import User

BOTH_QUIZ_TYPES = "both"


@dataclass
class UserSummary:
    id: str
    name: str
    email: str
    status: str = DEFAULT_STATUS
    quiz_type: str | None = None
    score: int | None = None
    completed_at: datetime | None = None
    latest_quiz_id: str | None = None
    is_blocked: bool = False
    warning_count: int = 0
    restart_count: int = 0
    blocked_reason: str | None = None
    blocked_at: datetime | None = None


@dataclass
class DashboardStats:
    total_attempts: int = 0
    unique_users: int = 0
    average_score: int = 0
    average_time: int = 0
    total_correct: int = 0
    total_wrong: int = 0
    attempts_by_type: dict[str, int] = field(default_factory=dict)


def attempted_quiz_type(results: Iterable[QuizResult]) -> str | None:
    quiz_types = {result.quiz_type for result in results}
    if {"plugin", "theme"} <= quiz_types:
        return BOTH_QUIZ_TYPES
    if "plugin" in quiz_types:
        return "plugin"
    if "theme" in quiz_types:
        return "theme"
    return None


def latest_result(results: Iterable[QuizResult]) -> QuizResult | None:
    return max(results, key=lambda result: result.completed_at, default=None)


def summarize_user(user: User, results: list[QuizResult]) -> UserSummary:
    summary = UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        is_blocked=bool(user.is_blocked),
        warning_count=user.warning_count or 0,
        restart_count=user.quiz_restart_count or 0,
        blocked_reason=user.blocked_reason,
        blocked_at=user.blocked_at,
    )

    latest = latest_result(results)
    if latest is None:
        return summary

    summary.name = latest.user_name or summary.name
    summary.status = latest.status or DEFAULT_STATUS
    summary.quiz_type = attempted_quiz_type(results)
    summary.score = latest.percentage
    summary.completed_at = latest.completed_at
    summary.latest_quiz_id = latest.id
    return summary


def summarize_users(users: Iterable[User], results: Iterable[QuizResult]) -> list[UserSummary]:
    results_by_user: dict[str, list[QuizResult]] = defaultdict(list)
    for result in results:
        if result.user_id:
            results_by_user[result.user_id].append(result)

    return [summarize_user(user, results_by_user.get(user.id, [])) for user in users]


def compute_stats(results: Iterable[QuizResult]) -> DashboardStats:
    stats = DashboardStats(attempts_by_type={"plugin": 0, "theme": 0})
    user_ids: set[str] = set()
    percentage_total = 0.0
    time_total = 0

    for result in results:
        stats.total_attempts += 1
        user_ids.add(result.user_id)
        if result.total_questions:
            percentage_total += result.score / result.total_questions * 100
        time_total += result.time_taken_seconds or 0
        stats.total_correct += result.correct_answers or 0
        stats.total_wrong += result.wrong_answers or 0
        stats.attempts_by_type[result.quiz_type] = stats.attempts_by_type.get(result.quiz_type, 0) + 1

    stats.unique_users = len(user_ids)
    if stats.total_attempts:
        stats.average_score = round_half_up(percentage_total / stats.total_attempts)
        stats.average_time = round_half_up(time_total / stats.total_attempts)

    return stats
