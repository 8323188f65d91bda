from datetime import datetime

import pytest

from quizproctor.core.violations import (
    RESTART_BLOCK_REASON,
    VIOLATION_THRESHOLD,
    block_user,
    record_restart,
    record_violation,
    unblock_user,
    violation_block_reason,
)
from quizproctor.models.user import User


def _user(**fields) -> User:
    values = {'id': 'user-1', 'email': 'a@x.com', 'password_hash': 'x', 'is_blocked': False,
              'warning_count': 0, 'quiz_restart_count': 0}
    values.update(fields)
    return User(**values)


def test_first_two_violations_only_warn() -> None:
    user = _user()

    first = record_violation(user, 'tab_switch')
    second = record_violation(user, 'window_blur')

    assert (first.outcome, first.warning_count, first.remaining) == ('warned', 1, 2)
    assert (second.outcome, second.warning_count, second.remaining) == ('warned', 2, 1)
    assert user.is_blocked is False
    assert user.blocked_reason is None


def test_third_violation_blocks_with_last_type() -> None:
    user = _user(warning_count=2)
    now = datetime(2026, 3, 1, 12, 0)

    outcome = record_violation(user, 'devtools_attempt', now=now)

    assert outcome.outcome == 'blocked'
    assert outcome.is_blocked is True
    assert user.blocked_reason == 'Cheating detected: devtools_attempt (3 warnings reached)'
    assert user.blocked_at == now
    assert outcome.remaining == 0


def test_violations_past_threshold_keep_counting() -> None:
    user = _user(warning_count=VIOLATION_THRESHOLD, is_blocked=True)

    outcome = record_violation(user, 'page_hide')

    assert outcome.warning_count == 4
    assert user.blocked_reason == violation_block_reason('page_hide')


def test_restart_counter_is_independent_of_warnings() -> None:
    user = _user(warning_count=2)

    outcome = record_restart(user)

    assert (outcome.outcome, outcome.restart_count, outcome.warning_count) == ('warned', 1, 2)
    assert user.is_blocked is False


def test_remaining_counts_down_the_counter_that_moved() -> None:
    user = _user(quiz_restart_count=2)

    violation = record_violation(user, 'tab_switch')

    assert (violation.warning_count, violation.restart_count, violation.remaining) == (1, 2, 2)

    user = _user(warning_count=2)

    restart = record_restart(user)

    assert (restart.warning_count, restart.restart_count, restart.remaining) == (2, 1, 2)


def test_third_restart_blocks() -> None:
    user = _user(quiz_restart_count=2)

    outcome = record_restart(user)

    assert outcome.outcome == 'blocked'
    assert user.blocked_reason == RESTART_BLOCK_REASON


def test_manual_block_leaves_counters() -> None:
    user = _user(warning_count=1, quiz_restart_count=1)

    block_user(user, 'Impersonation', now=datetime(2026, 3, 1))

    assert user.is_blocked is True
    assert (user.warning_count, user.quiz_restart_count) == (1, 1)


@pytest.mark.parametrize(('warnings', 'restarts'), [(0, 0), (3, 0), (1, 3), (7, 5)])
def test_unblock_always_resets_both_counters(warnings, restarts) -> None:
    user = _user(warning_count=warnings, quiz_restart_count=restarts, is_blocked=True,
                 blocked_reason='x', blocked_at=datetime(2026, 3, 1))

    unblock_user(user)

    assert (user.warning_count, user.quiz_restart_count) == (0, 0)
    assert user.is_blocked is False
    assert user.blocked_reason is None
    assert user.blocked_at is None
