"""Warning/restart counters and the account blocking policy.

Each counter is read, incremented and written back without a lock or an
atomic update. Two violations reported concurrently for the same user can
therefore both read the same count and one increment is lost. This is a
known limitation of the policy, not something callers should rely on.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from quizproctor.database import utcnow
from quizproctor.models.user import User

logger = logging.getLogger(__name__)

VIOLATION_THRESHOLD = 3

OUTCOME_WARNED = "warned"
OUTCOME_BLOCKED = "blocked"

RESTART_BLOCK_REASON = "Quiz restarted 3 times"
DEFAULT_BLOCK_REASON = "Your account has been blocked due to violations."


def violation_block_reason(violation_type: str) -> str:
    return f"Cheating detected: {violation_type} (3 warnings reached)"


@dataclass(frozen=True)
class PolicyOutcome:
    outcome: str
    warning_count: int
    restart_count: int
    is_blocked: bool
    remaining: int = 0
    blocked_reason: str | None = None


def _outcome_for(user: User, touched_count: int) -> PolicyOutcome:
    """Build the outcome; ``remaining`` counts down the counter that was just incremented."""
    return PolicyOutcome(
        outcome=OUTCOME_BLOCKED if user.is_blocked else OUTCOME_WARNED,
        warning_count=user.warning_count or 0,
        restart_count=user.quiz_restart_count or 0,
        is_blocked=bool(user.is_blocked),
        remaining=max(0, VIOLATION_THRESHOLD - touched_count),
        blocked_reason=user.blocked_reason,
    )


def block_user(user: User, reason: str, now: datetime | None = None) -> None:
    """Block the account without touching either counter."""
    user.is_blocked = True
    user.blocked_reason = reason
    user.blocked_at = now or utcnow()
    logger.warning("Blocked user %s: %s", user.id, reason)


def unblock_user(user: User) -> None:
    """Lift a block and reset both counters."""
    user.is_blocked = False
    user.blocked_reason = None
    user.blocked_at = None
    user.warning_count = 0
    user.quiz_restart_count = 0
    logger.info("Unblocked user %s", user.id)


def record_violation(user: User, violation_type: str, now: datetime | None = None) -> PolicyOutcome:
    new_count = (user.warning_count or 0) + 1
    user.warning_count = new_count

    if new_count >= VIOLATION_THRESHOLD:
        block_user(user, violation_block_reason(violation_type), now)
    else:
        logger.info("User %s warned for %s (%d/%d)", user.id, violation_type, new_count, VIOLATION_THRESHOLD)

    return _outcome_for(user, new_count)


def record_restart(user: User, now: datetime | None = None) -> PolicyOutcome:
    new_count = (user.quiz_restart_count or 0) + 1
    user.quiz_restart_count = new_count

    if new_count >= VIOLATION_THRESHOLD:
        block_user(user, RESTART_BLOCK_REASON, now)
    else:
        logger.info("User %s restarted quiz (%d/%d)", user.id, new_count, VIOLATION_THRESHOLD)

    return _outcome_for(user, new_count)
