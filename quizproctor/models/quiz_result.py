"""Quiz result model definitions."""

import json
import math
import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from quizproctor.database import Base, utcnow

QUIZ_TYPES = ("plugin", "theme")
DIFFICULTIES = ("beginner", "intermediate", "advanced")
RESULT_STATUSES = ("selected", "pending")
DEFAULT_STATUS = "pending"


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _new_id() -> str:
    return str(uuid.uuid4())


def _in_clause(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


class QuizResult(Base):
    """Represents one completed quiz attempt."""
    __tablename__ = "quiz_results"
    __table_args__ = (
        CheckConstraint(_in_clause("quiz_type", QUIZ_TYPES), name="ck_quiz_results_quiz_type"),
        CheckConstraint(_in_clause("difficulty", DIFFICULTIES), name="ck_quiz_results_difficulty"),
        CheckConstraint(_in_clause("status", RESULT_STATUSES), name="ck_quiz_results_status"),
    )

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # snapshot taken at submission, never re-joined
    user_email = Column(String, nullable=False)
    user_name = Column(String, nullable=True)
    quiz_type = Column(String, nullable=False)
    difficulty = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    correct_answers = Column(Integer, nullable=False, default=0)
    wrong_answers = Column(Integer, nullable=False, default=0)
    time_taken_seconds = Column(Integer, nullable=False, default=0)
    detailed_answers = Column(Text, nullable=False, default="[]")
    status = Column(String, nullable=False, default=DEFAULT_STATUS)
    completed_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="results")

    @property
    def answers(self) -> list[dict]:
        if not self.detailed_answers:
            return []
        return json.loads(self.detailed_answers)

    @answers.setter
    def answers(self, value: list[dict] | None) -> None:
        self.detailed_answers = json.dumps(value or [])

    @property
    def percentage(self) -> int:
        if not self.total_questions:
            return 0
        return round_half_up(self.score / self.total_questions * 100)
