"""User model definitions."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from quizproctor.database import Base, utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Represents a registered quiz taker or admin."""
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    display_name = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    is_blocked = Column(Boolean, default=False, nullable=False)
    # independent counters, each blocks the account at the threshold
    warning_count = Column(Integer, default=0, nullable=False)
    quiz_restart_count = Column(Integer, default=0, nullable=False)
    blocked_reason = Column(String, nullable=True)
    blocked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    results = relationship(
        "QuizResult",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def name(self) -> str:
        return self.display_name or self.email.split("@")[0]
