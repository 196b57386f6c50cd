"""Test Session models for the test engine."""

import uuid
from datetime import datetime, timedelta
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from examprep.common.clock import utcnow
from examprep.db.base import Base, JSONType


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class SessionStatus(str, PyEnum):
    """Test session lifecycle status."""

    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SessionType(str, PyEnum):
    """Kind of test session the learner configured."""

    PRACTICE = "practice"
    MOCK_TEST = "mock_test"
    SECTION_TEST = "section_test"
    CUSTOM = "custom"


class SelectionMode(str, PyEnum):
    """How questions are drawn from the pool."""

    ALL = "all"
    MIXED = "mixed"
    NEW_ONLY = "new_only"
    INCORRECT_ONLY = "incorrect_only"


class TestSession(Base):
    """Test session - a single timed or untimed run over an ordered set of questions."""

    __tablename__ = "test_sessions"
    __test__ = False  # not a pytest test class

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", onupdate="CASCADE"), nullable=False)
    exam_id = Column(Uuid, ForeignKey("exams.id", onupdate="CASCADE"), nullable=False)

    # Session configuration
    session_name = Column(String(255), nullable=False)
    session_type = Column(
        Enum(SessionType, name="session_type", values_callable=_enum_values),
        nullable=False,
        default=SessionType.PRACTICE,
    )
    status = Column(
        Enum(SessionStatus, name="session_status", values_callable=_enum_values),
        nullable=False,
        default=SessionStatus.DRAFT,
    )
    question_selection_mode = Column(
        Enum(SelectionMode, name="question_selection_mode", values_callable=_enum_values),
        nullable=False,
        default=SelectionMode.MIXED,
    )
    difficulty_levels = Column(JSONType, nullable=False)  # [1, 2, 3, 4, 5]
    # {section_weights, custom_time_limits, avoid_recent_questions,
    #  recent_questions_threshold_days, include_sections, include_question_types, selection_seed}
    session_config = Column(JSONType, nullable=False, default=dict)

    question_count = Column(Integer, nullable=False)  # requested
    total_questions = Column(Integer, nullable=False, default=0)  # actual slots

    # Timer configuration
    is_timed = Column(Boolean, nullable=False, default=False)
    total_duration_minutes = Column(Integer, nullable=True)  # null = untimed

    # Lifecycle timestamps
    started_at = Column(DateTime, nullable=True)
    paused_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    # Relationships
    exam = relationship("Exam")
    questions = relationship(
        "TestSessionQuestion",
        back_populates="session",
        order_by="TestSessionQuestion.sequence_number",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_test_sessions_user_created", "user_id", "created_at"),
        Index("ix_test_sessions_status", "status"),
    )

    @property
    def expires_at(self) -> datetime | None:
        """Wall-clock deadline for timed sessions that have started."""
        if not self.is_timed or not self.total_duration_minutes or not self.started_at:
            return None
        return self.started_at + timedelta(minutes=self.total_duration_minutes)

    def is_expired(self, now: datetime | None = None) -> bool:
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (now or utcnow()) >= expires_at


class TestSessionQuestion(Base):
    """Question slot in a test session. Order is fixed at composition time."""

    __tablename__ = "test_session_questions"
    __test__ = False

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(
        Uuid,
        ForeignKey("test_sessions.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    question_id = Column(
        Uuid,
        ForeignKey("questions.id", onupdate="CASCADE"),
        nullable=False,
    )

    sequence_number = Column(Integer, nullable=False)  # 1-based position in session
    allocated_time_seconds = Column(Integer, nullable=True)

    # Attempt linkage (is_attempted iff question_attempt_id is set)
    question_attempt_id = Column(
        Uuid,
        ForeignKey(
            "question_attempts.id",
            ondelete="SET NULL",
            use_alter=True,
            name="fk_test_session_questions_attempt",
        ),
        nullable=True,
    )
    is_attempted = Column(Boolean, nullable=False, default=False)
    is_completed = Column(Boolean, nullable=False, default=False)
    time_spent_seconds = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    # Relationships
    session = relationship("TestSession", back_populates="questions")
    question = relationship("Question")
    attempt = relationship(
        "QuestionAttempt",
        foreign_keys=[question_attempt_id],
        viewonly=True,
    )

    __table_args__ = (
        UniqueConstraint("session_id", "sequence_number", name="uq_session_question_sequence"),
        Index("ix_test_session_questions_session_id", "session_id"),
    )
