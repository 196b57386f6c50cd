"""Question attempt model (one learner response per session slot)."""

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from examprep.common.clock import utcnow
from examprep.db.base import Base, JSONType


class QuestionAttempt(Base):
    """A learner's response to a single test session slot.

    ``session_question_id`` is unique: concurrent saves for the same slot
    resolve to one row via INSERT ... ON CONFLICT.
    """

    __tablename__ = "question_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", onupdate="CASCADE"), nullable=False)
    question_id = Column(Uuid, ForeignKey("questions.id", onupdate="CASCADE"), nullable=False)
    test_session_id = Column(
        Uuid,
        ForeignKey("test_sessions.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    session_question_id = Column(
        Uuid,
        ForeignKey("test_session_questions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    # Response payload (shape depends on response_type)
    response_type = Column(String(32), nullable=False)
    response_data = Column(JSONType, nullable=True)
    response_text = Column(Text, nullable=True)  # text responses
    selected_options = Column(JSONType, nullable=True)  # selection responses

    time_spent_seconds = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    # Scoring fields are owned by the scoring service; passed through untouched
    scoring_status = Column(String(32), nullable=False, default="pending")
    ai_score = Column(Float, nullable=True)
    manual_score = Column(Float, nullable=True)
    final_score = Column(Float, nullable=True)
    ai_feedback = Column(JSONType, nullable=True)

    question = relationship("Question")
    session_question = relationship("TestSessionQuestion", foreign_keys=[session_question_id])

    __table_args__ = (
        Index("ix_question_attempts_user_submitted", "user_id", "submitted_at"),
        Index("ix_question_attempts_session", "test_session_id"),
    )
