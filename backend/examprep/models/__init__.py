"""Database models."""

# Import all models here so Alembic and create_all can detect them
from examprep.models.attempt import QuestionAttempt
from examprep.models.exam import (
    Exam,
    InputType,
    Media,
    MediaRole,
    Question,
    QuestionMedia,
    QuestionOption,
    QuestionType,
    ResponseType,
    Section,
)
from examprep.models.session import (
    SelectionMode,
    SessionStatus,
    SessionType,
    TestSession,
    TestSessionQuestion,
)
from examprep.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Exam",
    "Section",
    "QuestionType",
    "Question",
    "QuestionOption",
    "QuestionMedia",
    "Media",
    "InputType",
    "ResponseType",
    "MediaRole",
    "TestSession",
    "TestSessionQuestion",
    "SessionStatus",
    "SessionType",
    "SelectionMode",
    "QuestionAttempt",
]
