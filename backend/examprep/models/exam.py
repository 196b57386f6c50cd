"""Exam content models: exams, sections, question types, questions, media.

Content is authored by the admin CMS; the test engine only reads it.
"""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    SmallInteger,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from examprep.common.clock import utcnow
from examprep.db.base import Base, JSONType


class InputType(str, PyEnum):
    """How the learner enters a response."""

    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    FREE_TEXT = "free_text"
    STRUCTURED = "structured"
    AUDIO = "audio"


class ResponseType(str, PyEnum):
    """Shape of the response payload a question type produces."""

    SELECTION = "selection"
    TEXT = "text"
    STRUCTURED_DATA = "structured_data"
    SEQUENCE = "sequence"
    AUDIO_RECORDING = "audio_recording"


class MediaRole(str, PyEnum):
    """Where a media asset is used on a question."""

    QUESTION_CONTENT = "question_content"
    OPTION_MEDIA = "option_media"


class Exam(Base):
    """An exam (e.g. IELTS Academic, PTE Academic)."""

    __tablename__ = "exams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    total_score = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    sections = relationship(
        "Section",
        back_populates="exam",
        order_by="Section.order_index",
        cascade="all, delete-orphan",
    )


class Section(Base):
    """Exam section (Reading, Writing, Speaking & Writing, ...)."""

    __tablename__ = "sections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    order_index = Column(Integer, nullable=False, default=0)
    duration_minutes = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    exam = relationship("Exam", back_populates="sections")
    question_types = relationship(
        "QuestionType",
        back_populates="section",
        order_by="QuestionType.order_index",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("ix_sections_exam_order", "exam_id", "order_index"),)


class QuestionType(Base):
    """Question type within a section (Read Aloud, Essay, Fill in the Blanks, ...)."""

    __tablename__ = "question_types"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    section_id = Column(Uuid, ForeignKey("sections.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    input_type = Column(String(32), nullable=False, default=InputType.SINGLE_CHOICE.value)
    response_type = Column(String(32), nullable=False, default=ResponseType.SELECTION.value)
    scoring_method = Column(String(50), nullable=True)
    time_limit_seconds = Column(Integer, nullable=True)
    ui_component = Column(String(100), nullable=True)  # renderer dispatch key
    order_index = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    section = relationship("Section", back_populates="question_types")
    questions = relationship("Question", back_populates="question_type", cascade="all, delete-orphan")

    __table_args__ = (Index("ix_question_types_section_order", "section_id", "order_index"),)


class Question(Base):
    """A single question belonging to a question type."""

    __tablename__ = "questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_type_id = Column(
        Uuid, ForeignKey("question_types.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(500), nullable=True)
    content = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    difficulty_level = Column(SmallInteger, nullable=False, default=3)
    expected_duration_seconds = Column(Integer, nullable=True)
    correct_answer = Column(JSONType, nullable=True)
    blanks_config = Column(JSONType, nullable=True)  # fill-in-blank variants
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=True)

    question_type = relationship("QuestionType", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        order_by="QuestionOption.display_order",
        cascade="all, delete-orphan",
    )
    media = relationship(
        "QuestionMedia",
        back_populates="question",
        order_by="QuestionMedia.display_order",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("difficulty_level BETWEEN 1 AND 5", name="ck_questions_difficulty_level"),
        Index("ix_questions_type_active", "question_type_id", "is_active"),
    )


class Media(Base):
    """Stored media asset (storage and signing are handled elsewhere)."""

    __tablename__ = "media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    filename = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=True)
    url = Column(String(2048), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class QuestionOption(Base):
    """Answer option for selection-type questions."""

    __tablename__ = "question_options"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    media_id = Column(Uuid, ForeignKey("media.id", ondelete="SET NULL"), nullable=True)

    question = relationship("Question", back_populates="options")
    media = relationship("Media")


class QuestionMedia(Base):
    """Role-tagged link between a question and a media asset."""

    __tablename__ = "question_media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    question_id = Column(Uuid, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    media_id = Column(Uuid, ForeignKey("media.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(32), nullable=False, default=MediaRole.QUESTION_CONTENT.value)
    display_order = Column(Integer, nullable=False, default=0)

    question = relationship("Question", back_populates="media")
    media = relationship("Media")
