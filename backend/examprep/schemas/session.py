"""Pydantic schemas for test sessions."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from examprep.models.session import SelectionMode, SessionStatus, SessionType
from examprep.schemas.configuration import SessionConfiguration

# ============================================================================
# Session Schemas
# ============================================================================


class SessionCreate(BaseModel):
    """Request to compose a test session."""

    exam_id: UUID = Field(..., description="Exam the session draws questions from")
    configuration: SessionConfiguration


class SessionOut(BaseModel):
    """Session response."""

    id: UUID
    user_id: UUID
    exam_id: UUID
    session_name: str
    session_type: SessionType
    status: SessionStatus
    question_selection_mode: SelectionMode
    difficulty_levels: list[int]
    session_config: dict[str, Any]
    question_count: int
    total_questions: int
    is_timed: bool
    total_duration_minutes: int | None
    started_at: datetime | None
    paused_at: datetime | None
    completed_at: datetime | None
    expires_at: datetime | None
    created_at: datetime
    updated_at: datetime | None

    class Config:
        from_attributes = True


class SessionProgress(BaseModel):
    """Session progress summary."""

    total_questions: int
    attempted_count: int
    remaining_count: int
    current_sequence_number: int | None  # first unattempted slot, 1-based
    time_remaining_seconds: int | None


class SelectionSummary(BaseModel):
    requested_questions: int
    actual_questions: int
    selection_mode: SelectionMode
    sections_used: int
    question_types_used: int


class SessionCreateResponse(BaseModel):
    """Response after composing a session."""

    session: SessionOut
    slot_count: int
    estimated_duration_minutes: int
    warnings: list[str]
    selection_summary: SelectionSummary


class SessionActionResponse(BaseModel):
    """Response for lifecycle transitions."""

    session: SessionOut
    message: str


class PaginationMeta(BaseModel):
    page: int
    per_page: int
    total: int
    total_pages: int


class SessionListOut(BaseModel):
    data: list[SessionOut]
    pagination: PaginationMeta


# ============================================================================
# Slot Schemas (nested question context)
# ============================================================================


class MediaOut(BaseModel):
    id: UUID
    filename: str
    content_type: str | None
    url: str | None

    class Config:
        from_attributes = True


class QuestionOptionOut(BaseModel):
    id: UUID
    option_text: str
    display_order: int
    media: MediaOut | None = None

    class Config:
        from_attributes = True


class QuestionMediaOut(BaseModel):
    id: UUID
    role: str
    display_order: int
    media: MediaOut

    class Config:
        from_attributes = True


class ExamBrief(BaseModel):
    id: UUID
    name: str
    display_name: str

    class Config:
        from_attributes = True


class SectionBrief(BaseModel):
    id: UUID
    name: str
    display_name: str
    order_index: int
    exam: ExamBrief

    class Config:
        from_attributes = True


class QuestionTypeBrief(BaseModel):
    id: UUID
    name: str
    display_name: str
    input_type: str
    response_type: str
    time_limit_seconds: int | None
    ui_component: str | None
    section: SectionBrief

    class Config:
        from_attributes = True


class SessionQuestionContent(BaseModel):
    """Question as served during a session (no correct answer)."""

    id: UUID
    title: str | None
    content: str | None
    instructions: str | None
    difficulty_level: int
    expected_duration_seconds: int | None
    blanks_config: dict[str, Any] | list[Any] | None
    question_type: QuestionTypeBrief
    options: list[QuestionOptionOut]
    media: list[QuestionMediaOut]

    class Config:
        from_attributes = True


class SessionSlotOut(BaseModel):
    """One ordered slot of a session."""

    id: UUID
    question_id: UUID
    sequence_number: int
    allocated_time_seconds: int | None
    is_attempted: bool
    is_completed: bool
    time_spent_seconds: int
    question_attempt_id: UUID | None
    question: SessionQuestionContent

    class Config:
        from_attributes = True


class SessionDetailOut(BaseModel):
    """Full session state: session, progress, and ordered slots."""

    session: SessionOut
    progress: SessionProgress
    questions: list[SessionSlotOut]
