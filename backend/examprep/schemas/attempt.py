"""Pydantic schemas for question attempts."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from examprep.models.exam import ResponseType


class SaveResponseRequest(BaseModel):
    """Find-or-create an attempt for a session slot."""

    question_id: UUID
    session_question_id: UUID
    test_session_id: UUID
    response_data: Any = Field(..., description="Payload shaped per response_type")
    response_type: ResponseType
    time_spent_seconds: int = Field(0, ge=0)


class SaveResponseResult(BaseModel):
    """Result of a save; camelCase keys match the existing client contract."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    attempt_id: UUID = Field(..., serialization_alias="attemptId")
    is_new: bool = Field(..., serialization_alias="isNew")
    message: str


class AttemptUpdate(BaseModel):
    """Replace the response of an existing attempt."""

    response_data: Any
    response_type: ResponseType | None = None
    time_spent_seconds: int | None = Field(None, ge=0)


class AttemptOut(BaseModel):
    id: UUID
    user_id: UUID
    question_id: UUID
    test_session_id: UUID
    session_question_id: UUID
    response_type: str
    response_data: Any
    response_text: str | None
    selected_options: list[Any] | None
    time_spent_seconds: int
    started_at: datetime | None
    submitted_at: datetime | None
    updated_at: datetime | None
    scoring_status: str
    ai_score: float | None
    manual_score: float | None
    final_score: float | None
    ai_feedback: Any | None

    class Config:
        from_attributes = True


class AttemptQuestionContext(BaseModel):
    """Question with its type/section/exam, for attempt detail views."""

    question_id: UUID
    title: str | None
    difficulty_level: int
    question_type_id: UUID
    question_type_name: str
    section_id: UUID
    section_name: str
    exam_id: UUID
    exam_name: str


class AttemptDetailOut(BaseModel):
    attempt: AttemptOut
    question: AttemptQuestionContext


class AttemptListOut(BaseModel):
    items: list[AttemptOut]
    total: int
    limit: int
    offset: int


class AttemptDeleteOut(BaseModel):
    message: str
