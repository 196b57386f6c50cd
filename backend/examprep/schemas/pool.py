"""Pydantic schemas for the question pool index (test builder data)."""

from uuid import UUID

from pydantic import BaseModel, Field


class ExamSummary(BaseModel):
    id: UUID
    name: str
    display_name: str


class QuestionTypeStats(BaseModel):
    """Availability and timing statistics for one question type."""

    id: UUID
    name: str
    display_name: str
    input_type: str
    response_type: str
    time_limit_seconds: int | None = None
    order_index: int
    total_questions: int
    difficulty_distribution: dict[int, int] = Field(default_factory=dict)
    average_completion_time_seconds: float


class SectionWithQuestionTypes(BaseModel):
    id: UUID
    name: str
    display_name: str
    duration_minutes: int | None = None
    order_index: int
    total_questions: int
    question_types: list[QuestionTypeStats]


class AvailableQuestionsOut(BaseModel):
    """Pool index for an exam, in section and question-type order."""

    exam: ExamSummary
    sections: list[SectionWithQuestionTypes]
    total_questions: int
    question_distribution: dict[str, int] = Field(default_factory=dict)
