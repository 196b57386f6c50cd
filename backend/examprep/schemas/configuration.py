"""Pydantic schemas for test session configuration.

The same rule set backs the client-side ``ConfigurationBuilder`` and the
server-side composer, so a configuration accepted by one is accepted by the
other.
"""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from examprep.models.session import SelectionMode, SessionType

MIN_QUESTION_COUNT = 1
MAX_QUESTION_COUNT = 100
DIFFICULTY_LEVELS = (1, 2, 3, 4, 5)


class QuestionTypeSelection(BaseModel):
    """Selection flag for one question type inside a section."""

    question_type_id: UUID
    question_type_name: str = ""
    is_selected: bool = False
    available_count: int = Field(default=0, ge=0)
    difficulty_distribution: dict[int, int] = Field(default_factory=dict)
    estimated_time_per_question: int = Field(default=0, ge=0, description="Minutes")


class SectionSelection(BaseModel):
    """Selection state for one section and its question types."""

    section_id: UUID
    section_name: str = ""
    is_selected: bool = False
    weight: float = Field(default=0.0, ge=0.0, le=1.0)
    estimated_time_minutes: int = 0
    question_types: list[QuestionTypeSelection] = Field(default_factory=list)


class SessionConfiguration(BaseModel):
    """Declarative configuration a test session is composed from."""

    session_name: str | None = Field(None, max_length=255)
    session_type: SessionType = SessionType.PRACTICE
    is_timed: bool = True
    total_duration_minutes: int | None = Field(None, description="Required when is_timed")
    question_count: int = Field(20, description="Number of questions (1-100)")
    question_selection_mode: SelectionMode = SelectionMode.MIXED
    difficulty_levels: list[int] = Field(default_factory=lambda: list(DIFFICULTY_LEVELS))
    selected_sections: list[SectionSelection] = Field(default_factory=list)
    # question_type_id -> seconds
    custom_time_limits: dict[str, int] = Field(default_factory=dict)
    avoid_recent_questions: bool = True
    recent_questions_threshold_days: int = Field(7, ge=0)

    @field_validator("difficulty_levels")
    @classmethod
    def check_difficulty_levels(cls, value: list[int]) -> list[int]:
        invalid = [level for level in value if level not in DIFFICULTY_LEVELS]
        if invalid:
            raise ValueError(f"difficulty levels must be between 1 and 5, got {invalid}")
        return sorted(set(value))

    @field_validator("custom_time_limits")
    @classmethod
    def check_custom_time_limits(cls, value: dict[str, int]) -> dict[str, int]:
        invalid = sorted(type_id for type_id, seconds in value.items() if seconds <= 0)
        if invalid:
            raise ValueError(f"custom time limits must be positive seconds, got {invalid}")
        return value


def validate_session_configuration(config: SessionConfiguration) -> list[str]:
    """Return the list of configuration problems (empty when valid)."""
    errors: list[str] = []

    selected_sections = [s for s in config.selected_sections if s.is_selected]
    if not selected_sections:
        errors.append("At least one section must be selected")

    has_selected_types = any(
        qt.is_selected for section in selected_sections for qt in section.question_types
    )
    if not has_selected_types:
        errors.append("At least one question type must be selected")

    if not (MIN_QUESTION_COUNT <= config.question_count <= MAX_QUESTION_COUNT):
        errors.append(
            f"question_count must be between {MIN_QUESTION_COUNT} and {MAX_QUESTION_COUNT}"
        )

    if config.is_timed and (
        config.total_duration_minutes is None or config.total_duration_minutes <= 0
    ):
        errors.append("total_duration_minutes must be a positive number for timed sessions")

    if not config.difficulty_levels:
        errors.append("At least one difficulty level must be selected")

    return errors
