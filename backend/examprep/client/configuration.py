"""Client-side session configuration builder.

Holds the editable configuration for the test builder form. Pure state, no
I/O: pool data comes in through ``set_available_questions``.
"""

import math
import random
from datetime import date
from typing import Any
from uuid import UUID

from examprep.core.app_exceptions import InvalidConfiguration
from examprep.models.session import SelectionMode, SessionType
from examprep.schemas.configuration import (
    DIFFICULTY_LEVELS,
    QuestionTypeSelection,
    SectionSelection,
    SessionConfiguration,
    validate_session_configuration,
)
from examprep.schemas.pool import AvailableQuestionsOut

_NAME_ADJECTIVES = ("Quick", "Practice", "Full", "Focus", "Mock", "Speed", "Smart")
_NAME_NOUNS = ("Test", "Session", "Practice", "Drill", "Quiz", "Challenge")


def generate_session_name(today: date | None = None) -> str:
    today = today or date.today()
    return f"{random.choice(_NAME_ADJECTIVES)} {random.choice(_NAME_NOUNS)} - {today:%b} {today.day}"


def default_configuration() -> SessionConfiguration:
    return SessionConfiguration(
        session_name=generate_session_name(),
        session_type=SessionType.PRACTICE,
        is_timed=True,
        total_duration_minutes=None,
        question_count=20,
        question_selection_mode=SelectionMode.MIXED,
        difficulty_levels=list(DIFFICULTY_LEVELS),
        selected_sections=[],
        custom_time_limits={},
    )


class ConfigurationBuilder:
    """Editable session configuration with selection and weighting rules.

    Section weights are an equal share across the selected sections
    (``1 / selected``), regardless of how many questions each section has.
    """

    def __init__(self) -> None:
        self.available_questions: AvailableQuestionsOut | None = None
        self.configuration = default_configuration()

    # ------------------------------------------------------------------
    # Pool data
    # ------------------------------------------------------------------

    def set_available_questions(self, data: AvailableQuestionsOut | None) -> None:
        """(Re)initialize section selections from a pool index; ``None`` clears it."""
        self.available_questions = data
        if data is None:
            return

        section_count = len(data.sections)
        self.configuration.selected_sections = [
            SectionSelection(
                section_id=section.id,
                section_name=section.display_name,
                is_selected=False,
                weight=1.0 / section_count,
                estimated_time_minutes=section.duration_minutes or 0,
                question_types=[
                    QuestionTypeSelection(
                        question_type_id=qt.id,
                        question_type_name=qt.display_name,
                        is_selected=False,
                        available_count=qt.total_questions,
                        difficulty_distribution=dict(qt.difficulty_distribution),
                        estimated_time_per_question=math.ceil(
                            qt.average_completion_time_seconds / 60
                        ),
                    )
                    for qt in section.question_types
                ],
            )
            for section in data.sections
        ]

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_configuration(self, **updates: Any) -> None:
        """Partial update of configuration fields (validated by the schema)."""
        merged = self.configuration.model_dump()
        merged.update(updates)
        self.configuration = SessionConfiguration.model_validate(merged)

    def _find_section(self, section_id: UUID) -> SectionSelection | None:
        for section in self.configuration.selected_sections:
            if section.section_id == section_id:
                return section
        return None

    def _recompute_weights(self) -> None:
        selected = [s for s in self.configuration.selected_sections if s.is_selected]
        if not selected:
            return
        equal_weight = 1.0 / len(selected)
        for section in self.configuration.selected_sections:
            section.weight = equal_weight if section.is_selected else 0.0

    def update_section_selection(self, section_id: UUID, is_selected: bool) -> None:
        """Select or deselect a whole section together with all its question types."""
        section = self._find_section(section_id)
        if section is None:
            return
        section.is_selected = is_selected
        for qt in section.question_types:
            qt.is_selected = is_selected
        self._recompute_weights()

    def update_question_type_selection(
        self, section_id: UUID, question_type_id: UUID, is_selected: bool
    ) -> None:
        """Toggle one question type; its section is selected iff any type is."""
        section = self._find_section(section_id)
        if section is None:
            return
        for qt in section.question_types:
            if qt.question_type_id == question_type_id:
                qt.is_selected = is_selected
        section.is_selected = any(qt.is_selected for qt in section.question_types)
        self._recompute_weights()

    def reset_configuration(self) -> None:
        self.configuration = default_configuration()

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def validation_errors(self) -> list[str]:
        return validate_session_configuration(self.configuration)

    def validate_configuration(self) -> bool:
        return not self.validation_errors()

    def get_estimated_duration(self) -> int:
        """Rough duration in minutes for the form; 0 when untimed."""
        config = self.configuration
        if not config.is_timed:
            return 0

        total = 0
        for section in config.selected_sections:
            if not section.is_selected:
                continue
            type_count = len(section.question_types)
            for qt in section.question_types:
                if not qt.is_selected:
                    continue
                questions = math.ceil(
                    config.question_count * section.weight * (qt.available_count / type_count)
                )
                total += questions * qt.estimated_time_per_question
        return math.ceil(total)

    def get_selected_question_count(self) -> int:
        if self.available_questions is None:
            return 0
        available = sum(
            qt.available_count
            for section in self.configuration.selected_sections
            if section.is_selected
            for qt in section.question_types
            if qt.is_selected
        )
        return min(self.configuration.question_count, available)

    def build(self) -> SessionConfiguration:
        """Return a copy of the configuration, or raise if it is not valid."""
        errors = self.validation_errors()
        if errors:
            raise InvalidConfiguration("Invalid session configuration", {"errors": errors})
        return self.configuration.model_copy(deep=True)
