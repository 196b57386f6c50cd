"""In-memory navigation state for an active test session."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ActiveTestSession:
    """A loaded session: the session payload plus its slots in sequence order."""

    session: dict[str, Any]
    questions: list[dict[str, Any]]

    @classmethod
    def from_detail(cls, detail: dict[str, Any]) -> "ActiveTestSession":
        """Build from a ``GET /test-sessions/{id}`` response body."""
        questions = sorted(detail.get("questions", []), key=lambda slot: slot["sequence_number"])
        return cls(session=detail["session"], questions=questions)

    @property
    def id(self) -> str:
        return str(self.session["id"])


@dataclass
class NavigationProgress:
    answered: int
    flagged: int
    total: int


@dataclass
class SessionNavigator:
    """Position, answered/flagged sets and countdown values for one session.

    The navigator performs no scheduling or network calls. Time values are
    pushed in by a timer driver; pause/resume only flip a local flag.
    """

    active_session: ActiveTestSession | None = None
    current_question_index: int = 0
    answered_questions: set[str] = field(default_factory=set)
    flagged_questions: set[str] = field(default_factory=set)
    time_remaining: int | None = None
    session_time_remaining: int | None = None
    is_paused: bool = False
    is_loading: bool = False
    error: str | None = None

    def set_active_session(self, session: ActiveTestSession | None) -> None:
        """Load a session and reset position; already-attempted slots count as answered."""
        self.active_session = session
        self.current_question_index = 0
        self.flagged_questions = set()
        self.is_paused = False
        self.error = None
        self.answered_questions = set()
        if session is not None:
            self.answered_questions = {
                str(slot["question_id"]) for slot in session.questions if slot.get("is_attempted")
            }

    def _slot_count(self) -> int:
        return len(self.active_session.questions) if self.active_session else 0

    def navigate_to_question(self, index: int) -> None:
        if 0 <= index < self._slot_count():
            self.current_question_index = index

    def next_question(self) -> None:
        if self.current_question_index < self._slot_count() - 1:
            self.current_question_index += 1

    def previous_question(self) -> None:
        if self.current_question_index > 0:
            self.current_question_index -= 1

    def mark_question_answered(self, question_id: str) -> None:
        self.answered_questions.add(str(question_id))

    def toggle_question_flag(self, question_id: str) -> None:
        question_id = str(question_id)
        if question_id in self.flagged_questions:
            self.flagged_questions.discard(question_id)
        else:
            self.flagged_questions.add(question_id)

    def update_time_remaining(self, question_time: int | None, session_time: int | None) -> None:
        self.time_remaining = question_time
        self.session_time_remaining = session_time

    def pause_session(self) -> None:
        self.is_paused = True

    def resume_session(self) -> None:
        self.is_paused = False

    def reset_session(self) -> None:
        self.active_session = None
        self.current_question_index = 0
        self.answered_questions = set()
        self.flagged_questions = set()
        self.time_remaining = None
        self.session_time_remaining = None
        self.is_paused = False
        self.is_loading = False
        self.error = None

    @property
    def current_slot(self) -> dict[str, Any] | None:
        if not self.active_session or not self.active_session.questions:
            return None
        return self.active_session.questions[self.current_question_index]

    @property
    def progress(self) -> NavigationProgress:
        return NavigationProgress(
            answered=len(self.answered_questions),
            flagged=len(self.flagged_questions),
            total=self._slot_count(),
        )
