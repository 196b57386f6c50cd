"""Tests for session composition: allocation, shortfall, selection modes and timing."""

import math
import uuid
from collections import Counter
from datetime import timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from examprep.common.clock import utcnow
from examprep.core.app_exceptions import InvalidConfiguration, NoQuestionsAvailable
from examprep.models import (
    Question,
    QuestionAttempt,
    QuestionType,
    ResponseType,
    SelectionMode,
    SessionStatus,
    TestSession,
)
from examprep.services.response_recorder import save_response
from examprep.services.session_composer import (
    allocate_time,
    apportion,
    compose_session,
    default_time_for_difficulty,
)
from tests.helpers.seed import (
    build_configuration,
    compose_test_session,
    create_test_exam,
    get_question_type,
    get_slots,
    make_started_session,
    save_request,
)


MCQ_ONLY = {"sections": ["reading"], "question_types": ["mcq-single"]}


def _slot_type_names(db: Session, session: TestSession) -> list[str]:
    names = []
    for slot in get_slots(db, session):
        question = db.get(Question, slot.question_id)
        names.append(db.get(QuestionType, question.question_type_id).name)
    return names


# ============================================================================
# Allocation
# ============================================================================


def test_equal_weights_split_across_sections_and_types(db: Session, student, exam) -> None:
    result = compose_session(db, student.id, exam.id, build_configuration(exam, question_count=10))

    assert result.slot_count == 10
    assert result.warnings == []
    assert result.session.status == SessionStatus.DRAFT
    assert result.session.total_questions == 10
    assert result.session.question_count == 10

    session = db.get(TestSession, result.session.id)
    # 2.5 / 2.5 / 5: the one unit left after flooring goes to the first tied type
    assert Counter(_slot_type_names(db, session)) == {"mcq-single": 3, "reorder": 2, "essay": 5}


def test_slots_are_ordered_by_section_then_type(db: Session, student, exam) -> None:
    session = compose_test_session(db, student, exam, question_count=10)
    slots = get_slots(db, session)

    assert [s.sequence_number for s in slots] == list(range(1, 11))
    assert _slot_type_names(db, session) == ["mcq-single"] * 3 + ["reorder"] * 2 + ["essay"] * 5


def test_no_question_is_drawn_twice(db: Session, student, exam) -> None:
    session = compose_test_session(db, student, exam, question_count=15)
    question_ids = [s.question_id for s in get_slots(db, session)]

    assert len(question_ids) == 15
    assert len(set(question_ids)) == 15


def test_supplied_weights_are_honored(db: Session, student, exam) -> None:
    session = compose_test_session(
        db, student, exam, question_count=10, weights={"reading": 1.0, "writing": 0.0}
    )

    assert Counter(_slot_type_names(db, session)) == {"mcq-single": 5, "reorder": 5}
    assert session.session_config["section_weights"] == {
        str(exam.sections[0].id): 1.0,
        str(exam.sections[1].id): 0.0,
    }


def test_zero_weights_fall_back_to_equal_shares(db: Session, student, exam) -> None:
    session = compose_test_session(db, student, exam, question_count=10)

    assert set(session.session_config["section_weights"].values()) == {0.5}


def test_weights_are_scaled_to_sum_to_one(db: Session, student, exam) -> None:
    session = compose_test_session(
        db, student, exam, question_count=10, weights={"reading": 1.0, "writing": 1.0}
    )

    counts = Counter(_slot_type_names(db, session))
    assert counts["mcq-single"] + counts["reorder"] == 5
    assert counts["essay"] == 5
    assert set(session.session_config["section_weights"].values()) == {0.5}


def test_uneven_weights_are_scaled(db: Session, student, exam) -> None:
    session = compose_test_session(
        db, student, exam, question_count=8, weights={"reading": 0.3, "writing": 0.1}
    )

    # 0.75 / 0.25 -> reading 6 (3 per type), writing 2
    assert Counter(_slot_type_names(db, session)) == {"mcq-single": 3, "reorder": 3, "essay": 2}
    assert session.session_config["section_weights"] == pytest.approx(
        {str(exam.sections[0].id): 0.75, str(exam.sections[1].id): 0.25}
    )


def test_apportion_hands_leftover_to_largest_remainders() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    assert apportion(10, {a: 0.25, b: 0.25, c: 0.5}) == {a: 3, b: 2, c: 5}
    assert apportion(7, {a: 0.5, b: 0.3, c: 0.2}) == {a: 4, b: 2, c: 1}
    assert apportion(1, {a: 1 / 3, b: 1 / 3, c: 1 / 3}) == {a: 1, b: 0, c: 0}


def test_only_selected_types_are_drawn(db: Session, student, exam) -> None:
    session = compose_test_session(
        db, student, exam, question_count=4, sections=["reading"], question_types=["reorder"]
    )

    assert _slot_type_names(db, session) == ["reorder"] * 4
    assert session.session_config["include_sections"] == [str(exam.sections[0].id)]
    assert session.session_config["include_question_types"] == [
        str(get_question_type(exam, "reorder").id)
    ]


def test_difficulty_filter(db: Session, student, exam) -> None:
    session = compose_test_session(db, student, exam, question_count=10, difficulty_levels=[4, 5])

    for slot in get_slots(db, session):
        assert db.get(Question, slot.question_id).difficulty_level in (4, 5)


def test_inactive_questions_are_never_drawn(db: Session, student, exam) -> None:
    essay = get_question_type(exam, "essay")
    inactive = {q.id for q in essay.questions[:3]}
    for question in essay.questions[:3]:
        question.is_active = False
    db.commit()

    session = compose_test_session(db, student, exam, question_count=15)

    assert not inactive & {s.question_id for s in get_slots(db, session)}


# ============================================================================
# Shortfall
# ============================================================================


def test_shortfall_produces_warnings(db: Session, student, exam) -> None:
    result = compose_session(db, student.id, exam.id, build_configuration(exam, question_count=20))

    assert result.slot_count == 15
    assert result.warnings == [
        "Only 5 questions available for Write Essay (requested 10)",
        "Only 15 of 20 requested questions could be selected",
    ]
    assert result.selection_summary.requested_questions == 20
    assert result.selection_summary.actual_questions == 15


def test_shortfall_is_topped_up_from_other_types(db: Session, student) -> None:
    exam = create_test_exam(db, counts={"essay": 2})
    db.commit()

    result = compose_session(db, student.id, exam.id, build_configuration(exam, question_count=10))

    assert result.slot_count == 10
    assert result.warnings == ["Only 2 questions available for Write Essay (requested 5)"]

    session = db.get(TestSession, result.session.id)
    assert _slot_type_names(db, session) == ["mcq-single"] * 5 + ["reorder"] * 3 + ["essay"] * 2


def test_selection_summary(db: Session, student, exam) -> None:
    result = compose_session(
        db,
        student.id,
        exam.id,
        build_configuration(exam, question_count=6, sections=["reading"]),
    )

    summary = result.selection_summary
    assert summary.sections_used == 1
    assert summary.question_types_used == 2
    assert summary.selection_mode == SelectionMode.MIXED


# ============================================================================
# Seeded draws
# ============================================================================


def test_same_seed_draws_same_questions(db: Session, student, exam) -> None:
    first = compose_test_session(db, student, exam, question_count=8, seed="fixed-seed")
    second = compose_test_session(db, student, exam, question_count=8, seed="fixed-seed")

    assert [s.question_id for s in get_slots(db, first)] == [
        s.question_id for s in get_slots(db, second)
    ]
    assert first.session_config["selection_seed"] == "fixed-seed"


def test_seed_is_generated_and_recorded(db: Session, student, exam) -> None:
    session = compose_test_session(db, student, exam, question_count=5)

    assert len(session.session_config["selection_seed"]) == 16


# ============================================================================
# Selection modes
# ============================================================================


def test_new_only_excludes_attempted_questions(db: Session, student, exam) -> None:
    first = make_started_session(db, student, exam, question_count=6, sections=["reading"])
    attempted = set()
    for slot in get_slots(db, first):
        save_response(db, student.id, save_request(slot))
        attempted.add(slot.question_id)

    second = compose_test_session(
        db,
        student,
        exam,
        question_count=4,
        sections=["reading"],
        question_selection_mode=SelectionMode.NEW_ONLY,
    )

    assert not attempted & {s.question_id for s in get_slots(db, second)}


def test_new_only_ignores_other_users_history(db: Session, student, other_student, exam) -> None:
    other = make_started_session(db, other_student, exam, question_count=10, sections=["reading"])
    for slot in get_slots(db, other):
        save_response(db, other_student.id, save_request(slot))

    session = compose_test_session(
        db,
        student,
        exam,
        question_count=10,
        sections=["reading"],
        question_selection_mode=SelectionMode.NEW_ONLY,
    )

    assert session.total_questions == 10


def test_incorrect_only_keeps_low_scoring_questions(db: Session, student, exam) -> None:
    first = make_started_session(db, student, exam, question_count=3, sections=["writing"])
    slots = get_slots(db, first)
    for slot in slots:
        save_response(db, student.id, save_request(slot, "essay text", ResponseType.TEXT))

    scores = {slots[0].question_id: 0.3, slots[1].question_id: 0.9, slots[2].question_id: 0.65}
    for attempt in db.execute(select(QuestionAttempt)).scalars():
        attempt.final_score = scores[attempt.question_id]
        attempt.submitted_at = utcnow() - timedelta(days=30)
    db.commit()

    session = compose_test_session(
        db,
        student,
        exam,
        question_count=5,
        sections=["writing"],
        question_selection_mode=SelectionMode.INCORRECT_ONLY,
    )

    # 0.9 is neither below the best nor the mean threshold
    assert {s.question_id for s in get_slots(db, session)} == {
        slots[0].question_id,
        slots[2].question_id,
    }


def _answer_mcq_questions(db: Session, student, exam, scores: list[float]) -> list[uuid.UUID]:
    """Answer as many MCQ questions as there are scores, a month ago; returns their ids in order."""
    session = make_started_session(
        db,
        student,
        exam,
        question_count=len(scores),
        question_selection_mode=SelectionMode.ALL,
        **MCQ_ONLY,
    )
    slots = get_slots(db, session)
    for slot, score in zip(slots, scores):
        saved = save_response(db, student.id, save_request(slot))
        attempt = db.get(QuestionAttempt, saved.attempt_id)
        attempt.final_score = score
        attempt.submitted_at = utcnow() - timedelta(days=30)
    db.commit()
    return [slot.question_id for slot in slots]


def test_mixed_blends_unseen_weak_and_reinforcement(db: Session, student) -> None:
    exam = create_test_exam(db, counts={"mcq-single": 10})
    db.commit()
    answered = _answer_mcq_questions(db, student, exam, [0.3, 0.3, 0.8, 0.8, 0.95, 0.95])
    weak, reinforce, mastered = set(answered[:2]), set(answered[2:4]), set(answered[4:])

    session = compose_test_session(db, student, exam, question_count=5, **MCQ_ONLY)
    drawn = {s.question_id for s in get_slots(db, session)}

    # 5 slots: 2 unseen, 2 weak, 1 reinforcement
    assert len(drawn) == 5
    assert len(drawn - set(answered)) == 2
    assert weak <= drawn
    assert len(drawn & reinforce) == 1
    assert not drawn & mastered


def test_mixed_moves_missing_unseen_share_to_history(db: Session, student) -> None:
    exam = create_test_exam(db, counts={"mcq-single": 10})
    db.commit()
    answered = _answer_mcq_questions(db, student, exam, [0.3, 0.3, 0.8, 0.8] + [0.95] * 6)
    weak, reinforce, mastered = set(answered[:2]), set(answered[2:4]), set(answered[4:])

    session = compose_test_session(db, student, exam, question_count=5, **MCQ_ONLY)
    drawn = {s.question_id for s in get_slots(db, session)}

    assert weak <= drawn
    assert reinforce <= drawn
    assert len(drawn & mastered) == 1


def test_recently_answered_questions_are_skipped(db: Session, student, exam) -> None:
    first = make_started_session(db, student, exam, question_count=2, **MCQ_ONLY)
    recent = set()
    for slot in get_slots(db, first):
        save_response(db, student.id, save_request(slot))
        recent.add(slot.question_id)

    for mode in (SelectionMode.MIXED, SelectionMode.NEW_ONLY):
        session = compose_test_session(
            db, student, exam, question_count=5, question_selection_mode=mode, **MCQ_ONLY
        )
        drawn = {s.question_id for s in get_slots(db, session)}
        assert len(drawn) == 3
        assert not drawn & recent

    everything = compose_test_session(
        db, student, exam, question_count=5, question_selection_mode=SelectionMode.ALL, **MCQ_ONLY
    )
    assert recent <= {s.question_id for s in get_slots(db, everything)}

    opted_out = compose_test_session(
        db, student, exam, question_count=5, avoid_recent_questions=False, **MCQ_ONLY
    )
    assert recent <= {s.question_id for s in get_slots(db, opted_out)}


def test_recency_window_is_configurable(db: Session, student, exam) -> None:
    first = make_started_session(db, student, exam, question_count=2, **MCQ_ONLY)
    for slot in get_slots(db, first):
        save_response(db, student.id, save_request(slot))
    db.execute(update(QuestionAttempt).values(submitted_at=utcnow() - timedelta(days=8)))
    db.commit()

    default_window = compose_test_session(db, student, exam, question_count=5, **MCQ_ONLY)
    wider_window = compose_test_session(
        db, student, exam, question_count=5, recent_questions_threshold_days=10, **MCQ_ONLY
    )

    assert default_window.total_questions == 5
    assert wider_window.total_questions == 3
    assert wider_window.session_config["recent_questions_threshold_days"] == 10


def test_incorrect_only_without_history_has_no_questions(db: Session, student, exam) -> None:
    config = build_configuration(
        exam, question_count=5, question_selection_mode=SelectionMode.INCORRECT_ONLY
    )

    with pytest.raises(NoQuestionsAvailable) as exc_info:
        compose_session(db, student.id, exam.id, config)

    assert exc_info.value.details == {"selection_mode": "incorrect_only"}
    assert db.execute(select(TestSession)).first() is None


# ============================================================================
# Validation
# ============================================================================


def test_invalid_configuration_lists_errors(db: Session, student, exam) -> None:
    config = build_configuration(exam, sections=[], question_count=0, is_timed=True)

    with pytest.raises(InvalidConfiguration) as exc_info:
        compose_session(db, student.id, exam.id, config)

    errors = exc_info.value.details["errors"]
    assert "At least one section must be selected" in errors
    assert "At least one question type must be selected" in errors
    assert "question_count must be between 1 and 100" in errors
    assert "total_duration_minutes must be a positive number for timed sessions" in errors


def test_unknown_exam_is_invalid(db: Session, student, exam) -> None:
    config = build_configuration(exam)

    with pytest.raises(InvalidConfiguration) as exc_info:
        compose_session(db, student.id, uuid.uuid4(), config)

    assert exc_info.value.message == "Invalid exam ID"


def test_sections_from_another_exam_are_rejected(db: Session, student, exam) -> None:
    other_exam = create_test_exam(db)
    db.commit()

    with pytest.raises(InvalidConfiguration) as exc_info:
        compose_session(db, student.id, exam.id, build_configuration(other_exam))

    assert exc_info.value.message == "Selected sections do not belong to this exam"


@pytest.mark.parametrize("seconds", [0, -5])
def test_custom_time_limits_must_be_positive(exam, seconds: int) -> None:
    mcq = get_question_type(exam, "mcq-single")

    with pytest.raises(ValidationError, match="custom time limits must be positive"):
        build_configuration(exam, custom_time_limits={str(mcq.id): seconds})


def test_empty_pool_has_no_questions(db: Session, student) -> None:
    exam = create_test_exam(db, questions_per_type=0)
    db.commit()

    with pytest.raises(NoQuestionsAvailable):
        compose_session(db, student.id, exam.id, build_configuration(exam))


# ============================================================================
# Timing
# ============================================================================


def test_default_time_for_difficulty() -> None:
    assert default_time_for_difficulty(1) == 90
    assert default_time_for_difficulty(2) == 90
    assert default_time_for_difficulty(3) == 120
    assert default_time_for_difficulty(4) == 180
    assert default_time_for_difficulty(5) == 180


def test_allocate_time_precedence(exam) -> None:
    qt = QuestionType(id=uuid.uuid4(), time_limit_seconds=None)
    question = Question(difficulty_level=4, expected_duration_seconds=None)
    untimed = build_configuration(exam)
    timed = build_configuration(exam, is_timed=True, total_duration_minutes=30)

    assert allocate_time(question, qt, untimed, 10) == 180
    assert allocate_time(question, qt, timed, 10) == 180
    assert allocate_time(question, qt, timed, 20) == 90

    question.expected_duration_seconds = 75
    assert allocate_time(question, qt, timed, 20) == 75

    qt.time_limit_seconds = 150
    assert allocate_time(question, qt, timed, 20) == 150

    custom = build_configuration(exam, custom_time_limits={str(qt.id): 45})
    assert allocate_time(question, qt, custom, 20) == 45


def test_allocated_times_are_stored_per_slot(db: Session, student, exam) -> None:
    mcq = get_question_type(exam, "mcq-single")
    session = compose_test_session(
        db, student, exam, question_count=10, custom_time_limits={str(mcq.id): 45}
    )

    allocated = [s.allocated_time_seconds for s in get_slots(db, session)]
    assert allocated == [45] * 3 + [150] * 2 + [1200] * 5


def test_estimated_duration_for_timed_session(db: Session, student, exam) -> None:
    result = compose_session(
        db,
        student.id,
        exam.id,
        build_configuration(exam, is_timed=True, total_duration_minutes=45),
    )

    assert result.estimated_duration_minutes == 45
    assert result.session.is_timed is True
    assert result.session.total_duration_minutes == 45


def test_estimated_duration_for_untimed_session(db: Session, student, exam) -> None:
    result = compose_session(db, student.id, exam.id, build_configuration(exam, question_count=10))
    session = db.get(TestSession, result.session.id)

    total_seconds = sum(s.allocated_time_seconds for s in get_slots(db, session))
    assert result.estimated_duration_minutes == math.ceil(total_seconds / 60)
    assert result.session.total_duration_minutes is None


def test_default_session_name(db: Session, student, exam) -> None:
    result = compose_session(
        db, student.id, exam.id, build_configuration(exam, session_name=None)
    )

    assert result.session.session_name.startswith(f"{exam.display_name} practice ")
