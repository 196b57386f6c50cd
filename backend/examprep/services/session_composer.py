"""Session composer: turns a validated configuration into a draft session.

Draws are seeded so a composition can be replayed from ``session_config``.
"""

import math
import random
import secrets
from collections import defaultdict
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from examprep.common.clock import utcnow
from examprep.core.app_exceptions import InvalidConfiguration, NoQuestionsAvailable
from examprep.core.config import settings
from examprep.core.logging import get_logger
from examprep.models.attempt import QuestionAttempt
from examprep.models.exam import Exam, Question, QuestionType, Section
from examprep.models.session import (
    SelectionMode,
    SessionStatus,
    TestSession,
    TestSessionQuestion,
)
from examprep.schemas.configuration import SessionConfiguration, validate_session_configuration
from examprep.schemas.session import SelectionSummary, SessionCreateResponse, SessionOut

logger = get_logger(__name__)

# Thresholds for incorrect_only selection
INCORRECT_BEST_SCORE_BELOW = 0.6
INCORRECT_MEAN_SCORE_BELOW = 0.7

# Mixed selection: share of each type drawn from unseen and weak questions;
# the rest goes to reinforcement (mean score below REINFORCE_MEAN_SCORE_BELOW)
MIXED_NEW_SHARE = 0.4
MIXED_WEAK_SHARE = 0.35
WEAK_MEAN_SCORE_BELOW = 0.7
REINFORCE_MEAN_SCORE_BELOW = 0.9


def default_time_for_difficulty(difficulty_level: int) -> int:
    """Fallback per-question time in seconds."""
    if difficulty_level <= 2:
        return 90
    if difficulty_level >= 4:
        return 180
    return 120


def apportion(total: int, shares: dict[UUID, float]) -> dict[UUID, int]:
    """
    Split ``total`` into whole counts proportional to ``shares``.

    Shares are expected to sum to 1. Every key gets the floor of its exact
    share; the units left over go one each to the largest remainders, earlier
    keys first on ties. The counts always sum to ``total``.
    """
    exact = {key: total * share for key, share in shares.items()}
    counts = {key: math.floor(value) for key, value in exact.items()}
    leftover = total - sum(counts.values())
    by_remainder = sorted(exact, key=lambda key: exact[key] - counts[key], reverse=True)
    for key in by_remainder[:leftover]:
        counts[key] += 1
    return counts


def _section_weights(config: SessionConfiguration, section_ids: list[UUID]) -> dict[UUID, float]:
    """Selected section weights scaled to sum to 1; equal shares when none were supplied."""
    supplied = {s.section_id: s.weight for s in config.selected_sections if s.is_selected}
    weights = {section_id: supplied.get(section_id, 0.0) for section_id in section_ids}
    total = sum(weights.values())
    if total <= 0:
        share = 1 / len(section_ids) if section_ids else 0.0
        return {section_id: share for section_id in section_ids}
    return {section_id: weight / total for section_id, weight in weights.items()}


def _resolve_selection(
    db: Session, exam_id: UUID, config: SessionConfiguration
) -> list[tuple[Section, list[QuestionType]]]:
    """Selected sections and types, in exam order, restricted to active content of the exam."""
    selected_types: dict[UUID, set[UUID]] = {}
    for section_sel in config.selected_sections:
        if not section_sel.is_selected:
            continue
        selected_types[section_sel.section_id] = {
            qt.question_type_id for qt in section_sel.question_types if qt.is_selected
        }

    sections = (
        db.execute(
            select(Section)
            .where(
                Section.exam_id == exam_id,
                Section.id.in_(list(selected_types)),
                Section.is_active.is_(True),
            )
            .order_by(Section.order_index)
        )
        .scalars()
        .all()
    )
    if len(sections) != len(selected_types):
        raise InvalidConfiguration("Selected sections do not belong to this exam")

    resolved = []
    for section in sections:
        wanted = selected_types[section.id]
        types = [qt for qt in section.question_types if qt.is_active and qt.id in wanted]
        if len(types) != len(wanted):
            raise InvalidConfiguration(
                "Selected question types do not belong to their section",
                {"section_id": str(section.id)},
            )
        if types:
            resolved.append((section, types))
    return resolved


def _excluded_or_kept_ids(
    db: Session, owner_id: UUID, mode: SelectionMode
) -> tuple[set[UUID] | None, set[UUID] | None]:
    """
    Question id filters derived from the user's attempt history.

    Returns (exclude, keep_only); either may be None.
    """
    if mode == SelectionMode.NEW_ONLY:
        rows = db.execute(
            select(QuestionAttempt.question_id)
            .where(QuestionAttempt.user_id == owner_id)
            .distinct()
        ).all()
        return {row[0] for row in rows}, None

    if mode == SelectionMode.INCORRECT_ONLY:
        rows = db.execute(
            select(
                QuestionAttempt.question_id,
                func.max(QuestionAttempt.final_score),
                func.avg(QuestionAttempt.final_score),
            )
            .where(
                QuestionAttempt.user_id == owner_id,
                QuestionAttempt.final_score.is_not(None),
            )
            .group_by(QuestionAttempt.question_id)
        ).all()
        keep = {
            question_id
            for question_id, best, mean in rows
            if best < INCORRECT_BEST_SCORE_BELOW or mean < INCORRECT_MEAN_SCORE_BELOW
        }
        return None, keep

    return None, None


def _recent_question_ids(db: Session, owner_id: UUID, days: int) -> set[UUID]:
    """Questions the user answered within the last ``days`` days."""
    cutoff = utcnow() - timedelta(days=days)
    answered_at = func.coalesce(QuestionAttempt.submitted_at, QuestionAttempt.created_at)
    rows = db.execute(
        select(QuestionAttempt.question_id)
        .where(QuestionAttempt.user_id == owner_id, answered_at >= cutoff)
        .distinct()
    ).all()
    return {row[0] for row in rows}


def _mean_scores(db: Session, owner_id: UUID) -> dict[UUID, float | None]:
    """Mean final score per attempted question; None while none is scored."""
    rows = db.execute(
        select(QuestionAttempt.question_id, func.avg(QuestionAttempt.final_score))
        .where(QuestionAttempt.user_id == owner_id)
        .group_by(QuestionAttempt.question_id)
    ).all()
    return {question_id: None if mean is None else float(mean) for question_id, mean in rows}


def _mixed_draw(
    rng: random.Random,
    available: list[Question],
    target: int,
    mean_scores: dict[UUID, float | None],
) -> list[Question]:
    """
    Blend unseen, weak and reinforcement questions for one question type.

    Quotas are 40% unseen and 35% weak (mean below 0.7), the remainder
    reinforcement (mean from 0.7 to below 0.9). Missing unseen questions move
    60% to weak and the rest to reinforcement; missing weak questions move to
    reinforcement. Anything still short is drawn from the type's other
    questions.
    """
    unseen: list[Question] = []
    weak: list[Question] = []
    reinforce: list[Question] = []
    for question in available:
        if question.id not in mean_scores:
            unseen.append(question)
            continue
        mean = mean_scores[question.id]
        if mean is None:
            continue
        if mean < WEAK_MEAN_SCORE_BELOW:
            weak.append(question)
        elif mean < REINFORCE_MEAN_SCORE_BELOW:
            reinforce.append(question)

    new_quota = math.ceil(target * MIXED_NEW_SHARE)
    weak_quota = min(math.ceil(target * MIXED_WEAK_SHARE), target - new_quota)
    reinforce_quota = target - new_quota - weak_quota

    picked = rng.sample(unseen, min(new_quota, len(unseen)))
    deficit = new_quota - len(picked)
    weak_quota += math.floor(deficit * 0.6)
    reinforce_quota += deficit - math.floor(deficit * 0.6)

    weak_picked = rng.sample(weak, min(weak_quota, len(weak)))
    reinforce_quota += weak_quota - len(weak_picked)
    picked += weak_picked
    picked += rng.sample(reinforce, min(reinforce_quota, len(reinforce)))

    if len(picked) < target:
        taken = {q.id for q in picked}
        rest = [q for q in available if q.id not in taken]
        picked += rng.sample(rest, min(target - len(picked), len(rest)))
    return picked


def _eligible_pool(
    db: Session,
    question_type_ids: list[UUID],
    difficulty_levels: list[int],
    exclude: set[UUID] | None,
    keep_only: set[UUID] | None,
) -> dict[UUID, list[Question]]:
    """Active questions per type, in a stable order so seeded draws are reproducible."""
    questions = (
        db.execute(
            select(Question)
            .where(
                Question.question_type_id.in_(question_type_ids),
                Question.is_active.is_(True),
                Question.difficulty_level.in_(difficulty_levels),
            )
            .order_by(Question.created_at, Question.id)
        )
        .scalars()
        .all()
    )

    pool: dict[UUID, list[Question]] = defaultdict(list)
    for question in questions:
        if exclude is not None and question.id in exclude:
            continue
        if keep_only is not None and question.id not in keep_only:
            continue
        pool[question.question_type_id].append(question)
    return pool


def allocate_time(
    question: Question,
    question_type: QuestionType,
    config: SessionConfiguration,
    slot_count: int,
) -> int:
    """Per-slot time in seconds.

    Precedence: custom limit for the type, type time limit, question expected
    duration, even split of a timed session, difficulty default.
    """
    custom = config.custom_time_limits.get(str(question_type.id))
    if custom:
        return custom
    if question_type.time_limit_seconds:
        return question_type.time_limit_seconds
    if question.expected_duration_seconds:
        return question.expected_duration_seconds
    if config.is_timed and config.total_duration_minutes and slot_count:
        return max(1, (config.total_duration_minutes * 60) // slot_count)
    return default_time_for_difficulty(question.difficulty_level)


def compose_session(
    db: Session,
    owner_id: UUID,
    exam_id: UUID,
    config: SessionConfiguration,
    *,
    seed: str | None = None,
) -> SessionCreateResponse:
    """
    Compose a draft test session from a configuration.

    Args:
        db: Database session
        owner_id: User the session belongs to
        exam_id: Exam to draw questions from
        config: Session configuration
        seed: Draw seed (generated when omitted, recorded in session_config)

    Returns:
        Created session with slot count, estimated duration, warnings and
        a selection summary

    Raises:
        InvalidConfiguration: If the configuration or exam is invalid
        NoQuestionsAvailable: If no question matches the configuration
    """
    errors = validate_session_configuration(config)
    if config.question_count > settings.SESSION_MAX_QUESTIONS:
        errors.append(f"question_count must not exceed {settings.SESSION_MAX_QUESTIONS}")
    if errors:
        raise InvalidConfiguration("Invalid session configuration", {"errors": errors})

    exam = db.execute(
        select(Exam).where(Exam.id == exam_id, Exam.is_active.is_(True))
    ).scalar_one_or_none()
    if not exam:
        raise InvalidConfiguration("Invalid exam ID")

    selection = _resolve_selection(db, exam_id, config)
    all_types = [qt for _, types in selection for qt in types]
    if not all_types:
        raise InvalidConfiguration(
            "Invalid session configuration",
            {"errors": ["At least one question type must be selected"]},
        )

    mode = config.question_selection_mode
    exclude, keep_only = _excluded_or_kept_ids(db, owner_id, mode)
    if config.avoid_recent_questions and mode != SelectionMode.ALL:
        recent = _recent_question_ids(db, owner_id, config.recent_questions_threshold_days)
        exclude = recent if exclude is None else exclude | recent
    pool = _eligible_pool(
        db, [qt.id for qt in all_types], config.difficulty_levels, exclude, keep_only
    )
    pool_size = sum(len(questions) for questions in pool.values())
    if pool_size == 0:
        raise NoQuestionsAvailable(
            "No questions available for the selected configuration",
            {"selection_mode": mode.value},
        )

    seed = seed or secrets.token_hex(8)
    rng = random.Random(seed)
    weights = _section_weights(config, [section.id for section, _ in selection])
    targets = apportion(
        config.question_count,
        {
            qt.id: weights[section.id] / len(types)
            for section, types in selection
            for qt in types
        },
    )
    mean_scores = _mean_scores(db, owner_id) if mode == SelectionMode.MIXED else {}

    warnings: list[str] = []
    drawn: dict[UUID, list[Question]] = {qt.id: [] for qt in all_types}
    drawn_total = 0

    for qt in all_types:
        target = targets[qt.id]
        if target <= 0:
            continue

        available = pool.get(qt.id, [])
        if len(available) < target:
            warnings.append(
                f"Only {len(available)} questions available for {qt.display_name} "
                f"(requested {target})"
            )
            picked = list(available)
        elif mode == SelectionMode.MIXED:
            picked = _mixed_draw(rng, available, target, mean_scores)
        else:
            picked = rng.sample(available, target)

        drawn[qt.id].extend(picked)
        drawn_total += len(picked)

    # Top up shortfalls from whatever is left, in section/type order
    wanted_total = min(config.question_count, pool_size)
    if drawn_total < wanted_total:
        for qt in all_types:
            needed = wanted_total - drawn_total
            if needed <= 0:
                break
            taken = {q.id for q in drawn[qt.id]}
            leftover = [q for q in pool.get(qt.id, []) if q.id not in taken]
            if not leftover:
                continue
            extra = rng.sample(leftover, min(needed, len(leftover)))
            drawn[qt.id].extend(extra)
            drawn_total += len(extra)

    if drawn_total < config.question_count:
        warnings.append(
            f"Only {drawn_total} of {config.question_count} requested questions could be selected"
        )

    types_by_id = {qt.id: qt for qt in all_types}
    ordered = [(types_by_id[qt.id], q) for qt in all_types for q in drawn[qt.id]]

    now = utcnow()
    session_name = config.session_name or (
        f"{exam.display_name} {config.session_type.value} {now:%Y-%m-%d %H:%M}"
    )
    session = TestSession(
        user_id=owner_id,
        exam_id=exam.id,
        session_name=session_name,
        session_type=config.session_type,
        status=SessionStatus.DRAFT,
        question_selection_mode=config.question_selection_mode,
        difficulty_levels=list(config.difficulty_levels),
        session_config={
            "section_weights": {str(k): v for k, v in weights.items()},
            "custom_time_limits": dict(config.custom_time_limits),
            "avoid_recent_questions": config.avoid_recent_questions,
            "recent_questions_threshold_days": config.recent_questions_threshold_days,
            "include_sections": [str(section.id) for section, _ in selection],
            "include_question_types": [str(qt.id) for qt in all_types],
            "selection_seed": seed,
        },
        question_count=config.question_count,
        total_questions=len(ordered),
        is_timed=config.is_timed,
        total_duration_minutes=config.total_duration_minutes if config.is_timed else None,
        created_at=now,
    )
    db.add(session)

    allocated_total = 0
    for sequence_number, (qt, question) in enumerate(ordered, start=1):
        allocated = allocate_time(question, qt, config, len(ordered))
        allocated_total += allocated
        session.questions.append(
            TestSessionQuestion(
                question_id=question.id,
                sequence_number=sequence_number,
                allocated_time_seconds=allocated,
            )
        )

    db.commit()

    if config.is_timed and config.total_duration_minutes:
        estimated_minutes = config.total_duration_minutes
    else:
        estimated_minutes = math.ceil(allocated_total / 60)

    sections_used = sum(1 for _, types in selection if any(drawn[qt.id] for qt in types))
    types_used = sum(1 for qt in all_types if drawn[qt.id])

    logger.info(
        "test_session_composed",
        extra={
            "session_id": str(session.id),
            "user_id": str(owner_id),
            "exam_id": str(exam_id),
            "requested": config.question_count,
            "selected": len(ordered),
            "selection_mode": mode.value,
            "warnings": len(warnings),
        },
    )

    return SessionCreateResponse(
        session=SessionOut.model_validate(session),
        slot_count=len(ordered),
        estimated_duration_minutes=estimated_minutes,
        warnings=warnings,
        selection_summary=SelectionSummary(
            requested_questions=config.question_count,
            actual_questions=len(ordered),
            selection_mode=config.question_selection_mode,
            sections_used=sections_used,
            question_types_used=types_used,
        ),
    )
