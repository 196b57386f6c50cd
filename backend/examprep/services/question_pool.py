"""Question pool index: availability and timing statistics for the test builder."""

from collections import defaultdict
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from examprep.core.app_exceptions import NotFound
from examprep.core.config import settings
from examprep.core.logging import get_logger
from examprep.models.exam import Exam, Question, QuestionType, Section
from examprep.schemas.configuration import DIFFICULTY_LEVELS
from examprep.schemas.pool import (
    AvailableQuestionsOut,
    ExamSummary,
    QuestionTypeStats,
    SectionWithQuestionTypes,
)

logger = get_logger(__name__)


def _difficulty_counts(db: Session, question_type_ids: list[UUID]) -> dict[UUID, dict[int, int]]:
    """Active question counts per (question type, difficulty level)."""
    if not question_type_ids:
        return {}

    stmt = (
        select(Question.question_type_id, Question.difficulty_level, func.count(Question.id))
        .where(
            Question.question_type_id.in_(question_type_ids),
            Question.is_active.is_(True),
        )
        .group_by(Question.question_type_id, Question.difficulty_level)
    )
    counts: dict[UUID, dict[int, int]] = defaultdict(dict)
    for question_type_id, level, count in db.execute(stmt).all():
        counts[question_type_id][int(level)] = int(count)
    return counts


def _average_durations(db: Session, question_type_ids: list[UUID]) -> dict[UUID, float]:
    """Mean expected duration per question type, over questions that declare one."""
    if not question_type_ids:
        return {}

    stmt = (
        select(
            Question.question_type_id,
            func.avg(Question.expected_duration_seconds),
        )
        .where(
            Question.question_type_id.in_(question_type_ids),
            Question.is_active.is_(True),
            Question.expected_duration_seconds.is_not(None),
        )
        .group_by(Question.question_type_id)
    )
    return {row[0]: float(row[1]) for row in db.execute(stmt).all()}


def get_available_questions(db: Session, exam_id: UUID) -> AvailableQuestionsOut:
    """
    Aggregate the active question pool of an exam.

    Args:
        db: Database session
        exam_id: Exam ID

    Returns:
        Sections in order, each with question types in order and their counts,
        difficulty distribution and average completion time.

    Raises:
        NotFound: If the exam does not exist or is inactive
    """
    exam = db.execute(
        select(Exam).where(Exam.id == exam_id, Exam.is_active.is_(True))
    ).scalar_one_or_none()
    if not exam:
        raise NotFound("Exam not found")

    sections = (
        db.execute(
            select(Section)
            .where(Section.exam_id == exam_id, Section.is_active.is_(True))
            .order_by(Section.order_index)
        )
        .scalars()
        .all()
    )
    section_ids = [s.id for s in sections]

    question_types_by_section: dict[UUID, list[QuestionType]] = defaultdict(list)
    if section_ids:
        question_types = (
            db.execute(
                select(QuestionType)
                .where(
                    QuestionType.section_id.in_(section_ids),
                    QuestionType.is_active.is_(True),
                )
                .order_by(QuestionType.order_index)
            )
            .scalars()
            .all()
        )
        for qt in question_types:
            question_types_by_section[qt.section_id].append(qt)

    all_type_ids = [qt.id for qts in question_types_by_section.values() for qt in qts]
    difficulty_counts = _difficulty_counts(db, all_type_ids)
    average_durations = _average_durations(db, all_type_ids)

    section_out: list[SectionWithQuestionTypes] = []
    question_distribution: dict[str, int] = {}
    total_questions = 0

    for section in sections:
        type_stats: list[QuestionTypeStats] = []
        section_total = 0

        for qt in question_types_by_section.get(section.id, []):
            distribution = {level: 0 for level in DIFFICULTY_LEVELS}
            distribution.update(difficulty_counts.get(qt.id, {}))
            count = sum(distribution.values())
            average_time = average_durations.get(qt.id)
            if average_time is None:
                average_time = float(qt.time_limit_seconds or settings.DEFAULT_QUESTION_TIME_SECONDS)

            type_stats.append(
                QuestionTypeStats(
                    id=qt.id,
                    name=qt.name,
                    display_name=qt.display_name,
                    input_type=qt.input_type,
                    response_type=qt.response_type,
                    time_limit_seconds=qt.time_limit_seconds,
                    order_index=qt.order_index,
                    total_questions=count,
                    difficulty_distribution=distribution,
                    average_completion_time_seconds=average_time,
                )
            )
            section_total += count
            question_distribution[qt.name] = count

        section_out.append(
            SectionWithQuestionTypes(
                id=section.id,
                name=section.name,
                display_name=section.display_name,
                duration_minutes=section.duration_minutes,
                order_index=section.order_index,
                total_questions=section_total,
                question_types=type_stats,
            )
        )
        total_questions += section_total

    logger.debug(
        "question_pool_indexed",
        extra={"exam_id": str(exam_id), "sections": len(section_out), "total_questions": total_questions},
    )

    return AvailableQuestionsOut(
        exam=ExamSummary(id=exam.id, name=exam.name, display_name=exam.display_name),
        sections=section_out,
        total_questions=total_questions,
        question_distribution=question_distribution,
    )
