"""Response recorder: one attempt per session slot, written atomically."""

import json
import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, selectinload

from examprep.common.clock import utcnow
from examprep.core.app_exceptions import (
    AccessDenied,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from examprep.core.logging import get_logger
from examprep.models.attempt import QuestionAttempt
from examprep.models.exam import Question, QuestionType, ResponseType, Section
from examprep.models.session import SessionStatus, TestSessionQuestion
from examprep.schemas.attempt import (
    AttemptDetailOut,
    AttemptOut,
    AttemptQuestionContext,
    AttemptUpdate,
    SaveResponseRequest,
    SaveResponseResult,
)
from examprep.services.session_engine import (
    check_and_expire_session,
    get_user_session,
    lock_user_session,
    mark_resumed,
)

logger = get_logger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def normalize_response(response_type: ResponseType | str, data: Any) -> dict[str, Any]:
    """
    Split a raw response into the stored columns.

    ``response_data`` always keeps the raw payload. Text responses are also
    stored in ``response_text`` and selections in ``selected_options``.

    Raises:
        ValidationFailed: If the payload shape does not fit the response type
    """
    response_type = ResponseType(response_type)
    normalized: dict[str, Any] = {
        "response_type": response_type.value,
        "response_data": data,
        "response_text": None,
        "selected_options": None,
    }

    if response_type == ResponseType.TEXT:
        normalized["response_text"] = data if isinstance(data, str) else json.dumps(data)
    elif response_type == ResponseType.SELECTION:
        if data is None:
            normalized["selected_options"] = []
        elif isinstance(data, (list, tuple)):
            normalized["selected_options"] = list(data)
        else:
            normalized["selected_options"] = [data]
    elif response_type == ResponseType.SEQUENCE:
        if not isinstance(data, list):
            raise ValidationFailed("Sequence responses must be a list")
    elif response_type == ResponseType.AUDIO_RECORDING:
        if not (isinstance(data, str) or (isinstance(data, dict) and data.get("media_id"))):
            raise ValidationFailed("Audio responses must reference a media asset")

    return normalized


def _insert_under_slot_lock(db: Session, values: dict[str, Any]) -> UUID | None:
    """INSERT unless the slot already has an attempt. Returns the new id or None.

    Used on dialects without ON CONFLICT. The slot row is locked first so
    concurrent saves for the same slot run one after the other.
    """
    slot_id = values["session_question_id"]
    db.execute(
        select(TestSessionQuestion.id)
        .where(TestSessionQuestion.id == slot_id)
        .with_for_update()
    )
    existing = db.execute(
        select(QuestionAttempt.id).where(QuestionAttempt.session_question_id == slot_id)
    ).scalar_one_or_none()
    if existing is not None:
        return None
    db.execute(insert(QuestionAttempt).values(**values))
    return values["id"]


def _insert_attempt(db: Session, values: dict[str, Any]) -> UUID | None:
    dialect_insert = _DIALECT_INSERTS.get(db.get_bind().dialect.name)
    if dialect_insert is None:
        return _insert_under_slot_lock(db, values)
    stmt = (
        dialect_insert(QuestionAttempt)
        .values(**values)
        .on_conflict_do_nothing(index_elements=["session_question_id"])
        .returning(QuestionAttempt.id)
    )
    return db.execute(stmt).scalar_one_or_none()


def save_response(db: Session, user_id: UUID, payload: SaveResponseRequest) -> SaveResponseResult:
    """
    Record the response for a session slot (find-or-create).

    Runs as INSERT ... ON CONFLICT (session_question_id) DO NOTHING (or an
    insert under a slot row lock on other dialects), falling back to an
    UPDATE of the existing row, so duplicate rapid saves for the same slot
    never produce two attempts. A paused session is resumed by the save,
    unless its deadline passed while paused. The slot linkage is written in the
    same transaction.

    Args:
        db: Database session
        user_id: Caller
        payload: Save request

    Returns:
        Attempt ID and whether it was newly created

    Raises:
        NotFound: If the session or slot does not exist
        AccessDenied: If the session belongs to another user
        InvalidTransition: If the session is a draft or completed
        ValidationFailed: If the payload does not fit the response type
    """
    session = lock_user_session(db, payload.test_session_id, user_id, for_update=False)

    slot = db.execute(
        select(TestSessionQuestion).where(
            TestSessionQuestion.id == payload.session_question_id,
            TestSessionQuestion.session_id == session.id,
        )
    ).scalar_one_or_none()
    if not slot or slot.question_id != payload.question_id:
        raise NotFound("Session question not found")

    check_and_expire_session(db, session)
    if session.status == SessionStatus.COMPLETED:
        raise InvalidTransition("Cannot save response: session is completed", session.status.value)
    if session.status == SessionStatus.DRAFT:
        raise InvalidTransition(
            "Cannot save response: session has not been started", session.status.value
        )
    if session.status == SessionStatus.PAUSED:
        mark_resumed(session)
        check_and_expire_session(db, session)
        if session.status == SessionStatus.COMPLETED:
            raise InvalidTransition(
                "Cannot save response: session is completed", session.status.value
            )

    normalized = normalize_response(payload.response_type, payload.response_data)
    now = utcnow()

    attempt_id = _insert_attempt(
        db,
        dict(
            id=uuid.uuid4(),
            user_id=user_id,
            question_id=payload.question_id,
            test_session_id=session.id,
            session_question_id=slot.id,
            time_spent_seconds=payload.time_spent_seconds,
            started_at=now,
            submitted_at=now,
            created_at=now,
            updated_at=now,
            scoring_status="pending",
            **normalized,
        ),
    )
    is_new = attempt_id is not None

    if not is_new:
        db.execute(
            update(QuestionAttempt)
            .where(QuestionAttempt.session_question_id == slot.id)
            .values(
                time_spent_seconds=payload.time_spent_seconds,
                submitted_at=now,
                updated_at=now,
                **normalized,
            )
        )
        attempt_id = db.execute(
            select(QuestionAttempt.id).where(QuestionAttempt.session_question_id == slot.id)
        ).scalar_one()

    slot.question_attempt_id = attempt_id
    slot.is_attempted = True
    slot.time_spent_seconds = payload.time_spent_seconds
    db.commit()

    logger.info(
        "response_saved",
        extra={
            "attempt_id": str(attempt_id),
            "session_id": str(session.id),
            "session_question_id": str(slot.id),
            "response_type": normalized["response_type"],
            "is_new": is_new,
        },
    )

    return SaveResponseResult(
        attempt_id=attempt_id,
        is_new=is_new,
        message="Response saved" if is_new else "Response updated",
    )


def _get_owned_attempt(db: Session, attempt_id: UUID, user_id: UUID) -> QuestionAttempt:
    attempt = db.get(QuestionAttempt, attempt_id, populate_existing=True)
    if not attempt:
        raise NotFound("Question attempt not found")
    if attempt.user_id != user_id:
        raise AccessDenied("You do not have access to this question attempt")
    return attempt


def _ensure_session_editable(db: Session, attempt: QuestionAttempt, action: str) -> None:
    """Attempts are frozen once their session is completed (including by expiry)."""
    if attempt.test_session_id is None:
        return
    session = lock_user_session(db, attempt.test_session_id, attempt.user_id, for_update=False)
    check_and_expire_session(db, session)
    if session.status == SessionStatus.COMPLETED:
        raise InvalidTransition(
            f"Cannot {action} response: session is completed", session.status.value
        )


def update_attempt(
    db: Session, user_id: UUID, attempt_id: UUID, payload: AttemptUpdate
) -> QuestionAttempt:
    """Replace the response of an attempt the caller owns."""
    attempt = _get_owned_attempt(db, attempt_id, user_id)
    _ensure_session_editable(db, attempt, "update")

    normalized = normalize_response(
        payload.response_type or attempt.response_type, payload.response_data
    )
    for field, value in normalized.items():
        setattr(attempt, field, value)

    now = utcnow()
    attempt.submitted_at = now
    attempt.updated_at = now
    if payload.time_spent_seconds is not None:
        attempt.time_spent_seconds = payload.time_spent_seconds
        slot = db.get(TestSessionQuestion, attempt.session_question_id)
        if slot:
            slot.time_spent_seconds = payload.time_spent_seconds

    db.commit()
    logger.info("attempt_updated", extra={"attempt_id": str(attempt.id)})
    return attempt


def delete_attempt(db: Session, user_id: UUID, attempt_id: UUID) -> None:
    """Delete an attempt the caller owns and reset its slot."""
    attempt = _get_owned_attempt(db, attempt_id, user_id)
    _ensure_session_editable(db, attempt, "delete")

    slot = db.get(TestSessionQuestion, attempt.session_question_id)
    if slot:
        slot.question_attempt_id = None
        slot.is_attempted = False
        slot.time_spent_seconds = 0
        db.flush()

    db.delete(attempt)
    db.commit()
    logger.info("attempt_deleted", extra={"attempt_id": str(attempt_id)})


def list_attempts(
    db: Session,
    user_id: UUID,
    *,
    test_session_id: UUID | None = None,
    question_id: UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[QuestionAttempt], int]:
    """The caller's attempts, newest first. Returns (items, total)."""
    filters = [QuestionAttempt.user_id == user_id]
    if test_session_id:
        filters.append(QuestionAttempt.test_session_id == test_session_id)
    if question_id:
        filters.append(QuestionAttempt.question_id == question_id)

    total = db.execute(select(func.count(QuestionAttempt.id)).where(*filters)).scalar_one()
    items = (
        db.execute(
            select(QuestionAttempt)
            .where(*filters)
            .order_by(QuestionAttempt.created_at.desc(), QuestionAttempt.id)
            .offset(offset)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(items), int(total)


def get_attempt(db: Session, user_id: UUID, attempt_id: UUID) -> AttemptDetailOut:
    """Attempt with its question, type, section and exam. Foreign attempts are not found."""
    attempt = db.execute(
        select(QuestionAttempt)
        .where(QuestionAttempt.id == attempt_id)
        .options(
            selectinload(QuestionAttempt.question)
            .selectinload(Question.question_type)
            .selectinload(QuestionType.section)
            .selectinload(Section.exam)
        )
    ).scalar_one_or_none()
    if not attempt or attempt.user_id != user_id:
        raise NotFound("Question attempt not found")

    question = attempt.question
    question_type = question.question_type
    section = question_type.section
    return AttemptDetailOut(
        attempt=AttemptOut.model_validate(attempt),
        question=AttemptQuestionContext(
            question_id=question.id,
            title=question.title,
            difficulty_level=question.difficulty_level,
            question_type_id=question_type.id,
            question_type_name=question_type.name,
            section_id=section.id,
            section_name=section.name,
            exam_id=section.exam.id,
            exam_name=section.exam.name,
        ),
    )


def get_slot_response(
    db: Session, user_id: UUID, session_id: UUID, question_id: UUID
) -> QuestionAttempt | None:
    """The caller's attempt for a question in a session, if any."""
    get_user_session(db, session_id, user_id)

    slot = db.execute(
        select(TestSessionQuestion).where(
            TestSessionQuestion.session_id == session_id,
            TestSessionQuestion.question_id == question_id,
        )
    ).scalar_one_or_none()
    if not slot:
        raise NotFound("Session question not found")

    return db.execute(
        select(QuestionAttempt).where(QuestionAttempt.session_question_id == slot.id)
    ).scalar_one_or_none()
