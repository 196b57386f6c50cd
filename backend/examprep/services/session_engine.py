"""Session engine service: lifecycle transitions, lazy expiry and progress."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from examprep.common.clock import utcnow
from examprep.core.app_exceptions import AccessDenied, InvalidTransition, NotFound
from examprep.core.logging import get_logger
from examprep.models.exam import Question, QuestionOption, QuestionMedia, QuestionType, Section
from examprep.models.session import SessionStatus, SessionType, TestSession, TestSessionQuestion
from examprep.schemas.session import SessionProgress

logger = get_logger(__name__)

# ============================================================================
# Loading
# ============================================================================


def _slot_content_options():
    """Eager-load slots with question, type, section, exam, options and media."""
    question = selectinload(TestSession.questions).selectinload(TestSessionQuestion.question)
    return [
        question.selectinload(Question.question_type)
        .selectinload(QuestionType.section)
        .selectinload(Section.exam),
        question.selectinload(Question.options).selectinload(QuestionOption.media),
        question.selectinload(Question.media).selectinload(QuestionMedia.media),
    ]


def get_user_session(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    *,
    with_questions: bool = False,
) -> TestSession:
    """
    Get a session owned by the user (read path).

    Sessions owned by someone else are reported as not found so their
    existence is not leaked.
    """
    stmt = select(TestSession).where(TestSession.id == session_id)
    if with_questions:
        stmt = stmt.options(*_slot_content_options())

    session = db.execute(stmt).scalar_one_or_none()
    if not session or session.user_id != user_id:
        raise NotFound("Test session not found")
    return session


def lock_user_session(
    db: Session,
    session_id: UUID,
    user_id: UUID,
    *,
    for_update: bool = True,
) -> TestSession:
    """
    Re-read a session row for a mutation.

    Uses SELECT ... FOR UPDATE where the dialect supports it (unless
    ``for_update`` is off), and always refreshes the identity map so the
    guard sees the committed status.

    Raises:
        NotFound: If the session does not exist
        AccessDenied: If the session belongs to another user
    """
    stmt = (
        select(TestSession)
        .where(TestSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    session = db.execute(stmt).scalar_one_or_none()
    if not session:
        raise NotFound("Test session not found")
    if session.user_id != user_id:
        raise AccessDenied("You do not have access to this test session")
    return session


def list_user_sessions(
    db: Session,
    user_id: UUID,
    *,
    exam_id: UUID | None = None,
    status: SessionStatus | None = None,
    session_type: SessionType | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[TestSession], int]:
    """List the user's sessions, newest first. Returns (items, total)."""
    filters = [TestSession.user_id == user_id]
    if exam_id:
        filters.append(TestSession.exam_id == exam_id)
    if status:
        filters.append(TestSession.status == status)
    if session_type:
        filters.append(TestSession.session_type == session_type)

    total = db.execute(select(func.count(TestSession.id)).where(*filters)).scalar_one()
    items = (
        db.execute(
            select(TestSession)
            .where(*filters)
            .order_by(TestSession.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        .scalars()
        .all()
    )
    return list(items), int(total)


# ============================================================================
# Expiry
# ============================================================================


def check_and_expire_session(
    db: Session,
    session: TestSession,
    now: datetime | None = None,
) -> TestSession:
    """
    Check if session has expired and auto-complete it if needed (lazy expiry).

    Only active timed sessions expire. ``completed_at`` is set to the deadline,
    not to the time the expiry was noticed.

    Args:
        db: Database session
        session: Session to check
        now: Reference time (defaults to current UTC time)

    Returns:
        Updated session (may have new status)
    """
    if session.status != SessionStatus.ACTIVE:
        return session

    now = now or utcnow()
    if session.is_expired(now):
        session.status = SessionStatus.COMPLETED
        session.completed_at = session.expires_at
        session.paused_at = None
        db.commit()
        logger.info(
            "test_session_expired",
            extra={"session_id": str(session.id), "expires_at": session.expires_at.isoformat()},
        )

    return session


def expire_overdue_sessions(db: Session, now: datetime | None = None) -> int:
    """Complete every active timed session past its deadline. Returns the count."""
    now = now or utcnow()
    candidates = (
        db.execute(
            select(TestSession).where(
                TestSession.status == SessionStatus.ACTIVE,
                TestSession.is_timed.is_(True),
                TestSession.started_at.is_not(None),
                TestSession.total_duration_minutes.is_not(None),
            )
        )
        .scalars()
        .all()
    )

    expired = 0
    for session in candidates:
        if session.is_expired(now):
            session.status = SessionStatus.COMPLETED
            session.completed_at = session.expires_at
            expired += 1

    if expired:
        db.commit()
    return expired


# ============================================================================
# Lifecycle transitions
# ============================================================================


def start_session(db: Session, session_id: UUID, user_id: UUID) -> TestSession:
    """Move a draft session to active and start its clock."""
    session = lock_user_session(db, session_id, user_id)

    if session.status != SessionStatus.DRAFT:
        db.rollback()
        raise InvalidTransition(
            f"Cannot start session with status: {session.status.value}",
            session.status.value,
        )

    session.status = SessionStatus.ACTIVE
    session.started_at = utcnow()
    db.commit()

    logger.info(
        "test_session_started",
        extra={"session_id": str(session.id), "user_id": str(user_id), "is_timed": session.is_timed},
    )
    return session


def pause_session(db: Session, session_id: UUID, user_id: UUID) -> TestSession:
    """Pause an active session. Pausing does not extend the deadline."""
    session = lock_user_session(db, session_id, user_id)
    check_and_expire_session(db, session)

    if session.status != SessionStatus.ACTIVE:
        db.rollback()
        raise InvalidTransition(
            f"Cannot pause session with status: {session.status.value}",
            session.status.value,
        )

    session.status = SessionStatus.PAUSED
    session.paused_at = utcnow()
    db.commit()

    logger.info("test_session_paused", extra={"session_id": str(session.id)})
    return session


def resume_session(db: Session, session_id: UUID, user_id: UUID) -> TestSession:
    """Resume a paused session.

    A session resumed past its deadline is completed by the expiry check
    that follows.
    """
    session = lock_user_session(db, session_id, user_id)

    if session.status != SessionStatus.PAUSED:
        db.rollback()
        raise InvalidTransition(
            f"Cannot resume session with status: {session.status.value}",
            session.status.value,
        )

    mark_resumed(session)
    db.commit()
    logger.info("test_session_resumed", extra={"session_id": str(session.id)})

    return check_and_expire_session(db, session)


def mark_resumed(session: TestSession) -> None:
    session.status = SessionStatus.ACTIVE
    session.paused_at = None


def complete_session(db: Session, session_id: UUID, user_id: UUID) -> TestSession:
    """
    Complete a session.

    Idempotent: completing an already completed session returns it unchanged.
    """
    session = lock_user_session(db, session_id, user_id)
    check_and_expire_session(db, session)

    if session.status == SessionStatus.COMPLETED:
        db.rollback()
        return session

    session.status = SessionStatus.COMPLETED
    session.completed_at = utcnow()
    session.paused_at = None
    db.commit()

    logger.info(
        "test_session_completed",
        extra={"session_id": str(session.id), "user_id": str(user_id)},
    )
    return session


# ============================================================================
# Progress
# ============================================================================


def get_session_progress(
    db: Session,
    session: TestSession,
    now: datetime | None = None,
) -> SessionProgress:
    """
    Get session progress summary.

    Args:
        db: Database session
        session: Session (already ownership-checked)
        now: Reference time (defaults to current UTC time)

    Returns:
        Counts, first unattempted sequence number (else last), and time left
    """
    slots = (
        db.execute(
            select(TestSessionQuestion.sequence_number, TestSessionQuestion.is_attempted)
            .where(TestSessionQuestion.session_id == session.id)
            .order_by(TestSessionQuestion.sequence_number)
        )
        .all()
    )

    attempted_count = sum(1 for _, is_attempted in slots if is_attempted)
    current_sequence_number = None
    for sequence_number, is_attempted in slots:
        if not is_attempted:
            current_sequence_number = sequence_number
            break
    else:
        # All attempted, point at the last slot
        if slots:
            current_sequence_number = slots[-1][0]

    time_remaining_seconds = None
    expires_at = session.expires_at
    if expires_at is not None:
        if session.status == SessionStatus.COMPLETED:
            time_remaining_seconds = 0
        else:
            remaining = (expires_at - (now or utcnow())).total_seconds()
            time_remaining_seconds = max(0, int(remaining))

    return SessionProgress(
        total_questions=len(slots),
        attempted_count=attempted_count,
        remaining_count=len(slots) - attempted_count,
        current_sequence_number=current_sequence_number,
        time_remaining_seconds=time_remaining_seconds,
    )
