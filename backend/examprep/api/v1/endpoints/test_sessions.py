"""Test session endpoints: composition, lifecycle and session state."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from examprep.common.pagination import PageParams, page_params, total_pages
from examprep.core.dependencies import CurrentUser, DbSession
from examprep.models.session import SessionStatus, SessionType, TestSession
from examprep.schemas.attempt import AttemptOut
from examprep.schemas.session import (
    PaginationMeta,
    SessionActionResponse,
    SessionCreate,
    SessionCreateResponse,
    SessionDetailOut,
    SessionListOut,
    SessionOut,
    SessionSlotOut,
)
from examprep.services.response_recorder import get_slot_response
from examprep.services.session_composer import compose_session
from examprep.services.session_engine import (
    check_and_expire_session,
    complete_session,
    get_session_progress,
    get_user_session,
    list_user_sessions,
    pause_session,
    resume_session,
    start_session,
)

router = APIRouter()


def _action_response(session: TestSession, message: str) -> SessionActionResponse:
    return SessionActionResponse(session=SessionOut.model_validate(session), message=message)


# ============================================================================
# Composition and listing
# ============================================================================


@router.get("", response_model=SessionListOut)
async def list_test_sessions(
    current_user: CurrentUser,
    db: DbSession,
    exam_id: UUID | None = Query(None),
    session_status: SessionStatus | None = Query(None, alias="status"),
    session_type: SessionType | None = Query(None),
    paging: PageParams = Depends(page_params),
) -> SessionListOut:
    """The caller's sessions, newest first."""
    items, total = list_user_sessions(
        db,
        current_user.id,
        exam_id=exam_id,
        status=session_status,
        session_type=session_type,
        page=paging.page,
        per_page=paging.per_page,
    )
    return SessionListOut(
        data=[SessionOut.model_validate(s) for s in items],
        pagination=PaginationMeta(
            page=paging.page,
            per_page=paging.per_page,
            total=total,
            total_pages=total_pages(total, paging.per_page),
        ),
    )


@router.post("", response_model=SessionCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_test_session(
    payload: SessionCreate,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionCreateResponse:
    """
    Compose a draft session from a configuration.

    Questions are drawn per selected section and question type; the slot
    order is fixed here and never changes.
    """
    return compose_session(db, current_user.id, payload.exam_id, payload.configuration)


@router.get("/{session_id}", response_model=SessionDetailOut)
async def get_test_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionDetailOut:
    """
    Session state with progress and ordered slots.

    Applies lazy expiry if the session is past its deadline.
    """
    session = get_user_session(db, session_id, current_user.id, with_questions=True)
    session = check_and_expire_session(db, session)

    return SessionDetailOut(
        session=SessionOut.model_validate(session),
        progress=get_session_progress(db, session),
        questions=[SessionSlotOut.model_validate(slot) for slot in session.questions],
    )


@router.get("/{session_id}/questions/{question_id}/response", response_model=AttemptOut | None)
async def get_question_response(
    session_id: UUID,
    question_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
):
    """The caller's saved response for a question in the session, or null."""
    attempt = get_slot_response(db, current_user.id, session_id, question_id)
    return AttemptOut.model_validate(attempt) if attempt else None


# ============================================================================
# Lifecycle
# ============================================================================


@router.post("/{session_id}/start", response_model=SessionActionResponse)
async def start_test_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionActionResponse:
    session = start_session(db, session_id, current_user.id)
    return _action_response(session, "Session started")


@router.post("/{session_id}/pause", response_model=SessionActionResponse)
async def pause_test_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionActionResponse:
    session = pause_session(db, session_id, current_user.id)
    return _action_response(session, "Session paused")


@router.post("/{session_id}/resume", response_model=SessionActionResponse)
async def resume_test_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionActionResponse:
    session = resume_session(db, session_id, current_user.id)
    if session.status == SessionStatus.COMPLETED:
        return _action_response(session, "Session expired")
    return _action_response(session, "Session resumed")


@router.post("/{session_id}/complete", response_model=SessionActionResponse)
async def complete_test_session(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionActionResponse:
    """Complete the session. Completing twice is not an error."""
    session = complete_session(db, session_id, current_user.id)
    return _action_response(session, "Session completed")


@router.put("/{session_id}", response_model=SessionActionResponse, deprecated=True)
async def pause_test_session_legacy(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionActionResponse:
    """Deprecated alias of POST /{session_id}/pause."""
    session = pause_session(db, session_id, current_user.id)
    return _action_response(session, "Session paused")


@router.delete("/{session_id}", response_model=SessionActionResponse, deprecated=True)
async def complete_test_session_legacy(
    session_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> SessionActionResponse:
    """Deprecated alias of POST /{session_id}/complete."""
    session = complete_session(db, session_id, current_user.id)
    return _action_response(session, "Session completed")
