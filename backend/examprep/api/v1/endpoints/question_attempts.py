"""Question attempt endpoints: saving and managing responses."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from examprep.common.pagination import OffsetParams, offset_params
from examprep.core.dependencies import CurrentUser, DbSession
from examprep.schemas.attempt import (
    AttemptDeleteOut,
    AttemptDetailOut,
    AttemptListOut,
    AttemptOut,
    AttemptUpdate,
    SaveResponseRequest,
    SaveResponseResult,
)
from examprep.services.response_recorder import (
    delete_attempt,
    get_attempt,
    list_attempts,
    save_response,
    update_attempt,
)

router = APIRouter()


@router.get("", response_model=AttemptListOut)
async def list_question_attempts(
    current_user: CurrentUser,
    db: DbSession,
    test_session_id: UUID | None = Query(None),
    question_id: UUID | None = Query(None),
    paging: OffsetParams = Depends(offset_params),
) -> AttemptListOut:
    """The caller's attempts, newest first."""
    items, total = list_attempts(
        db,
        current_user.id,
        test_session_id=test_session_id,
        question_id=question_id,
        limit=paging.limit,
        offset=paging.offset,
    )
    return AttemptListOut(
        items=[AttemptOut.model_validate(a) for a in items],
        total=total,
        limit=paging.limit,
        offset=paging.offset,
    )


@router.post("", response_model=SaveResponseResult)
async def save_question_response(
    payload: SaveResponseRequest,
    current_user: CurrentUser,
    db: DbSession,
) -> SaveResponseResult:
    """
    Save the response for a session slot.

    Repeated saves for the same slot update a single attempt. A paused
    session is resumed by the save.
    """
    return save_response(db, current_user.id, payload)


@router.get("/{attempt_id}", response_model=AttemptDetailOut)
async def get_question_attempt(
    attempt_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> AttemptDetailOut:
    return get_attempt(db, current_user.id, attempt_id)


@router.put("/{attempt_id}", response_model=AttemptOut)
async def update_question_attempt(
    attempt_id: UUID,
    payload: AttemptUpdate,
    current_user: CurrentUser,
    db: DbSession,
) -> AttemptOut:
    attempt = update_attempt(db, current_user.id, attempt_id, payload)
    return AttemptOut.model_validate(attempt)


@router.delete("/{attempt_id}", response_model=AttemptDeleteOut)
async def delete_question_attempt(
    attempt_id: UUID,
    current_user: CurrentUser,
    db: DbSession,
) -> AttemptDeleteOut:
    """Delete an attempt and reset its session slot."""
    delete_attempt(db, current_user.id, attempt_id)
    return AttemptDeleteOut(message="Question attempt deleted")
