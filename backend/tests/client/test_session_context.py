"""End-to-end client tests: API client, session context and the in-process app."""

import uuid
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from examprep.client.api import ApiError, TestSessionClient
from examprep.client.autosave import DebouncedResponseSaver
from examprep.client.context import TestSessionContext
from examprep.client.renderers import ReorderRenderer, SingleChoiceRenderer
from examprep.models import QuestionAttempt
from tests.helpers.seed import build_configuration


@pytest_asyncio.fixture
async def api_client(api_app, student_token) -> AsyncGenerator[TestSessionClient, None]:
    transport = httpx.ASGITransport(app=api_app)
    async with TestSessionClient("http://test", student_token, transport=transport) as client:
        yield client


async def _create_session(client: TestSessionClient, exam, **config) -> str:
    config.setdefault("question_count", 3)
    config.setdefault("sections", ["reading"])
    created = await client.create_session(exam.id, build_configuration(exam, **config))
    return created["session"]["id"]


def _attempt_count(db: Session) -> int:
    return db.execute(select(func.count(QuestionAttempt.id))).scalar_one()


@pytest.mark.asyncio
async def test_client_reads_test_configuration(api_client: TestSessionClient, exam) -> None:
    data = await api_client.get_test_configuration(exam.id)

    assert data["exam"]["id"] == str(exam.id)
    assert data["total_questions"] == 15


@pytest.mark.asyncio
async def test_client_raises_api_error(api_client: TestSessionClient) -> None:
    with pytest.raises(ApiError) as exc_info:
        await api_client.start_session(uuid.uuid4())

    error = exc_info.value
    assert error.status_code == 404
    assert error.error_code == "NOT_FOUND"
    assert error.request_id


@pytest.mark.asyncio
async def test_context_starts_draft_and_records_answers(
    api_client: TestSessionClient, db: Session, exam
) -> None:
    session_id = await _create_session(api_client, exam)

    async with TestSessionContext(api_client, session_id, autosave_delay=60) as ctx:
        assert ctx.navigator.active_session.session["status"] == "active"
        assert ctx.navigator.progress.total == 3
        assert not ctx.timer.running
        assert isinstance(ctx.renderer, SingleChoiceRenderer)

        slot = ctx.navigator.current_slot
        option_id = slot["question"]["options"][0]["id"]
        result = await ctx.answer_now([option_id, "ignored"])
        assert result["isNew"] is True

        ctx.next_question()
        ctx.answer([ctx.navigator.current_slot["question"]["options"][1]["id"]])
        assert ctx.saver.pending_count == 1

        ctx.go_to(2)
        assert isinstance(ctx.renderer, ReorderRenderer)
        ctx.answer(["p3", "p1", "p2"])
        ctx.toggle_flag()

        assert ctx.navigator.progress.answered == 3
        assert ctx.navigator.progress.flagged == 1

    # Leaving the context flushed the debounced saves
    assert _attempt_count(db) == 3
    attempt = db.execute(
        select(QuestionAttempt).where(QuestionAttempt.response_type == "sequence")
    ).scalar_one()
    assert attempt.response_data == ["p3", "p1", "p2"]

    detail = await api_client.get_session(session_id)
    assert detail["progress"]["attempted_count"] == 3


@pytest.mark.asyncio
async def test_context_reload_marks_answered_slots(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam)
    async with TestSessionContext(api_client, session_id) as ctx:
        await ctx.answer_now(["x"])

    async with TestSessionContext(api_client, session_id) as ctx:
        assert ctx.navigator.progress.answered == 1
        response = await api_client.get_slot_response(
            session_id, ctx.navigator.current_slot["question_id"]
        )
        assert response["selected_options"] == ["x"]


@pytest.mark.asyncio
async def test_context_pause_and_resume(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam)

    async with TestSessionContext(api_client, session_id) as ctx:
        paused = await ctx.pause()
        assert paused["session"]["status"] == "paused"
        assert ctx.navigator.is_paused is True

        resumed = await ctx.resume()
        assert resumed["session"]["status"] == "active"
        assert ctx.navigator.is_paused is False


@pytest.mark.asyncio
async def test_timed_context_runs_countdown(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam, is_timed=True, total_duration_minutes=30)

    ctx = TestSessionContext(api_client, session_id, tick_interval=60)
    await ctx.load()
    try:
        assert ctx.timer.running
        assert 0 < ctx.navigator.session_time_remaining <= 30 * 60
        assert ctx.navigator.time_remaining == ctx.navigator.current_slot["allocated_time_seconds"]
    finally:
        await ctx.close()

    assert not ctx.timer.running
    assert ctx.navigator.active_session is None


@pytest.mark.asyncio
async def test_timer_expiry_completes_session(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam, is_timed=True, total_duration_minutes=30)

    async with TestSessionContext(api_client, session_id, tick_interval=60, autosave_delay=60) as ctx:
        ctx.answer(["last-second"])
        ctx.navigator.session_time_remaining = 1
        await ctx.timer.tick()

    detail = await api_client.get_session(session_id)
    assert detail["session"]["status"] == "completed"
    assert detail["progress"]["attempted_count"] == 1


@pytest.mark.asyncio
async def test_context_without_auto_start(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam)

    async with TestSessionContext(api_client, session_id, auto_start=False) as ctx:
        assert ctx.navigator.active_session.session["status"] == "draft"
        with pytest.raises(ApiError) as exc_info:
            await ctx.answer_now(["a"])

    assert exc_info.value.error_code == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_complete_through_context(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam)

    async with TestSessionContext(api_client, session_id) as ctx:
        result = await ctx.complete()

    assert result["session"]["status"] == "completed"
    listing = await api_client.list_sessions(status="completed")
    assert listing["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_resuming_a_paused_timed_session_restarts_countdown(
    api_client: TestSessionClient, exam
) -> None:
    session_id = await _create_session(api_client, exam, is_timed=True, total_duration_minutes=30)
    await api_client.start_session(session_id)
    await api_client.pause_session(session_id)

    async with TestSessionContext(api_client, session_id, tick_interval=60) as ctx:
        assert ctx.navigator.is_paused is True
        assert not ctx.timer.running

        resumed = await ctx.resume()

        assert resumed["session"]["status"] == "active"
        assert ctx.navigator.is_paused is False
        assert ctx.timer.running

    assert not ctx.timer.running


async def _failing_save(payload: dict) -> dict:
    raise RuntimeError("network down")


@pytest.mark.asyncio
async def test_close_tears_down_when_final_save_fails(api_client: TestSessionClient, exam) -> None:
    session_id = await _create_session(api_client, exam, is_timed=True, total_duration_minutes=30)
    ctx = TestSessionContext(api_client, session_id, tick_interval=60)
    ctx.saver = DebouncedResponseSaver(_failing_save, delay=60)
    await ctx.load()
    ctx.answer(["a"])

    with pytest.raises(RuntimeError):
        await ctx.close()

    assert not ctx.timer.running
    assert ctx.navigator.active_session is None


@pytest.mark.asyncio
async def test_timer_expiry_completes_session_when_final_save_fails(
    api_client: TestSessionClient, exam
) -> None:
    session_id = await _create_session(api_client, exam, is_timed=True, total_duration_minutes=30)
    ctx = TestSessionContext(api_client, session_id, tick_interval=60)
    ctx.saver = DebouncedResponseSaver(_failing_save, delay=60)
    await ctx.load()
    try:
        ctx.answer(["a"])
        ctx.navigator.session_time_remaining = 1
        with pytest.raises(RuntimeError):
            await ctx.timer.tick()
    finally:
        await ctx.close()

    detail = await api_client.get_session(session_id)
    assert detail["session"]["status"] == "completed"
    assert detail["progress"]["attempted_count"] == 0
