"""Per-session client context wiring API client, navigator, timer and autosave."""

from typing import Any

from examprep.client.api import TestSessionClient
from examprep.client.autosave import DebouncedResponseSaver
from examprep.client.navigator import ActiveTestSession, SessionNavigator
from examprep.client.renderers import QuestionRenderer, get_renderer
from examprep.client.timer import CountdownTimer
from examprep.core.logging import get_logger

logger = get_logger(__name__)


class TestSessionContext:
    """Everything one open session needs, created on enter and torn down on exit.

    Usage::

        async with TestSessionContext(client, session_id) as ctx:
            ctx.answer(["option-id"])
            ctx.next_question()
            await ctx.complete()

    Leaving the block flushes pending saves and stops the timer.
    """

    __test__ = False

    def __init__(
        self,
        client: TestSessionClient,
        session_id: str,
        *,
        auto_start: bool = True,
        autosave_delay: float | None = None,
        tick_interval: float = 1.0,
    ) -> None:
        self.client = client
        self.session_id = str(session_id)
        self.auto_start = auto_start
        self.navigator = SessionNavigator()
        self.saver = DebouncedResponseSaver(client.save_response, delay=autosave_delay)
        self.timer = CountdownTimer(self.navigator, on_expire=self._on_expire, interval=tick_interval)

    async def __aenter__(self) -> "TestSessionContext":
        await self.load()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def load(self) -> None:
        self.navigator.is_loading = True
        try:
            detail = await self.client.get_session(self.session_id)
            if self.auto_start and detail["session"]["status"] == "draft":
                await self.client.start_session(self.session_id)
                detail = await self.client.get_session(self.session_id)
        finally:
            self.navigator.is_loading = False

        self.navigator.set_active_session(ActiveTestSession.from_detail(detail))
        self.navigator.update_time_remaining(
            self._slot_time(), detail["progress"].get("time_remaining_seconds")
        )
        status = detail["session"]["status"]
        if status == "paused":
            self.navigator.pause_session()
        elif status == "active" and detail["session"]["is_timed"]:
            self.timer.start()

    async def close(self) -> None:
        try:
            await self.saver.flush()
        finally:
            await self.timer.stop()
            self.navigator.reset_session()

    # Navigation

    def _slot_time(self) -> int | None:
        slot = self.navigator.current_slot
        return slot.get("allocated_time_seconds") if slot else None

    def _restart_question_clock(self) -> None:
        self.navigator.update_time_remaining(
            self._slot_time(), self.navigator.session_time_remaining
        )

    def go_to(self, index: int) -> None:
        self.navigator.navigate_to_question(index)
        self._restart_question_clock()

    def next_question(self) -> None:
        self.navigator.next_question()
        self._restart_question_clock()

    def previous_question(self) -> None:
        self.navigator.previous_question()
        self._restart_question_clock()

    # Responses

    @property
    def renderer(self) -> QuestionRenderer | None:
        slot = self.navigator.current_slot
        if slot is None:
            return None
        return get_renderer(slot["question"]["question_type"])

    def _save_payload(self, raw: Any) -> dict[str, Any]:
        slot = self.navigator.current_slot
        if slot is None:
            raise LookupError("No question is loaded")
        renderer = get_renderer(slot["question"]["question_type"])
        allocated = slot.get("allocated_time_seconds") or 0
        remaining = self.navigator.time_remaining
        time_spent = max(0, allocated - remaining) if remaining is not None else 0
        return {
            "question_id": str(slot["question_id"]),
            "session_question_id": str(slot["id"]),
            "test_session_id": self.session_id,
            "response_data": renderer.build_response(raw),
            "response_type": renderer.response_type.value,
            "time_spent_seconds": time_spent,
        }

    def answer(self, raw: Any) -> None:
        """Record input for the current question; the save is debounced."""
        payload = self._save_payload(raw)
        self.saver.schedule(payload)
        self.navigator.mark_question_answered(payload["question_id"])

    async def answer_now(self, raw: Any) -> dict[str, Any]:
        payload = self._save_payload(raw)
        result = await self.client.save_response(payload)
        self.navigator.mark_question_answered(payload["question_id"])
        return result

    def toggle_flag(self) -> None:
        slot = self.navigator.current_slot
        if slot is not None:
            self.navigator.toggle_question_flag(str(slot["question_id"]))

    # Lifecycle

    async def pause(self) -> dict[str, Any]:
        await self.saver.flush()
        result = await self.client.pause_session(self.session_id)
        self.navigator.pause_session()
        return result

    async def resume(self) -> dict[str, Any]:
        result = await self.client.resume_session(self.session_id)
        session = result["session"]
        if session["status"] == "active":
            self.navigator.resume_session()
            if session["is_timed"]:
                self.timer.start()
        return result

    async def complete(self) -> dict[str, Any]:
        await self.timer.stop()
        await self.saver.flush()
        return await self.client.complete_session(self.session_id)

    async def _on_expire(self) -> None:
        logger.info("session_time_up", extra={"session_id": self.session_id})
        try:
            await self.saver.flush()
        finally:
            await self.client.complete_session(self.session_id)
