"""1 Hz countdown driver for the session navigator."""

import asyncio
from collections.abc import Awaitable, Callable

from examprep.client.navigator import SessionNavigator
from examprep.core.logging import get_logger

logger = get_logger(__name__)

ExpireCallback = Callable[[], Awaitable[None] | None]


class CountdownTimer:
    """Ticks once per second, decrementing the question and session counters.

    Ticks are skipped while the navigator is paused. ``on_expire`` runs once,
    when the session counter reaches zero; the timer then stops.
    """

    def __init__(
        self,
        navigator: SessionNavigator,
        *,
        on_expire: ExpireCallback | None = None,
        interval: float = 1.0,
    ) -> None:
        self.navigator = navigator
        self.on_expire = on_expire
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._expired = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> None:
        """Advance both counters by one second."""
        nav = self.navigator
        if nav.is_paused or self._expired:
            return

        question_time = nav.time_remaining
        session_time = nav.session_time_remaining
        if question_time is not None:
            question_time = max(0, question_time - 1)
        if session_time is not None:
            session_time = max(0, session_time - 1)
        nav.update_time_remaining(question_time, session_time)

        if session_time == 0:
            self._expired = True
            logger.info("session_timer_expired")
            if self.on_expire is not None:
                result = self.on_expire()
                if asyncio.iscoroutine(result):
                    await result

    async def _run(self) -> None:
        while not self._expired:
            await asyncio.sleep(self.interval)
            await self.tick()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
