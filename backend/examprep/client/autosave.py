"""Debounced response saving for keystroke-driven answers."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from examprep.core.config import settings
from examprep.core.logging import get_logger

logger = get_logger(__name__)

SaveFunc = Callable[[dict[str, Any]], Awaitable[Any]]


class DebouncedResponseSaver:
    """Coalesces rapid saves per slot; only the latest payload is sent.

    Each ``schedule`` call for a slot restarts that slot's delay. ``flush``
    sends everything still pending immediately and must be awaited on
    teardown so the last edits are not lost.
    """

    def __init__(self, save: SaveFunc, *, delay: float | None = None) -> None:
        self._save = save
        self.delay = settings.RESPONSE_AUTOSAVE_DEBOUNCE_SECONDS if delay is None else delay
        self._pending: dict[str, dict[str, Any]] = {}
        self._timers: dict[str, asyncio.Task] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def schedule(self, payload: dict[str, Any]) -> None:
        """Queue a save request body keyed by its ``session_question_id``."""
        key = str(payload["session_question_id"])
        self._pending[key] = payload
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()
        self._timers[key] = asyncio.create_task(self._delayed_save(key))

    async def _delayed_save(self, key: str) -> None:
        await asyncio.sleep(self.delay)
        self._timers.pop(key, None)
        await self._send(key)

    async def _send(self, key: str) -> None:
        payload = self._pending.pop(key, None)
        if payload is None:
            return
        try:
            await self._save(payload)
        except Exception:
            logger.warning("autosave_failed", extra={"session_question_id": key}, exc_info=True)
            raise

    async def flush(self) -> None:
        """Send every pending payload now.

        A failed save does not stop the remaining ones; the first failure is
        raised once every slot has been attempted.
        """
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

        errors: list[Exception] = []
        for key in list(self._pending):
            try:
                await self._send(key)
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]
