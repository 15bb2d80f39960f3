"""Resend cooldown countdown with a single cancellable task slot."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

DEFAULT_COOLDOWN_SECONDS = 30
LAST_NO_CODE_TIME_KEY = "last_no_code_time"
TICK_SECONDS = 1.0

logger = structlog.get_logger(__name__)


def remaining_seconds(last_action_ms: int | None, now_ms: int, duration_seconds: int) -> int:
    """Return cooldown seconds left since a persisted action timestamp.

    A timestamp in the future (clock moved backwards) counts as zero elapsed.
    """
    if not last_action_ms:
        return 0
    elapsed = max(0, (now_ms - last_action_ms) // 1000)
    return max(0, duration_seconds - elapsed)


class CooldownTimer:
    """Publish ``n, n-1, ..., 0`` at one-second intervals.

    Only one countdown runs at a time: ``start`` cancels the previous task.
    """

    def __init__(
        self,
        publish: Callable[[int], None],
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self._publish = publish
        self._sleep = sleep or asyncio.sleep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self, seconds: int) -> asyncio.Task[None]:
        """Cancel any running countdown and start a new one from seconds."""
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(max(0, seconds)))
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self, seconds: int) -> None:
        for value in range(seconds, -1, -1):
            self._publish(value)
            if value > 0:
                await self._sleep(TICK_SECONDS)
        logger.debug("cooldown_finished")
