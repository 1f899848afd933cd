"""Foreground session countdown.

One asyncio task ticks while the session screen is up. It only drives the
displayed remaining time and periodic break checks; OS-registered triggers
are unaffected by anything here.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

log = logging.getLogger(__name__)

BREAK_CHECK_SECONDS = 5 * 60

Callback = Callable[..., Awaitable[None] | None]


async def _call(callback: Callback | None, *args: Any) -> None:
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:
        log.exception("Countdown callback %r failed", callback)


class SessionCountdown:
    """Counts a session down one second per tick.

    `tick_seconds` is the real sleep between ticks; each tick always consumes
    one second of session time, which lets tests run a session quickly.
    """

    def __init__(
        self,
        duration_seconds: int,
        *,
        tick_seconds: float = 1.0,
        check_every: int = BREAK_CHECK_SECONDS,
        on_tick: Callback | None = None,
        on_break_check: Callback | None = None,
        on_complete: Callback | None = None,
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be positive, got {duration_seconds!r}")
        if check_every <= 0:
            raise ValueError(f"check_every must be positive, got {check_every!r}")
        self.remaining = duration_seconds
        self.elapsed = 0
        self.tick_seconds = tick_seconds
        self.check_every = check_every
        self.on_tick = on_tick
        self.on_break_check = on_break_check
        self.on_complete = on_complete
        self.paused = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="session-countdown")

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.tick_seconds)
            if self.paused:
                continue
            self.remaining -= 1
            self.elapsed += 1
            await _call(self.on_tick, self.remaining)
            if self.remaining > 0 and self.elapsed % self.check_every == 0:
                await _call(self.on_break_check, self.elapsed // 60)
        log.debug("Countdown finished after %ds", self.elapsed)
        await _call(self.on_complete)

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    async def stop(self) -> None:
        """Cancel the tick task and wait for it; no tick runs after this returns."""
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def wait(self) -> None:
        if self._task is not None:
            await self._task

    async def __aenter__(self) -> SessionCountdown:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()
