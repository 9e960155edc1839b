"""Poll liveness watchdog."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from core.models import WatchdogState

LOGGER = logging.getLogger(__name__)


class Watchdog:
    """Independent timer that flags a stalled poll loop.

    Diagnostic only: a stall is logged and the timestamp reset so the same
    stall is reported once. `on_stall` is an optional restart policy hook.
    """

    def __init__(
        self,
        state: WatchdogState,
        is_closed: Callable[[], bool],
        now_ms: Callable[[], int],
        stall_multiplier: int = 50,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_stall: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._state = state
        self._is_closed = is_closed
        self._now_ms = now_ms
        self._stall_multiplier = stall_multiplier
        self._sleep = sleep
        self._on_stall = on_stall

    def check(self) -> bool:
        """Run one tick; return True if a stall was detected."""

        last_poll = self._state.last_poll_ms
        if not last_poll:
            return False
        now = self._now_ms()
        ago = now - last_poll
        if ago <= self._state.poll_rate_ms * self._stall_multiplier:
            return False

        self._state.last_poll_ms = now
        LOGGER.warning(
            "Polling failure: last successful poll %sms ago (poll rate %sms)",
            ago,
            self._state.poll_rate_ms,
        )
        if self._on_stall is not None:
            self._on_stall(ago)
        return True

    async def run(self) -> None:
        while not self._is_closed():
            self.check()
            await self._sleep(self._state.poll_rate_ms / 1000)
        LOGGER.debug("Watchdog stopped")
