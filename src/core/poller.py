"""Poll cycle orchestration.

One cycle enforces a strict order:
1) Stop if close() was requested
2) Fetch the inbox and every open group concurrently, isolating failures
3) Advance the inbox cursor when the server moved it
4) Classify inbox envelopes, emitting session signals immediately
5) Merge group messages, dropping our own
6) Emit the merged batch, if any
7) Record the poll time for the watchdog

The next cycle is only scheduled after the current one finishes, and a cycle
lock serializes manual poll() calls against the loop, so cycles never overlap.
"""

from __future__ import annotations

import asyncio
import logging
import string
from enum import Enum
from typing import Awaitable, Callable, Optional

from core import events
from core.classifier import DataMessage, ImmediateEvent, Suppressed, classify_envelope
from core.config import EngineConfig
from core.errors import IdentityNotReadyError, TransportError
from core.events import EventEmitter
from core.groups import GroupRegistry, normalize_group_message
from core.models import Identity, InboxResult, NormalizedMessage, WatchdogState
from core.ports import InboxTransport
from core.watchdog import Watchdog

LOGGER = logging.getLogger(__name__)


class PollState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    POLLING = "polling"
    SCHEDULED = "scheduled"


def validate_identity(identity: Optional[Identity], pubkey_hex_length: int) -> Identity:
    """Return the identity if it can be polled for, else raise IdentityNotReadyError."""

    if identity is None or not identity.pubkey_hex:
        raise IdentityNotReadyError("No identity loaded")
    pubkey_hex = identity.pubkey_hex
    if len(pubkey_hex) != pubkey_hex_length or any(c not in string.hexdigits for c in pubkey_hex):
        raise IdentityNotReadyError(
            f"Identity pubkey must be {pubkey_hex_length} hex characters, got {len(pubkey_hex)}"
        )
    return identity


class PollOrchestrator:
    """Owns the inbox cursor and the open/closed poll state machine."""

    def __init__(
        self,
        inbox: InboxTransport,
        registry: GroupRegistry,
        emitter: EventEmitter,
        config: EngineConfig,
        now_ms: Callable[[], int],
        cursor: str = "",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_stall: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._inbox = inbox
        self._registry = registry
        self._emitter = emitter
        self._config = config
        self._now_ms = now_ms
        self._cursor = cursor
        self._sleep = sleep
        self._identity: Optional[Identity] = None
        self._state = PollState.CLOSED
        self._closing = False
        self._tasks: list[asyncio.Task] = []
        self._cycle_lock = asyncio.Lock()
        self.watchdog_state = WatchdogState(poll_rate_ms=config.poll_rate_ms)
        self._watchdog = Watchdog(
            self.watchdog_state,
            is_closed=lambda: self._state is PollState.CLOSED,
            now_ms=now_ms,
            stall_multiplier=config.stall_multiplier,
            sleep=sleep,
            on_stall=on_stall,
        )

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def cursor(self) -> str:
        return self._cursor

    async def open(self, identity: Optional[Identity]) -> None:
        """Validate the identity, run the first cycle, then start the loop and watchdog."""

        if self._state is not PollState.CLOSED:
            if self._closing:
                # close() has not been observed yet; the running loop just carries on.
                self._closing = False
                LOGGER.info("Close cancelled, poller keeps running")
                return
            LOGGER.warning("Poller already running (%s)", self._state.value)
            return
        self._identity = validate_identity(identity, self._config.pubkey_hex_length)
        await self._cancel_tasks()
        self._closing = False
        self._state = PollState.OPEN
        LOGGER.info("Polling for %s every %sms", self._identity.pubkey_hex, self._config.poll_rate_ms)

        if not await self.run_cycle():
            return
        self._tasks = [
            asyncio.create_task(self._run()),
            asyncio.create_task(self._watchdog.run()),
        ]

    def close(self) -> None:
        """Request a stop; observed at the start of the next cycle."""

        LOGGER.info("Closing poller")
        self._closing = True

    async def wait_closed(self) -> None:
        tasks, self._tasks = self._tasks, []
        if tasks:
            await asyncio.gather(*tasks)

    async def _cancel_tasks(self) -> None:
        """Drop loop and watchdog tasks left over from a previous open()."""

        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await self._sleep(self._config.poll_rate_ms / 1000)
            try:
                if not await self.run_cycle():
                    return
            except Exception:
                LOGGER.exception("Poll cycle failed, retrying next interval")
                self._state = PollState.SCHEDULED

    async def _fetch_inbox(self, identity: Identity) -> Optional[InboxResult]:
        try:
            return await self._inbox.fetch(identity, self._cursor)
        except Exception as exc:
            error = exc if isinstance(exc, TransportError) else TransportError("inbox", str(exc))
            LOGGER.warning("Inbox poll failed: %s", error)
            return None

    async def _advance_cursor(self, new_cursor: str) -> None:
        if not new_cursor or new_cursor == self._cursor:
            return
        # Handlers reading the cursor while the event fires already see the new value.
        self._cursor = new_cursor
        await self._emitter.emit(events.UPDATE_LAST_HASH, new_cursor)

    async def run_cycle(self) -> bool:
        """Run one poll cycle; return False once the poller has closed."""

        async with self._cycle_lock:
            return await self._cycle()

    async def _cycle(self) -> bool:
        if self._closing:
            self._state = PollState.CLOSED
            LOGGER.info("Poller closed")
            return False
        identity = self._identity
        if identity is None:
            raise IdentityNotReadyError("Poller has no identity")

        self._state = PollState.POLLING
        inbox_result, group_results = await asyncio.gather(
            self._fetch_inbox(identity),
            self._registry.fetch_all(),
        )

        batch: list[NormalizedMessage] = []
        if inbox_result is not None:
            await self._advance_cursor(inbox_result.cursor)
            for envelope in inbox_result.envelopes:
                classified = classify_envelope(envelope)
                if isinstance(classified, DataMessage):
                    batch.append(classified.message)
                elif isinstance(classified, ImmediateEvent):
                    await self._emitter.emit(classified.event, classified.envelope)
                elif isinstance(classified, Suppressed):
                    LOGGER.debug("Suppressed session reset from %s", envelope.source)
                else:
                    LOGGER.info("Unhandled inbox envelope from %s: %s", envelope.source, classified.reason)

        for group_id, messages in group_results:
            for message in messages:
                # Exclude our own messages
                if message.user.username == identity.pubkey_hex:
                    continue
                batch.append(normalize_group_message(group_id, message))

        if batch:
            await self._emitter.emit(events.MESSAGES, batch)

        self.watchdog_state.last_poll_ms = self._now_ms()
        self._state = PollState.SCHEDULED
        return True
