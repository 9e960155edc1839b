"""Named events produced by the session client."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

LOGGER = logging.getLogger(__name__)

UPDATE_LAST_HASH = "update_last_hash"
PRE_KEY_BUNDLE = "pre_key_bundle"
RECEIPT_MESSAGE = "receipt_message"
NULL_MESSAGE = "null_message"
MESSAGES = "messages"
FILE_SERVER_TOKEN = "file_server_token"

EVENT_NAMES = frozenset(
    {
        UPDATE_LAST_HASH,
        PRE_KEY_BUNDLE,
        RECEIPT_MESSAGE,
        NULL_MESSAGE,
        MESSAGES,
        FILE_SERVER_TOKEN,
    }
)


class EventEmitter:
    """Minimal emitter; handlers may be plain callables or coroutine functions."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[[Any], Any]]] = {}

    def on(self, event: str, handler: Callable[[Any], Any]) -> Callable[[Any], Any]:
        if event not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {event}")
        self._handlers.setdefault(event, []).append(handler)
        return handler

    def off(self, event: str, handler: Callable[[Any], Any]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: str, payload: Any) -> None:
        """Deliver payload to every handler in registration order.

        A failing handler is logged and the remaining handlers still run.
        """

        for handler in list(self._handlers.get(event, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                LOGGER.exception("Error in %s handler", event)
