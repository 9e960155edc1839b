"""Application entry point for the session-sync watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.message_formatting import format_message
from adapters.sqlite_storage import SQLiteStorage
from client import build_client, load_transport_factory
from core import events
from core.models import NormalizedMessage
from core.session import SessionClient
from identity_setup import load_identity, print_session_id_qr, resolve_seed

NAME = "SESSION SYNC"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    names = redact_cfg.get("patterns", [settings.SEED_ENV, settings.FILE_SERVER_TOKEN_ENV])
    values = []
    for name in names:
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/session_sync.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _wire_storage(client: SessionClient, storage: SQLiteStorage, group_aliases: dict[str, str]) -> None:
    """Persist what the engine leaves to its caller and log incoming traffic."""

    logger = logging.getLogger(__name__)

    def on_messages(batch: list[NormalizedMessage]) -> None:
        for message in batch:
            logger.info("%s", format_message(message, group_aliases))
        storage.save_messages(batch)

    def on_session_signal(envelope) -> None:
        logger.debug("Session signal %s from %s", type(envelope).__name__, envelope.source)

    client.on(events.UPDATE_LAST_HASH, storage.set_last_hash)
    client.on(events.FILE_SERVER_TOKEN, storage.set_file_server_token)
    client.on(events.MESSAGES, on_messages)
    for name in (events.PRE_KEY_BUNDLE, events.RECEIPT_MESSAGE, events.NULL_MESSAGE):
        client.on(name, on_session_signal)


async def _join_open_groups(client: SessionClient, open_groups: list[tuple[str, int]]) -> int:
    """Join configured groups; one failing group does not block the others."""

    logger = logging.getLogger(__name__)
    joined = 0
    for url, channel_id in open_groups:
        try:
            handle = await client.join_group(url, channel_id)
        except Exception:
            logger.exception("Failed to join open group %s channel %s", url, channel_id)
            continue
        joined += 1
        logger.info("Joined %s (last message id %s)", handle.id, handle.last_message_id)
    return joined


async def _watch(client: SessionClient) -> None:
    await load_identity(client)
    await _join_open_groups(client, settings.OPEN_GROUPS)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, client.close)
        loop.add_signal_handler(signal.SIGTERM, client.close)
    except NotImplementedError:
        # Windows event loops have no signal handlers; Ctrl+C raises instead.
        pass

    await client.open()
    logging.getLogger(__name__).info("Client open. Polling for messages...")
    await client.wait_closed()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting session-sync")

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()
    removed = storage.cleanup_messages(settings.HISTORY_TTL_DAYS)
    logger.info("History cleanup removed %s messages", removed)

    factory = load_transport_factory(settings.TRANSPORT_FACTORY)
    client = build_client(
        factory(),
        last_hash=storage.get_last_hash(),
        file_server_token=storage.get_file_server_token(),
    )
    logger.info("%s open groups configured", len(settings.OPEN_GROUPS))
    _wire_storage(client, storage, settings.GROUP_ALIASES)

    asyncio.run(_watch(client))
    logger.info("Stopped")


def _show_id() -> None:
    _print_banner()
    _configure_logging()
    factory = load_transport_factory(settings.TRANSPORT_FACTORY)
    client = build_client(factory())

    async def _load() -> None:
        await client.load_identity(seed=resolve_seed())

    asyncio.run(_load())
    print(client.identity_output)
    print_session_id_qr(client.pubkey_hex)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="session-sync")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start polling")
    subparsers.add_parser("id", help="Show the Session ID as text and QR code")

    args = parser.parse_args(argv)
    if args.command == "id":
        _show_id()
        return
    _run()


if __name__ == "__main__":
    main()
