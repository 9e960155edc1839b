"""Identity bootstrap helpers: seed words in, Session ID (and QR code) out."""

from __future__ import annotations

import logging
import os
from getpass import getpass
from typing import Optional

import qrcode
from dotenv import load_dotenv

import settings
from core.session import SessionClient

LOGGER = logging.getLogger(__name__)


def print_session_id_qr(pubkey_hex: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(pubkey_hex)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def resolve_seed(interactive: bool = True) -> Optional[str]:
    """Return seed words from the environment, or prompt for them.

    An empty answer means "generate a new identity".
    """

    load_dotenv()
    seed = os.getenv(settings.SEED_ENV)
    if seed:
        return seed.strip()
    if not interactive:
        return None
    answer = getpass("Seed words (leave empty to create a new identity): ").strip()
    return answer or None


async def load_identity(client: SessionClient, interactive: bool = True) -> None:
    """Load the configured identity into the client and report it."""

    seed = resolve_seed(interactive)
    await client.load_identity(
        seed=seed,
        display_name=settings.DISPLAY_NAME,
        avatar_file=settings.AVATAR_FILE,
    )
    if seed:
        LOGGER.info("Loaded SessionID %s", client.pubkey_hex)
    else:
        # New identities must show the seed words once so the user can back them up.
        print(client.identity_output)
