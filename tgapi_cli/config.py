"""Application configuration: environment variables and derived constants.

Loads ``TELEGRAM_BOT_TOKEN``, ``TELEGRAM_BOTNAME``, ``TELEGRAM_CHAT_ID``,
``LOG_LEVEL`` and ``LOG_FILE`` from the environment via ``python-dotenv``.
The :mod:`tgapi` library never reads these itself; they exist for the bundled command-line
application in :mod:`tgapi_cli.main`.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import logging
import os

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── project ──────────────────────────────────────────────────────────────────
from tgapi import TelegramClient
from tgapi_cli.logger import get_logger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_chat_id(raw: str | None) -> int | str | None:
    """Return *raw* as an int when numeric (``"-100123"``), else unchanged.

    Channel usernames such as ``"@mychannel"`` stay strings.
    """
    if not raw:
        return None
    raw = raw.strip()
    if raw.lstrip("-").isdigit():
        return int(raw)
    return raw


def _parse_log_level(raw: str | None) -> int:
    """Map a level name like ``"debug"`` to its :mod:`logging` constant."""
    if not raw:
        return logging.INFO
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO


# ── Public constants ─────────────────────────────────────────────────────────

DEFAULT_CHAT_ID: int | str | None = _parse_chat_id(os.environ.get("TELEGRAM_CHAT_ID"))
LOG_LEVEL: int = _parse_log_level(os.environ.get("LOG_LEVEL"))
LOG_FILE: str | None = os.environ.get("LOG_FILE") or None


def build_client() -> TelegramClient:
    """Create a :class:`~tgapi.TelegramClient` from the current environment.

    The token is re-read at call time so tests and long-running processes
    pick up changes made after import.

    Raises:
        tgapi.ConfigurationError: If ``TELEGRAM_BOT_TOKEN`` is unset or empty.
    """
    logger = get_logger(LOG_LEVEL, LOG_FILE)
    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    botname = os.environ.get("TELEGRAM_BOTNAME", "")
    if token:
        logger.debug("Config loaded, TELEGRAM_BOT_TOKEN is set", extra={"botname": botname})
    else:
        logger.warning("Config loaded, TELEGRAM_BOT_TOKEN is NOT set")
    return TelegramClient(token, botname=botname)
