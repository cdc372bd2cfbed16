"""Synchronous Telegram Bot API client.

Usage::

    from tgapi import TelegramClient, RequestError

    client = TelegramClient("123456:ABC-DEF")
    client.send(42, "Hello *world*")
    client.send(42, "Holiday", file="beach.jpg")
"""

from tgapi.client import Part, TelegramClient
from tgapi.exceptions import ConfigurationError, RequestError, TelegramError
from tgapi.markdown import escape_markdown_v2
from tgapi.models import ClientOptions, InputMediaEntry, MediaItem

__all__ = [
    "TelegramClient",
    "Part",
    "TelegramError",
    "ConfigurationError",
    "RequestError",
    "escape_markdown_v2",
    "ClientOptions",
    "MediaItem",
    "InputMediaEntry",
]
