"""Exception hierarchy for the tgapi Telegram client."""

from typing import Any, Dict, Optional


class TelegramError(Exception):
    """Base class for every error raised by :mod:`tgapi`."""


class ConfigurationError(TelegramError):
    """Raised at construction when the client cannot be configured.

    The only required setting is the bot token; a missing or empty token
    makes the client unusable.
    """


class RequestError(TelegramError):
    """Raised when the HTTP transport fails and the call is not recovered.

    Attributes:
        status_code: HTTP status code of the failed response, if one arrived.
        response_body: Decoded JSON body of the failed response, when available.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialise with the transport message and optional response details."""
        self.status_code = status_code
        self.response_body = response_body or {}
        super().__init__(message)

    @property
    def description(self) -> str:
        """Telegram's ``description`` field, or ``""`` when absent."""
        return str(self.response_body.get("description", ""))
