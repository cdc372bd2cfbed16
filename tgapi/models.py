"""Pydantic models for client options and media-group payloads.

Responses from Telegram are deliberately *not* modelled here: the client
returns the decoded JSON envelope untouched and leaves ``ok`` /
``error_code`` inspection to the caller.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

API_ROOT = "https://api.telegram.org"


class ClientOptions(BaseModel):
    """Immutable per-client configuration."""

    token: str
    botname: str = ""

    model_config = ConfigDict(frozen=True)

    @field_validator("token")
    @classmethod
    def _token_not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("token must be a non-empty string")
        return value

    @property
    def api_url(self) -> str:
        """Base URL for Bot API method calls, with a trailing slash."""
        return f"{API_ROOT}/bot{self.token}/"

    @property
    def file_url(self) -> str:
        """Base URL for file downloads, with a trailing slash."""
        return f"{API_ROOT}/file/bot{self.token}/"


class MediaItem(BaseModel):
    """One entry of a ``sendMediaGroup`` call.

    ``file`` is either a filesystem path or an already-open binary stream.
    """

    type: str
    file: Any
    caption: str = ""

    @field_validator("caption", mode="before")
    @classmethod
    def _caption_default(cls, value: Any) -> Any:
        return "" if value is None else value


class InputMediaEntry(BaseModel):
    """JSON description of a media-group item referencing an attached part."""

    type: str
    media: str = Field(description="attach://<part name>")
    caption: str = ""
