"""TelegramClient -- synchronous service layer over the Telegram Bot API.

Every public method assembles the parameters for one Bot API method and
funnels them through :meth:`TelegramClient._request`, which POSTs either a
form body with the ``requests`` library or a streamed multipart body built
by ``requests_toolbelt``, and returns the decoded JSON envelope as-is.

The only retry policy lives in ``_request``: when Telegram rejects a
form-encoded call with *can't parse entities* and the call carried a
``parse_mode``, it is sent once more without ``parse_mode``.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from dataclasses import dataclass
from typing import IO, Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

import requests
from requests_toolbelt import MultipartEncoder

from tgapi.exceptions import ConfigurationError, RequestError
from tgapi.markdown import escape_markdown_v2
from tgapi.models import ClientOptions, InputMediaEntry, MediaItem

logger = logging.getLogger(__name__)

ChatId = Union[int, str]
FileInput = Union[str, "os.PathLike[str]", IO[bytes]]
Params = Union[Mapping[str, Any], Sequence["Part"]]

PHOTO_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})
VIDEO_EXTENSIONS = frozenset({"mp4", "mov"})
AUDIO_EXTENSIONS = frozenset({"mp3"})

_PARSE_ENTITIES_ERROR = "can't parse entities"


@dataclass(frozen=True)
class Part:
    """A single named part of a multipart request body.

    ``contents`` is either a scalar field value or an open binary stream;
    streams are read chunk by chunk while the request body is sent.
    """

    name: str
    contents: Any
    filename: Optional[str] = None


def _is_stream(value: Any) -> bool:
    return hasattr(value, "read")


def _stream_filename(stream: Any, fallback: str) -> str:
    name = getattr(stream, "name", None)
    if isinstance(name, str) and name:
        return os.path.basename(name)
    return fallback


def _field_value(value: Any) -> Union[str, bytes]:
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _extension_of(file: Any) -> str:
    """Return the lower-cased extension of a path or named stream, without the dot."""
    if isinstance(file, (str, os.PathLike)):
        name = os.fspath(file)
    else:
        name = getattr(file, "name", "")
    if not isinstance(name, str):
        return ""
    # A bare ".png" still has the extension "png".
    _, dot, extension = os.path.basename(name).rpartition(".")
    return extension.lower() if dot else ""


@contextlib.contextmanager
def _open_upload(file: FileInput) -> Iterator[IO[bytes]]:
    """Yield a binary stream for *file*.

    Paths are opened here and closed on exit; streams supplied by the
    caller are yielded untouched and stay open.
    """
    if _is_stream(file):
        yield file  # type: ignore[misc]
        return
    with open(file, "rb") as stream:
        yield stream


def to_parts(params: Optional[Params]) -> List[Part]:
    """Flatten *params* into an ordered list of multipart parts.

    A mapping becomes one part per key; list and tuple values expand into
    repeated ``key[]`` parts. A sequence of :class:`Part` passes through.
    """
    if params is None:
        return []
    if not isinstance(params, Mapping):
        return list(params)
    parts: List[Part] = []
    for key, value in params.items():
        if isinstance(value, (list, tuple)):
            parts.extend(Part(f"{key}[]", item) for item in value)
        else:
            parts.append(Part(key, value))
    return parts


class TelegramClient:
    """Client for the Telegram Bot API.

    Each instance is self-contained: it owns its options and its
    ``requests.Session`` and shares nothing with other instances.
    """

    _TIMEOUT: int = 30

    def __init__(self, token: Optional[str], botname: str = "", session: Optional[requests.Session] = None) -> None:
        """Create a client for the bot identified by *token*.

        Args:
            token: Bot token issued by BotFather. Required, non-empty.
            botname: Optional bot username, kept for the caller's reference.
            session: Optional pre-configured session; one is created otherwise.

        Raises:
            ConfigurationError: If *token* is missing or empty.
        """
        if not isinstance(token, str) or not token:
            raise ConfigurationError("Telegram API token required!")
        self._options = ClientOptions(token=token, botname=botname or "")
        self._owns_session = session is None
        self._session = session if session is not None else requests.Session()

    @classmethod
    def from_options(cls, options: Mapping[str, Any], session: Optional[requests.Session] = None) -> "TelegramClient":
        """Build a client from a ``{"token": ..., "botname": ...}`` mapping."""
        return cls(options.get("token"), botname=options.get("botname") or "", session=session)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(botname={self.botname!r})"

    def __enter__(self) -> "TelegramClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session:
            self._session.close()

    @property
    def botname(self) -> str:
        return self._options.botname

    @property
    def api_url(self) -> str:
        return self._options.api_url

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, params: Optional[Params] = None, multipart: bool = False) -> Any:
        """POST *params* to the Bot API *method* and return the decoded JSON.

        With ``multipart=False`` the parameters are sent as a form body;
        otherwise they are flattened with :func:`to_parts` and sent as
        ``multipart/form-data``.

        Raises:
            RequestError: If the transport fails and the failure is not
                recovered by the parse-entity retry.
        """
        try:
            return self._post(method, params, multipart)
        except requests.RequestException as exc:
            retry_params = self._params_without_parse_mode(exc, params, multipart)
            if retry_params is None:
                raise self._request_error(method, exc) from exc
            logger.warning(
                "Telegram could not parse entities, retrying without parse_mode",
                extra={"api_endpoint": method},
            )
            try:
                return self._post(method, retry_params, multipart)
            except requests.RequestException as retry_exc:
                raise self._request_error(method, retry_exc) from retry_exc

    def _post(self, method: str, params: Optional[Params], multipart: bool) -> Any:
        url = f"{self._options.api_url}{method}"
        logger.debug("Telegram request", extra={"api_endpoint": method, "multipart": multipart})
        if multipart:
            body = MultipartEncoder(fields=self._encode_parts(to_parts(params)))
            response = self._session.post(
                url, data=body, headers={"Content-Type": body.content_type}, timeout=self._TIMEOUT
            )
        else:
            response = self._session.post(url, data=dict(params or {}), timeout=self._TIMEOUT)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise RequestError(
                f"{method} returned a body that is not valid JSON",
                status_code=response.status_code,
            ) from exc

    @staticmethod
    def _encode_parts(parts: Iterable[Part]) -> List[tuple]:
        """Convert parts to the ``fields`` list of a :class:`MultipartEncoder`.

        File streams go in as ``(filename, stream)`` and are only read while
        the body is being sent.
        """
        fields: List[tuple] = []
        for part in parts:
            if _is_stream(part.contents):
                filename = part.filename or _stream_filename(part.contents, part.name)
                fields.append((part.name, (filename, part.contents)))
            else:
                fields.append((part.name, (part.filename, _field_value(part.contents))))
        return fields

    @staticmethod
    def _params_without_parse_mode(
        exc: requests.RequestException, params: Optional[Params], multipart: bool
    ) -> Optional[Dict[str, Any]]:
        """Return *params* minus ``parse_mode`` when *exc* warrants the retry, else ``None``."""
        if multipart or not isinstance(params, Mapping) or "parse_mode" not in params:
            return None
        response = exc.response
        if response is None or _PARSE_ENTITIES_ERROR not in (response.text or "").lower():
            return None
        return {key: value for key, value in params.items() if key != "parse_mode"}

    def _request_error(self, method: str, exc: requests.RequestException) -> RequestError:
        status_code: Optional[int] = None
        body: Dict[str, Any] = {}
        response = exc.response
        if response is not None:
            status_code = response.status_code
            try:
                decoded = response.json()
            except ValueError:
                decoded = None
            if isinstance(decoded, dict):
                body = decoded
        message = str(exc).replace(self._options.token, "<token>")
        logger.debug(
            "Telegram request failed",
            extra={"api_endpoint": method, "status_code": status_code, "error": message},
        )
        return RequestError(message, status_code=status_code, response_body=body)

    # ------------------------------------------------------------------
    #  Send message / media
    # ------------------------------------------------------------------

    escape_markdown = staticmethod(escape_markdown_v2)

    def send(
        self,
        chat_id: ChatId,
        text: str,
        file: Optional[FileInput] = None,
        caption: str = "",
        parse_mode: Optional[str] = "Markdown",
    ) -> Any:
        """Send *text*, or *file* with a caption, choosing the method by file type.

        Images go through ``sendPhoto``, ``.mp4``/``.mov`` through
        ``sendVideo``, ``.mp3`` through ``sendAudio`` and anything else
        through ``sendDocument``. The caption falls back to *text*.
        """
        if not file:
            return self.send_message(chat_id, text, parse_mode=parse_mode)

        extension = _extension_of(file)
        caption = caption or text
        if extension in PHOTO_EXTENSIONS:
            return self.send_photo(chat_id, file, caption)
        if extension in VIDEO_EXTENSIONS:
            return self.send_video(chat_id, file, caption)
        if extension in AUDIO_EXTENSIONS:
            return self.send_audio(chat_id, file, caption)
        return self.send_document(chat_id, file, caption)

    def send_message(self, chat_id: ChatId, text: str, parse_mode: Optional[str] = None, escape: bool = False) -> Any:
        """Send a text message.

        When *escape* is set and *parse_mode* is ``"MarkdownV2"`` the text is
        run through :func:`~tgapi.markdown.escape_markdown_v2` first.
        ``parse_mode`` is left out of the request when not given.
        """
        if escape and parse_mode == "MarkdownV2":
            text = escape_markdown_v2(text)
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return self._request("sendMessage", payload)

    def _send_file(self, method: str, field: str, chat_id: ChatId, file: FileInput, caption: str) -> Any:
        with _open_upload(file) as stream:
            payload: Dict[str, Any] = {"chat_id": chat_id, field: stream, "caption": caption}
            return self._request(method, payload, multipart=True)

    def send_photo(self, chat_id: ChatId, file: FileInput, caption: str = "") -> Any:
        """Upload *file* as a photo (``sendPhoto``)."""
        return self._send_file("sendPhoto", "photo", chat_id, file, caption)

    def send_document(self, chat_id: ChatId, file: FileInput, caption: str = "") -> Any:
        """Upload *file* as a generic document (``sendDocument``)."""
        return self._send_file("sendDocument", "document", chat_id, file, caption)

    def send_audio(self, chat_id: ChatId, file: FileInput, caption: str = "") -> Any:
        """Upload *file* as an audio track (``sendAudio``)."""
        return self._send_file("sendAudio", "audio", chat_id, file, caption)

    def send_video(self, chat_id: ChatId, file: FileInput, caption: str = "") -> Any:
        """Upload *file* as a video (``sendVideo``)."""
        return self._send_file("sendVideo", "video", chat_id, file, caption)

    def send_voice(self, chat_id: ChatId, file: FileInput, caption: str = "") -> Any:
        """Upload *file* as a voice note (``sendVoice``)."""
        return self._send_file("sendVoice", "voice", chat_id, file, caption)

    def send_chat_action(self, chat_id: ChatId, action: str = "typing") -> Any:
        """Show a status such as ``typing`` in the chat."""
        return self._request("sendChatAction", {"chat_id": chat_id, "action": action})

    def send_media_group(self, chat_id: ChatId, items: Sequence[Union[MediaItem, Mapping[str, Any]]]) -> Any:
        """Send several files as one album.

        Each item is a :class:`~tgapi.models.MediaItem` or a mapping with
        ``type``, ``file`` and optional ``caption``. Item *i* is attached
        as part ``file{i}`` and referenced from the ``media`` JSON part.
        """
        entries = [item if isinstance(item, MediaItem) else MediaItem.model_validate(item) for item in items]
        with contextlib.ExitStack() as stack:
            parts: List[Part] = []
            media: List[Dict[str, Any]] = []
            for index, item in enumerate(entries):
                name = f"file{index}"
                parts.append(Part(name, stack.enter_context(_open_upload(item.file))))
                entry = InputMediaEntry(type=item.type, media=f"attach://{name}", caption=item.caption)
                media.append(entry.model_dump())
            parts.append(Part("chat_id", chat_id))
            parts.append(Part("media", json.dumps(media)))
            return self._request("sendMediaGroup", parts, multipart=True)

    # ------------------------------------------------------------------
    #  Webhook control
    # ------------------------------------------------------------------

    def set_webhook(self, url: str) -> Any:
        """Point the bot's webhook at *url*."""
        return self._request("setWebhook", {"url": url})

    def delete_webhook(self) -> Any:
        """Remove the webhook so updates can be polled again."""
        return self._request("deleteWebhook")

    def get_webhook_info(self) -> Any:
        """Return the current webhook status."""
        return self._request("getWebhookInfo")

    # ------------------------------------------------------------------
    #  Updates
    # ------------------------------------------------------------------

    def get_updates(self, offset: int = 0, limit: int = 100) -> Any:
        """Fetch pending updates without blocking (``timeout=0``)."""
        return self._request("getUpdates", {"offset": offset, "limit": limit, "timeout": 0})

    # ------------------------------------------------------------------
    #  Extra tools
    # ------------------------------------------------------------------

    def get_me(self) -> Any:
        """Return basic information about the bot."""
        return self._request("getMe")

    def get_file(self, file_id: str) -> Any:
        """Return file metadata, including the ``file_path`` for :meth:`build_file_url`."""
        return self._request("getFile", {"file_id": file_id})

    def build_file_url(self, file_path: str) -> str:
        """Return the download URL for a ``file_path`` obtained from :meth:`get_file`."""
        return f"{self._options.file_url}{file_path}"

    def edit_message_text(self, chat_id: ChatId, message_id: int, text: str) -> Any:
        """Replace the text of a message the bot sent earlier."""
        return self._request("editMessageText", {"chat_id": chat_id, "message_id": message_id, "text": text})

    def delete_message(self, chat_id: ChatId, message_id: int) -> Any:
        """Delete *message_id* from the chat."""
        return self._request("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
