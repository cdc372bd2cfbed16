"""Tests for the command-line front end and environment configuration."""

import json
import logging
import sys
import os
from logging.handlers import RotatingFileHandler
from unittest.mock import patch, MagicMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tgapi_cli import config, main
from tgapi_cli.logger import LOGGER_NAME, JsonFormatter, get_logger
from tgapi import ConfigurationError, RequestError, TelegramClient


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture()
def client():
    """A client mock that works as its own context manager."""
    mock = MagicMock(spec=TelegramClient)
    mock.__enter__.return_value = mock
    mock.escape_markdown.side_effect = TelegramClient.escape_markdown
    with patch("tgapi_cli.main.build_client", return_value=mock):
        yield mock


# ── config ───────────────────────────────────────────────────────────────────


class TestConfig:
    """Validate environment-driven configuration."""

    def test_build_client_reads_token(self, monkeypatch) -> None:
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "99:TOKEN")
        monkeypatch.setenv("TELEGRAM_BOTNAME", "env_bot")
        c = config.build_client()
        try:
            assert isinstance(c, TelegramClient)
            assert c.botname == "env_bot"
            assert c.build_file_url("x.jpg") == "https://api.telegram.org/file/bot99:TOKEN/x.jpg"
        finally:
            c.close()

    def test_build_client_without_token(self, monkeypatch) -> None:
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        with pytest.raises(ConfigurationError):
            config.build_client()

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(None, None), ("", None), ("42", 42), (" -100123 ", -100123), ("@channel", "@channel")],
    )
    def test_parse_chat_id(self, raw, expected) -> None:
        assert config._parse_chat_id(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(None, logging.INFO), ("debug", logging.DEBUG), ("WARNING", logging.WARNING), ("nonsense", logging.INFO)],
    )
    def test_parse_log_level(self, raw, expected) -> None:
        assert config._parse_log_level(raw) == expected


# ── main ─────────────────────────────────────────────────────────────────────


class TestMain:
    """Validate sub-command dispatch and exit codes."""

    def test_me(self, client, capsys) -> None:
        client.get_me.return_value = {"ok": True, "result": {"id": 1}}
        assert main.main(["me"]) == 0
        assert json.loads(capsys.readouterr().out) == {"ok": True, "result": {"id": 1}}
        client.__exit__.assert_called_once()

    def test_send_text(self, client) -> None:
        client.send.return_value = {"ok": True, "result": {}}
        assert main.main(["send", "-100200", "hello", "world"]) == 0
        client.send.assert_called_once_with(-100200, "hello world", file=None, caption="", parse_mode="Markdown")

    def test_send_file_with_caption(self, client) -> None:
        client.send.return_value = {"ok": True, "result": {}}
        main.main(["send", "@channel", "text", "--file", "a.png", "--caption", "cap", "--parse-mode", "HTML"])
        client.send.assert_called_once_with("@channel", "text", file="a.png", caption="cap", parse_mode="HTML")

    def test_send_escape(self, client) -> None:
        client.send.return_value = {"ok": True, "result": {}}
        main.main(["send", "42", "v1.0!", "--parse-mode", "MarkdownV2", "--escape"])
        assert client.send.call_args.args == (42, "v1\\.0\\!")

    def test_send_default_chat(self, client, monkeypatch) -> None:
        client.send.return_value = {"ok": True, "result": {}}
        monkeypatch.setattr(main, "DEFAULT_CHAT_ID", 7)
        main.main(["send", "hello"])
        assert client.send.call_args.args == (7, "hello")

    def test_send_without_chat_exits(self, client, monkeypatch) -> None:
        monkeypatch.setattr(main, "DEFAULT_CHAT_ID", None)
        with pytest.raises(SystemExit):
            main.main(["send", "hello"])

    def test_poll(self, client) -> None:
        client.get_updates.return_value = {"ok": True, "result": []}
        assert main.main(["poll", "--offset", "5", "--limit", "10"]) == 0
        client.get_updates.assert_called_once_with(5, 10)

    @pytest.mark.parametrize(
        ("argv", "method"),
        [
            (["webhook", "set", "https://example.com/hook"], "set_webhook"),
            (["webhook", "delete"], "delete_webhook"),
            (["webhook", "info"], "get_webhook_info"),
        ],
    )
    def test_webhook(self, client, argv, method) -> None:
        getattr(client, method).return_value = {"ok": True, "result": True}
        assert main.main(argv) == 0
        getattr(client, method).assert_called_once()

    def test_request_error_exit_code(self, client) -> None:
        client.get_me.side_effect = RequestError("401 Client Error", 401)
        assert main.main(["me"]) == 1

    def test_telegram_ok_false_exit_code(self, client) -> None:
        client.get_me.return_value = {"ok": False, "error_code": 400, "description": "Bad Request"}
        assert main.main(["me"]) == 1

    def test_missing_token_exit_code(self, monkeypatch) -> None:
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        assert main.main(["me"]) == 1


# ── logger ───────────────────────────────────────────────────────────────────


class TestJsonFormatter:
    """Validate structured log output."""

    def test_extra_fields_merged(self) -> None:
        record = logging.LogRecord("tgapi.client", logging.WARNING, __file__, 1, "retrying", (), None)
        record.api_endpoint = "sendMessage"
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "tgapi.client"
        assert entry["message"] == "retrying"
        assert entry["api_endpoint"] == "sendMessage"

    def test_exception_included(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("tgapi", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        entry = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


@pytest.fixture()
def restore_logger():
    """Undo level and handler changes made to the ``tgapi`` logger."""
    logger = logging.getLogger(LOGGER_NAME)
    level, handlers = logger.level, list(logger.handlers)
    yield logger
    for handler in logger.handlers[:]:
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


class TestGetLogger:
    """Validate handler setup for the ``tgapi`` logger."""

    def test_level_applied_on_every_call(self, restore_logger) -> None:
        get_logger(logging.INFO)
        assert get_logger(logging.DEBUG).level == logging.DEBUG
        assert get_logger(logging.WARNING).level == logging.WARNING

    def test_console_handler_attached_once(self, restore_logger) -> None:
        get_logger()
        logger = get_logger()
        consoles = [h for h in logger.handlers if type(h) is logging.StreamHandler]
        assert len(consoles) == 1

    def test_no_file_handler_by_default(self, restore_logger, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        logger = get_logger()
        assert not any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
        assert list(tmp_path.iterdir()) == []

    def test_file_handler_opt_in(self, restore_logger, tmp_path) -> None:
        path = tmp_path / "logs" / "tgapi.log"
        get_logger(logging.INFO, str(path))
        logger = get_logger(logging.INFO, str(path))
        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        logger.info("written", extra={"api_endpoint": "getMe"})
        file_handlers[0].flush()
        entry = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
        assert entry["message"] == "written"
        assert entry["api_endpoint"] == "getMe"

    def test_library_records_reach_handlers(self, restore_logger) -> None:
        logger = get_logger(logging.DEBUG)
        assert logging.getLogger("tgapi.client").getEffectiveLevel() == logging.DEBUG
        assert logging.getLogger("tgapi.client").parent is logger
