"""JSON logging for the ``tgapi`` logger hierarchy.

Records from the library modules (``tgapi.client`` and friends) and from the
command-line application share one console handler.  A rotating file handler
is attached only when a log file is asked for, so running the CLI or
importing it in tests leaves the working directory untouched.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

LOGGER_NAME = "tgapi"

_CONSOLE_HANDLER = "tgapi-console"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 5


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line.

    Keys passed through ``extra=`` land at the top level next to the fixed
    fields, e.g. ``{"level": "WARNING", ..., "api_endpoint": "sendMessage"}``.
    """

    _RESERVED: frozenset = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value) for key, value in vars(record).items() if key not in self._RESERVED and key not in entry
        )
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _file_handler_name(path: str) -> str:
    return f"tgapi-file:{os.path.abspath(path)}"


def get_logger(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Return the ``tgapi`` logger set to *level*.

    Every call applies *level*.  The console handler is attached once; each
    distinct *log_file* gets one rotating handler, creating its directory
    when needed.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    attached = {handler.get_name() for handler in logger.handlers}

    if _CONSOLE_HANDLER not in attached:
        console = logging.StreamHandler()
        console.set_name(_CONSOLE_HANDLER)
        console.setFormatter(JsonFormatter())
        logger.addHandler(console)

    if log_file and _file_handler_name(log_file) not in attached:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.set_name(_file_handler_name(log_file))
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    return logger
