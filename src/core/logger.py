import inspect
import json
import logging
import sys
from typing import Any

import httpx
from fastapi import status
from loguru import logger

from src.config.settings import settings

# Structured fields that must never reach a sink in clear text
REDACTED_KEYS = frozenset({"password", "hashed_password", "token", "invite_token", "secret_key", "setup_key"})
REDACTED = "***"


def _sanitize_value(val: Any, key: str | None = None) -> Any:
    """Recursively sanitizes log payloads: masks credentials and strips raw reprs."""
    if key is not None and key.lower() in REDACTED_KEYS and val is not None:
        return REDACTED
    if isinstance(val, dict):
        return {k: _sanitize_value(v, str(k)) for k, v in val.items()}
    if isinstance(val, list | tuple | set):
        return type(val)(_sanitize_value(v) for v in val)

    # Bound methods, functions and coroutine functions
    if callable(val) or inspect.iscoroutinefunction(val):
        module = getattr(val, "__module__", "")
        qualname = getattr(val, "__qualname__", type(val).__name__)
        return f"{module}.{qualname}()" if module else f"{qualname}()"

    # Objects falling back to object.__repr__ (e.g. <aiosqlite.Connection object at 0x...>)
    val_repr = repr(val)
    if "<" in val_repr and " at 0x" in val_repr:
        return f"[{val.__class__.__module__}.{val.__class__.__name__}]"

    return val


def log_patcher(record: dict[str, Any]) -> None:
    """Intercepts the Loguru record before it hits sinks to clean payloads."""
    if "extra" in record:
        record["extra"] = _sanitize_value(record["extra"])

    if "args" in record:
        record["args"] = tuple(_sanitize_value(arg) for arg in record["args"])


class InterceptHandler(logging.Handler):
    """Intercepts standard logging messages and routes them to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class SeqSink:
    """Synchronous sink for sending logs to Seq via HTTP."""

    def __init__(self, server_url: str, api_key: str | None = None):
        self.server_url = f"{server_url.rstrip('/')}/api/events/raw"
        self.api_key = api_key
        self.client = httpx.Client(timeout=4.0)

    def write(self, message: str) -> None:
        """Writes a serialized Loguru record to Seq as a CLEF-style event."""
        try:
            record = json.loads(message)["record"]

            payload = {
                "Timestamp": record["time"]["repr"],
                "Level": record["level"]["name"],
                "MessageTemplate": record["message"],
                "Properties": {
                    **record["extra"],
                    "Application": settings.APP_NAME,
                    "Function": record["function"],
                    "Module": record["module"],
                    "Line": record["line"],
                },
            }

            if record.get("exception"):
                payload["Exception"] = record["exception"]["text"]

            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["X-Seq-ApiKey"] = self.api_key

            resp = self.client.post(self.server_url, json={"Events": [payload]}, headers=headers)

            if resp.status_code >= status.HTTP_400_BAD_REQUEST:
                sys.stderr.write(f"Seq API Error {resp.status_code}: {resp.text}\n")

        except Exception as e:
            sys.stderr.write(f"Failed to send log to Seq: {e}\nPayload: {message}\n")


def configure_logging() -> None:
    """Configures Loguru as the single logging pipeline (console, optional Seq)."""
    logger.remove()
    logger.configure(patcher=log_patcher, extra={"request_id": "-"})

    logger.add(
        sys.stderr,
        level=settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
        "<magenta>{extra[request_id]}</magenta> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:"
        "<cyan>{line}</cyan> - <level>{message}</level>",
    )

    if settings.SEQ_URL:
        logger.add(
            SeqSink(settings.SEQ_URL, api_key=settings.SEQ_API_KEY),
            level=settings.LOG_LEVEL,
            format="{message}",
            serialize=True,
            enqueue=True,  # Runs in background thread
            backtrace=True,
            diagnose=False,  # Variable values may hold credentials
        )

    # Route stdlib logging (uvicorn, fastapi, sqlalchemy) through Loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "sqlalchemy.engine"]:
        _logger = logging.getLogger(name)
        _logger.handlers = [InterceptHandler()]
        _logger.propagate = False

    # SQL echo is only wanted in DEBUG; passlib warns loudly about bcrypt metadata
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.DEBUG else logging.WARNING)
    for _lib in ["httpx", "httpcore", "passlib"]:
        _log = logging.getLogger(_lib)
        _log.setLevel(logging.ERROR)
        _log.propagate = False
        _log.handlers = []

    logger.info("Logging configured (level {}). Forwarding to Seq: {}", settings.LOG_LEVEL, settings.SEQ_URL)
