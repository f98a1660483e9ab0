import json
from collections.abc import Iterable
from datetime import UTC, datetime

from loguru import logger


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, matching what SQLite hands back."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Converts an aware datetime to naive UTC. Naive input is assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def normalize_labels(raw: str | Iterable[str] | None) -> list[str]:
    """Turns comma-separated text or a list of strings into a clean label list.

    Whitespace is trimmed and empty entries are dropped; order is preserved.
    """
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    return [part.strip() for part in parts if part and part.strip()]


def serialize_labels(raw: str | Iterable[str] | None) -> str | None:
    """Encodes labels for the text column. An empty list is stored as NULL."""
    labels = normalize_labels(raw)
    return json.dumps(labels, ensure_ascii=False) if labels else None


def parse_labels(stored: str | None) -> list[str]:
    """Decodes the stored label column, degrading to an empty list on bad data."""
    if not stored:
        return []
    try:
        data = json.loads(stored)
    except (TypeError, ValueError):
        logger.debug(f"Discarding malformed labels payload: {stored!r}")
        return []
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, str)]


def extract_email_domain(email: str | None) -> str | None:
    """Returns the lowercased domain part of an email address, if any."""
    if not email or "@" not in email:
        return None
    domain = email.rsplit("@", 1)[1].strip().lower()
    return domain or None
