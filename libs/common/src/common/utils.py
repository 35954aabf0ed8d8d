from __future__ import annotations

import secrets
import time
from datetime import UTC, datetime


def now_utc_iso() -> str:
    return datetime.now(UTC).isoformat()


def normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def new_error_id() -> str:
    return f"err_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def parse_iso_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
