from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)

# ----------------------------
# Helpers
# ----------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(ts: Any) -> Optional[datetime]:
    """Best-effort ISO 8601 parsing. Returns None if the value is unusable."""
    if not isinstance(ts, str) or not ts.strip():
        return None
    s = ts.strip()
    # fromisoformat on older interpreters rejects the 'Z' suffix
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def from_epoch_ms(value: Any) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def from_epoch_usec(value: Any) -> Optional[datetime]:
    """Microsecond epoch (int or numeric string) to UTC, truncated to ms."""
    try:
        ms = int(str(value).strip()) // 1000
    except (TypeError, ValueError):
        return None
    return from_epoch_ms(ms)


def first_timestamp(*candidates: Optional[datetime]) -> datetime:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return utc_now()


def decode_payload(model: Type[M], raw_payload: Any, vendor: str) -> Optional[M]:
    """Validate a raw vendor payload at the boundary.

    Logs a warning and returns None when essential fields are missing or
    malformed.
    """
    if not isinstance(raw_payload, dict):
        logger.warning(f"[{vendor}] Ignoring non-object payload of type {type(raw_payload).__name__}")
        return None
    try:
        return model.model_validate(raw_payload)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        logger.warning(f"[{vendor}] Ignoring malformed payload, invalid fields: {fields}")
        return None
