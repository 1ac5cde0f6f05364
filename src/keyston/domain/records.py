"""Conversion between domain dataclasses and stored JSON documents."""

import dataclasses
from datetime import UTC, date, datetime


def camel_case(name: str) -> str:
    """Convert a snake_case field name to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_record(obj: object) -> dict[str, object]:
    """Serialize a dataclass into a camelCase, JSON-compatible document.

    ``None`` fields are omitted so that optional values stay absent in the
    stored document, mirroring how the export format treats them.
    """
    record: dict[str, object] = {}
    for field in dataclasses.fields(obj):  # type: ignore[arg-type]
        value = _to_json_value(getattr(obj, field.name))
        if value is None:
            continue
        record[camel_case(field.name)] = value
    return record


def _to_json_value(value: object) -> object:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_record(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(key): _to_json_value(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_to_json_value(item) for item in value]
    return value


def parse_datetime(raw: object) -> datetime | None:
    """Parse an ISO timestamp, assuming UTC when no offset is stored."""
    if isinstance(raw, datetime):
        parsed = raw
    elif isinstance(raw, str) and raw:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def optional_float(raw: object) -> float | None:
    """Return ``raw`` as a float, or None when it is missing."""
    if raw is None:
        return None
    return float(raw)  # type: ignore[arg-type]


def optional_int(raw: object) -> int | None:
    """Return ``raw`` as an int, or None when it is missing."""
    if raw is None:
        return None
    return int(raw)  # type: ignore[call-overload]


def optional_str(raw: object) -> str | None:
    """Return ``raw`` as a string, or None when it is missing or empty."""
    if raw is None or raw == "":
        return None
    return str(raw)


def float_map(raw: object) -> dict[str, float] | None:
    """Parse a micronutrient-style ``{name: number}`` map."""
    if not isinstance(raw, dict):
        return None
    return {str(key): float(value) for key, value in raw.items() if value is not None}


def now_utc() -> datetime:
    """Return the current UTC time."""
    return datetime.now(tz=UTC)
