from __future__ import annotations

from datetime import date, datetime
import math
import re
from typing import Any, Callable

from sof_extractor.services.extraction.types import EventValidationError, RawEvent

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%y", "%d/%m/%Y", "%d.%m.%Y")
EFFICIENCY_RATES = {0, 50, 100}

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "description": ("event_description", "description", "event"),
    "date": ("event_date", "date"),
    "start_time": ("event_start_time", "start_time", "start"),
    "end_time": ("event_end_time", "end_time", "end"),
    "duration": ("duration",),
    "efficiency_rate": ("efficiency_rate", "rate"),
    "source_index": ("source_document", "source_index"),
}

_TIME_PATTERN = re.compile(r"^(\d{1,2}):?(\d{2})(?::\d{2})?$")
_CLOCK_DURATION_PATTERN = re.compile(r"^(\d+):(\d{2})$")
_UNIT_DURATION_PATTERN = re.compile(r"^(?:(\d+)\s*h(?:rs?|ours?)?)?\s*(?:(\d+)\s*m(?:in(?:utes?)?)?)?$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_description(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return " ".join(value.split())


def _parse_date(value: Any) -> date:
    if not isinstance(value, str):
        raise ValueError("expected a date string")
    candidate = value.strip()
    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(candidate, date_format).date()
        except ValueError:
            continue
    raise ValueError(f"unrecognized date {candidate!r}")


def _parse_clock(value: Any, *, allow_end_of_day: bool) -> str:
    if not isinstance(value, str):
        raise ValueError("expected an HH:MM string")
    match = _TIME_PATTERN.match(value.strip())
    if match is None:
        raise ValueError(f"unrecognized time {value!r}")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if allow_end_of_day and (hours, minutes) == (24, 0):
        return "24:00"
    if hours > 23 or minutes > 59:
        raise ValueError(f"time out of range {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def _parse_start_time(value: Any) -> str:
    return _parse_clock(value, allow_end_of_day=False)


def _parse_end_time(value: Any) -> str:
    return _parse_clock(value, allow_end_of_day=True)


def _parse_duration(value: Any) -> tuple[int, int]:
    if isinstance(value, bool):
        raise ValueError("expected a duration")
    if isinstance(value, (int, float)):
        try:
            minutes = float(value) * 60
        except OverflowError as exc:
            raise ValueError(f"duration out of range {value!r}") from exc
        if not math.isfinite(minutes):
            raise ValueError(f"duration out of range {value!r}")
        if minutes < 0:
            raise ValueError("duration must not be negative")
        return divmod(round(minutes), 60)
    if not isinstance(value, str):
        raise ValueError("expected a duration")

    candidate = value.strip().lower()
    match = _CLOCK_DURATION_PATTERN.match(candidate)
    if match is not None:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if minutes > 59:
            raise ValueError(f"minutes out of range {value!r}")
        return hours, minutes

    match = _UNIT_DURATION_PATTERN.match(candidate)
    if match is not None and (match.group(1) or match.group(2)):
        hours = int(match.group(1) or 0)
        minutes = int(match.group(2) or 0)
        return divmod(hours * 60 + minutes, 60)

    raise ValueError(f"unrecognized duration {value!r}")


def _parse_efficiency_rate(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected a rate")
    if isinstance(value, str):
        candidate = value.strip().rstrip("%").strip()
        try:
            value = float(candidate)
        except ValueError as exc:
            raise ValueError(f"unrecognized rate {value!r}") from exc
    # Membership compares numerically, so oversized ints never reach float().
    if not isinstance(value, (int, float)) or value not in EFFICIENCY_RATES:
        raise ValueError(f"rate must be one of {sorted(EFFICIENCY_RATES)}")
    return int(value)


def _parse_source_index(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected a document number")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value < 1:
        raise ValueError("document numbers start at 1")
    return value - 1


FIELD_PARSERS: dict[str, Callable[[Any], Any]] = {
    "description": _parse_description,
    "date": _parse_date,
    "start_time": _parse_start_time,
    "end_time": _parse_end_time,
    "duration": _parse_duration,
    "efficiency_rate": _parse_efficiency_rate,
    "source_index": _parse_source_index,
}


def _lookup(payload: dict[str, Any], field_name: str) -> Any:
    for key in FIELD_ALIASES[field_name]:
        if key in payload:
            return payload[key]
    return None


def validate_event(payload: Any, *, extraction_index: int) -> tuple[RawEvent, list[EventValidationError]]:
    """Validate every field of one extracted event independently.

    A field that is missing stays ``None``; a field that is present but
    invalid is also ``None`` and produces an ``EventValidationError``. Only a
    payload that is not an object at all is rejected outright.
    """
    if not isinstance(payload, dict):
        raise EventValidationError(
            "event must be an object",
            extraction_index=extraction_index,
            field_name="*",
            value=payload,
        )

    values: dict[str, Any] = {}
    errors: list[EventValidationError] = []
    for field_name, parser in FIELD_PARSERS.items():
        raw_value = _lookup(payload, field_name)
        if _is_blank(raw_value):
            values[field_name] = None
            continue
        try:
            values[field_name] = parser(raw_value)
        except ValueError as exc:
            values[field_name] = None
            errors.append(
                EventValidationError(
                    str(exc),
                    extraction_index=extraction_index,
                    field_name=field_name,
                    value=raw_value,
                )
            )

    return RawEvent(extraction_index=extraction_index, **values), errors
