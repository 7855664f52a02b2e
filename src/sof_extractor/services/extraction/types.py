from __future__ import annotations

from dataclasses import dataclass, field
import datetime
from typing import Any, Union


class EventValidationError(ValueError):
    def __init__(self, message: str, *, extraction_index: int, field_name: str, value: Any = None) -> None:
        self.extraction_index = extraction_index
        self.field_name = field_name
        self.value = value
        super().__init__(f"event {extraction_index} field {field_name}: {message}")


class ExtractionParseError(ValueError):
    pass


@dataclass(frozen=True)
class RawEvent:
    extraction_index: int
    description: str | None = None
    date: datetime.date | None = None
    start_time: str | None = None
    end_time: str | None = None
    duration: tuple[int, int] | None = None
    efficiency_rate: int | None = None
    source_index: int | None = None


@dataclass(frozen=True)
class ExtractionOk:
    events: tuple[RawEvent, ...]
    analysis: dict[str, Any]
    field_errors: tuple[EventValidationError, ...] = ()


@dataclass(frozen=True)
class ExtractionParseFailure:
    diagnostic: str


ExtractionOutcome = Union[ExtractionOk, ExtractionParseFailure]


@dataclass(frozen=True)
class ExtractionResult:
    events: tuple[RawEvent, ...]
    analysis: dict[str, Any]
    parse_errors: tuple[str, ...] = ()
    field_errors: tuple[EventValidationError, ...] = ()
    model: str | None = None
    raw_response: str = field(default="", repr=False)
