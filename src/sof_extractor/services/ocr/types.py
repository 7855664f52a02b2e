from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Document:
    index: int
    name: str
    content: bytes


@dataclass(frozen=True)
class Cell:
    row: int
    column: int
    content: str


@dataclass(frozen=True)
class Table:
    row_count: int
    column_count: int
    cells: tuple[Cell, ...] = ()


@dataclass(frozen=True)
class OCRResult:
    text: str
    tables: tuple[Table, ...] = ()
    paragraphs: tuple[str, ...] = ()


@dataclass(frozen=True)
class NormalizedDocument:
    source_index: int
    enriched_text: str


class PollStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class PollResponse:
    status: PollStatus
    result: OCRResult | None = None
    error: str | None = None


@dataclass(frozen=True)
class CorpusSegment:
    source_index: int
    name: str
    text: str


@dataclass(frozen=True)
class SkippedDocument:
    source_index: int
    name: str
    error: str


@dataclass(frozen=True)
class Corpus:
    segments: tuple[CorpusSegment, ...]
    skipped: tuple[SkippedDocument, ...] = field(default=())

    @property
    def text(self) -> str:
        return "\n\n".join(
            f"=== DOCUMENT {segment.source_index + 1}: {segment.name} ===\n{segment.text}"
            for segment in self.segments
        )
