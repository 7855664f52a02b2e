from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta
from typing import Iterable, Sequence

from sof_extractor.services.extraction.types import RawEvent
from sof_extractor.services.timeline.rules import EventCategory, categorize, normalize_description

END_OF_DAY = "24:00"


@dataclass(frozen=True)
class TimeInterval:
    start: datetime
    end: datetime
    category: EventCategory
    source_event_id: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError("interval end must not precede its start")

    @property
    def length(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class ReconciledEvent:
    event: RawEvent
    category: EventCategory
    interval: TimeInterval | None
    issues: tuple[str, ...] = ()
    rank: int = 0

    @property
    def event_id(self) -> int:
        return self.event.extraction_index

    @property
    def quarantined(self) -> bool:
        return self.interval is None

    @property
    def start(self) -> datetime | None:
        return start_instant(self.event)


@dataclass(frozen=True)
class DuplicateRemoval:
    removed_event_id: int
    kept_event_id: int
    reason: str
    overlap_ratio: float | None = None


@dataclass(frozen=True)
class CategoryTotals:
    union_minutes: dict[EventCategory, float]
    naive_minutes: dict[EventCategory, float]
    overall_union_minutes: float
    productive_union_minutes: float
    overall_efficiency_percent: float


@dataclass(frozen=True)
class ReconciliationResult:
    events: tuple[ReconciledEvent, ...]
    totals: CategoryTotals
    duplicates_removed: tuple[DuplicateRemoval, ...]

    @property
    def quarantined(self) -> tuple[ReconciledEvent, ...]:
        return tuple(event for event in self.events if event.quarantined)


def _clock(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def start_instant(event: RawEvent) -> datetime | None:
    if event.date is None or event.start_time is None:
        return None
    return datetime.combine(event.date, _clock(event.start_time))


def build_interval(event: RawEvent, category: EventCategory) -> tuple[TimeInterval | None, list[str]]:
    issues: list[str] = []
    if event.date is None:
        issues.append("missing date")
    if event.start_time is None:
        issues.append("missing start time")
    if event.end_time is None:
        issues.append("missing end time")
    if issues:
        return None, issues

    start = datetime.combine(event.date, _clock(event.start_time))
    if event.end_time == END_OF_DAY:
        end = datetime.combine(event.date + timedelta(days=1), time(0, 0))
    else:
        end = datetime.combine(event.date, _clock(event.end_time))
        if end < start:
            # Periods such as 22:00 - 02:00 run past midnight.
            end += timedelta(days=1)
            issues.append("end before start; rolled over to the next day")

    interval = TimeInterval(start=start, end=end, category=category, source_event_id=event.extraction_index)
    return interval, issues


def prepare_event(event: RawEvent) -> ReconciledEvent:
    category = categorize(event.description)
    interval, issues = build_interval(event, category)
    return ReconciledEvent(event=event, category=category, interval=interval, issues=tuple(issues))


def merge_intervals(intervals: Iterable[TimeInterval]) -> list[tuple[datetime, datetime]]:
    runs: list[tuple[datetime, datetime]] = []
    for interval in sorted(intervals, key=lambda item: (item.start, item.end)):
        if runs and interval.start <= runs[-1][1]:
            run_start, run_end = runs[-1]
            runs[-1] = (run_start, max(run_end, interval.end))
        else:
            runs.append((interval.start, interval.end))
    return runs


def union_duration(intervals: Iterable[TimeInterval]) -> timedelta:
    return sum((end - start for start, end in merge_intervals(intervals)), timedelta())


def naive_duration(intervals: Iterable[TimeInterval]) -> timedelta:
    return sum((interval.length for interval in intervals), timedelta())


def _exact_key(event: RawEvent) -> tuple[object, ...] | None:
    description = normalize_description(event.description)
    if not description:
        return None
    return (description, event.date, event.start_time, event.end_time)


def _priority(candidate: ReconciledEvent) -> tuple[int, int, int]:
    source = candidate.event.source_index
    return (source is None, source if source is not None else 0, candidate.event.extraction_index)


def _overlap_ratio(first: TimeInterval, second: TimeInterval) -> float:
    shorter = min(first.length, second.length)
    if shorter <= timedelta():
        return 0.0
    overlap = min(first.end, second.end) - max(first.start, second.start)
    if overlap <= timedelta():
        return 0.0
    return overlap / shorter


def _from_other_documents(first: RawEvent, second: RawEvent) -> bool:
    if first.source_index is None or second.source_index is None:
        return True
    return first.source_index != second.source_index


def deduplicate(
    candidates: Sequence[ReconciledEvent],
    *,
    near_duplicate_ratio: float = 0.5,
) -> tuple[list[ReconciledEvent], list[DuplicateRemoval]]:
    """Drop exact and near duplicates, keeping the earliest-processed copy.

    Candidates are judged in document order (unknown source last, then
    extraction order); survivors are returned in their input order.
    """
    kept_ids: set[int] = set()
    kept: list[ReconciledEvent] = []
    seen_keys: dict[tuple[object, ...], int] = {}
    removals: list[DuplicateRemoval] = []

    for candidate in sorted(candidates, key=_priority):
        key = _exact_key(candidate.event)
        if key is not None and key in seen_keys:
            removals.append(
                DuplicateRemoval(
                    removed_event_id=candidate.event_id,
                    kept_event_id=seen_keys[key],
                    reason="exact",
                )
            )
            continue

        near_match = _find_near_duplicate(candidate, kept, near_duplicate_ratio)
        if near_match is not None:
            match, ratio = near_match
            removals.append(
                DuplicateRemoval(
                    removed_event_id=candidate.event_id,
                    kept_event_id=match.event_id,
                    reason="near",
                    overlap_ratio=round(ratio, 4),
                )
            )
            continue

        if key is not None:
            seen_keys[key] = candidate.event_id
        kept.append(candidate)
        kept_ids.add(candidate.event_id)

    survivors = [candidate for candidate in candidates if candidate.event_id in kept_ids]
    return survivors, removals


def _find_near_duplicate(
    candidate: ReconciledEvent,
    kept: Sequence[ReconciledEvent],
    near_duplicate_ratio: float,
) -> tuple[ReconciledEvent, float] | None:
    if candidate.interval is None or candidate.category is EventCategory.OTHER:
        return None

    for existing in kept:
        if existing.interval is None or existing.category is not candidate.category:
            continue
        if not _from_other_documents(existing.event, candidate.event):
            continue
        ratio = _overlap_ratio(existing.interval, candidate.interval)
        if ratio > near_duplicate_ratio:
            return existing, ratio
    return None


def compute_category_totals(events: Sequence[ReconciledEvent]) -> CategoryTotals:
    intervals = [event.interval for event in events if event.interval is not None]
    union_minutes: dict[EventCategory, float] = {}
    naive_minutes: dict[EventCategory, float] = {}

    for category in EventCategory:
        members = [interval for interval in intervals if interval.category is category]
        union_minutes[category] = union_duration(members) / timedelta(minutes=1)
        naive_minutes[category] = naive_duration(members) / timedelta(minutes=1)

    overall = union_duration(intervals) / timedelta(minutes=1)
    productive = union_minutes[EventCategory.PRODUCTIVE]
    efficiency = 100.0 * productive / overall if overall > 0 else 0.0

    return CategoryTotals(
        union_minutes=union_minutes,
        naive_minutes=naive_minutes,
        overall_union_minutes=overall,
        productive_union_minutes=productive,
        overall_efficiency_percent=efficiency,
    )


def order_events(events: Sequence[ReconciledEvent]) -> tuple[ReconciledEvent, ...]:
    """Sort by start instant; missing starts go last, ties keep extraction order."""
    ordered = sorted(
        events,
        key=lambda item: (item.start is None, item.start or datetime.min, item.event.extraction_index),
    )
    return tuple(replace(event, rank=rank) for rank, event in enumerate(ordered, start=1))


def reconcile(
    raw_events: Sequence[RawEvent],
    *,
    near_duplicate_ratio: float = 0.5,
) -> ReconciliationResult:
    prepared = [prepare_event(event) for event in raw_events]
    survivors, removals = deduplicate(prepared, near_duplicate_ratio=near_duplicate_ratio)
    ordered = order_events(survivors)
    totals = compute_category_totals(ordered)

    quarantined = sum(1 for event in ordered if event.quarantined)
    print(
        f"[reconcile] events={len(raw_events)} kept={len(ordered)} duplicates={len(removals)} "
        f"quarantined={quarantined} union_minutes={totals.overall_union_minutes:.0f} "
        f"efficiency={totals.overall_efficiency_percent:.1f}",
        flush=True,
    )
    return ReconciliationResult(events=ordered, totals=totals, duplicates_removed=tuple(removals))
