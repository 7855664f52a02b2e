from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

from sof_extractor.services.timeline.reconcile import ReconciledEvent, merge_intervals
from sof_extractor.services.timeline.rules import EventCategory, OperationStatus, detect_status

DEFAULT_OPEN_EVENT_FALLBACK = timedelta(hours=1)


@dataclass(frozen=True)
class TimelineStatus:
    at: datetime
    active_events: tuple[ReconciledEvent, ...]
    status: OperationStatus
    work_progress_percent: float


def active_window(
    event: ReconciledEvent,
    *,
    fallback: timedelta = DEFAULT_OPEN_EVENT_FALLBACK,
) -> tuple[datetime, datetime] | None:
    if event.interval is not None:
        return event.interval.start, event.interval.end
    start = event.start
    if start is None:
        return None
    return start, start + fallback


def work_progress_percent(events: Sequence[ReconciledEvent], at: datetime) -> float:
    runs = merge_intervals(
        event.interval
        for event in events
        if event.interval is not None and event.category is EventCategory.PRODUCTIVE
    )
    total = sum((end - start for start, end in runs), timedelta())
    if total <= timedelta():
        return 0.0

    completed = sum(
        (min(end, at) - start for start, end in runs if at > start),
        timedelta(),
    )
    return 100.0 * (completed / total)


def resolve_status(
    events: Sequence[ReconciledEvent],
    at: datetime,
    *,
    fallback: timedelta = DEFAULT_OPEN_EVENT_FALLBACK,
) -> TimelineStatus:
    """Answer what is happening at ``at``.

    Events are active on ``[start, end)``. An event with a start but no end
    is treated as lasting ``fallback`` for this query only. Event times carry
    no zone, so an aware ``at`` is compared by its wall-clock reading.
    """
    at = at.replace(tzinfo=None)
    active: list[ReconciledEvent] = []
    for event in events:
        window = active_window(event, fallback=fallback)
        if window is not None and window[0] <= at < window[1]:
            active.append(event)

    return TimelineStatus(
        at=at,
        active_events=tuple(active),
        status=detect_status([event.event.description for event in active]),
        work_progress_percent=work_progress_percent(events, at),
    )


def timeline_span(
    events: Sequence[ReconciledEvent],
    *,
    fallback: timedelta = DEFAULT_OPEN_EVENT_FALLBACK,
) -> tuple[datetime, datetime] | None:
    windows = [
        window
        for window in (active_window(event, fallback=fallback) for event in events)
        if window is not None
    ]
    if not windows:
        return None
    return min(start for start, _ in windows), max(end for _, end in windows)
