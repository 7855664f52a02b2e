from datetime import date, datetime, timedelta

import pytest

from sof_extractor.services.extraction.types import RawEvent
from sof_extractor.services.timeline.reconcile import (
    TimeInterval,
    build_interval,
    deduplicate,
    naive_duration,
    prepare_event,
    reconcile,
    union_duration,
)
from sof_extractor.services.timeline.rules import EventCategory, categorize

DAY = date(2017, 1, 12)


def _event(index: int, description: str, start: str | None, end: str | None, *, source: int | None = 0, day=DAY):
    return RawEvent(
        extraction_index=index,
        description=description,
        date=day,
        start_time=start,
        end_time=end,
        source_index=source,
    )


def _interval(start_hour: int, end_hour: int, event_id: int = 0) -> TimeInterval:
    base = datetime(2017, 1, 12)
    return TimeInterval(
        start=base + timedelta(hours=start_hour),
        end=base + timedelta(hours=end_hour),
        category=EventCategory.PRODUCTIVE,
        source_event_id=event_id,
    )


def test_union_counts_nested_interval_once() -> None:
    intervals = [_interval(0, 4, 0), _interval(2, 3, 1)]

    assert union_duration(intervals) == timedelta(hours=4)
    assert naive_duration(intervals) == timedelta(hours=5)


def test_union_equals_naive_sum_only_for_disjoint_intervals() -> None:
    disjoint = [_interval(0, 1, 0), _interval(2, 3, 1)]
    touching = [_interval(0, 2, 0), _interval(2, 3, 1)]
    overlapping = [_interval(0, 2, 0), _interval(1, 3, 1)]

    assert union_duration(disjoint) == naive_duration(disjoint)
    assert union_duration(touching) == naive_duration(touching) == timedelta(hours=3)
    assert union_duration(overlapping) < naive_duration(overlapping)


def test_interval_rejects_end_before_start() -> None:
    with pytest.raises(ValueError, match="must not precede"):
        _interval(5, 4)


def test_end_of_day_maps_to_next_midnight() -> None:
    interval, issues = build_interval(_event(0, "Full Work", "00:00", "24:00"), EventCategory.PRODUCTIVE)

    assert issues == []
    assert interval is not None
    assert interval.length == timedelta(hours=24)
    assert interval.end == datetime(2017, 1, 13)


def test_end_before_start_rolls_over_midnight_with_issue() -> None:
    interval, issues = build_interval(_event(0, "Full Work", "22:00", "02:00"), EventCategory.PRODUCTIVE)

    assert interval is not None
    assert interval.length == timedelta(hours=4)
    assert issues == ["end before start; rolled over to the next day"]


def test_event_without_end_time_is_quarantined() -> None:
    prepared = prepare_event(_event(3, "Arrival", "08:00", None))

    assert prepared.quarantined
    assert prepared.issues == ("missing end time",)
    assert prepared.start == datetime(2017, 1, 12, 8, 0)


@pytest.mark.parametrize(
    ("description", "category"),
    [
        ("Full Work", EventCategory.PRODUCTIVE),
        ("Loading commenced", EventCategory.PRODUCTIVE),
        ("Rain", EventCategory.WEATHER),
        ("Machine Breakdown", EventCategory.BREAKDOWN),
        ("Work stopped - conveyor breakdown", EventCategory.BREAKDOWN),
        ("Weekend", EventCategory.WEEKEND_HOLIDAY),
        ("Draft survey", EventCategory.SURVEY_INSPECTION),
        ("Waiting for berth", EventCategory.WAITING_FORMALITIES),
        ("Pilot on board", EventCategory.OTHER),
        (None, EventCategory.OTHER),
    ],
)
def test_categorize(description: str | None, category: EventCategory) -> None:
    assert categorize(description) is category


def test_identical_events_from_two_documents_collapse_to_one() -> None:
    events = [
        _event(0, "Full Work", "12:50", "16:00", source=0),
        _event(1, "full  work", "12:50", "16:00", source=1),
    ]

    result = reconcile(events)

    assert [event.event_id for event in result.events] == [0]
    assert result.duplicates_removed[0].reason == "exact"
    assert result.duplicates_removed[0].kept_event_id == 0


def test_earlier_document_wins_regardless_of_extraction_order() -> None:
    events = [
        _event(0, "Rain", "16:00", "17:30", source=1),
        _event(1, "Rain", "16:00", "17:30", source=0),
    ]

    result = reconcile(events)

    assert [event.event_id for event in result.events] == [1]


def test_near_duplicate_across_documents_is_removed() -> None:
    events = [
        _event(0, "Full Work", "08:00", "12:00", source=0),
        _event(1, "Loading", "08:30", "12:00", source=1),
    ]

    result = reconcile(events, near_duplicate_ratio=0.5)

    assert [event.event_id for event in result.events] == [0]
    removal = result.duplicates_removed[0]
    assert removal.reason == "near"
    assert removal.overlap_ratio == 1.0


@pytest.mark.parametrize(
    ("first", "second"),
    [
        # Overlap equal to the ratio is not enough.
        (("Full Work", "08:00", "10:00"), ("Loading", "09:00", "11:00")),
        (("Full Work", "08:00", "12:00"), ("Rain", "08:00", "12:00")),
        (("Pilot on board", "08:00", "12:00"), ("Pilot boarded", "08:00", "12:00")),
    ],
    ids=["overlap-at-threshold", "different-categories", "other-category"],
)
def test_cross_document_overlaps_that_are_not_near_duplicates(
    first: tuple[str, str, str],
    second: tuple[str, str, str],
) -> None:
    events = [_event(0, *first, source=0), _event(1, *second, source=1)]

    result = reconcile(events, near_duplicate_ratio=0.5)

    assert [event.event_id for event in result.events] == [0, 1]
    assert result.duplicates_removed == ()


def test_overlapping_events_within_one_document_are_kept() -> None:
    events = [
        _event(0, "Full Work", "08:00", "12:00", source=0),
        _event(1, "Loading", "08:30", "12:00", source=0),
    ]

    result = reconcile(events)

    assert len(result.events) == 2
    assert result.totals.union_minutes[EventCategory.PRODUCTIVE] == 240
    assert result.totals.naive_minutes[EventCategory.PRODUCTIVE] == 450


def test_deduplicate_is_idempotent() -> None:
    prepared = [
        prepare_event(event)
        for event in [
            _event(0, "Full Work", "08:00", "12:00", source=0),
            _event(1, "Full Work", "08:00", "12:00", source=1),
            _event(2, "Rain", "12:00", "13:00", source=1),
            _event(3, "Rain", "12:10", "13:00", source=0),
        ]
    ]

    once, _ = deduplicate(prepared)
    twice, removals = deduplicate(once)

    assert twice == once
    assert removals == []


def test_totals_and_efficiency() -> None:
    events = [
        _event(0, "Full Work", "00:00", "06:00"),
        _event(1, "Rain", "06:00", "08:00"),
        _event(2, "Full Work", "08:00", "10:00"),
    ]

    totals = reconcile(events).totals

    assert totals.overall_union_minutes == 600
    assert totals.productive_union_minutes == 480
    assert totals.overall_efficiency_percent == pytest.approx(80.0)
    assert totals.union_minutes[EventCategory.WEATHER] == 120
    assert totals.union_minutes[EventCategory.BREAKDOWN] == 0


def test_zero_total_time_gives_zero_efficiency() -> None:
    result = reconcile([_event(0, "Arrival", "08:00", None)])

    assert result.totals.overall_union_minutes == 0
    assert result.totals.overall_efficiency_percent == 0.0
    assert [event.event_id for event in result.quarantined] == [0]


def test_events_are_ranked_by_start_with_missing_starts_last() -> None:
    events = [
        _event(0, "Rain", "16:00", "17:30"),
        _event(1, "Notice of readiness tendered", None, None),
        _event(2, "Full Work", "12:50", "16:00"),
        _event(3, "Berthed", "12:50", "13:00"),
    ]

    result = reconcile(events)

    assert [(event.rank, event.event_id) for event in result.events] == [(1, 2), (2, 3), (3, 0), (4, 1)]
    assert result.events[-1].quarantined
