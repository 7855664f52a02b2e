from __future__ import annotations

from datetime import datetime
from typing import Any, Sequence

from sof_extractor.pipeline import PipelineDiagnostics, PipelineResult
from sof_extractor.services.timeline import CategoryTotals, ReconciledEvent, TimelineStatus, timeline_span


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _format_duration(duration: tuple[int, int] | None) -> str | None:
    if duration is None:
        return None
    hours, minutes = duration
    return f"{hours:02d}:{minutes:02d}"


def _format_minutes(minutes: float) -> str:
    whole = int(round(minutes))
    return f"{whole // 60:02d}:{whole % 60:02d}"


def serialize_event(event: ReconciledEvent) -> dict[str, Any]:
    raw = event.event
    return {
        "rank": event.rank,
        "event_id": event.event_id,
        "event_description": raw.description,
        "event_date": raw.date.isoformat() if raw.date is not None else None,
        "event_start_time": raw.start_time,
        "event_end_time": raw.end_time,
        "duration": _format_duration(raw.duration),
        "efficiency_rate": f"{raw.efficiency_rate}%" if raw.efficiency_rate is not None else None,
        "source_document": raw.source_index + 1 if raw.source_index is not None else None,
        "category": event.category.value,
        "start": to_iso(event.interval.start if event.interval else event.start),
        "end": to_iso(event.interval.end if event.interval else None),
        "quarantined": event.quarantined,
        "issues": list(event.issues),
    }


def serialize_totals(totals: CategoryTotals) -> dict[str, Any]:
    return {
        "union_minutes": {category.value: minutes for category, minutes in totals.union_minutes.items()},
        "naive_minutes": {category.value: minutes for category, minutes in totals.naive_minutes.items()},
        "overall_union_minutes": totals.overall_union_minutes,
        "overall_union_duration": _format_minutes(totals.overall_union_minutes),
        "productive_union_minutes": totals.productive_union_minutes,
        "overall_efficiency_percent": round(totals.overall_efficiency_percent, 2),
    }


def serialize_diagnostics(diagnostics: PipelineDiagnostics) -> dict[str, Any]:
    return {
        "parse_errors": list(diagnostics.parse_errors),
        "duplicates_removed": [
            {
                "removed_event_id": removal.removed_event_id,
                "kept_event_id": removal.kept_event_id,
                "reason": removal.reason,
                "overlap_ratio": removal.overlap_ratio,
            }
            for removal in diagnostics.duplicates_removed
        ],
        "field_errors": [
            {
                "event_id": error.extraction_index,
                "field": error.field_name,
                "message": str(error),
            }
            for error in diagnostics.field_errors
        ],
        "quarantined_event_ids": list(diagnostics.quarantined_event_ids),
        "skipped_documents": [
            {"index": skipped.source_index, "name": skipped.name, "error": skipped.error}
            for skipped in diagnostics.skipped_documents
        ],
    }


def serialize_timeline(events: Sequence[ReconciledEvent]) -> dict[str, str | None]:
    span = timeline_span(events)
    if span is None:
        return {"start": None, "end": None}
    return {"start": to_iso(span[0]), "end": to_iso(span[1])}


def serialize_result(result: PipelineResult) -> dict[str, Any]:
    return {
        "events": [serialize_event(event) for event in result.events],
        "category_totals": serialize_totals(result.category_totals),
        "analysis": result.analysis,
        "diagnostics": serialize_diagnostics(result.diagnostics),
        "timeline": serialize_timeline(result.events),
        "model": result.model,
    }


def serialize_status(status: TimelineStatus) -> dict[str, Any]:
    return {
        "at": to_iso(status.at),
        "status": status.status.value,
        "work_progress_percent": round(status.work_progress_percent, 2),
        "active_events": [serialize_event(event) for event in status.active_events],
    }
