from sof_extractor.services.timeline.reconcile import (
    CategoryTotals,
    DuplicateRemoval,
    ReconciledEvent,
    ReconciliationResult,
    TimeInterval,
    deduplicate,
    reconcile,
    union_duration,
)
from sof_extractor.services.timeline.rules import EventCategory, OperationStatus
from sof_extractor.services.timeline.status import TimelineStatus, resolve_status, timeline_span

__all__ = [
    "CategoryTotals",
    "DuplicateRemoval",
    "EventCategory",
    "OperationStatus",
    "ReconciledEvent",
    "ReconciliationResult",
    "TimeInterval",
    "TimelineStatus",
    "deduplicate",
    "reconcile",
    "resolve_status",
    "timeline_span",
    "union_duration",
]
