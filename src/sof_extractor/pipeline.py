from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Sequence

from sof_extractor.config import Settings
from sof_extractor.llm import OllamaChatClient, TextCompletionClient
from sof_extractor.services.extraction import EventValidationError, ExtractionContract
from sof_extractor.services.ocr import BatchCoordinator, Document, HttpOCRClient, OCRClient, OCRJobOrchestrator
from sof_extractor.services.ocr.types import SkippedDocument
from sof_extractor.services.timeline import (
    CategoryTotals,
    DuplicateRemoval,
    ReconciledEvent,
    TimelineStatus,
    reconcile,
    resolve_status,
)
from sof_extractor.services.timeline.status import DEFAULT_OPEN_EVENT_FALLBACK


@dataclass(frozen=True)
class PipelineClients:
    ocr_client: OCRClient
    text_client: TextCompletionClient


@dataclass(frozen=True)
class PipelineDiagnostics:
    parse_errors: tuple[str, ...] = ()
    duplicates_removed: tuple[DuplicateRemoval, ...] = ()
    field_errors: tuple[EventValidationError, ...] = ()
    quarantined_event_ids: tuple[int, ...] = ()
    skipped_documents: tuple[SkippedDocument, ...] = ()


@dataclass(frozen=True)
class PipelineResult:
    events: tuple[ReconciledEvent, ...]
    category_totals: CategoryTotals
    analysis: dict[str, Any]
    diagnostics: PipelineDiagnostics
    model: str | None = None


def build_http_clients(settings: Settings) -> PipelineClients:
    return PipelineClients(
        ocr_client=HttpOCRClient(
            endpoint=settings.ocr_endpoint,
            api_key=settings.ocr_api_key,
            model_id=settings.ocr_model_id,
            timeout_seconds=settings.ocr_timeout_seconds,
        ),
        text_client=OllamaChatClient(
            base_url=settings.ollama_base_url,
            default_model=settings.ollama_model,
            fallback_model=settings.ollama_fallback_model,
            timeout_seconds=settings.ollama_timeout_seconds,
            json_mode=settings.ollama_json_mode,
        ),
    )


class SOFPipeline:
    def __init__(
        self,
        clients: PipelineClients,
        *,
        poll_interval_seconds: float = 1.0,
        max_poll_attempts: int = 30,
        max_concurrency: int = 4,
        failure_policy: str = "fail_fast",
        near_duplicate_ratio: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        orchestrator = OCRJobOrchestrator(
            clients.ocr_client,
            poll_interval_seconds=poll_interval_seconds,
            max_attempts=max_poll_attempts,
            sleep=sleep,
        )
        self._coordinator = BatchCoordinator(
            orchestrator,
            max_concurrency=max_concurrency,
            failure_policy=failure_policy,
        )
        self._contract = ExtractionContract(clients.text_client)
        self._near_duplicate_ratio = near_duplicate_ratio

    @classmethod
    def from_settings(cls, clients: PipelineClients, settings: Settings) -> SOFPipeline:
        return cls(
            clients,
            poll_interval_seconds=settings.ocr_poll_interval_seconds,
            max_poll_attempts=settings.ocr_max_poll_attempts,
            max_concurrency=settings.ocr_max_concurrency,
            failure_policy=settings.batch_failure_policy,
            near_duplicate_ratio=settings.near_duplicate_overlap_ratio,
        )

    async def extract(
        self,
        documents: Sequence[Document],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PipelineResult:
        corpus = await self._coordinator.run(documents, cancel_event=cancel_event)
        extraction = await asyncio.to_thread(self._contract.extract, corpus)
        reconciliation = reconcile(extraction.events, near_duplicate_ratio=self._near_duplicate_ratio)

        return PipelineResult(
            events=reconciliation.events,
            category_totals=reconciliation.totals,
            analysis=extraction.analysis,
            diagnostics=PipelineDiagnostics(
                parse_errors=extraction.parse_errors,
                duplicates_removed=reconciliation.duplicates_removed,
                field_errors=extraction.field_errors,
                quarantined_event_ids=tuple(event.event_id for event in reconciliation.quarantined),
                skipped_documents=corpus.skipped,
            ),
            model=extraction.model,
        )


def status_at(
    events: Sequence[ReconciledEvent],
    instant: datetime,
    *,
    fallback: timedelta = DEFAULT_OPEN_EVENT_FALLBACK,
) -> TimelineStatus:
    return resolve_status(events, instant, fallback=fallback)
