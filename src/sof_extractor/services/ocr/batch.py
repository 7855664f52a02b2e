from __future__ import annotations

import asyncio
from typing import Sequence

from sof_extractor.config import BATCH_FAILURE_POLICIES
from sof_extractor.services.ocr.orchestrator import OCRCancelledError, OCRJobOrchestrator
from sof_extractor.services.ocr.types import (
    Corpus,
    CorpusSegment,
    Document,
    NormalizedDocument,
    SkippedDocument,
)


class BatchAbortedError(RuntimeError):
    def __init__(self, cause: BaseException, *, document: Document | None = None) -> None:
        self.cause = cause
        self.document = document
        source = f"{document.name} (index={document.index})" if document is not None else "cancellation"
        super().__init__(f"Batch aborted by {source}: {cause}")


class BatchCoordinator:
    """Fan OCR work out over a document batch and fan it back in by input position."""

    def __init__(
        self,
        orchestrator: OCRJobOrchestrator,
        *,
        max_concurrency: int = 4,
        failure_policy: str = "fail_fast",
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if failure_policy not in BATCH_FAILURE_POLICIES:
            raise ValueError(f"failure_policy must be one of {sorted(BATCH_FAILURE_POLICIES)}")
        self._orchestrator = orchestrator
        self._max_concurrency = max_concurrency
        self._failure_policy = failure_policy

    async def run(
        self,
        documents: Sequence[Document],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> Corpus:
        if not documents:
            raise ValueError("documents must not be empty")

        # Each slot is written once by the task owning that position.
        slots: list[NormalizedDocument | None] = [None] * len(documents)
        failures: dict[int, BaseException] = {}
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def process(position: int, document: Document) -> None:
            async with semaphore:
                slots[position] = await self._orchestrator.run(document, cancel_event=cancel_event)

        print(
            f"[batch] fan-out documents={len(documents)} concurrency={self._max_concurrency} "
            f"policy={self._failure_policy}",
            flush=True,
        )

        tasks = {
            asyncio.create_task(process(position, document)): position
            for position, document in enumerate(documents)
        }
        pending: set[asyncio.Task[None]] = set(tasks)
        cancel_waiter = asyncio.create_task(cancel_event.wait()) if cancel_event is not None else None

        try:
            while pending:
                waitables: set[asyncio.Task] = set(pending)
                if cancel_waiter is not None:
                    waitables.add(cancel_waiter)
                done, _ = await asyncio.wait(waitables, return_when=asyncio.FIRST_COMPLETED)

                if cancel_event is not None and cancel_event.is_set():
                    print(f"[batch] cancelled in_flight={len(pending)}", flush=True)
                    raise BatchAbortedError(OCRCancelledError("Batch was cancelled by the caller"))

                for task in done:
                    pending.discard(task)
                    position = tasks[task]
                    if task.cancelled():
                        error: BaseException | None = OCRCancelledError(
                            f"OCR job for {documents[position].name} was cancelled"
                        )
                    else:
                        error = task.exception()
                    if error is None:
                        continue

                    print(
                        f"[batch] document failed name={documents[position].name} "
                        f"index={documents[position].index} error={error}",
                        flush=True,
                    )
                    if self._failure_policy == "fail_fast" or isinstance(error, OCRCancelledError):
                        raise BatchAbortedError(error, document=documents[position]) from error
                    failures[position] = error
        finally:
            leftovers: list[asyncio.Task] = list(pending)
            if cancel_waiter is not None:
                leftovers.append(cancel_waiter)
            for task in leftovers:
                task.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)

        if len(failures) == len(documents):
            first_position = min(failures)
            raise BatchAbortedError(
                failures[first_position], document=documents[first_position]
            ) from failures[first_position]

        corpus = build_corpus(documents, slots, failures)
        print(
            f"[batch] fan-in completed={len(corpus.segments)} skipped={len(corpus.skipped)}",
            flush=True,
        )
        return corpus


def build_corpus(
    documents: Sequence[Document],
    slots: Sequence[NormalizedDocument | None],
    failures: dict[int, BaseException] | None = None,
) -> Corpus:
    failures = failures or {}
    segments: list[CorpusSegment] = []
    skipped: list[SkippedDocument] = []

    for position, document in enumerate(documents):
        normalized = slots[position]
        if normalized is not None:
            segments.append(
                CorpusSegment(
                    source_index=document.index,
                    name=document.name,
                    text=normalized.enriched_text,
                )
            )
        elif position in failures:
            skipped.append(
                SkippedDocument(
                    source_index=document.index,
                    name=document.name,
                    error=str(failures[position]),
                )
            )

    return Corpus(segments=tuple(segments), skipped=tuple(skipped))
