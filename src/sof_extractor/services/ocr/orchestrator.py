from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable

from sof_extractor.services.ocr.client import OCRClient, OCRServiceError
from sof_extractor.services.ocr.normalizer import normalize_ocr_result
from sof_extractor.services.ocr.types import (
    Document,
    NormalizedDocument,
    OCRResult,
    PollResponse,
    PollStatus,
)


class OCRTimeoutError(RuntimeError):
    pass


class OCRCancelledError(RuntimeError):
    pass


class JobPhase(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_PHASES = {JobPhase.SUCCEEDED, JobPhase.FAILED, JobPhase.TIMED_OUT}


@dataclass(frozen=True)
class JobState:
    phase: JobPhase
    handle: str | None = None
    attempts: int = 0
    result: OCRResult | None = None
    error: str | None = None


def transition(state: JobState, response: PollResponse, *, max_attempts: int) -> JobState:
    """Apply one poll response to a non-terminal job state."""
    if state.phase in TERMINAL_PHASES:
        raise ValueError(f"cannot transition from terminal phase {state.phase.value}")

    attempts = state.attempts + 1

    if response.status is PollStatus.SUCCEEDED:
        if response.result is None:
            return replace(
                state,
                phase=JobPhase.FAILED,
                attempts=attempts,
                error="OCR service reported success without extracted content",
            )
        return replace(state, phase=JobPhase.SUCCEEDED, attempts=attempts, result=response.result)

    if response.status is PollStatus.FAILED:
        return replace(
            state,
            phase=JobPhase.FAILED,
            attempts=attempts,
            error=response.error or "Unknown error",
        )

    if attempts >= max_attempts:
        return replace(state, phase=JobPhase.TIMED_OUT, attempts=attempts)
    return replace(state, phase=JobPhase.POLLING, attempts=attempts)


class OCRJobOrchestrator:
    def __init__(
        self,
        client: OCRClient,
        *,
        poll_interval_seconds: float = 1.0,
        max_attempts: int = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._client = client
        self._poll_interval_seconds = poll_interval_seconds
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def run(
        self,
        document: Document,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> NormalizedDocument:
        handle = await self._client.submit(document.content)
        if not handle:
            raise OCRServiceError(f"OCR submission for {document.name} returned no operation handle")
        print(f"[ocr] submitted document={document.name} index={document.index}", flush=True)

        state = JobState(phase=JobPhase.SUBMITTED, handle=handle)
        while state.phase not in TERMINAL_PHASES:
            self._raise_if_cancelled(document, state, cancel_event)
            await self._sleep(self._poll_interval_seconds)
            self._raise_if_cancelled(document, state, cancel_event)
            response = await self._client.poll(handle)
            state = transition(state, response, max_attempts=self._max_attempts)

        return self._finish(document, state)

    def _raise_if_cancelled(
        self,
        document: Document,
        state: JobState,
        cancel_event: asyncio.Event | None,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            print(f"[ocr] cancelled document={document.name} polls={state.attempts}", flush=True)
            raise OCRCancelledError(f"OCR job for {document.name} was cancelled")

    def _finish(self, document: Document, state: JobState) -> NormalizedDocument:
        if state.phase is JobPhase.SUCCEEDED and state.result is not None:
            print(
                f"[ocr] succeeded document={document.name} polls={state.attempts} "
                f"text_length={len(state.result.text)} tables={len(state.result.tables)}",
                flush=True,
            )
            return normalize_ocr_result(state.result, source_index=document.index)

        if state.phase is JobPhase.TIMED_OUT:
            print(f"[ocr] timed out document={document.name} polls={state.attempts}", flush=True)
            raise OCRTimeoutError(
                f"OCR analysis for {document.name} timed out after {state.attempts} polls"
            )

        print(f"[ocr] failed document={document.name} polls={state.attempts} error={state.error}", flush=True)
        raise OCRServiceError(f"OCR analysis failed for {document.name}: {state.error}")
