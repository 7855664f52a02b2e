from __future__ import annotations

import json
import re
from typing import Any

from sof_extractor.llm import TextCompletionClient
from sof_extractor.services.extraction.prompt import build_prompt
from sof_extractor.services.extraction.types import (
    EventValidationError,
    ExtractionOk,
    ExtractionOutcome,
    ExtractionParseError,
    ExtractionParseFailure,
    ExtractionResult,
    RawEvent,
)
from sof_extractor.services.extraction.validation import validate_event
from sof_extractor.services.ocr.types import Corpus

_FENCE_PATTERN = re.compile(r"```[ \t]*(?:json)?", re.IGNORECASE)


def default_analysis(remarks: str) -> dict[str, Any]:
    return {
        "vessel_info": {},
        "laytime_details": {},
        "time_breakdown": {
            "total_time": "00:00",
            "productive_time": "00:00",
            "weather_delays": "00:00",
            "weekend_time": "00:00",
            "breakdown_time": "00:00",
            "other_delays": "00:00",
        },
        "efficiency_analysis": {
            "overall_efficiency": "0%",
            "main_delay_factors": [],
            "cost_impact": "",
        },
        "remarks": remarks,
    }


def strip_code_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text).strip()


def _outermost_json_span(text: str) -> str | None:
    starts = [position for position in (text.find("{"), text.find("[")) if position >= 0]
    if not starts:
        return None
    start = min(starts)
    end = max(text.rfind("}"), text.rfind("]"))
    if end <= start:
        return None
    return text[start : end + 1]


def _load_payload(response_text: str) -> Any:
    stripped = strip_code_fences(response_text)
    if not stripped:
        raise ExtractionParseError("response is empty")

    try:
        return json.loads(stripped)
    except json.JSONDecodeError as exc:
        span = _outermost_json_span(stripped)
        if span is not None and span != stripped:
            try:
                return json.loads(span)
            except json.JSONDecodeError:
                pass
        raise ExtractionParseError(
            f"response is not valid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"
        ) from exc


def _split_payload(payload: Any) -> tuple[list[Any], dict[str, Any]]:
    if isinstance(payload, list):
        return payload, default_analysis("No analysis was returned with the events.")

    if not isinstance(payload, dict):
        raise ExtractionParseError(f"expected an object or array, got {type(payload).__name__}")
    if "events" not in payload and "analysis" not in payload:
        raise ExtractionParseError("response object has neither 'events' nor 'analysis'")

    events = payload.get("events")
    if events is None:
        events = []
    if not isinstance(events, list):
        raise ExtractionParseError("'events' must be an array")

    analysis = payload.get("analysis")
    if not isinstance(analysis, dict):
        analysis = default_analysis("No analysis was returned with the events.")
    return events, analysis


def parse_extraction_response(response_text: str) -> ExtractionOutcome:
    try:
        event_payloads, analysis = _split_payload(_load_payload(response_text))
    except ExtractionParseError as exc:
        return ExtractionParseFailure(diagnostic=str(exc))

    events: list[RawEvent] = []
    field_errors: list[EventValidationError] = []
    for extraction_index, event_payload in enumerate(event_payloads):
        try:
            event, errors = validate_event(event_payload, extraction_index=extraction_index)
        except EventValidationError as exc:
            field_errors.append(exc)
            continue
        events.append(event)
        field_errors.extend(errors)

    return ExtractionOk(events=tuple(events), analysis=analysis, field_errors=tuple(field_errors))


class ExtractionContract:
    def __init__(self, client: TextCompletionClient) -> None:
        self._client = client

    def extract(self, corpus: Corpus) -> ExtractionResult:
        prompt = build_prompt(corpus.text)
        print(
            f"[extract] requesting completion documents={len(corpus.segments)} prompt_chars={len(prompt)}",
            flush=True,
        )
        completion = self._client.complete(prompt)
        outcome = parse_extraction_response(completion.text)

        if isinstance(outcome, ExtractionParseFailure):
            diagnostic = outcome.diagnostic
            if completion.truncated:
                diagnostic = f"{diagnostic} (completion was cut off at the token limit)"
            print(f"[extract] parse failed model={completion.model} error={diagnostic}", flush=True)
            return ExtractionResult(
                events=(),
                analysis=default_analysis(f"Extraction failed: {diagnostic}"),
                parse_errors=(diagnostic,),
                model=completion.model,
                raw_response=completion.text,
            )

        print(
            f"[extract] parsed model={completion.model} events={len(outcome.events)} "
            f"field_errors={len(outcome.field_errors)}",
            flush=True,
        )
        return ExtractionResult(
            events=outcome.events,
            analysis=outcome.analysis,
            field_errors=outcome.field_errors,
            model=completion.model,
            raw_response=completion.text,
        )
