import asyncio

import httpx
import pytest

from sof_extractor.services.ocr.client import HttpOCRClient, OCRServiceError
from sof_extractor.services.ocr.types import PollStatus


def _client(handler) -> HttpOCRClient:
    return HttpOCRClient(
        endpoint="http://ocr.local/",
        api_key="secret",
        model_id="prebuilt-layout",
        timeout_seconds=5,
        transport=httpx.MockTransport(handler),
    )


def test_submit_posts_bytes_and_returns_operation_location() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = request.content
        captured["key"] = request.headers.get("Ocp-Apim-Subscription-Key")
        return httpx.Response(202, headers={"Operation-Location": "http://ocr.local/operations/7"})

    handle = asyncio.run(_client(handler).submit(b"%PDF-1.7"))

    assert handle == "http://ocr.local/operations/7"
    assert captured["url"] == "http://ocr.local/documentModels/prebuilt-layout:analyze"
    assert captured["body"] == b"%PDF-1.7"
    assert captured["key"] == "secret"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"error": {"message": "denied"}}),
        httpx.Response(202),
    ],
)
def test_submit_rejects_unexpected_responses(response: httpx.Response) -> None:
    with pytest.raises(OCRServiceError):
        asyncio.run(_client(lambda request: response).submit(b"doc"))


def test_poll_parses_succeeded_payload_into_ocr_result() -> None:
    payload = {
        "status": "succeeded",
        "analyzeResult": {
            "content": "STATEMENT OF FACTS",
            "tables": [
                {
                    "rowCount": 2,
                    "columnCount": 2,
                    "cells": [
                        {"rowIndex": 0, "columnIndex": 0, "content": "A"},
                        {"rowIndex": 1, "columnIndex": 1, "content": "B"},
                    ],
                }
            ],
            "paragraphs": [{"content": "Vessel arrived"}, {"role": "footer"}],
        },
    }

    response = asyncio.run(_client(lambda request: httpx.Response(200, json=payload)).poll("http://ocr.local/op"))

    assert response.status is PollStatus.SUCCEEDED
    assert response.result is not None
    assert response.result.text == "STATEMENT OF FACTS"
    assert response.result.tables[0].row_count == 2
    assert [cell.content for cell in response.result.tables[0].cells] == ["A", "B"]
    assert response.result.paragraphs == ("Vessel arrived",)


def test_poll_maps_running_and_failed_statuses() -> None:
    running = asyncio.run(
        _client(lambda request: httpx.Response(200, json={"status": "running"})).poll("http://ocr.local/op")
    )
    failed = asyncio.run(
        _client(
            lambda request: httpx.Response(200, json={"status": "failed", "error": {"message": "bad scan"}})
        ).poll("http://ocr.local/op")
    )

    assert running.status is PollStatus.PENDING
    assert failed.status is PollStatus.FAILED
    assert failed.error == "bad scan"


def test_poll_success_without_content_has_no_result() -> None:
    response = asyncio.run(
        _client(lambda request: httpx.Response(200, json={"status": "succeeded", "analyzeResult": {}})).poll(
            "http://ocr.local/op"
        )
    )

    assert response.status is PollStatus.SUCCEEDED
    assert response.result is None


def test_poll_raises_on_http_error_or_unknown_status() -> None:
    with pytest.raises(OCRServiceError, match="poll failed"):
        asyncio.run(_client(lambda request: httpx.Response(500)).poll("http://ocr.local/op"))

    with pytest.raises(OCRServiceError, match="unknown status"):
        asyncio.run(
            _client(lambda request: httpx.Response(200, json={"status": "paused"})).poll("http://ocr.local/op")
        )
