from __future__ import annotations

from typing import Any, Protocol

import httpx

from sof_extractor.services.ocr.types import Cell, OCRResult, PollResponse, PollStatus, Table

PENDING_STATUSES = {"notstarted", "running", "pending", "queued"}


class OCRServiceError(RuntimeError):
    pass


class OCRClient(Protocol):
    async def submit(self, content: bytes) -> str: ...

    async def poll(self, handle: str) -> PollResponse: ...


def _as_int(value: Any, *, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return default


def _parse_table(payload: Any) -> Table | None:
    if not isinstance(payload, dict):
        return None

    cells: list[Cell] = []
    for cell in payload.get("cells") or []:
        if not isinstance(cell, dict):
            continue
        content = cell.get("content")
        cells.append(
            Cell(
                row=_as_int(cell.get("rowIndex")),
                column=_as_int(cell.get("columnIndex")),
                content=content if isinstance(content, str) else "",
            )
        )

    return Table(
        row_count=_as_int(payload.get("rowCount")),
        column_count=_as_int(payload.get("columnCount")),
        cells=tuple(cells),
    )


def parse_analyze_result(payload: Any) -> OCRResult | None:
    if not isinstance(payload, dict):
        return None
    content = payload.get("content")
    if not isinstance(content, str):
        return None

    tables = [_parse_table(table) for table in payload.get("tables") or []]
    paragraphs = [
        paragraph.get("content")
        for paragraph in payload.get("paragraphs") or []
        if isinstance(paragraph, dict) and isinstance(paragraph.get("content"), str)
    ]
    return OCRResult(
        text=content,
        tables=tuple(table for table in tables if table is not None),
        paragraphs=tuple(paragraphs),
    )


class HttpOCRClient:
    def __init__(
        self,
        *,
        endpoint: str,
        api_key: str = "",
        model_id: str = "prebuilt-layout",
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._api_key = api_key
        self._model_id = model_id
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Ocp-Apim-Subscription-Key": self._api_key}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport)

    async def submit(self, content: bytes) -> str:
        url = f"{self._endpoint}/documentModels/{self._model_id}:analyze"
        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    content=content,
                    headers={**self._headers(), "Content-Type": "application/octet-stream"},
                )
        except httpx.HTTPError as exc:
            raise OCRServiceError(f"OCR submission failed: {exc}") from exc

        if not response.is_success:
            raise OCRServiceError(
                f"Unexpected OCR submission response: {response.status_code} {response.text[:200]}"
            )

        handle = response.headers.get("operation-location")
        if not handle:
            raise OCRServiceError("OCR submission response is missing the operation location")
        return handle

    async def poll(self, handle: str) -> PollResponse:
        try:
            async with self._client() as client:
                response = await client.get(handle, headers=self._headers())
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise OCRServiceError(f"OCR status poll failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise OCRServiceError("Invalid OCR status payload: expected an object")

        status = str(payload.get("status", "")).strip().lower()
        if status == "succeeded":
            return PollResponse(
                status=PollStatus.SUCCEEDED,
                result=parse_analyze_result(payload.get("analyzeResult")),
            )
        if status == "failed":
            error = payload.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            return PollResponse(status=PollStatus.FAILED, error=message or "Unknown error")
        if status in PENDING_STATUSES:
            return PollResponse(status=PollStatus.PENDING)

        raise OCRServiceError(f"Invalid OCR status payload: unknown status {status!r}")
