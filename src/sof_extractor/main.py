from datetime import datetime, timedelta, timezone
from typing import Annotated, Any
from uuid import uuid4

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from sof_extractor.config import get_settings
from sof_extractor.db import get_engine, open_session
from sof_extractor.llm import LLMClientError, TextCompletionClient
from sof_extractor.models import ExtractionRunRecord
from sof_extractor.pipeline import PipelineClients, SOFPipeline, build_http_clients, status_at
from sof_extractor.serialization import serialize_result, serialize_status, to_iso
from sof_extractor.services.extraction import validate_event
from sof_extractor.services.ocr import BatchAbortedError, Document, OCRClient
from sof_extractor.services.timeline import reconcile

app = FastAPI(title="SOF Event Extractor API", version="0.1.0")


class TimelineStatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    events: list[dict[str, Any]] = Field(default_factory=list)
    at: datetime


@app.on_event("startup")
def startup() -> None:
    get_engine()


def get_ocr_client() -> OCRClient:
    return build_http_clients(get_settings()).ocr_client


def get_text_client() -> TextCompletionClient:
    return build_http_clients(get_settings()).text_client


def get_pipeline(
    ocr_client: Annotated[OCRClient, Depends(get_ocr_client)],
    text_client: Annotated[TextCompletionClient, Depends(get_text_client)],
) -> SOFPipeline:
    clients = PipelineClients(ocr_client=ocr_client, text_client=text_client)
    return SOFPipeline.from_settings(clients, get_settings())


def _record_run(
    run_id: str,
    *,
    document_names: list[str],
    status: str,
    payload: dict[str, Any] | None = None,
    error: str | None = None,
) -> None:
    diagnostics = (payload or {}).get("diagnostics", {})
    with open_session() as session:
        session.add(
            ExtractionRunRecord(
                id=run_id,
                status=status,
                document_names=document_names,
                event_count=len((payload or {}).get("events", [])),
                duplicates_removed=len(diagnostics.get("duplicates_removed", [])),
                parse_errors=len(diagnostics.get("parse_errors", [])),
                error=error,
                result_json=payload,
                finished_at=datetime.now(timezone.utc),
            )
        )
        session.commit()


def _run_summary(run: ExtractionRunRecord) -> dict[str, Any]:
    return {
        "id": run.id,
        "status": run.status,
        "document_names": run.document_names,
        "event_count": run.event_count,
    }


def _run_detail(run: ExtractionRunRecord) -> dict[str, Any]:
    return {
        **_run_summary(run),
        "duplicates_removed": run.duplicates_removed,
        "parse_errors": run.parse_errors,
        "error": run.error,
        "created_at": to_iso(run.created_at),
        "finished_at": to_iso(run.finished_at),
        "result_json": run.result_json,
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/extract")
async def extract(
    files: Annotated[list[UploadFile], File()],
    pipeline: Annotated[SOFPipeline, Depends(get_pipeline)],
) -> dict[str, Any]:
    documents = [
        Document(index=index, name=upload.filename or f"document-{index + 1}", content=await upload.read())
        for index, upload in enumerate(files)
    ]
    document_names = [document.name for document in documents]
    run_id = uuid4().hex

    try:
        result = await pipeline.extract(documents)
    except BatchAbortedError as exc:
        _record_run(run_id, document_names=document_names, status="failed", error=str(exc))
        raise HTTPException(status_code=502, detail=f"OCR failed: {exc}") from exc
    except LLMClientError as exc:
        _record_run(run_id, document_names=document_names, status="failed", error=str(exc))
        raise HTTPException(status_code=502, detail=f"LLM request failed: {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    payload = serialize_result(result)
    _record_run(run_id, document_names=document_names, status="succeeded", payload=payload)
    return {"run_id": run_id, **payload}


@app.post("/timeline/status")
def timeline_status(request: TimelineStatusRequest) -> dict[str, Any]:
    settings = get_settings()
    raw_events = [
        validate_event(payload, extraction_index=index)[0]
        for index, payload in enumerate(request.events)
    ]
    reconciliation = reconcile(raw_events, near_duplicate_ratio=settings.near_duplicate_overlap_ratio)

    status = status_at(
        reconciliation.events,
        request.at,
        fallback=timedelta(minutes=settings.open_event_fallback_minutes),
    )
    return serialize_status(status)


@app.get("/runs")
def list_runs(status: str | None = None) -> list[dict[str, Any]]:
    with open_session() as session:
        stmt = select(ExtractionRunRecord)
        if status is not None:
            stmt = stmt.where(ExtractionRunRecord.status == status)
        runs = session.scalars(
            stmt.order_by(ExtractionRunRecord.created_at.asc(), ExtractionRunRecord.id.asc())
        ).all()

    return [_run_summary(run) for run in runs]


@app.get("/runs/{run_id}")
def get_run(run_id: str) -> dict[str, Any]:
    with open_session() as session:
        run = session.get(ExtractionRunRecord, run_id)

    if run is None:
        raise HTTPException(status_code=404, detail="run not found")
    return _run_detail(run)


def run() -> None:
    import uvicorn

    uvicorn.run("sof_extractor.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
