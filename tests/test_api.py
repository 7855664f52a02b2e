import json

from fastapi.testclient import TestClient

from sof_extractor.llm import CompletionResult, LLMClientError
from sof_extractor.main import app, get_ocr_client, get_text_client
from sof_extractor.services.ocr.types import OCRResult, PollResponse, PollStatus


class FakeOCRClient:
    def __init__(self, *, failing: set[str] | None = None) -> None:
        self._failing = failing or set()

    async def submit(self, content: bytes) -> str:
        return content.decode()

    async def poll(self, handle: str) -> PollResponse:
        if handle in self._failing:
            return PollResponse(status=PollStatus.FAILED, error="scan unreadable")
        return PollResponse(status=PollStatus.SUCCEEDED, result=OCRResult(text=f"SOF page: {handle}"))


class FakeTextClient:
    def __init__(self) -> None:
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> CompletionResult:
        self.prompts.append(prompt)
        payload = {
            "events": [
                {
                    "event_description": "Full Work",
                    "event_date": "12/01/17",
                    "event_start_time": "12:50",
                    "event_end_time": "16:00",
                    "source_document": 1,
                },
                {
                    "event_description": "Rain",
                    "event_date": "2017-01-12",
                    "event_start_time": "16:00",
                    "event_end_time": "17:30",
                    "source_document": 1,
                },
            ],
            "analysis": {"remarks": "Rain stopped cargo work."},
        }
        return CompletionResult(text=f"```json\n{json.dumps(payload)}\n```", model="fake-model", used_fallback=False)


class FailingTextClient:
    def complete(self, prompt: str) -> CompletionResult:
        raise LLMClientError("simulated failure")


def _files(*names: str) -> list[tuple[str, tuple[str, bytes, str]]]:
    return [("files", (f"{name}.pdf", name.encode(), "application/pdf")) for name in names]


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_extract_endpoint_returns_reconciled_events_and_records_run(client: TestClient) -> None:
    text_client = FakeTextClient()
    app.dependency_overrides[get_ocr_client] = lambda: FakeOCRClient()
    app.dependency_overrides[get_text_client] = lambda: text_client

    response = client.post("/extract", files=_files("page-one"))

    assert response.status_code == 200
    payload = response.json()
    assert [event["event_description"] for event in payload["events"]] == ["Full Work", "Rain"]
    assert payload["events"][0]["event_date"] == "2017-01-12"
    assert payload["events"][1]["category"] == "weather"
    assert payload["category_totals"]["overall_union_minutes"] == 280
    assert payload["analysis"]["remarks"] == "Rain stopped cargo work."
    assert payload["model"] == "fake-model"
    assert "=== DOCUMENT 1: page-one.pdf ===" in text_client.prompts[0]

    run_response = client.get(f"/runs/{payload['run_id']}")
    assert run_response.status_code == 200
    run = run_response.json()
    assert run["status"] == "succeeded"
    assert run["document_names"] == ["page-one.pdf"]
    assert run["event_count"] == 2
    assert run["result_json"]["events"][0]["event_id"] == 0


def test_extract_endpoint_maps_ocr_failure_to_502(client: TestClient) -> None:
    app.dependency_overrides[get_ocr_client] = lambda: FakeOCRClient(failing={"bad"})
    app.dependency_overrides[get_text_client] = lambda: FakeTextClient()

    response = client.post("/extract", files=_files("good", "bad"))

    assert response.status_code == 502
    assert response.json()["detail"].startswith("OCR failed:")
    assert "bad.pdf" in response.json()["detail"]

    runs = client.get("/runs", params={"status": "failed"}).json()
    assert [run["document_names"] for run in runs] == [["good.pdf", "bad.pdf"]]


def test_extract_endpoint_maps_llm_failure_to_502(client: TestClient) -> None:
    app.dependency_overrides[get_ocr_client] = lambda: FakeOCRClient()
    app.dependency_overrides[get_text_client] = lambda: FailingTextClient()

    response = client.post("/extract", files=_files("page"))

    assert response.status_code == 502
    assert response.json()["detail"] == "LLM request failed: simulated failure"


def test_timeline_status_endpoint_reports_precedence_and_progress(client: TestClient) -> None:
    response = client.post(
        "/timeline/status",
        json={
            "at": "2017-01-12T09:30:00",
            "events": [
                {
                    "event_description": "Full Work",
                    "event_date": "2017-01-12",
                    "event_start_time": "08:00",
                    "event_end_time": "12:00",
                },
                {
                    "event_description": "Machine Breakdown",
                    "event_date": "2017-01-12",
                    "event_start_time": "09:00",
                    "event_end_time": "10:00",
                },
            ],
        },
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "breakdown"
    assert payload["work_progress_percent"] == 37.5
    assert len(payload["active_events"]) == 2


def test_timeline_status_endpoint_is_idle_without_events(client: TestClient) -> None:
    response = client.post("/timeline/status", json={"at": "2017-01-12T09:30:00+08:00", "events": []})

    assert response.status_code == 200
    assert response.json()["status"] == "idle"
    assert response.json()["at"] == "2017-01-12T09:30:00"


def test_runs_endpoint_returns_404_for_unknown_run(client: TestClient) -> None:
    response = client.get("/runs/does-not-exist")

    assert response.status_code == 404
    assert response.json()["detail"] == "run not found"
