from dataclasses import dataclass
from functools import lru_cache
import os

BATCH_FAILURE_POLICIES = {"fail_fast", "skip_failed"}


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_float(value: str | None, *, default: float, minimum: float, maximum: float | None = None) -> float:
    if value is None:
        return default
    parsed = max(minimum, float(value))
    if maximum is not None:
        parsed = min(maximum, parsed)
    return parsed


def _to_policy(value: str | None) -> str:
    if value is None:
        return "fail_fast"
    normalized = value.strip().lower()
    if normalized not in BATCH_FAILURE_POLICIES:
        raise ValueError(
            f"SOF_BATCH_FAILURE_POLICY must be one of {sorted(BATCH_FAILURE_POLICIES)}, got {value!r}"
        )
    return normalized


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool
    ocr_endpoint: str
    ocr_api_key: str
    ocr_model_id: str
    ocr_poll_interval_seconds: float
    ocr_max_poll_attempts: int
    ocr_max_concurrency: int
    ocr_timeout_seconds: float
    ollama_base_url: str
    ollama_model: str
    ollama_fallback_model: str
    ollama_timeout_seconds: float
    ollama_json_mode: bool
    near_duplicate_overlap_ratio: float
    open_event_fallback_minutes: int
    batch_failure_policy: str


@lru_cache
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("SOF_DATABASE_URL", "sqlite+pysqlite:///./sof_runs.db"),
        db_echo=_to_bool(os.getenv("SOF_DB_ECHO"), default=False),
        ocr_endpoint=os.getenv("OCR_ENDPOINT", "http://localhost:5000"),
        ocr_api_key=os.getenv("OCR_API_KEY", ""),
        ocr_model_id=os.getenv("OCR_MODEL_ID", "prebuilt-layout"),
        ocr_poll_interval_seconds=_to_float(
            os.getenv("OCR_POLL_INTERVAL_SECONDS"), default=1.0, minimum=0.0
        ),
        ocr_max_poll_attempts=_to_int(os.getenv("OCR_MAX_POLL_ATTEMPTS"), default=30, minimum=1),
        ocr_max_concurrency=_to_int(os.getenv("OCR_MAX_CONCURRENCY"), default=4, minimum=1),
        ocr_timeout_seconds=float(os.getenv("OCR_TIMEOUT_SECONDS", "60")),
        ollama_base_url=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
        ollama_model=os.getenv("OLLAMA_MODEL", "qwen2.5:7b-instruct-q4_K_M"),
        ollama_fallback_model=os.getenv("OLLAMA_FALLBACK_MODEL", "qwen2.5:3b-instruct-q4_K_M"),
        ollama_timeout_seconds=float(os.getenv("OLLAMA_TIMEOUT_SECONDS", "120")),
        ollama_json_mode=_to_bool(os.getenv("OLLAMA_JSON_MODE"), default=True),
        near_duplicate_overlap_ratio=_to_float(
            os.getenv("SOF_NEAR_DUPLICATE_OVERLAP_RATIO"), default=0.5, minimum=0.0, maximum=1.0
        ),
        open_event_fallback_minutes=_to_int(
            os.getenv("SOF_OPEN_EVENT_FALLBACK_MINUTES"), default=60, minimum=1
        ),
        batch_failure_policy=_to_policy(os.getenv("SOF_BATCH_FAILURE_POLICY")),
    )
