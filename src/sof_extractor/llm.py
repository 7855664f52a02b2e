from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx

SYSTEM_PROMPT = (
    "You read OCR text of maritime Statement of Facts documents and return the port call "
    "as structured events. Copy dates and times exactly as the documents state them, keep "
    "each event tied to the DOCUMENT header it came from, and reply with a single JSON "
    "object and nothing else."
)


class LLMClientError(RuntimeError):
    pass


@dataclass(frozen=True)
class CompletionResult:
    text: str
    model: str
    used_fallback: bool
    truncated: bool = False


class TextCompletionClient(Protocol):
    def complete(self, prompt: str) -> CompletionResult: ...


def parse_chat_completion(payload: Any) -> tuple[str, bool]:
    """Return the assistant text and whether generation stopped on the token limit."""
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ValueError("Invalid chat completion payload: missing choices")

    choice = choices[0]
    message = choice.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise ValueError("Invalid chat completion payload: missing assistant content")

    return content.strip(), choice.get("finish_reason") == "length"


class OllamaChatClient:
    """Chat-completions client that asks for JSON output and retries once on a smaller model."""

    def __init__(
        self,
        *,
        base_url: str,
        default_model: str,
        fallback_model: str,
        timeout_seconds: float = 120.0,
        json_mode: bool = True,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._models = [default_model]
        if fallback_model and fallback_model != default_model:
            self._models.append(fallback_model)
        self._timeout_seconds = timeout_seconds
        self._json_mode = json_mode

    def complete(self, prompt: str) -> CompletionResult:
        failures: list[str] = []
        for position, model in enumerate(self._models):
            try:
                text, truncated = self._request(model=model, prompt=prompt)
            except (httpx.HTTPError, ValueError) as exc:
                failures.append(f"{model}: {exc}")
                print(f"[extract] model={model} failed error={exc}", flush=True)
                continue

            if truncated:
                print(f"[extract] model={model} hit the token limit; output may be cut short", flush=True)
            return CompletionResult(
                text=text,
                model=model,
                used_fallback=position > 0,
                truncated=truncated,
            )

        raise LLMClientError("; ".join(failures) or "No model candidates configured")

    def _request_body(self, *, model: str, prompt: str) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0,
        }
        if self._json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    def _request(self, *, model: str, prompt: str) -> tuple[str, bool]:
        response = httpx.post(
            f"{self._base_url}/chat/completions",
            json=self._request_body(model=model, prompt=prompt),
            timeout=self._timeout_seconds,
        )
        response.raise_for_status()
        return parse_chat_completion(response.json())
