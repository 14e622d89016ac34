"""Summarization gateway: turns an ordered chat transcript into prose via Gemini."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Protocol

import httpx

from app.config.loader import get_summarization_settings
from app.services.errors import SummarizationError

logger = logging.getLogger("meetline.summarization")

SUMMARY_PROMPT_TEMPLATE = """Summarize the following meeting conversation.
Include:
- Main topics
- Decisions made
- Pending actions

Conversation:
{conversation}
"""


class Summarizer(Protocol):
    def summarize(self, entries: Iterable[Any]) -> str: ...


def _entry_field(entry: Any, field: str) -> str:
    if isinstance(entry, dict):
        value = entry.get(field)
    else:
        value = getattr(entry, field, None)
    return "" if value is None else str(value)


def build_transcript_text(entries: Iterable[Any]) -> str:
    """Render entries as ``name: message`` lines, preserving their order."""
    return "\n".join(
        f"{_entry_field(entry, 'name')}: {_entry_field(entry, 'message')}"
        for entry in entries
    )


def build_summary_prompt(entries: Iterable[Any]) -> str:
    return SUMMARY_PROMPT_TEMPLATE.format(conversation=build_transcript_text(entries))


class GeminiSummarizer:
    """Calls the Gemini generateContent REST endpoint with a bounded timeout."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        timeout_seconds: float = 30,
        temperature: float = 0.2,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._temperature = temperature
        self._client = client

    @classmethod
    def from_settings(
        cls, settings: Optional[Dict[str, Any]] = None, client: Optional[httpx.Client] = None
    ) -> "GeminiSummarizer":
        settings = settings or get_summarization_settings()
        return cls(
            api_key=settings.get("api_key"),
            model=settings["model"],
            base_url=settings["base_url"],
            timeout_seconds=settings["timeout_seconds"],
            temperature=settings["temperature"],
            client=client,
        )

    def _endpoint(self) -> str:
        model_name = self._model
        if not model_name.startswith("models/"):
            model_name = f"models/{model_name}"
        return f"{self._base_url}/v1beta/{model_name}:generateContent"

    def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        kwargs = {
            "params": {"key": self._api_key},
            "headers": {"Content-Type": "application/json"},
            "json": payload,
            "timeout": self._timeout,
        }
        if self._client is not None:
            return self._client.post(self._endpoint(), **kwargs)
        with httpx.Client() as client:
            return client.post(self._endpoint(), **kwargs)

    def summarize(self, entries: Iterable[Any]) -> str:
        """Return the summary text; any failure or empty output raises SummarizationError."""
        if not self._api_key:
            raise SummarizationError("Summarization API key is not configured")

        payload = {
            "contents": [{"parts": [{"text": build_summary_prompt(entries)}]}],
            "generationConfig": {"temperature": self._temperature},
        }
        try:
            response = self._post(payload)
        except httpx.TimeoutException as exc:
            logger.warning("Gemini request timed out after %ss", self._timeout)
            raise SummarizationError("Summarization timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Failed to reach Gemini API: %s", exc)
            raise SummarizationError("Failed to reach summarization service") from exc

        if response.status_code != 200:
            logger.error(
                "Gemini error: %s - %s", response.status_code, response.text[:500]
            )
            raise SummarizationError(f"Summarization service error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SummarizationError("Summarization service returned invalid JSON") from exc

        candidates = data.get("candidates") or []
        if not candidates:
            raise SummarizationError("Summarization response missing candidates")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(str(part.get("text") or "") for part in parts).strip()
        if not text:
            raise SummarizationError("Summarization returned no content")
        logger.info("Generated summary (%d chars)", len(text))
        return text


def get_summarizer() -> Summarizer:
    """Dependency provider for the summarization gateway."""
    settings = get_summarization_settings()
    if settings["provider"] != "gemini":
        logger.warning(
            "Unsupported summarization provider %r; falling back to gemini",
            settings["provider"],
        )
    return GeminiSummarizer.from_settings(settings)
