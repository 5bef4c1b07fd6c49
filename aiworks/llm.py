"""Google Gemini ``generateContent`` client.

Uses httpx against the public REST API:
``POST {base_url}/models/{model}:generateContent?key=...``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .config import app_config
from .errors import InvalidAPIKeyError, LLMError, MissingAPIKeyError

logger = logging.getLogger(__name__)

GEMINI_MODELS = ("gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro", "gemini-pro-vision")


@dataclass(slots=True)
class GenerationResult:
    text: str
    model: str
    finish_reason: str = "STOP"
    raw: dict[str, Any] = field(default_factory=dict)


def build_request_body(
    prompt: str,
    *,
    temperature: float | None = None,
    max_output_tokens: int | None = None,
    top_p: float | None = None,
    top_k: int | None = None,
) -> dict[str, Any]:
    generation_config: dict[str, Any] = {}
    if temperature is not None:
        generation_config["temperature"] = float(temperature)
    if max_output_tokens is not None:
        generation_config["maxOutputTokens"] = int(max_output_tokens)
    if top_p is not None:
        generation_config["topP"] = float(top_p)
    if top_k is not None:
        generation_config["topK"] = int(top_k)
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": generation_config,
    }


def extract_text(payload: dict[str, Any]) -> tuple[str, str]:
    """Return (text, finish_reason) from the first candidate of a response."""
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return "", "STOP"
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    finish_reason = str(first.get("finishReason") or "STOP")
    content = first.get("content")
    if not isinstance(content, dict):
        return "", finish_reason
    parts = content.get("parts")
    if not isinstance(parts, list):
        return "", finish_reason
    texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
    return "\n".join(texts), finish_reason


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Unknown error"


class GeminiClient:
    """Async client for the Gemini REST API.

    A fresh ``httpx.AsyncClient`` is opened per request; ``transport`` lets
    tests substitute ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = app_config.llm_settings()
        self.base_url = str(base_url or settings["base_url"]).rstrip("/")
        self.default_model = str(default_model or settings["model"])
        self.timeout = float(timeout if timeout is not None else settings["timeout"])
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def generate(
        self,
        prompt: str,
        *,
        api_key: str,
        model: str | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        top_p: float | None = None,
        top_k: int | None = None,
    ) -> GenerationResult:
        if not api_key:
            raise MissingAPIKeyError("gemini")
        model_id = model or self.default_model
        url = f"{self.base_url}/models/{model_id}:generateContent"
        body = build_request_body(
            prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            top_p=top_p,
            top_k=top_k,
        )
        logger.debug("generateContent model=%s prompt_chars=%d", model_id, len(prompt))

        try:
            async with self._client() as client:
                response = await client.post(url, params={"key": api_key}, json=body)
        except httpx.TimeoutException as exc:
            raise LLMError(f"LLM request timed out: {exc}", model=model_id) from exc
        except httpx.HTTPError as exc:
            raise LLMError(f"LLM request failed: {exc}", model=model_id) from exc

        if response.status_code >= 400:
            raise LLMError(
                f"LLM API error: {_error_message(response)}",
                model=model_id,
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise LLMError("LLM API returned invalid JSON", model=model_id) from exc

        text, finish_reason = extract_text(payload)
        return GenerationResult(text=text, model=model_id, finish_reason=finish_reason, raw=payload)

    async def validate_key(self, api_key: str) -> None:
        """Round-trip one model listing request; raises when the key is rejected."""
        if not api_key or not api_key.strip():
            raise MissingAPIKeyError("gemini")
        try:
            async with self._client() as client:
                response = await client.get(f"{self.base_url}/models", params={"key": api_key})
        except httpx.HTTPError as exc:
            raise InvalidAPIKeyError("gemini", f"Validation request failed: {exc}") from exc
        if response.status_code >= 400:
            logger.warning("API key validation failed: %s", _error_message(response))
            raise InvalidAPIKeyError("gemini", _error_message(response))
