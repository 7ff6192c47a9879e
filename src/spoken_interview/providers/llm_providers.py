"""
LLM providers.

Thin httpx adapters for the hosted text generation APIs used for question
generation and answer evaluation. Each adapter extracts the generated text
from its own response shape and translates HTTP failures into
ProviderError/ProviderTimeout; everything else is left to the gateway.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from spoken_interview.config import get_settings
from spoken_interview.providers.base import ProviderError, ProviderTimeout, TextProvider

logger = logging.getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class HTTPProviderMixin:
    """Shared httpx client handling for hosted providers."""

    name = "http"

    def _init_http(
        self,
        base_url: str,
        timeout: float,
        client: httpx.AsyncClient | None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _post_json(self, path: str, payload: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        """
        POST a JSON payload and return the decoded JSON body.

        Raises:
            ProviderTimeout: If the request timed out.
            ProviderError: On transport errors, non-2xx status or a non-JSON body.
        """
        client = await self._get_client()
        try:
            response = await client.post(path, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"{self.name} timed out: {e}", provider=self.name) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text[:200]
            raise ProviderError(
                f"{self.name} returned HTTP {status}: {body}",
                provider=self.name,
                status_code=status,
                transient=status in TRANSIENT_STATUS_CODES,
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(f"{self.name} transport error: {e}", provider=self.name) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"{self.name} returned a non-JSON body", provider=self.name) from e
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name} returned unexpected payload type", provider=self.name)
        return data

    def _require_key(self, api_key: str) -> None:
        if not api_key:
            raise ProviderError(f"{self.name} API key is not configured", provider=self.name)


class GeminiProvider(HTTPProviderMixin, TextProvider):
    """Google Gemini `generateContent` adapter."""

    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = settings.gemini_api_key if api_key is None else api_key
        self._model = model or settings.gemini_model
        self._init_http(
            base_url or settings.gemini_base_url,
            timeout if timeout is not None else settings.provider_timeout_s,
            client,
        )

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    async def complete(self, prompt: str, *, temperature: float = 0.7, json_output: bool = False) -> str:
        self._require_key(self._api_key)

        generation_config: dict[str, Any] = {"temperature": temperature}
        if json_output:
            generation_config["responseMimeType"] = "application/json"
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        data = await self._post_json(
            f"/models/{self._model}:generateContent",
            payload,
            headers={"x-goog-api-key": self._api_key},
        )
        return self._extract_text(data)

    def _extract_text(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            feedback = data.get("promptFeedback")
            reason = feedback.get("blockReason", "no candidates") if isinstance(feedback, dict) else "no candidates"
            raise ProviderError(f"gemini returned no candidates ({reason})", provider=self.name)

        candidate = candidates[0]
        content = candidate.get("content") if isinstance(candidate, dict) else None
        if not isinstance(content, dict):
            raise ProviderError("gemini returned a malformed candidate", provider=self.name)
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ProviderError("gemini returned malformed content parts", provider=self.name)
        text = "".join(str(part.get("text", "")) for part in parts if isinstance(part, dict)).strip()
        if not text:
            raise ProviderError("gemini returned empty text", provider=self.name)
        return text


class OpenRouterProvider(HTTPProviderMixin, TextProvider):
    """OpenRouter chat completions adapter (OpenAI-compatible)."""

    name = "openrouter"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = settings.openrouter_api_key if api_key is None else api_key
        self._model = model or settings.openrouter_model
        self._init_http(
            base_url or settings.openrouter_base_url,
            timeout if timeout is not None else settings.provider_timeout_s,
            client,
        )

    @property
    def model(self) -> str:
        """Get the model name."""
        return self._model

    async def complete(self, prompt: str, *, temperature: float = 0.7, json_output: bool = False) -> str:
        self._require_key(self._api_key)

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
        }
        if json_output:
            payload["response_format"] = {"type": "json_object"}
        data = await self._post_json(
            "/chat/completions",
            payload,
            headers={"Authorization": f"Bearer {self._api_key}"},
        )

        # OpenRouter reports upstream failures inside a 200 body.
        if "error" in data:
            err = data["error"] or {}
            code = err.get("code") if isinstance(err, dict) else None
            raise ProviderError(
                f"openrouter error: {err.get('message', err) if isinstance(err, dict) else err}",
                provider=self.name,
                status_code=code if isinstance(code, int) else None,
                transient=isinstance(code, int) and code in TRANSIENT_STATUS_CODES,
            )

        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            raise ProviderError("openrouter returned no choices", provider=self.name)
        choice = choices[0]
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise ProviderError("openrouter returned a malformed choice", provider=self.name)
        content = message.get("content") or ""
        if not isinstance(content, str) or not content.strip():
            raise ProviderError("openrouter returned empty content", provider=self.name)
        return content.strip()
