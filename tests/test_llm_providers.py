"""
Tests for the hosted provider adapters.

HTTP traffic is served by httpx.MockTransport; no network is used.
"""

import base64
import json

import httpx
import pytest

from fakes import FakeTextProvider
from spoken_interview.providers import (
    GeminiProvider,
    OpenRouterProvider,
    ProviderError,
    ProviderGateway,
    ProviderTimeout,
    ResultKind,
    SarvamProvider,
)


def mock_client(handler, base_url: str) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)


class TestGeminiProvider:
    """Tests for GeminiProvider."""

    @pytest.mark.asyncio
    async def test_extracts_candidate_text(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": '{"score": 6}'}]}}]},
            )

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            provider = GeminiProvider(api_key="test-key", model="gemini-test", client=client)
            text = await provider.complete("Evaluate this", json_output=True)

        assert text == '{"score": 6}'
        assert seen["path"] == "/v1beta/models/gemini-test:generateContent"
        assert seen["key"] == "test-key"
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "Evaluate this"

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="overloaded")

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            provider = GeminiProvider(api_key="test-key", client=client)
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.status_code == 503
        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_client_error_is_not_transient(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "bad request"}})

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            provider = GeminiProvider(api_key="test-key", client=client)
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.status_code == 400
        assert not exc_info.value.transient

    @pytest.mark.asyncio
    async def test_read_timeout_maps_to_provider_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            provider = GeminiProvider(api_key="test-key", client=client)
            with pytest.raises(ProviderTimeout):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    async def test_blocked_prompt_has_no_candidates(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            provider = GeminiProvider(api_key="test-key", client=client)
            with pytest.raises(ProviderError, match="SAFETY"):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    async def test_missing_api_key(self) -> None:
        provider = GeminiProvider(api_key="")

        with pytest.raises(ProviderError, match="not configured"):
            await provider.complete("prompt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"candidates": ["oops"]},
            {"candidates": [{"content": "oops"}]},
            {"candidates": [{"content": {"parts": "oops"}}]},
            {"candidates": "oops"},
        ],
    )
    async def test_malformed_candidates_raise_provider_error(self, payload: dict) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            provider = GeminiProvider(api_key="test-key", client=client)
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.provider == "gemini"
        assert not exc_info.value.transient

    @pytest.mark.asyncio
    async def test_malformed_reply_falls_back_to_next_provider(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": ["oops"]})

        async with mock_client(handler, "https://gemini.test/v1beta") as client:
            gateway = ProviderGateway(
                question_providers=[
                    GeminiProvider(api_key="test-key", client=client),
                    FakeTextProvider("backup", default='{"questions": ["Why Python?"]}'),
                ],
                timeout_s=1.0,
                transient_retries=0,
            )
            result = await gateway.generate("prompt", ResultKind.QUESTIONS)

        assert result.provider == "backup"
        assert result.questions == ["Why Python?"]
        assert [f.provider for f in result.failures] == ["gemini"]

    def test_zero_timeout_is_kept(self) -> None:
        provider = GeminiProvider(api_key="test-key", timeout=0)

        assert provider._timeout == 0


class TestOpenRouterProvider:
    """Tests for OpenRouterProvider."""

    @pytest.mark.asyncio
    async def test_extracts_message_content(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": " hello "}}]})

        async with mock_client(handler, "https://openrouter.test/api/v1") as client:
            provider = OpenRouterProvider(api_key="or-key", model="some/model", client=client)
            text = await provider.complete("Say hello", json_output=True)

        assert text == "hello"
        assert seen["auth"] == "Bearer or-key"
        assert seen["body"]["model"] == "some/model"
        assert seen["body"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_error_inside_ok_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": {"message": "Rate limited", "code": 429}})

        async with mock_client(handler, "https://openrouter.test/api/v1") as client:
            provider = OpenRouterProvider(api_key="or-key", client=client)
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.status_code == 429
        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        async with mock_client(handler, "https://openrouter.test/api/v1") as client:
            provider = OpenRouterProvider(api_key="or-key", client=client)
            with pytest.raises(ProviderError, match="non-JSON"):
                await provider.complete("prompt")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"choices": ["oops"]}, {"choices": [{"message": "oops"}]}, {"choices": {}}])
    async def test_malformed_choices_raise_provider_error(self, payload: dict) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with mock_client(handler, "https://openrouter.test/api/v1") as client:
            provider = OpenRouterProvider(api_key="or-key", client=client)
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("prompt")

        assert exc_info.value.provider == "openrouter"


class TestSarvamProvider:
    """Tests for SarvamProvider."""

    @pytest.mark.asyncio
    async def test_decodes_base64_audio(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("api-subscription-key")
            seen["body"] = json.loads(request.content)
            chunks = [base64.b64encode(b"RIFF").decode(), base64.b64encode(b"WAVE").decode()]
            return httpx.Response(200, json={"audios": chunks})

        async with mock_client(handler, "https://sarvam.test") as client:
            provider = SarvamProvider(api_key="s-key", language_code="en-IN", client=client)
            audio, mime_type = await provider.synthesize("Hello.", "anushka")

        assert audio == b"RIFFWAVE"
        assert mime_type == "audio/wav"
        assert seen["key"] == "s-key"
        assert seen["body"]["speaker"] == "anushka"
        assert seen["body"]["target_language_code"] == "en-IN"

    @pytest.mark.asyncio
    async def test_missing_audio(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"audios": []})

        async with mock_client(handler, "https://sarvam.test") as client:
            provider = SarvamProvider(api_key="s-key", client=client)
            with pytest.raises(ProviderError, match="no audio"):
                await provider.synthesize("Hello.", "anushka")

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={})

        async with mock_client(handler, "https://sarvam.test") as client:
            provider = SarvamProvider(api_key="s-key", client=client)
            await provider.close()
            assert not client.is_closed
