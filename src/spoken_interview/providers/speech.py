"""Text-to-speech.

The orchestrator only knows the `Speaker` protocol. `GatewaySpeaker`
synthesizes through the gateway's speech providers and hands the audio to
an `AudioSink`; playback devices live outside this package.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import hashlib
import logging
import re
from pathlib import Path
from typing import Any, Protocol

import httpx

from spoken_interview.config import get_settings
from spoken_interview.providers.base import ProviderError, SpeechProvider
from spoken_interview.providers.llm_providers import HTTPProviderMixin

logger = logging.getLogger(__name__)

_MIME_SUFFIX = {"audio/wav": ".wav", "audio/mpeg": ".mp3", "audio/ogg": ".ogg"}


class Speaker(Protocol):
    async def speak(self, text: str, voice_id: str) -> None: ...


class AudioSink(Protocol):
    async def play(self, audio: bytes, mime_type: str) -> None: ...


class SarvamProvider(HTTPProviderMixin, SpeechProvider):
    """Sarvam AI text-to-speech adapter."""

    name = "sarvam"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        language_code: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = settings.sarvam_api_key if api_key is None else api_key
        self._model = model or settings.sarvam_model
        self._language_code = language_code or settings.sarvam_language_code
        self._init_http(
            base_url or settings.sarvam_base_url,
            timeout if timeout is not None else settings.provider_timeout_s,
            client,
        )

    async def synthesize(self, text: str, voice_id: str) -> tuple[bytes, str]:
        self._require_key(self._api_key)

        payload: dict[str, Any] = {
            "text": text,
            "target_language_code": self._language_code,
            "speaker": voice_id,
            "model": self._model,
        }
        data = await self._post_json(
            "/text-to-speech",
            payload,
            headers={"api-subscription-key": self._api_key},
        )

        audios = data.get("audios") or []
        if not audios or not isinstance(audios[0], str):
            raise ProviderError("sarvam returned no audio", provider=self.name)
        try:
            audio = b"".join(base64.b64decode(chunk, validate=True) for chunk in audios)
        except (binascii.Error, ValueError) as e:
            raise ProviderError("sarvam returned invalid base64 audio", provider=self.name) from e
        return audio, "audio/wav"


class FileAudioSink:
    """Writes each utterance to the artifacts directory instead of a device."""

    def __init__(self, out_dir: str | Path) -> None:
        self._out_dir = Path(out_dir)
        self._count = 0
        self.written: list[Path] = []

    async def play(self, audio: bytes, mime_type: str) -> None:
        self._out_dir.mkdir(parents=True, exist_ok=True)
        self._count += 1
        digest = hashlib.sha1(audio).hexdigest()[:12]
        path = self._out_dir / f"utterance_{self._count:03d}_{digest}{_MIME_SUFFIX.get(mime_type, '.bin')}"
        await asyncio.to_thread(path.write_bytes, audio)
        self.written.append(path)
        logger.debug(f"[VOICE][TTS] wrote {path}")


class TextSpeaker:
    """Prints questions instead of speaking them (TTS disabled)."""

    async def speak(self, text: str, voice_id: str) -> None:
        print(f"\n[Interviewer] {text}\n", flush=True)


class GatewaySpeaker:
    """Speaks text through the gateway's speech providers."""

    def __init__(self, gateway: Any, sink: AudioSink, max_chars_per_chunk: int = 450) -> None:
        self._gateway = gateway
        self._sink = sink
        self._max_chars = max_chars_per_chunk

    async def speak(self, text: str, voice_id: str) -> None:
        for chunk in self.chunk_text(text):
            result = await self._gateway.synthesize(chunk, voice_id)
            await self._sink.play(result.audio, result.mime_type)

    def chunk_text(self, text: str) -> list[str]:
        """Split text on sentence boundaries into provider-sized chunks."""
        t = (text or "").strip()
        if not t:
            return []

        parts = [p.strip() for p in re.split(r"(?<=[.!?])\s+", t) if p.strip()]
        chunks: list[str] = []
        current = ""
        for part in parts:
            while len(part) > self._max_chars:
                if current:
                    chunks.append(current)
                    current = ""
                chunks.append(part[: self._max_chars])
                part = part[self._max_chars :]
            if not current:
                current = part
            elif len(current) + 1 + len(part) <= self._max_chars:
                current = f"{current} {part}"
            else:
                chunks.append(current)
                current = part
        if current:
            chunks.append(current)
        return chunks
