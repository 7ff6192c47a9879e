"""Test doubles for providers, speakers and audio sinks."""

import asyncio

from spoken_interview.providers.base import ProviderError, SpeechProvider, TextProvider

GOOD_EVALUATION = '{"score": 8, "feedback": "Clear and relevant."}'


class FakeTextProvider(TextProvider):
    """Replays scripted responses; an exception entry is raised instead."""

    def __init__(self, name: str, responses=None, default=GOOD_EVALUATION, delay_s: float = 0.0) -> None:
        self.name = name
        self._responses = list(responses or [])
        self._default = default
        self._delay_s = delay_s
        self.prompts: list[str] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def complete(self, prompt: str, *, temperature: float = 0.7, json_output: bool = False) -> str:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        item = self._responses.pop(0) if self._responses else self._default
        if isinstance(item, BaseException):
            raise item
        if item is None:
            raise ProviderError(f"{self.name} scripted failure", provider=self.name)
        return item

    async def close(self) -> None:
        self.closed = True


class FailingTextProvider(FakeTextProvider):
    """Always fails with a non-transient error."""

    def __init__(self, name: str, status_code: int | None = 400) -> None:
        super().__init__(name)
        self._status_code = status_code

    async def complete(self, prompt: str, *, temperature: float = 0.7, json_output: bool = False) -> str:
        self.prompts.append(prompt)
        raise ProviderError(f"{self.name} is down", provider=self.name, status_code=self._status_code)


class FakeSpeechProvider(SpeechProvider):
    def __init__(self, name: str = "fake-tts", audio: bytes = b"RIFF0000WAVE") -> None:
        self.name = name
        self._audio = audio
        self.requests: list[tuple[str, str]] = []

    async def synthesize(self, text: str, voice_id: str) -> tuple[bytes, str]:
        self.requests.append((text, voice_id))
        return self._audio, "audio/wav"


class FakeSpeaker:
    """Records spoken text; can be slowed down, gated or made to fail."""

    def __init__(self, delay_s: float = 0.0, fail: bool = False) -> None:
        self.spoken: list[tuple[str, str]] = []
        self.cancelled: list[str] = []
        self._delay_s = delay_s
        self._fail = fail
        self.gate: asyncio.Event | None = None

    async def speak(self, text: str, voice_id: str) -> None:
        self.spoken.append((text, voice_id))
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self._delay_s:
                await asyncio.sleep(self._delay_s)
        except asyncio.CancelledError:
            self.cancelled.append(text)
            raise
        if self._fail:
            raise RuntimeError("speaker unavailable")


class MemorySink:
    def __init__(self) -> None:
        self.played: list[tuple[bytes, str]] = []

    async def play(self, audio: bytes, mime_type: str) -> None:
        self.played.append((audio, mime_type))


async def next_stage(stream, stage, timeout_s: float = 2.0):
    """Consume events until one with the given stage arrives."""
    while True:
        event = await stream.next(timeout_s)
        if event.stage == stage:
            return event


async def settle(rounds: int = 5) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
