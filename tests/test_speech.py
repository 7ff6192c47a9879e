"""
Tests for speech output: chunking, gateway synthesis and the file sink.
"""

from pathlib import Path

import pytest

from fakes import FakeSpeechProvider, FakeTextProvider, MemorySink
from spoken_interview.providers import FileAudioSink, GatewaySpeaker, ProviderGateway


@pytest.fixture
def tts() -> FakeSpeechProvider:
    """Speech provider returning a fixed clip."""
    return FakeSpeechProvider()


@pytest.fixture
def speech_gateway(tts: FakeSpeechProvider) -> ProviderGateway:
    return ProviderGateway(
        question_providers=[FakeTextProvider("primary")],
        speech_providers=[tts],
        timeout_s=1.0,
        transient_retries=0,
    )


class TestGatewaySpeaker:
    """Tests for GatewaySpeaker."""

    def test_short_text_is_one_chunk(self, speech_gateway: ProviderGateway) -> None:
        speaker = GatewaySpeaker(speech_gateway, MemorySink())

        assert speaker.chunk_text("  What is asyncio?  ") == ["What is asyncio?"]
        assert speaker.chunk_text("") == []

    def test_long_text_splits_on_sentences(self, speech_gateway: ProviderGateway) -> None:
        speaker = GatewaySpeaker(speech_gateway, MemorySink(), max_chars_per_chunk=30)
        text = "First sentence is here. Second sentence is here. Third."

        chunks = speaker.chunk_text(text)

        assert chunks == ["First sentence is here.", "Second sentence is here.", "Third."]
        assert all(len(chunk) <= 30 for chunk in chunks)

    def test_overlong_sentence_is_hard_split(self, speech_gateway: ProviderGateway) -> None:
        speaker = GatewaySpeaker(speech_gateway, MemorySink(), max_chars_per_chunk=10)

        chunks = speaker.chunk_text("a" * 25)

        assert chunks == ["a" * 10, "a" * 10, "a" * 5]

    @pytest.mark.asyncio
    async def test_speak_plays_each_chunk(self, speech_gateway: ProviderGateway, tts: FakeSpeechProvider) -> None:
        sink = MemorySink()
        speaker = GatewaySpeaker(speech_gateway, sink, max_chars_per_chunk=20)

        await speaker.speak("Hello there. How are you today?", "anushka")

        assert [text for text, _ in tts.requests] == ["Hello there.", "How are you today?"]
        assert sink.played == [(b"RIFF0000WAVE", "audio/wav")] * 2


class TestFileAudioSink:
    """Tests for FileAudioSink."""

    @pytest.mark.asyncio
    async def test_writes_numbered_files(self, tmp_path: Path) -> None:
        sink = FileAudioSink(tmp_path / "audio")

        await sink.play(b"one", "audio/wav")
        await sink.play(b"two", "audio/mpeg")

        assert [p.name[:13] for p in sink.written] == ["utterance_001", "utterance_002"]
        assert sink.written[0].suffix == ".wav"
        assert sink.written[1].suffix == ".mp3"
        assert sink.written[1].read_bytes() == b"two"
