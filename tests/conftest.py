"""Shared fixtures."""

import pytest

from fakes import FakeSpeaker, FakeTextProvider
from spoken_interview.config import Settings
from spoken_interview.orchestrator import SessionOrchestrator
from spoken_interview.providers.gateway import ProviderGateway


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        voice_id="test-voice",
        provider_timeout_s=1.0,
        provider_transient_retries=1,
        question_time_limit_s=5.0,
        session_time_limit_s=None,
    )


@pytest.fixture
def evaluator() -> FakeTextProvider:
    """Evaluation provider that always scores 8."""
    return FakeTextProvider("primary")


@pytest.fixture
def speaker() -> FakeSpeaker:
    return FakeSpeaker()


@pytest.fixture
def gateway(evaluator: FakeTextProvider) -> ProviderGateway:
    return ProviderGateway(question_providers=[evaluator], timeout_s=1.0, transient_retries=1)


@pytest.fixture
def orchestrator(gateway: ProviderGateway, speaker: FakeSpeaker, settings: Settings) -> SessionOrchestrator:
    return SessionOrchestrator(gateway=gateway, speaker=speaker, settings=settings)

