"""
Provider contracts and normalized results.

Every upstream AI or speech service is wrapped in a provider that exposes
one small async method. The gateway turns raw provider output into the
tagged result models defined here, so callers never see a provider's
payload shape.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


def _now_utc() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


class Capability(str, Enum):
    """What a provider is used for."""

    QUESTION_GENERATION = "question_generation"
    EVALUATION = "evaluation"
    SPEECH = "speech"


class ResultKind(str, Enum):
    """Shape requested from a text generation call."""

    QUESTIONS = "questions"
    EVALUATION = "evaluation"
    TEXT = "text"


class CallOutcome(str, Enum):
    """Outcome of a single provider attempt."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class ProviderCall(BaseModel):
    """One attempt against one provider. Emitted for observability only."""

    provider: str = Field(..., description="Provider name")
    capability: Capability = Field(..., description="Capability being exercised")
    attempt: int = Field(..., ge=1, description="Attempt number against this provider")
    started_at: datetime = Field(default_factory=_now_utc, description="When the attempt began")
    duration_s: float = Field(default=0.0, ge=0.0, description="Wall time of the attempt")
    outcome: CallOutcome = Field(..., description="success, error or timeout")
    error: str | None = Field(default=None, description="Error message for failed attempts")


class ProviderFailure(BaseModel):
    """Final failure of one provider after its attempts were used up."""

    provider: str = Field(..., description="Provider name")
    attempts: int = Field(..., ge=1, description="Attempts made against this provider")
    outcome: CallOutcome = Field(..., description="Outcome of the last attempt")
    error: str = Field(default="", description="Error message of the last attempt")
    status_code: int | None = Field(default=None, description="HTTP status of the last attempt")


class _NormalizedBase(BaseModel):
    provider: str = Field(..., description="Provider that produced the result")
    failures: list[ProviderFailure] = Field(
        default_factory=list,
        description="Providers that failed before this one succeeded",
    )


class QuestionsResult(_NormalizedBase):
    """Generated interview questions."""

    kind: Literal["questions"] = "questions"
    questions: list[str] = Field(..., min_length=1, description="Question texts in order")


class EvaluationResult(_NormalizedBase):
    """Score and feedback for one answer."""

    kind: Literal["evaluation"] = "evaluation"
    score: float = Field(..., ge=0.0, le=10.0, description="Score on a 0-10 scale")
    feedback: str = Field(default="", description="Short feedback for the candidate")


class TextResult(_NormalizedBase):
    """Free-form generated text."""

    kind: Literal["text"] = "text"
    text: str = Field(..., description="Generated text")


class SpeechResult(_NormalizedBase):
    """Synthesized speech audio."""

    kind: Literal["speech"] = "speech"
    audio: bytes = Field(..., description="Encoded audio bytes")
    mime_type: str = Field(default="audio/wav", description="Audio encoding")


NormalizedResult = Annotated[
    Union[QuestionsResult, EvaluationResult, TextResult, SpeechResult],
    Field(discriminator="kind"),
]


class ProviderError(Exception):
    """A single provider attempt failed."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        status_code: int | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.transient = transient


class ProviderTimeout(ProviderError):
    """A single provider attempt exceeded its time budget."""


class AllProvidersExhausted(Exception):
    """Every provider configured for a capability failed."""

    def __init__(self, capability: Capability, failures: list[ProviderFailure]) -> None:
        names = ", ".join(f.provider for f in failures) or "none configured"
        super().__init__(f"All providers exhausted for {capability.value}: {names}")
        self.capability = capability
        self.failures = list(failures)


class ProviderBase(ABC):
    """Common surface of every provider."""

    name: str = "provider"

    async def close(self) -> None:
        """Release any network resources held by the provider."""


class TextProvider(ProviderBase):
    """Provider that turns a prompt into generated text."""

    @abstractmethod
    async def complete(self, prompt: str, *, temperature: float = 0.7, json_output: bool = False) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full prompt text.
            temperature: Sampling temperature.
            json_output: Ask the provider for a JSON-only response when supported.

        Returns:
            Generated text.

        Raises:
            ProviderError: On transport, HTTP or payload errors.
        """
        ...


class SpeechProvider(ProviderBase):
    """Provider that turns text into audio."""

    @abstractmethod
    async def synthesize(self, text: str, voice_id: str) -> tuple[bytes, str]:
        """
        Synthesize speech.

        Args:
            text: Text to speak.
            voice_id: Provider voice identifier.

        Returns:
            Tuple of (audio bytes, mime type).

        Raises:
            ProviderError: On transport, HTTP or payload errors.
        """
        ...
