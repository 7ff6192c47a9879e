"""
Provider gateway.

Presents one call contract over several independently configured AI and
speech providers. For each capability the providers are tried strictly in
order; the first success wins and its output is normalized into a
provider-agnostic result.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar, cast

from spoken_interview.config import get_settings
from spoken_interview.providers.base import (
    AllProvidersExhausted,
    CallOutcome,
    Capability,
    EvaluationResult,
    ProviderBase,
    ProviderCall,
    ProviderError,
    ProviderFailure,
    ProviderTimeout,
    QuestionsResult,
    ResultKind,
    SpeechProvider,
    SpeechResult,
    TextProvider,
    TextResult,
)
from spoken_interview.providers.json_repair import parse_json_loose
from spoken_interview.providers.prompts import EVALUATION_PROMPT

logger = logging.getLogger(__name__)

T = TypeVar("T")

CallObserver = Callable[[ProviderCall], None]

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)]|Q\d+[:.)])\s*", re.IGNORECASE)


class ProviderGateway:
    """
    Ordered-fallback gateway over AI and speech providers.

    The gateway holds no state between calls apart from its configuration:
    the provider lists, the per-attempt timeout and the transient retry
    count.
    """

    def __init__(
        self,
        question_providers: Sequence[TextProvider],
        speech_providers: Sequence[SpeechProvider] = (),
        evaluation_providers: Sequence[TextProvider] | None = None,
        timeout_s: float | None = None,
        transient_retries: int | None = None,
        on_call: CallObserver | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            question_providers: Ordered providers for question generation.
            speech_providers: Ordered providers for speech synthesis.
            evaluation_providers: Ordered providers for evaluation
                (defaults to the question generation list).
            timeout_s: Per-attempt timeout (uses config if not provided).
            transient_retries: Same-provider retries after a transient error
                (uses config if not provided).
            on_call: Observer invoked with one ProviderCall per attempt.
        """
        self._providers: dict[Capability, tuple[ProviderBase, ...]] = {
            Capability.QUESTION_GENERATION: tuple(question_providers),
            Capability.EVALUATION: tuple(
                question_providers if evaluation_providers is None else evaluation_providers
            ),
            Capability.SPEECH: tuple(speech_providers),
        }
        if timeout_s is None or transient_retries is None:
            settings = get_settings()
            timeout_s = settings.provider_timeout_s if timeout_s is None else timeout_s
            transient_retries = settings.provider_transient_retries if transient_retries is None else transient_retries
        self._timeout_s = timeout_s
        self._transient_retries = transient_retries
        self._on_call = on_call

    def providers_for(self, capability: Capability) -> tuple[ProviderBase, ...]:
        """Get the ordered providers configured for a capability."""
        return self._providers[capability]

    async def generate(self, prompt: str, kind: ResultKind = ResultKind.QUESTIONS) -> QuestionsResult | EvaluationResult | TextResult:
        """
        Generate text and normalize it into the requested shape.

        Args:
            prompt: Prompt sent to each provider in turn.
            kind: Shape the output is normalized into.

        Returns:
            Normalized result from the first provider that succeeded.

        Raises:
            AllProvidersExhausted: If every provider failed.
        """
        capability = Capability.EVALUATION if kind == ResultKind.EVALUATION else Capability.QUESTION_GENERATION
        json_output = kind != ResultKind.TEXT

        def _attempt(provider: ProviderBase) -> Callable[[], Awaitable[Any]]:
            async def _run() -> Any:
                text_provider = cast(TextProvider, provider)
                text = await text_provider.complete(prompt, json_output=json_output, temperature=0.4)
                return self._normalize(kind, text, provider.name)

            return _run

        result, failures = await self._call_in_order(capability, _attempt)
        result.failures = failures
        return result

    async def evaluate(
        self,
        question: str,
        answer: str,
        expected_topics: Sequence[str] | None = None,
    ) -> EvaluationResult:
        """
        Evaluate an answer to a question.

        Args:
            question: Question text as asked.
            answer: Candidate's raw transcript (may be empty).
            expected_topics: Optional topics a strong answer covers.

        Returns:
            Normalized score and feedback.

        Raises:
            AllProvidersExhausted: If every evaluation provider failed.
        """
        prompt = EVALUATION_PROMPT.format(
            question=question,
            topics=", ".join(expected_topics) if expected_topics else "not specified",
            answer=answer.strip() or "(no answer given)",
        )
        result = await self.generate(prompt, ResultKind.EVALUATION)
        return cast(EvaluationResult, result)

    async def synthesize(self, text: str, voice_id: str) -> SpeechResult:
        """
        Synthesize speech for text.

        Raises:
            AllProvidersExhausted: If every speech provider failed.
        """

        def _attempt(provider: ProviderBase) -> Callable[[], Awaitable[SpeechResult]]:
            async def _run() -> SpeechResult:
                audio, mime_type = await cast(SpeechProvider, provider).synthesize(text, voice_id)
                if not audio:
                    raise ProviderError(f"{provider.name} returned no audio", provider=provider.name)
                return SpeechResult(provider=provider.name, audio=audio, mime_type=mime_type)

            return _run

        result, failures = await self._call_in_order(Capability.SPEECH, _attempt)
        result.failures = failures
        return result

    async def close(self) -> None:
        """Close every distinct provider."""
        seen: set[int] = set()
        for providers in self._providers.values():
            for provider in providers:
                if id(provider) in seen:
                    continue
                seen.add(id(provider))
                await provider.close()

    async def _call_in_order(
        self,
        capability: Capability,
        make_attempt: Callable[[ProviderBase], Callable[[], Awaitable[T]]],
    ) -> tuple[T, list[ProviderFailure]]:
        failures: list[ProviderFailure] = []

        for provider in self._providers[capability]:
            run = make_attempt(provider)
            max_attempts = 1 + self._transient_retries
            attempt = 0
            while True:
                attempt += 1
                started = time.perf_counter()
                try:
                    result = await asyncio.wait_for(run(), timeout=self._timeout_s)
                except (asyncio.TimeoutError, ProviderTimeout) as e:
                    message = str(e) or f"timed out after {self._timeout_s:.1f}s"
                    self._emit(provider, capability, attempt, started, CallOutcome.TIMEOUT, message)
                    failures.append(
                        ProviderFailure(
                            provider=provider.name,
                            attempts=attempt,
                            outcome=CallOutcome.TIMEOUT,
                            error=message,
                        )
                    )
                    break
                except ProviderError as e:
                    self._emit(provider, capability, attempt, started, CallOutcome.ERROR, str(e))
                    if e.transient and attempt < max_attempts:
                        logger.info(f"Retrying {provider.name} after transient error: {e}")
                        continue
                    failures.append(
                        ProviderFailure(
                            provider=provider.name,
                            attempts=attempt,
                            outcome=CallOutcome.ERROR,
                            error=str(e),
                            status_code=e.status_code,
                        )
                    )
                    break
                except Exception as e:
                    message = f"{type(e).__name__}: {e}"
                    logger.warning(f"Provider {provider.name} raised an unexpected error", exc_info=True)
                    self._emit(provider, capability, attempt, started, CallOutcome.ERROR, message)
                    failures.append(
                        ProviderFailure(
                            provider=provider.name,
                            attempts=attempt,
                            outcome=CallOutcome.ERROR,
                            error=message,
                        )
                    )
                    break
                else:
                    self._emit(provider, capability, attempt, started, CallOutcome.SUCCESS, None)
                    if failures:
                        logger.info(
                            f"{capability.value} served by fallback provider {provider.name} "
                            f"after {len(failures)} failure(s)"
                        )
                    return result, failures

            logger.warning(f"Provider {provider.name} failed for {capability.value}; trying next")

        logger.error(f"All providers exhausted for {capability.value}")
        raise AllProvidersExhausted(capability, failures)

    def _emit(
        self,
        provider: ProviderBase,
        capability: Capability,
        attempt: int,
        started: float,
        outcome: CallOutcome,
        error: str | None,
    ) -> None:
        call = ProviderCall(
            provider=provider.name,
            capability=capability,
            attempt=attempt,
            duration_s=max(0.0, time.perf_counter() - started),
            outcome=outcome,
            error=error,
        )
        logger.debug(
            f"[PROVIDER] {call.provider} {call.capability.value} attempt={call.attempt} "
            f"outcome={call.outcome.value} dur={call.duration_s:.2f}s"
        )
        if self._on_call is None:
            return
        try:
            self._on_call(call)
        except Exception:
            logger.warning("Provider call observer failed", exc_info=True)

    def _normalize(self, kind: ResultKind, text: str, provider: str) -> QuestionsResult | EvaluationResult | TextResult:
        """Turn raw provider text into the requested result shape."""
        if kind == ResultKind.TEXT:
            return TextResult(provider=provider, text=text.strip())
        if kind == ResultKind.QUESTIONS:
            return QuestionsResult(provider=provider, questions=self._parse_questions(text, provider))
        return self._parse_evaluation(text, provider)

    @staticmethod
    def _parse_questions(text: str, provider: str) -> list[str]:
        parsed = parse_json_loose(text)
        items: list[Any] = []
        if isinstance(parsed, dict):
            raw = parsed.get("questions") or parsed.get("items") or []
            items = raw if isinstance(raw, list) else []
        elif isinstance(parsed, list):
            items = parsed

        questions: list[str] = []
        for item in items:
            if isinstance(item, dict):
                item = item.get("question") or item.get("text") or ""
            value = str(item).strip()
            if value:
                questions.append(value)

        if not questions and parsed is None:
            # Plain numbered or bulleted lines.
            for line in text.splitlines():
                value = _LIST_MARKER.sub("", line).strip()
                if value.endswith("?"):
                    questions.append(value)

        if not questions:
            raise ProviderError(f"{provider} returned no parseable questions", provider=provider)
        return questions

    @staticmethod
    def _parse_evaluation(text: str, provider: str) -> EvaluationResult:
        parsed = parse_json_loose(text)
        if isinstance(parsed, list) and parsed and isinstance(parsed[0], dict):
            parsed = parsed[0]
        if not isinstance(parsed, dict) or "score" not in parsed:
            raise ProviderError(f"{provider} returned no parseable evaluation", provider=provider)

        try:
            score = float(parsed["score"])
        except (TypeError, ValueError) as e:
            raise ProviderError(f"{provider} returned a non-numeric score", provider=provider) from e

        feedback = parsed.get("feedback") or parsed.get("comment") or ""
        return EvaluationResult(
            provider=provider,
            score=min(10.0, max(0.0, score)),
            feedback=str(feedback).strip(),
        )
