"""
Question generator agent.

Turns extracted resume text into the fixed question set for one interview.
File parsing happens upstream; this agent only sees plain text.
"""

from __future__ import annotations

import logging
from typing import cast

from spoken_interview.config import get_settings
from spoken_interview.orchestrator.schemas import Question
from spoken_interview.providers.base import QuestionsResult, ResultKind
from spoken_interview.providers.gateway import ProviderGateway
from spoken_interview.providers.prompts import QUESTION_GENERATION_PROMPT

logger = logging.getLogger(__name__)

# Keeps prompts well inside provider context limits.
MAX_RESUME_CHARS = 12000


class QuestionGenerator:
    """
    Generates interview questions from a resume through the provider gateway.

    Question generation failure is fatal to starting an interview, so
    AllProvidersExhausted is propagated to the caller unchanged.
    """

    def __init__(self, gateway: ProviderGateway, question_count: int | None = None) -> None:
        """
        Initialize the question generator.

        Args:
            gateway: Provider gateway used for generation.
            question_count: Default number of questions (uses config if None).
        """
        self._gateway = gateway
        self._question_count = question_count or get_settings().question_count

    @property
    def question_count(self) -> int:
        """Get the default number of questions generated."""
        return self._question_count

    async def generate(self, resume_text: str, count: int | None = None) -> list[Question]:
        """
        Generate questions for a resume.

        Args:
            resume_text: Plain text extracted from the resume.
            count: Number of questions wanted (defaults to the configured count).

        Returns:
            Up to ``count`` questions, de-duplicated, in provider order.

        Raises:
            ValueError: If the resume text is empty.
            AllProvidersExhausted: If no provider produced questions.
        """
        text = (resume_text or "").strip()
        if not text:
            raise ValueError("Resume text is empty")
        wanted = count or self._question_count

        prompt = QUESTION_GENERATION_PROMPT.format(count=wanted, resume=text[:MAX_RESUME_CHARS])
        result = cast(QuestionsResult, await self._gateway.generate(prompt, ResultKind.QUESTIONS))

        questions: list[Question] = []
        seen: set[str] = set()
        for raw in result.questions:
            key = " ".join(raw.lower().split())
            if key in seen:
                continue
            seen.add(key)
            questions.append(Question(text=raw))
            if len(questions) >= wanted:
                break

        logger.info(f"Generated {len(questions)} question(s) via {result.provider}")
        return questions
