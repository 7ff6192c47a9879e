"""
Interview session orchestrator.

Drives one spoken interview at a time: speaks each question, times the
answer, dispatches evaluation through the provider gateway and advances
until the session finishes.

Every incoming event (answer submission, clock expiry, evaluation
completion, abort) is handled by synchronous code that runs to completion
on the event loop, so transitions for a session never interleave. Work that
takes time (speech, evaluation) runs in tasks tagged with the session id and
question index they were issued for; a result whose tag no longer matches
the session is logged as StaleResultDiscarded and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from functools import partial
from typing import TYPE_CHECKING, Any

from spoken_interview.config import Settings, get_settings
from spoken_interview.orchestrator.events import EventBus, EventStream, Subscriber
from spoken_interview.orchestrator.schemas import (
    Answer,
    Evaluation,
    FinishReason,
    Question,
    SessionStatus,
    Stage,
    StageChange,
)
from spoken_interview.orchestrator.session_clock import SessionClock
from spoken_interview.orchestrator.session_state import (
    EmptyQuestionSet,
    InvalidStageTransition,
    Session,
)
from spoken_interview.providers.base import AllProvidersExhausted
from spoken_interview.providers.gateway import ProviderGateway
from spoken_interview.providers.speech import Speaker

if TYPE_CHECKING:
    from spoken_interview.agents.question_generator import QuestionGenerator


class SessionHandle:
    """Caller-side view of one session: status queries and cancellation."""

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        session: Session,
        finished: asyncio.Event,
    ) -> None:
        self._orchestrator = orchestrator
        self._session = session
        self._finished = finished

    @property
    def session_id(self) -> str:
        """Get the session identifier."""
        return self._session.session_id

    def status(self) -> SessionStatus:
        """Get a snapshot of this session."""
        return self._session.status()

    def abort(self) -> None:
        """Abort this session if it is still the orchestrator's current one."""
        self._orchestrator.abort(session_id=self.session_id)

    async def wait_finished(self, timeout_s: float | None = None) -> SessionStatus:
        """Wait until this session finishes and return its final status."""
        await asyncio.wait_for(self._finished.wait(), timeout=timeout_s)
        return self._session.status()


class SessionOrchestrator:
    """
    Orchestrates a single spoken interview session.

    Collaborators are injected: the provider gateway for evaluation, a
    speaker for reading questions aloud, and optionally a question
    generator for starting from a resume.
    """

    def __init__(
        self,
        gateway: ProviderGateway,
        speaker: Speaker,
        question_generator: QuestionGenerator | None = None,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        clock: SessionClock | None = None,
        voice_id: str | None = None,
        question_time_limit_s: float | None = None,
        session_time_limit_s: float | None = None,
    ) -> None:
        """
        Initialize the session orchestrator.

        Args:
            gateway: Provider gateway used for evaluation.
            speaker: Speech collaborator used to read questions aloud.
            question_generator: Needed only for start_from_resume.
            settings: Application settings (uses cached settings if None).
            event_bus: Stage-change channel (creates one if None).
            clock: Session clock (creates one if None).
            voice_id: Voice for spoken questions (uses config if None).
            question_time_limit_s: Answer time per question (uses config if None).
            session_time_limit_s: Optional whole-session cap (uses config if None).
        """
        self._logger = logging.getLogger(__name__)
        self._settings = settings or get_settings()
        self._gateway = gateway
        self._speaker = speaker
        self._question_generator = question_generator
        self._events = event_bus or EventBus()
        self._clock = clock or SessionClock()
        self._voice_id = voice_id or self._settings.voice_id
        self._question_time_limit_s = (
            question_time_limit_s if question_time_limit_s is not None else self._settings.question_time_limit_s
        )
        self._session_time_limit_s = (
            session_time_limit_s if session_time_limit_s is not None else self._settings.session_time_limit_s
        )

        self._session: Session | None = None
        self._finished: asyncio.Event | None = None
        self._speech_task: asyncio.Task[None] | None = None
        self._evaluation_task: asyncio.Task[None] | None = None

    @property
    def gateway(self) -> ProviderGateway:
        """Get the provider gateway."""
        return self._gateway

    @property
    def events(self) -> EventBus:
        """Get the stage-change channel."""
        return self._events

    @property
    def clock(self) -> SessionClock:
        """Get the session clock."""
        return self._clock

    @property
    def is_active(self) -> bool:
        """Check if a session is in progress."""
        return self._session is not None and not self._session.is_finished

    def subscribe(self, callback: Subscriber) -> Any:
        """Register a stage-change callback. Returns an unsubscribe function."""
        return self._events.subscribe(callback)

    def stream(self) -> EventStream:
        """Open an async stream of stage changes ending at the finished event."""
        return self._events.stream(until_finished=True)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start(self, questions: Iterable[Question | Mapping[str, Any] | str]) -> SessionHandle:
        """
        Start a session with a fixed question set.

        Speaks the first question and arms the answer clock once speech has
        finished, so speaking time does not count against the candidate.

        Args:
            questions: Ordered questions (Question, dict or plain text).

        Returns:
            Handle for status queries and cancellation.

        Raises:
            EmptyQuestionSet: If no questions were given.
            InvalidStageTransition: If a session is already in progress.
        """
        loaded = self._coerce_questions(questions)
        if not loaded:
            raise EmptyQuestionSet()
        self._ensure_idle()

        session, handle = self._open_session()
        self._logger.info(f"Starting interview session {session.session_id} with {len(loaded)} question(s)")
        await self._load_and_ask(session, loaded)
        return handle

    async def start_from_resume(self, resume_text: str, question_count: int | None = None) -> SessionHandle:
        """
        Generate questions from resume text, then start the session.

        Raises:
            RuntimeError: If no question generator was configured.
            InvalidStageTransition: If a session is already in progress.
            AllProvidersExhausted: If no provider could generate questions;
                the session finishes with reason question_generation_failed.
        """
        if self._question_generator is None:
            raise RuntimeError("No question generator configured for this orchestrator")
        self._ensure_idle()

        session, handle = self._open_session()
        session.mark_uploading()
        self._publish(session, Stage.UPLOADING)
        self._logger.info(f"Generating questions for session {session.session_id}")

        try:
            questions = await self._question_generator.generate(resume_text, question_count)
        except asyncio.CancelledError:
            self._finish(session, FinishReason.ABORTED)
            raise
        except Exception as e:
            self._logger.error(f"Question generation failed for session {session.session_id}: {e}")
            self._finish(session, FinishReason.QUESTION_GENERATION_FAILED)
            raise

        if not self._is_current(session, Stage.UPLOADING):
            self._logger.info(f"StaleResultDiscarded: questions for session {session.session_id} arrived after abort")
            return handle
        if not questions:
            self._finish(session, FinishReason.QUESTION_GENERATION_FAILED)
            raise EmptyQuestionSet()

        await self._load_and_ask(session, questions)
        return handle

    def begin_recording(self) -> None:
        """
        Report that answer capture has started for the current question.

        Raises:
            InvalidStageTransition: If not currently asking.
        """
        session = self._require_session()
        if session.stage != Stage.ASKING:
            raise InvalidStageTransition(session.stage, Stage.RECORDING)
        session.begin_recording()
        self._publish(session, Stage.RECORDING, question=self._question_text(session))

    def submit_answer(self, transcript: str) -> Answer:
        """
        Submit the candidate's answer for the current question.

        Cancels the question clock, stores the answer and dispatches
        evaluation in the background.

        Args:
            transcript: Captured text; an empty string is a skipped answer.

        Returns:
            The stored answer (evaluation still pending).

        Raises:
            ValueError: If transcript is None.
            InvalidStageTransition: If not asking or recording.
        """
        if transcript is None:
            raise ValueError("transcript must not be None")
        session = self._require_session()
        if not session.can_accept_answer():
            raise InvalidStageTransition(session.stage, Stage.EVALUATING)
        return self._capture(session, transcript, timed_out=False)

    def abort(self, session_id: str | None = None) -> None:
        """
        Finish the current session early. A no-op once finished.

        Args:
            session_id: Only abort if this is still the current session.
        """
        session = self._session
        if session is None or session.is_finished:
            return
        if session_id is not None and session.session_id != session_id:
            return
        self._logger.info(f"Aborting interview session {session.session_id}")
        self._finish(session, FinishReason.ABORTED)

    def status(self) -> SessionStatus:
        """
        Get a snapshot of the current session.

        Raises:
            RuntimeError: If no session was ever started.
        """
        return self._require_session().status()

    async def wait_finished(self, timeout_s: float | None = None) -> SessionStatus:
        """Wait for the current session to finish."""
        session = self._require_session()
        if self._finished is None:
            raise RuntimeError("Interview session has no completion signal")
        await asyncio.wait_for(self._finished.wait(), timeout=timeout_s)
        return session.status()

    async def aclose(self) -> None:
        """Abort any active session and wait for its background tasks to unwind."""
        self.abort()
        pending = [t for t in (self._speech_task, self._evaluation_task) if t is not None and not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._events.close()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _load_and_ask(self, session: Session, questions: tuple[Question, ...] | list[Question]) -> None:
        loaded = session.load_questions(questions)
        self._publish(session, Stage.QUESTIONS_READY, questions=tuple(q.text for q in loaded))

        first = session.begin_asking()
        self._publish(session, Stage.ASKING, question=first.text)

        if self._session_time_limit_s:
            self._clock.arm_session_cap(
                self._session_time_limit_s,
                partial(self._on_session_cap, session.session_id),
            )

        task = self._start_speech(session)
        # Wait without propagating a cancellation caused by abort().
        await asyncio.wait({task})

    def _capture(self, session: Session, transcript: str, *, timed_out: bool) -> Answer:
        # Capture wins over a concurrent expiry: the clock is cancelled first.
        self._clock.cancel()
        self._cancel_task(self._speech_task)

        answer = session.record_answer(transcript, timed_out=timed_out)
        self._publish(session, Stage.EVALUATING, answer=answer)

        question = session.questions[answer.question_index]
        self._evaluation_task = asyncio.get_running_loop().create_task(
            self._evaluate(session.session_id, answer.question_index, question, transcript)
        )
        return answer

    def _on_question_timeout(self, session_id: str, question_index: int) -> None:
        session = self._session
        if (
            session is None
            or session.session_id != session_id
            or session.current_index != question_index
            or not session.can_accept_answer()
        ):
            self._logger.info(
                f"StaleResultDiscarded: timer for session {session_id} question {question_index}"
            )
            return
        self._logger.info(f"Question {question_index} timed out in session {session_id}")
        self._capture(session, "", timed_out=True)

    def _on_session_cap(self, session_id: str) -> None:
        session = self._session
        if session is None or session.session_id != session_id or session.is_finished:
            return
        self._logger.info(f"Session time limit reached for {session_id}")
        self._finish(session, FinishReason.SESSION_TIME_LIMIT)

    async def _evaluate(self, session_id: str, question_index: int, question: Question, transcript: str) -> None:
        evaluation: Evaluation | None = None
        try:
            result = await self._gateway.evaluate(question.text, transcript, question.expected_topics)
            evaluation = Evaluation(score=result.score, feedback=result.feedback, provider=result.provider)
        except AllProvidersExhausted as e:
            self._logger.warning(f"Evaluation unavailable for question {question_index}: {e}")
        except asyncio.CancelledError:
            raise
        except Exception:
            self._logger.exception(f"Evaluation failed unexpectedly for question {question_index}")

        self._on_evaluation_complete(session_id, question_index, evaluation)

    def _on_evaluation_complete(self, session_id: str, question_index: int, evaluation: Evaluation | None) -> None:
        session = self._session
        if (
            session is None
            or session.session_id != session_id
            or session.stage != Stage.EVALUATING
            or session.current_index != question_index
        ):
            self._logger.info(
                f"StaleResultDiscarded: evaluation for session {session_id} question {question_index}"
            )
            return

        answer = session.apply_evaluation(question_index, evaluation)
        payload = {
            "evaluation": answer.evaluation,
            "evaluation_unavailable": answer.evaluation_unavailable,
        }
        if session.has_next_question():
            nxt = session.advance()
            self._publish(session, Stage.ASKING, question=nxt.text, **payload)
            self._start_speech(session)
        else:
            self._finish(session, FinishReason.COMPLETED, **payload)

    def _start_speech(self, session: Session) -> asyncio.Task[None]:
        self._cancel_task(self._speech_task)
        task = asyncio.get_running_loop().create_task(
            self._speak_then_arm(session.session_id, session.current_index, self._question_text(session) or "")
        )
        self._speech_task = task
        return task

    async def _speak_then_arm(self, session_id: str, question_index: int, text: str) -> None:
        try:
            await self._speaker.speak(text, self._voice_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Question text is still delivered through the asking event.
            self._logger.warning(f"Speech failed for question {question_index}; continuing without audio: {e}")

        session = self._session
        if (
            session is None
            or session.session_id != session_id
            or session.current_index != question_index
            or not session.can_accept_answer()
        ):
            self._logger.info(f"StaleResultDiscarded: speech for session {session_id} question {question_index}")
            return
        self._clock.arm(
            self._question_time_limit_s,
            partial(self._on_question_timeout, session_id, question_index),
        )

    def _finish(self, session: Session, reason: FinishReason, **payload: Any) -> None:
        if not session.finish(reason):
            return
        self._clock.cancel_all()
        self._cancel_task(self._speech_task)
        self._cancel_task(self._evaluation_task)

        self._logger.info(
            f"Session {session.session_id} finished ({reason.value}); "
            f"answers={len(session.answers)} final_score={session.final_score}"
        )
        self._publish(
            session,
            Stage.FINISHED,
            finish_reason=reason,
            final_score=session.final_score,
            **payload,
        )
        if self._finished is not None and self._session is session:
            self._finished.set()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self) -> tuple[Session, SessionHandle]:
        session = Session()
        self._session = session
        self._finished = asyncio.Event()
        self._clock.cancel_all()
        return session, SessionHandle(self, session, self._finished)

    def _ensure_idle(self) -> None:
        if self._session is not None and not self._session.is_finished:
            raise InvalidStageTransition(self._session.stage, "start")

    def _require_session(self) -> Session:
        if self._session is None:
            raise RuntimeError("No interview session. Call start first.")
        return self._session

    def _is_current(self, session: Session, stage: Stage) -> bool:
        return self._session is session and session.stage == stage

    def _publish(self, session: Session, stage: Stage, **payload: Any) -> None:
        event = StageChange(
            session_id=session.session_id,
            stage=stage,
            question_index=session.current_index,
            **payload,
        )
        self._logger.debug(f"[SESSION] {session.session_id} -> {stage.value} index={session.current_index}")
        self._events.publish(event)

    @staticmethod
    def _question_text(session: Session) -> str | None:
        question = session.current_question
        return question.text if question is not None else None

    @staticmethod
    def _cancel_task(task: asyncio.Task[None] | None) -> None:
        if task is None or task.done():
            return
        # A task must not cancel itself while it is delivering its own result.
        if task is asyncio.current_task():
            return
        task.cancel()

    @staticmethod
    def _coerce_questions(questions: Iterable[Question | Mapping[str, Any] | str]) -> list[Question]:
        loaded: list[Question] = []
        for item in questions or ():
            if isinstance(item, Question):
                loaded.append(item)
            elif isinstance(item, str):
                loaded.append(Question(text=item))
            else:
                loaded.append(Question.model_validate(dict(item)))
        return loaded
