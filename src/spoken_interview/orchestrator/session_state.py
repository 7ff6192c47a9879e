"""
Interview session state.

Holds the mutable state of one interview run and the finite state machine
that decides which stage transitions are legal. Every mutation goes through
a transition, so an illegal call leaves the session untouched.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from uuid import uuid4

from spoken_interview.orchestrator.schemas import (
    Answer,
    Evaluation,
    FinishReason,
    Question,
    SessionStatus,
    Stage,
)


class SessionError(Exception):
    """Base class for caller misuse of a session."""


class EmptyQuestionSet(SessionError):
    """Raised when a session is started without questions."""

    def __init__(self) -> None:
        super().__init__("Cannot start an interview with an empty question set")


class InvalidStageTransition(SessionError):
    """Raised when an operation is not allowed in the current stage."""

    def __init__(self, current: Stage, attempted: Stage | str) -> None:
        target = attempted.value if isinstance(attempted, Stage) else attempted
        super().__init__(f"Invalid transition from {current.value} to {target}")
        self.current = current
        self.attempted = attempted


class QuestionFlowState:
    """
    Finite state machine for one session.

    ``finished`` is absorbing: once entered, every further transition is
    refused.
    """

    TRANSITIONS: dict[Stage, frozenset[Stage]] = {
        Stage.CREATED: frozenset({Stage.UPLOADING, Stage.QUESTIONS_READY, Stage.ASKING, Stage.FINISHED}),
        Stage.UPLOADING: frozenset({Stage.QUESTIONS_READY, Stage.FINISHED}),
        Stage.QUESTIONS_READY: frozenset({Stage.ASKING, Stage.FINISHED}),
        Stage.ASKING: frozenset({Stage.RECORDING, Stage.EVALUATING, Stage.FINISHED}),
        Stage.RECORDING: frozenset({Stage.EVALUATING, Stage.FINISHED}),
        Stage.EVALUATING: frozenset({Stage.ASKING, Stage.FINISHED}),
        Stage.FINISHED: frozenset(),
    }

    def __init__(self) -> None:
        self._stage = Stage.CREATED
        self._history: list[Stage] = [Stage.CREATED]

    @property
    def stage(self) -> Stage:
        """Get the current stage."""
        return self._stage

    @property
    def history(self) -> list[Stage]:
        """Get every stage entered, in order."""
        return self._history.copy()

    @property
    def is_terminal(self) -> bool:
        """Check if the session has finished."""
        return self._stage == Stage.FINISHED

    def can_transition(self, target: Stage) -> bool:
        """Check whether moving to target is legal from the current stage."""
        return target in self.TRANSITIONS[self._stage]

    def transition(self, target: Stage) -> Stage:
        """
        Move to a new stage.

        Args:
            target: Stage to enter.

        Returns:
            The previous stage.

        Raises:
            InvalidStageTransition: If the move is not in the transition table.
        """
        if not self.can_transition(target):
            raise InvalidStageTransition(self._stage, target)
        previous = self._stage
        self._stage = target
        self._history.append(target)
        return previous


class Session:
    """
    Mutable state of one interview run.

    Invariants: ``current_index`` only moves forward by one per completed
    question, ``answers`` is write-once per index and never holds an index
    that has not been reached, and ``ended_at`` is set exactly once.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self._session_id = session_id or uuid4().hex
        self._flow = QuestionFlowState()
        self._questions: tuple[Question, ...] = ()
        self._current_index = 0
        self._answers: dict[int, Answer] = {}
        self._started_at = datetime.now(timezone.utc)
        self._ended_at: datetime | None = None
        self._finish_reason: FinishReason | None = None

    @property
    def session_id(self) -> str:
        """Get the session identifier."""
        return self._session_id

    @property
    def stage(self) -> Stage:
        """Get the current stage."""
        return self._flow.stage

    @property
    def stage_history(self) -> list[Stage]:
        """Get every stage entered, in order."""
        return self._flow.history

    @property
    def is_finished(self) -> bool:
        """Check if the session is in its terminal stage."""
        return self._flow.is_terminal

    @property
    def questions(self) -> tuple[Question, ...]:
        """Get the question set."""
        return self._questions

    @property
    def current_index(self) -> int:
        """Get the index of the current question."""
        return self._current_index

    @property
    def current_question(self) -> Question | None:
        """Get the question currently being asked, if any."""
        if self._current_index < len(self._questions):
            return self._questions[self._current_index]
        return None

    @property
    def answers(self) -> dict[int, Answer]:
        """Get answers by question index, in interview order."""
        return dict(self._answers)

    @property
    def started_at(self) -> datetime:
        """Get the creation time."""
        return self._started_at

    @property
    def ended_at(self) -> datetime | None:
        """Get the finish time, if finished."""
        return self._ended_at

    @property
    def finish_reason(self) -> FinishReason | None:
        """Get the reason the session finished, if finished."""
        return self._finish_reason

    @property
    def final_score(self) -> float | None:
        """Mean score over evaluated answers, or None if none were evaluated."""
        scores = [a.evaluation.score for a in self._answers.values() if a.evaluation is not None]
        if not scores:
            return None
        return round(sum(scores) / len(scores), 2)

    def can_accept_answer(self) -> bool:
        """Check if an answer (or a timeout) may be recorded now."""
        return self._flow.stage in (Stage.ASKING, Stage.RECORDING)

    def mark_uploading(self) -> None:
        """Report that question material is being processed upstream."""
        self._flow.transition(Stage.UPLOADING)

    def load_questions(self, questions: Iterable[Question]) -> tuple[Question, ...]:
        """
        Load the question set. Write-once.

        Raises:
            EmptyQuestionSet: If no questions were given.
            InvalidStageTransition: If questions were already loaded.
        """
        loaded = tuple(questions)
        if not loaded:
            raise EmptyQuestionSet()
        self._flow.transition(Stage.QUESTIONS_READY)
        self._questions = loaded
        return loaded

    def begin_asking(self) -> Question:
        """Enter asking for the first question."""
        if self._flow.stage != Stage.QUESTIONS_READY:
            raise InvalidStageTransition(self._flow.stage, Stage.ASKING)
        self._flow.transition(Stage.ASKING)
        return self._questions[self._current_index]

    def begin_recording(self) -> None:
        """Enter recording (answer capture has started)."""
        self._flow.transition(Stage.RECORDING)

    def record_answer(self, transcript: str, *, timed_out: bool = False) -> Answer:
        """
        Store the answer for the current question and enter evaluating.

        Raises:
            InvalidStageTransition: If not asking or recording.
        """
        if not self.can_accept_answer():
            raise InvalidStageTransition(self._flow.stage, Stage.EVALUATING)
        if self._current_index in self._answers:
            raise InvalidStageTransition(self._flow.stage, "duplicate answer")

        answer = Answer(
            question_index=self._current_index,
            raw_transcript=transcript,
            timed_out=timed_out,
        )
        self._flow.transition(Stage.EVALUATING)
        self._answers[self._current_index] = answer
        return answer

    def apply_evaluation(self, question_index: int, evaluation: Evaluation | None) -> Answer:
        """
        Attach the evaluation outcome to a stored answer.

        A None evaluation marks the answer as unavailable for evaluation.
        """
        if self._flow.stage != Stage.EVALUATING or question_index != self._current_index:
            raise InvalidStageTransition(self._flow.stage, "evaluation result")
        answer = self._answers[question_index].model_copy(
            update={"evaluation": evaluation, "evaluation_unavailable": evaluation is None}
        )
        self._answers[question_index] = answer
        return answer

    def has_next_question(self) -> bool:
        """Check if another question follows the current one."""
        return self._current_index + 1 < len(self._questions)

    def advance(self) -> Question:
        """
        Move from evaluating to asking the next question.

        Raises:
            InvalidStageTransition: If not evaluating or no question remains.
        """
        if self._flow.stage != Stage.EVALUATING or not self.has_next_question():
            raise InvalidStageTransition(self._flow.stage, Stage.ASKING)
        self._flow.transition(Stage.ASKING)
        self._current_index += 1
        return self._questions[self._current_index]

    def finish(self, reason: FinishReason) -> bool:
        """
        Enter the terminal stage.

        Returns:
            True if the session finished now, False if it already had.
        """
        if self._flow.is_terminal:
            return False
        self._flow.transition(Stage.FINISHED)
        self._ended_at = datetime.now(timezone.utc)
        self._finish_reason = reason
        return True

    def status(self) -> SessionStatus:
        """Build a read-only snapshot."""
        current = self.current_question
        asking = self._flow.stage in (Stage.ASKING, Stage.RECORDING)
        return SessionStatus(
            session_id=self._session_id,
            stage=self._flow.stage,
            current_index=self._current_index,
            question_count=len(self._questions),
            current_question=current.text if current is not None and asking else None,
            answers_so_far=list(self._answers.values()),
            started_at=self._started_at,
            ended_at=self._ended_at,
            finish_reason=self._finish_reason,
            final_score=self.final_score,
        )
