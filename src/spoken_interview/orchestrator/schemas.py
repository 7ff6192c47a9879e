"""
Pydantic schemas for the orchestrator module.

Defines the session stages, questions, answers and the read-only views
handed to the presentation layer.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Stage(str, Enum):
    """Stages of a single interview session."""

    CREATED = "created"
    UPLOADING = "uploading"
    QUESTIONS_READY = "questions_ready"
    ASKING = "asking"
    RECORDING = "recording"
    EVALUATING = "evaluating"
    FINISHED = "finished"


class FinishReason(str, Enum):
    """Why a session reached the finished stage."""

    COMPLETED = "completed"
    ABORTED = "aborted"
    SESSION_TIME_LIMIT = "session_time_limit"
    QUESTION_GENERATION_FAILED = "question_generation_failed"


class Question(BaseModel):
    """An interview question. Immutable once generated."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1, description="Question as spoken to the candidate")
    expected_topics: tuple[str, ...] = Field(
        default=(),
        description="Topics a strong answer is expected to cover",
    )


class Evaluation(BaseModel):
    """Normalized evaluation of one answer."""

    model_config = ConfigDict(frozen=True)

    score: float = Field(..., ge=0.0, le=10.0, description="Score on a 0-10 scale")
    feedback: str = Field(default="", description="Feedback text")
    provider: str = Field(default="", description="Provider that produced the evaluation")


class Answer(BaseModel):
    """The candidate's answer to one question."""

    question_index: int = Field(..., ge=0, description="Index of the answered question")
    raw_transcript: str = Field(default="", description="Transcript as captured (may be empty)")
    timed_out: bool = Field(default=False, description="True when the question clock expired first")
    evaluation: Evaluation | None = Field(default=None, description="Evaluation, once available")
    evaluation_unavailable: bool = Field(
        default=False,
        description="True when every evaluation provider failed for this answer",
    )


class StageChange(BaseModel):
    """Notification published on every stage transition."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(..., description="Session the transition belongs to")
    stage: Stage = Field(..., description="Stage entered")
    question_index: int = Field(..., ge=0, description="Current question index")
    question: str | None = Field(default=None, description="Question text when entering asking")
    questions: tuple[str, ...] = Field(default=(), description="Question list when questions are ready")
    answer: Answer | None = Field(default=None, description="Answer when entering evaluating")
    evaluation: Evaluation | None = Field(default=None, description="Evaluation of the previous answer")
    evaluation_unavailable: bool = Field(
        default=False,
        description="True when the previous answer could not be evaluated",
    )
    finish_reason: FinishReason | None = Field(default=None, description="Set when finished")
    final_score: float | None = Field(default=None, description="Set when finished")


class SessionStatus(BaseModel):
    """Read-only snapshot of a session."""

    session_id: str = Field(..., description="Session identifier")
    stage: Stage = Field(..., description="Current stage")
    current_index: int = Field(..., ge=0, description="Current question index")
    question_count: int = Field(default=0, ge=0, description="Number of questions in the session")
    current_question: str | None = Field(default=None, description="Question currently asked, if any")
    answers_so_far: list[Answer] = Field(default_factory=list, description="Answers in interview order")
    started_at: datetime = Field(..., description="When the session was created")
    ended_at: datetime | None = Field(default=None, description="When the session finished")
    finish_reason: FinishReason | None = Field(default=None, description="Why the session finished")
    final_score: float | None = Field(
        default=None,
        description="Mean evaluation score over evaluated answers (0-10)",
    )
