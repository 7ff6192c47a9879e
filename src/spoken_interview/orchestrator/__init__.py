"""
Orchestrator module for driving a spoken interview session.
"""

from spoken_interview.orchestrator.events import EventBus, EventStream
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
from spoken_interview.orchestrator.session_orchestrator import SessionHandle, SessionOrchestrator
from spoken_interview.orchestrator.session_state import (
    EmptyQuestionSet,
    InvalidStageTransition,
    QuestionFlowState,
    Session,
    SessionError,
)

__all__ = [
    "Answer",
    "EmptyQuestionSet",
    "Evaluation",
    "EventBus",
    "EventStream",
    "FinishReason",
    "InvalidStageTransition",
    "Question",
    "QuestionFlowState",
    "Session",
    "SessionClock",
    "SessionError",
    "SessionHandle",
    "SessionOrchestrator",
    "SessionStatus",
    "Stage",
    "StageChange",
]
