"""
Tests for session state and the stage state machine.
"""

import pytest

from spoken_interview.orchestrator import (
    EmptyQuestionSet,
    Evaluation,
    FinishReason,
    InvalidStageTransition,
    Question,
    QuestionFlowState,
    Session,
    Stage,
)


class TestQuestionFlowState:
    """Tests for QuestionFlowState."""

    def test_starts_created(self) -> None:
        flow = QuestionFlowState()

        assert flow.stage == Stage.CREATED
        assert flow.history == [Stage.CREATED]
        assert not flow.is_terminal

    def test_legal_path(self) -> None:
        flow = QuestionFlowState()
        for stage in (
            Stage.UPLOADING,
            Stage.QUESTIONS_READY,
            Stage.ASKING,
            Stage.RECORDING,
            Stage.EVALUATING,
            Stage.ASKING,
            Stage.EVALUATING,
            Stage.FINISHED,
        ):
            flow.transition(stage)

        assert flow.is_terminal
        assert flow.history[-1] == Stage.FINISHED

    def test_illegal_transition_leaves_state_untouched(self) -> None:
        flow = QuestionFlowState()

        with pytest.raises(InvalidStageTransition) as exc_info:
            flow.transition(Stage.EVALUATING)

        assert exc_info.value.current == Stage.CREATED
        assert flow.stage == Stage.CREATED
        assert flow.history == [Stage.CREATED]

    def test_finished_is_absorbing(self) -> None:
        flow = QuestionFlowState()
        flow.transition(Stage.FINISHED)

        for stage in Stage:
            assert not flow.can_transition(stage)
        with pytest.raises(InvalidStageTransition):
            flow.transition(Stage.ASKING)

    def test_every_stage_can_finish(self) -> None:
        for stage, targets in QuestionFlowState.TRANSITIONS.items():
            if stage != Stage.FINISHED:
                assert Stage.FINISHED in targets


class TestSession:
    """Tests for Session."""

    @pytest.fixture
    def questions(self) -> list[Question]:
        """Two fixed questions."""
        return [Question(text="What is a coroutine?"), Question(text="How does asyncio schedule tasks?")]

    @pytest.fixture
    def session(self, questions: list[Question]) -> Session:
        """Session asking its first question."""
        session = Session()
        session.load_questions(questions)
        session.begin_asking()
        return session

    def test_empty_question_set_rejected(self) -> None:
        session = Session()

        with pytest.raises(EmptyQuestionSet):
            session.load_questions([])
        assert session.stage == Stage.CREATED

    def test_questions_are_write_once(self, session: Session, questions: list[Question]) -> None:
        with pytest.raises(InvalidStageTransition):
            session.load_questions(questions)
        assert session.questions == tuple(questions)

    def test_record_and_evaluate_answer(self, session: Session) -> None:
        answer = session.record_answer("A suspendable function")

        assert answer.question_index == 0
        assert not answer.timed_out
        assert session.stage == Stage.EVALUATING

        evaluated = session.apply_evaluation(0, Evaluation(score=7.5, feedback="Good", provider="primary"))
        assert evaluated.evaluation is not None
        assert evaluated.evaluation.score == 7.5
        assert not evaluated.evaluation_unavailable
        assert session.answers[0].evaluation == evaluated.evaluation

    def test_answer_is_write_once(self, session: Session) -> None:
        session.record_answer("first")

        with pytest.raises(InvalidStageTransition):
            session.record_answer("second")
        assert session.answers[0].raw_transcript == "first"

    def test_missing_evaluation_marks_unavailable(self, session: Session) -> None:
        session.record_answer("", timed_out=True)

        answer = session.apply_evaluation(0, None)

        assert answer.evaluation is None
        assert answer.evaluation_unavailable
        assert answer.timed_out

    def test_advance_moves_forward_by_one(self, session: Session) -> None:
        session.record_answer("one")
        session.apply_evaluation(0, Evaluation(score=6))

        nxt = session.advance()

        assert nxt.text == "How does asyncio schedule tasks?"
        assert session.current_index == 1
        assert session.stage == Stage.ASKING
        assert not session.has_next_question()

    def test_advance_past_last_question_rejected(self, session: Session) -> None:
        session.record_answer("one")
        session.apply_evaluation(0, None)
        session.advance()
        session.record_answer("two")
        session.apply_evaluation(1, None)

        with pytest.raises(InvalidStageTransition):
            session.advance()
        assert session.current_index == 1

    def test_finish_sets_end_once(self, session: Session) -> None:
        assert session.finish(FinishReason.ABORTED)
        ended_at = session.ended_at

        assert not session.finish(FinishReason.COMPLETED)
        assert session.ended_at == ended_at
        assert session.finish_reason == FinishReason.ABORTED
        assert not session.can_accept_answer()

    def test_final_score_is_mean_of_evaluated_answers(self, session: Session) -> None:
        session.record_answer("one")
        session.apply_evaluation(0, Evaluation(score=6))
        session.advance()
        session.record_answer("two")
        session.apply_evaluation(1, None)

        assert session.final_score == 6.0

    def test_status_snapshot(self, session: Session) -> None:
        status = session.status()

        assert status.stage == Stage.ASKING
        assert status.current_question == "What is a coroutine?"
        assert status.question_count == 2
        assert status.answers_so_far == []
        assert status.ended_at is None

        session.record_answer("answer")
        assert session.status().current_question is None

    def test_recording_accepts_answer(self, session: Session) -> None:
        session.begin_recording()

        assert session.can_accept_answer()
        session.record_answer("spoken answer")
        assert session.stage_history[-3:] == [Stage.ASKING, Stage.RECORDING, Stage.EVALUATING]
