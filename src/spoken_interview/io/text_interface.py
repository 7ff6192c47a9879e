"""
Text-based interview interface.

Terminal presentation layer: shows stage changes and forwards typed
answers to the orchestrator.
"""

import asyncio
import threading
from abc import ABC, abstractmethod

from spoken_interview.orchestrator.schemas import Question, SessionStatus, Stage, StageChange
from spoken_interview.orchestrator.session_orchestrator import SessionOrchestrator
from spoken_interview.orchestrator.session_state import InvalidStageTransition

QUIT_COMMANDS = ("/quit", "/exit", "/end")
SKIP_COMMANDS = ("/skip",)


class InterviewInterface(ABC):
    """Abstract base class for interview interfaces."""

    @abstractmethod
    async def run(self) -> SessionStatus:
        """Run the interview and return the final status."""
        ...

    @abstractmethod
    async def send_message(self, message: str) -> None:
        """
        Send a message to the user.

        Args:
            message: Message to display.
        """
        ...

    @abstractmethod
    async def receive_input(self) -> str:
        """
        Receive input from the user.

        Returns:
            User's input string.
        """
        ...


class TextInterface(InterviewInterface):
    """
    Command-line text interface for interviews.

    Answers are typed; ``/skip`` submits an empty answer and ``/quit``
    ends the interview early.
    """

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        questions: list[Question] | None = None,
        resume_text: str | None = None,
        question_count: int | None = None,
        echo_questions: bool = True,
    ) -> None:
        """
        Initialize the text interface.

        Args:
            orchestrator: Session orchestrator to drive.
            questions: Fixed question set, if already known.
            resume_text: Resume text to generate questions from otherwise.
            question_count: Questions to generate from the resume.
            echo_questions: Print question text (off when the speaker prints it).
        """
        if not questions and not resume_text:
            raise ValueError("Either questions or resume_text is required")
        self._orchestrator = orchestrator
        self._questions = questions
        self._resume_text = resume_text
        self._question_count = question_count
        self._echo_questions = echo_questions
        self._lines: asyncio.Queue[str] = asyncio.Queue()
        self._stdin_thread: threading.Thread | None = None

    async def run(self) -> SessionStatus:
        """Run the interview until it finishes."""
        print("\n" + "=" * 60)
        print("Spoken Interview")
        print("Type your answer and press Enter. /skip to pass, /quit to stop.")
        print("=" * 60 + "\n")

        stream = self._orchestrator.stream()
        reader: asyncio.Task[None] | None = None
        try:
            if self._questions:
                await self._orchestrator.start(self._questions)
            else:
                await self.send_message("Preparing questions from your resume...")
                await self._orchestrator.start_from_resume(self._resume_text or "", self._question_count)

            # Typed input is buffered by the terminal while the first question is spoken.
            reader = asyncio.create_task(self._read_answers())
            async for event in stream:
                await self._show(event)
        finally:
            if reader is not None:
                reader.cancel()
            stream.close()

        status = self._orchestrator.status()
        await self._display_result(status)
        return status

    async def send_message(self, message: str) -> None:
        """
        Display a message to the terminal.

        Args:
            message: Message to display.
        """
        print(f"\n{message}\n", flush=True)

    async def receive_input(self) -> str:
        """
        Get input from the terminal.

        Returns:
            User's input string.
        """
        if self._stdin_thread is None:
            self._stdin_thread = threading.Thread(
                target=self._pump_stdin,
                args=(asyncio.get_running_loop(),),
                name="stdin-reader",
                daemon=True,
            )
            self._stdin_thread.start()
        return await self._lines.get()

    def _pump_stdin(self, loop: asyncio.AbstractEventLoop) -> None:
        # Daemon thread: a pending input() must not keep the process alive after the interview.
        while True:
            try:
                line = input()
            except EOFError:
                line = QUIT_COMMANDS[0]
            try:
                loop.call_soon_threadsafe(self._lines.put_nowait, line)
            except RuntimeError:
                return
            if line == QUIT_COMMANDS[0]:
                return

    async def _read_answers(self) -> None:
        while True:
            line = (await self.receive_input()).strip()
            if line.lower() in QUIT_COMMANDS:
                self._orchestrator.abort()
                return
            transcript = "" if line.lower() in SKIP_COMMANDS else line
            try:
                self._orchestrator.submit_answer(transcript)
            except InvalidStageTransition:
                await self.send_message("(Please wait for the next question.)")

    async def _show(self, event: StageChange) -> None:
        if event.evaluation is not None:
            await self.send_message(
                f"Score: {event.evaluation.score:.1f}/10. {event.evaluation.feedback}".strip()
            )
        elif event.evaluation_unavailable:
            await self.send_message("(Evaluation unavailable for that answer.)")

        if event.stage == Stage.QUESTIONS_READY:
            await self.send_message(f"{len(event.questions)} question(s) ready.")
        elif event.stage == Stage.ASKING:
            total = self._orchestrator.status().question_count
            header = f"Question {event.question_index + 1}/{total}"
            if self._echo_questions and event.question:
                await self.send_message(f"{header}: {event.question}")
            else:
                await self.send_message(header)
            print("You: ", end="", flush=True)
        elif event.stage == Stage.EVALUATING and event.answer is not None and event.answer.timed_out:
            await self.send_message("Time is up for this question.")

    async def _display_result(self, status: SessionStatus) -> None:
        """Display the final interview summary."""
        print("\n" + "=" * 60)
        print("Interview Complete")
        print("=" * 60)
        reason = status.finish_reason.value if status.finish_reason else "unknown"
        print(f"Finished: {reason}")
        print(f"Answered: {len(status.answers_so_far)}/{status.question_count}")
        for answer in status.answers_so_far:
            if answer.evaluation is not None:
                result = f"{answer.evaluation.score:.1f}/10"
            elif answer.evaluation_unavailable:
                result = "evaluation unavailable"
            else:
                result = "not evaluated"
            flag = " (timed out)" if answer.timed_out else ""
            print(f"  Q{answer.question_index + 1}: {result}{flag}")
        if status.final_score is not None:
            print(f"\nFinal score: {status.final_score:.1f}/10")
        print("=" * 60 + "\n")
