"""
Main entry point for the Spoken Interview application.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from spoken_interview.agents.question_generator import QuestionGenerator
from spoken_interview.config import Settings, get_settings
from spoken_interview.io.text_interface import TextInterface
from spoken_interview.orchestrator.schemas import Question
from spoken_interview.orchestrator.session_orchestrator import SessionOrchestrator
from spoken_interview.providers.base import AllProvidersExhausted
from spoken_interview.providers.gateway import ProviderGateway
from spoken_interview.providers.llm_providers import GeminiProvider, OpenRouterProvider
from spoken_interview.providers.speech import FileAudioSink, GatewaySpeaker, SarvamProvider, Speaker, TextSpeaker


def setup_logging() -> None:
    """Configure application logging."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(prog="spoken-interview", description="Run a spoken interview session")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--questions-file", help="Plain text file with one question per line")
    source.add_argument("--resume-file", help="Plain text resume to generate questions from")
    parser.add_argument("--question-count", type=int, default=None, help="Questions to generate from a resume")
    parser.add_argument("--time-limit", type=float, default=None, help="Seconds allowed per answer")
    parser.add_argument("--no-tts", action="store_true", help="Print questions instead of speaking them")
    return parser


def load_questions(path: str | Path) -> list[Question]:
    """Read one question per line, skipping blanks and # comments."""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [Question(text=line.strip()) for line in lines if line.strip() and not line.strip().startswith("#")]


def build_orchestrator(settings: Settings, tts_enabled: bool, time_limit_s: float | None = None) -> SessionOrchestrator:
    """Wire providers, gateway, speaker and orchestrator from settings."""
    llm_providers = [GeminiProvider(), OpenRouterProvider()]
    gateway = ProviderGateway(
        question_providers=llm_providers,
        speech_providers=[SarvamProvider()],
    )

    speaker: Speaker
    if tts_enabled:
        speaker = GatewaySpeaker(gateway, FileAudioSink(settings.artifacts_dir))
    else:
        speaker = TextSpeaker()

    return SessionOrchestrator(
        gateway=gateway,
        speaker=speaker,
        question_generator=QuestionGenerator(gateway),
        settings=settings,
        question_time_limit_s=time_limit_s,
    )


async def run_interview(argv: list[str] | None = None) -> int:
    """
    Run an interactive interview session.

    Returns:
        Process exit code.
    """
    settings = get_settings()
    logger = logging.getLogger(__name__)
    args = build_parser().parse_args(argv)

    tts_enabled = settings.tts_enabled and not args.no_tts
    orchestrator = build_orchestrator(settings, tts_enabled, args.time_limit)

    questions: list[Question] | None = None
    resume_text: str | None = None
    if args.questions_file:
        questions = load_questions(args.questions_file)
    else:
        resume_text = Path(args.resume_file).read_text(encoding="utf-8")

    interface = TextInterface(
        orchestrator,
        questions=questions,
        resume_text=resume_text,
        question_count=args.question_count,
        echo_questions=tts_enabled,
    )

    logger.info("Starting interview session...")
    try:
        await interface.run()
    except AllProvidersExhausted as e:
        print(f"\nCould not prepare interview questions: {e}")
        for failure in e.failures:
            print(f"  - {failure.provider}: {failure.outcome.value} {failure.error}")
        return 2
    finally:
        await orchestrator.aclose()
        await orchestrator.gateway.close()
    return 0


def main() -> None:
    """Main entry point for the application."""
    setup_logging()

    try:
        sys.exit(asyncio.run(run_interview(sys.argv[1:])))
    except KeyboardInterrupt:
        print("\nInterview session terminated by user.")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Application error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
