"""
Agents module containing the AI-backed interview helpers.
"""

from spoken_interview.agents.question_generator import QuestionGenerator

__all__ = ["QuestionGenerator"]
