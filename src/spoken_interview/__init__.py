"""
Spoken Interview.

Drives an automated spoken interview: questions are spoken aloud, answers
are captured and evaluated by AI providers, and the session advances to a
final score.
"""

__version__ = "0.1.0"
