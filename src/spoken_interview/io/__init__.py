"""
IO module for interview presentation interfaces.
"""

from spoken_interview.io.text_interface import InterviewInterface, TextInterface

__all__ = ["InterviewInterface", "TextInterface"]
