"""Prompt templates for question generation and answer evaluation."""

QUESTION_GENERATION_PROMPT = """You are an experienced technical interviewer.
Read the candidate's resume and write {count} interview questions that probe
the skills and projects it describes. Each question must be a single spoken
sentence, answerable in about two minutes, with no numbering or markdown.

Resume:
{resume}

Respond with JSON only, in this exact shape:
{{"questions": ["first question", "second question"]}}
"""

EVALUATION_PROMPT = """You are scoring a candidate's spoken interview answer.

Question: {question}
Topics a strong answer covers: {topics}

Candidate answer (speech transcript, may contain recognition errors):
{answer}

Score the answer from 0 (no answer or irrelevant) to 10 (complete and precise).
An empty answer scores 0. Respond with JSON only, in this exact shape:
{{"score": 7, "feedback": "one or two sentences of feedback"}}
"""
