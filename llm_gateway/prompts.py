"""Prompt builders shared by both provider variants."""
from __future__ import annotations

import json
from textwrap import dedent
from typing import Any, Dict, Iterable, Optional, Sequence

from interview.topics import describe_topics
from interview.types import Answers, InterviewerStyle, Question, RequestedDifficulty

STYLE_NOTES: Dict[str, str] = {
    "standard": "Standard big-tech interview: balanced breadth and depth, neutral tone.",
    "deep_dive": "Expert panel: dig into underlying principles and implementation mechanics.",
    "stress": "Stress interview: press on details, terse and serious tone.",
    "project_focused": "Practitioner: focus on production rollout, operations and performance tuning.",
}

DIFFICULTY_NOTES: Dict[str, str] = {
    "easy": "All questions easy (fundamentals a junior engineer should know).",
    "medium": "All questions medium (typical mid-level interview depth).",
    "hard": "All questions hard (senior-level depth, edge cases and internals).",
    "mixed": "Mix easy, medium and hard questions.",
}


def system_instruction(style: InterviewerStyle) -> str:
    return dedent(
        f"""
        You are a technical interviewer for C++ backend engineering roles.
        Style: {STYLE_NOTES[style]}
        Rules:
        1. Never ask the candidate to write code. Theory, principles and architecture only.
        2. Focus areas: Linux, C++ language fundamentals, multithreading and concurrency.
        3. Output must be JSON that matches the requested structure exactly.
        """
    ).strip()


def json_contract(schema: Dict[str, Any]) -> str:
    """Instruction appended for providers that cannot enforce a schema."""

    return "Reply with a single JSON object matching this schema:\n" + json.dumps(schema, indent=2)


def generation_prompt(
    topics: Sequence[str],
    count: int,
    difficulty: RequestedDifficulty,
    resume_text: Optional[str] = None,
) -> str:
    topic_lines = "\n".join(describe_topics(topics)) or "- (no topics selected; derive them from the resume)"
    resume_block = ""
    if resume_text and resume_text.strip():
        resume_block = "Candidate background (use it to tailor the questions):\n" + resume_text.strip()
    return dedent(
        """
        Generate {count} short-answer interview questions for a C++ backend engineer.
        Topics:
        {topics}
        Difficulty: {difficulty}
        Each question gets a sequential integer id starting at 1, a type (concept, scenario, design
        or troubleshooting), the question text and a difficulty of easy, medium or hard.
        No coding exercises; focus on principles.
        {resume}
        """
    ).format(
        count=count,
        topics=topic_lines,
        difficulty=DIFFICULTY_NOTES[difficulty],
        resume=resume_block,
    ).strip()


def transcript(questions: Iterable[Question], answers: Answers, not_answered: str) -> str:
    blocks = []
    for question in questions:
        answer = (answers.get(question.id) or "").strip() or not_answered
        blocks.append(f"[{question.id}] Q: {question.text}\nA: {answer}")
    return "\n\n".join(blocks)


def evaluation_prompt(
    questions: Sequence[Question],
    answers: Answers,
    *,
    score_scale: int,
    not_answered: str,
) -> str:
    return dedent(
        """
        Evaluate the following interview performance.
        Give an overallScore from 0 to 100 and an overallFeedback paragraph.
        Score the dimensions knowledge, logic, system and communication from 0 to 100.
        For every question return questionId (the number in brackets), score from 0 to {scale},
        feedback, a standardAnswer and a short scoreExplanation. Unanswered questions score 0.
        Finish with a learningPath of study steps (title, description, resources).

        {transcript}
        """
    ).format(scale=score_scale, transcript=transcript(questions, answers, not_answered)).strip()


__all__ = [
    "STYLE_NOTES",
    "DIFFICULTY_NOTES",
    "system_instruction",
    "json_contract",
    "generation_prompt",
    "transcript",
    "evaluation_prompt",
]
