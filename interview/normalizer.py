"""Turn untrusted provider payloads into canonical questions and evaluations."""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import settings

from .errors import NormalizationError, NormalizationIssue, PartialDataError
from .types import Answers, Difficulty, EvaluationResult, LearningStep, Question, QuestionAnalysis, QuestionType

logger = logging.getLogger(__name__)

DIFFICULTY_KEYS = ("difficulty", "level")
DIFFICULTY_ALIASES: Dict[str, Difficulty] = {
    "easy": "easy",
    "medium": "medium",
    "hard": "hard",
    "简单": "easy",
    "中等": "medium",
    "困难": "hard",
}
QUESTION_TYPES = ("concept", "scenario", "design", "troubleshooting")
FALLBACK_CATEGORY = "general"


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def clamp_score(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def _candidate_list(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key, value in payload.items():
            if isinstance(value, list):
                if key != "questions":
                    logger.info("Question batch located under key=%s", key)
                return value
    raise NormalizationError(
        "Question payload did not contain an array",
        reason=NormalizationIssue.NOT_AN_ARRAY,
    )


def _difficulty(item: Mapping[str, Any]) -> Optional[Difficulty]:
    """Return the mapped difficulty, ``medium`` when unrecognised, None when absent."""

    for key in DIFFICULTY_KEYS:
        raw = item.get(key)
        if isinstance(raw, str):
            raw = raw.strip()
            if raw:
                return DIFFICULTY_ALIASES.get(raw.lower(), "medium")
            continue
        if raw is None or raw == [] or raw == {}:
            continue
        return "medium"
    return None


def normalize_questions(payload: Any, topics: Sequence[str]) -> List[Question]:
    """Normalize a generation payload into questions with ids ``1..n``.

    Items missing ``text`` or a difficulty field are dropped. Model-supplied ids
    are ignored so ids stay unique within the batch.

    Raises:
        NormalizationError: The payload holds no array.
        PartialDataError: Fewer than ``settings.MIN_VIABLE_QUESTIONS`` items survive.
    """

    candidates = _candidate_list(payload)
    requested = [topic for topic in topics if topic]
    questions: List[Question] = []
    for index, item in enumerate(candidates):
        if not isinstance(item, dict):
            logger.warning("Dropping question item index=%d: not an object", index)
            continue
        text = _text(item.get("text"))
        difficulty = _difficulty(item)
        if not text or difficulty is None:
            logger.warning("Dropping question item index=%d: missing text or difficulty", index)
            continue
        tags = _string_list(item.get("tags")) or list(requested)
        category = _text(item.get("category")) or (requested[0] if requested else FALLBACK_CATEGORY)
        raw_type = _text(item.get("type")).lower()
        qtype: QuestionType = raw_type if raw_type in QUESTION_TYPES else "concept"  # type: ignore[assignment]
        questions.append(
            Question(
                id=len(questions) + 1,
                category=category,
                tags=tags,
                text=text,
                difficulty=difficulty,
                type=qtype,
            )
        )
    dropped = len(candidates) - len(questions)
    if dropped:
        logger.warning("Question normalization dropped %d of %d items", dropped, len(candidates))
    if len(questions) < settings.MIN_VIABLE_QUESTIONS:
        raise PartialDataError(
            f"Only {len(questions)} usable questions (need {settings.MIN_VIABLE_QUESTIONS})",
            recovered=len(questions),
            required=settings.MIN_VIABLE_QUESTIONS,
        )
    return questions


def _question_id(value: Any) -> Optional[int]:
    number = _number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _dimensions(raw: Any) -> Dict[str, float]:
    if raw is None:
        logger.warning("Evaluation payload has no dimensions; defaulting to empty map")
        return {}
    if not isinstance(raw, dict):
        logger.warning("Evaluation dimensions is not an object; defaulting to empty map")
        return {}
    dimensions: Dict[str, float] = {}
    for name, value in raw.items():
        number = _number(value)
        if number is None:
            logger.warning("Dropping dimension %s: non-numeric value", name)
            continue
        dimensions[str(name)] = clamp_score(number)
    return dimensions


def _learning_path(raw: Any) -> List[LearningStep]:
    if not isinstance(raw, list):
        return []
    steps: List[LearningStep] = []
    for item in raw:
        if not isinstance(item, dict) or not _text(item.get("title")):
            continue
        steps.append(
            LearningStep(
                title=_text(item.get("title")),
                description=_text(item.get("description")),
                resources=_string_list(item.get("resources")),
            )
        )
    return steps


def normalize_evaluation(
    payload: Any,
    questions: Sequence[Question],
    answers: Answers,
    *,
    question_scale: int = 10,
) -> EvaluationResult:
    """Normalize an evaluation payload against the batch that produced it.

    Per-question scores arrive on ``0..question_scale`` and are rescaled to
    0-100. Analyses that reference ids outside the batch are dropped.
    ``questionText``, ``questionType`` and ``userAnswer`` are always taken from
    the batch and the collected answers, never from the payload.
    """

    if not isinstance(payload, dict):
        raise NormalizationError("Evaluation payload is not an object", reason=NormalizationIssue.NOT_AN_OBJECT)
    overall = _number(payload.get("overallScore"))
    if overall is None:
        raise NormalizationError("Evaluation payload missing overallScore", reason=NormalizationIssue.MISSING_FIELD)
    raw_analysis = payload.get("questionAnalysis")
    if not isinstance(raw_analysis, list):
        raise NormalizationError(
            "Evaluation payload missing questionAnalysis array",
            reason=NormalizationIssue.MISSING_FIELD,
        )

    by_id = {question.id: question for question in questions}
    order = {question.id: position for position, question in enumerate(questions)}
    factor = 100.0 / question_scale
    analyses: Dict[int, QuestionAnalysis] = {}
    for entry in raw_analysis:
        if not isinstance(entry, dict):
            logger.warning("Dropping analysis entry: not an object")
            continue
        qid = _question_id(entry.get("questionId"))
        question = by_id.get(qid) if qid is not None else None
        if question is None:
            logger.warning("Anomaly: analysis references questionId=%r outside the batch", entry.get("questionId"))
            continue
        if question.id in analyses:
            logger.warning("Anomaly: duplicate analysis for questionId=%d", question.id)
            continue
        score = _number(entry.get("score"))
        answer = (answers.get(question.id) or "").strip()
        analyses[question.id] = QuestionAnalysis(
            question_id=question.id,
            question_text=question.text,
            question_type=question.type,
            user_answer=answer or settings.NOT_ANSWERED_TEXT,
            score=clamp_score((score or 0.0) * factor),
            feedback=_text(entry.get("feedback")),
            standard_answer=_text(entry.get("standardAnswer")),
            score_explanation=_text(entry.get("scoreExplanation")),
        )

    if not analyses:
        raise NormalizationError(
            "Evaluation contained no analysis for this batch",
            reason=NormalizationIssue.EMPTY_ANALYSIS,
        )
    if len(analyses) < settings.MIN_VIABLE_ANALYSES:
        raise PartialDataError(
            f"Only {len(analyses)} usable analyses (need {settings.MIN_VIABLE_ANALYSES})",
            recovered=len(analyses),
            required=settings.MIN_VIABLE_ANALYSES,
        )
    if len(analyses) < len(questions):
        logger.info("Evaluation covers %d of %d questions", len(analyses), len(questions))

    return EvaluationResult(
        overall_score=clamp_score(overall),
        overall_feedback=_text(payload.get("overallFeedback")),
        dimensions=_dimensions(payload.get("dimensions")),
        question_analysis=sorted(analyses.values(), key=lambda item: order[item.question_id]),
        learning_path=_learning_path(payload.get("learningPath")),
    )


__all__ = ["normalize_questions", "normalize_evaluation", "clamp_score", "DIFFICULTY_ALIASES"]
