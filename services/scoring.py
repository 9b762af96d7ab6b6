"""Score aggregation, history and mistake-set management."""
from __future__ import annotations

import logging
from statistics import median
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel

from interview.normalizer import clamp_score
from interview.types import EvaluationResult, MistakeRecord, Question, QuestionAnalysis, UserHistoryItem, UserProfile
from storage.profiles import ProfileStore, update_profile

logger = logging.getLogger(__name__)

STANDARD_DIMENSIONS = ("knowledge", "logic", "system", "communication")

Band = Literal["low", "mid", "high"]


class ScoresTriple(BaseModel):
    avg: float
    median: float
    max: float


class ProfileStats(BaseModel):
    sessions: int
    scores: ScoresTriple
    mistakes: int


def _round1(value: float) -> float:
    """Round a float to one decimal place with stable formatting."""
    return float(f"{value:.1f}")


def score_band(score: float) -> Band:
    """Bucket a 0-100 score into the bands used for display."""

    if score >= 80:
        return "high"
    if score >= 60:
        return "mid"
    return "low"


def dimension_scores(result: EvaluationResult) -> Dict[str, float]:
    """Return clamped dimension values, zero-filling the standard dimensions."""

    values = {name: 0.0 for name in STANDARD_DIMENSIONS}
    for name, value in result.dimensions.items():
        values[name] = clamp_score(value)
    return values


def session_topics(questions: Sequence[Question]) -> List[str]:
    seen: Dict[str, None] = {}
    for question in questions:
        for tag in question.tags:
            seen.setdefault(tag, None)
    return list(seen)


def _triple(values: List[float]) -> ScoresTriple:
    if not values:
        return ScoresTriple(avg=0.0, median=0.0, max=0.0)
    return ScoresTriple(
        avg=_round1(sum(values) / len(values)),
        median=_round1(float(median(values))),
        max=_round1(max(values)),
    )


def profile_stats(profile: UserProfile) -> ProfileStats:
    """Summarise a user's history for the dashboard."""

    return ProfileStats(
        sessions=len(profile.history),
        scores=_triple([item.score for item in profile.history]),
        mistakes=len(profile.mistakes),
    )


class ScoreAggregator:
    """Folds evaluations and user curation into the durable profile."""

    def __init__(self, store: ProfileStore) -> None:
        self._store = store

    def record_evaluation(
        self,
        username: str,
        result: EvaluationResult,
        questions: Sequence[Question],
    ) -> UserHistoryItem:
        item = UserHistoryItem(score=clamp_score(result.overall_score), topic_ids=session_topics(questions))

        def _append(profile: UserProfile) -> None:
            profile.history.append(item)

        update_profile(self._store, username, _append)
        logger.info("Recorded history user=%s score=%.1f topics=%d", username, item.score, len(item.topic_ids))
        return item

    def add_mistake(
        self,
        username: str,
        analysis: QuestionAnalysis,
        question: Question,
    ) -> Optional[MistakeRecord]:
        """Insert a mistake unless one with the same question text exists.

        Returns the stored record, or None when it was a duplicate.
        """

        if analysis.question_id != question.id:
            raise ValueError(f"Analysis for question {analysis.question_id} does not match question {question.id}")
        record = MistakeRecord(question=question, user_answer=analysis.user_answer, feedback=analysis.feedback)
        key = question.text.strip()

        def _insert(profile: UserProfile) -> bool:
            if any(existing.question.text.strip() == key for existing in profile.mistakes):
                return False
            profile.mistakes.insert(0, record)
            return True

        if not update_profile(self._store, username, _insert):
            logger.info("Mistake already tracked user=%s question_id=%d", username, question.id)
            return None
        return record

    def remove_mistake(self, username: str, mistake_id: str) -> bool:
        """Drop the mistake with ``mistake_id``; unknown ids are a no-op."""

        profile = self._store.get(username)
        if profile is None or not any(item.id == mistake_id for item in profile.mistakes):
            return False

        def _filter(current: UserProfile) -> bool:
            before = len(current.mistakes)
            current.mistakes = [item for item in current.mistakes if item.id != mistake_id]
            return len(current.mistakes) != before

        return update_profile(self._store, username, _filter)


__all__ = [
    "STANDARD_DIMENSIONS",
    "ScoresTriple",
    "ProfileStats",
    "ScoreAggregator",
    "score_band",
    "dimension_scores",
    "session_topics",
    "profile_stats",
]
