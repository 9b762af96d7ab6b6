"""Shared type definitions for the interview core."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.providers import ProviderConfig

Difficulty = Literal["easy", "medium", "hard"]
RequestedDifficulty = Literal["easy", "medium", "hard", "mixed"]
QuestionType = Literal["concept", "scenario", "design", "troubleshooting"]
InterviewerStyle = Literal["standard", "deep_dive", "stress", "project_focused"]

Answers = Dict[int, str]


def _unique(values: List[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=1)
    category: str
    tags: List[str] = Field(default_factory=list)
    text: str
    difficulty: Difficulty = "medium"
    type: QuestionType = "concept"

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: List[str]) -> List[str]:
        return _unique(value)


class QuestionAnalysis(BaseModel):
    question_id: int
    question_text: str
    question_type: QuestionType = "concept"
    user_answer: str
    score: float = Field(ge=0.0, le=100.0)  # canonical 0-100 scale
    feedback: str = ""
    standard_answer: str = ""
    score_explanation: str = ""


class LearningStep(BaseModel):
    title: str
    description: str = ""
    resources: List[str] = Field(default_factory=list)

    @field_validator("resources")
    @classmethod
    def _dedupe_resources(cls, value: List[str]) -> List[str]:
        return _unique(value)


class EvaluationResult(BaseModel):
    overall_score: float = Field(ge=0.0, le=100.0)
    overall_feedback: str = ""
    dimensions: Dict[str, float] = Field(default_factory=dict)
    question_analysis: List[QuestionAnalysis]
    learning_path: List[LearningStep] = Field(default_factory=list)

    def analysis_for(self, question_id: int) -> Optional[QuestionAnalysis]:
        return next((item for item in self.question_analysis if item.question_id == question_id), None)


class MistakeRecord(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    question: Question
    user_answer: str
    feedback: str = ""
    date: datetime = Field(default_factory=utcnow)


class UserHistoryItem(BaseModel):
    date: datetime = Field(default_factory=utcnow)
    score: float = Field(ge=0.0, le=100.0)
    topic_ids: List[str] = Field(default_factory=list)

    @field_validator("topic_ids")
    @classmethod
    def _dedupe_topics(cls, value: List[str]) -> List[str]:
        return _unique(value)


class Credentials(BaseModel):
    password_hash: str


class UserProfile(BaseModel):
    username: str
    credentials: Optional[Credentials] = None
    ai_config: Optional[ProviderConfig] = None
    history: List[UserHistoryItem] = Field(default_factory=list)
    mistakes: List[MistakeRecord] = Field(default_factory=list)


class SessionHandle(BaseModel):  # Explicit identity passed into profile operations
    model_config = ConfigDict(frozen=True)

    username: str


__all__ = [
    "Difficulty",
    "RequestedDifficulty",
    "QuestionType",
    "InterviewerStyle",
    "Answers",
    "Question",
    "QuestionAnalysis",
    "LearningStep",
    "EvaluationResult",
    "MistakeRecord",
    "UserHistoryItem",
    "Credentials",
    "UserProfile",
    "SessionHandle",
    "utcnow",
]
