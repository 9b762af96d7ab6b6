"""Response schemas declared to providers (OpenAPI subset used by generateContent)."""
from __future__ import annotations

from typing import Any, Dict

QUESTION_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "id": {"type": "INTEGER"},
        "type": {"type": "STRING", "enum": ["concept", "scenario", "design", "troubleshooting"]},
        "text": {"type": "STRING"},
        "difficulty": {"type": "STRING", "enum": ["easy", "medium", "hard"]},
        "category": {"type": "STRING"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["id", "type", "text", "difficulty"],
}

QUESTION_SCHEMA: Dict[str, Any] = {"type": "ARRAY", "items": QUESTION_ITEM_SCHEMA}

# json_object mode only admits objects, so the batch is wrapped under one key.
WRAPPED_QUESTION_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {"questions": QUESTION_SCHEMA},
    "required": ["questions"],
}

EVALUATION_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "overallScore": {"type": "INTEGER"},
        "overallFeedback": {"type": "STRING"},
        "dimensions": {
            "type": "OBJECT",
            "properties": {
                "knowledge": {"type": "INTEGER"},
                "logic": {"type": "INTEGER"},
                "system": {"type": "INTEGER"},
                "communication": {"type": "INTEGER"},
            },
            "required": ["knowledge", "logic", "system", "communication"],
        },
        "questionAnalysis": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "questionId": {"type": "INTEGER"},
                    "score": {"type": "INTEGER"},
                    "feedback": {"type": "STRING"},
                    "standardAnswer": {"type": "STRING"},
                    "scoreExplanation": {"type": "STRING"},
                },
                "required": ["questionId", "score", "feedback", "standardAnswer"],
            },
        },
        "learningPath": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "resources": {"type": "ARRAY", "items": {"type": "STRING"}},
                },
            },
        },
    },
    "required": ["overallScore", "overallFeedback", "questionAnalysis", "dimensions"],
}

__all__ = ["QUESTION_ITEM_SCHEMA", "QUESTION_SCHEMA", "WRAPPED_QUESTION_SCHEMA", "EVALUATION_SCHEMA"]
