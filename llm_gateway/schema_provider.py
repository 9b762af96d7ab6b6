"""Schema-constrained provider (Gemini generateContent)."""
from __future__ import annotations

from typing import Any, Dict, List

from interview.errors import MalformedResponseError

from .llm_gateway import ProviderAdapter, RawPayload, _parse_json_text
from .schemas import EVALUATION_SCHEMA, QUESTION_SCHEMA


class SchemaProvider(ProviderAdapter):
    """The transport enforces the response shape, so content is parsed as-is."""

    name = "gemini"

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = super()._headers(api_key)
        headers["x-goog-api-key"] = api_key
        return headers

    def _body(self, system: str, prompt: str, schema: Dict[str, Any], temperature: float) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
                "temperature": temperature,
            },
        }

    def _generation_body(self, *, system: str, prompt: str) -> Dict[str, Any]:
        return self._body(system, prompt, QUESTION_SCHEMA, self._route.generation_temperature)

    def _evaluation_body(self, *, system: str, prompt: str) -> Dict[str, Any]:
        return self._body(system, prompt, EVALUATION_SCHEMA, self._route.evaluation_temperature)

    def _extract_content(self, envelope: Any) -> str:
        if isinstance(envelope, dict):
            candidates = envelope.get("candidates")
            if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
                content = candidates[0].get("content")
                parts = content.get("parts") if isinstance(content, dict) else None
                if isinstance(parts, list):
                    texts: List[str] = [
                        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
                    ]
                    if texts:
                        return "".join(texts)
            feedback = envelope.get("promptFeedback")
            if isinstance(feedback, dict) and feedback.get("blockReason"):
                raise MalformedResponseError(f"Provider '{self.name}' blocked the prompt: {feedback['blockReason']}")
        raise MalformedResponseError(f"Provider '{self.name}' response missing content")

    def _decode(self, content: str) -> RawPayload:
        return _parse_json_text(content, provider=self.name)


__all__ = ["SchemaProvider"]
