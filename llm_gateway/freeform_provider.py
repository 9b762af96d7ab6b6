"""Freeform provider (DeepSeek, OpenAI-compatible chat completions)."""
from __future__ import annotations

from typing import Any, Dict

from interview.errors import MalformedResponseError

from . import prompts
from .llm_gateway import ProviderAdapter, RawPayload, _parse_json_text, _strip_code_fences
from .schemas import EVALUATION_SCHEMA, WRAPPED_QUESTION_SCHEMA


class FreeformProvider(ProviderAdapter):
    """JSON is only requested in the prompt; content may arrive fenced or wrapped."""

    name = "deepseek"

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = super()._headers(api_key)
        headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def _body(self, system: str, prompt: str, schema: Dict[str, Any], temperature: float) -> Dict[str, Any]:
        return {
            "model": self._route.model,
            "messages": [
                {"role": "system", "content": system + "\n\n" + prompts.json_contract(schema)},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "stream": False,
        }

    def _generation_body(self, *, system: str, prompt: str) -> Dict[str, Any]:
        return self._body(system, prompt, WRAPPED_QUESTION_SCHEMA, self._route.generation_temperature)

    def _evaluation_body(self, *, system: str, prompt: str) -> Dict[str, Any]:
        return self._body(system, prompt, EVALUATION_SCHEMA, self._route.evaluation_temperature)

    def _extract_content(self, envelope: Any) -> str:  # Extract message content from chat response
        if isinstance(envelope, dict):
            choices = envelope.get("choices")
            if isinstance(choices, list) and choices:
                message = choices[0].get("message") if isinstance(choices[0], dict) else None
                content = message.get("content") if isinstance(message, dict) else None
                if isinstance(content, str):
                    return content
        raise MalformedResponseError(f"Provider '{self.name}' response missing content")

    def _decode(self, content: str) -> RawPayload:
        return _parse_json_text(_strip_code_fences(content), provider=self.name)


__all__ = ["FreeformProvider"]
