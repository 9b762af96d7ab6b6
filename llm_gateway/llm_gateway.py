from __future__ import annotations  # Provider adapter base and HTTP dispatch

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, Optional, Sequence

import httpx

from config.providers import ProviderConfig, ProviderRoute, default_route
from config.registry import get_provider
from config.settings import settings
from interview.errors import AuthError, MalformedResponseError, TransportError
from interview.types import Answers, InterviewerStyle, Question, RequestedDifficulty

from . import prompts

logger = logging.getLogger(__name__)  # Module logger setup

RawPayload = Any


class ProviderAdapter(ABC):
    """One outbound call per operation; payloads come back parsed but untrusted."""

    name: ClassVar[str]
    question_score_scale: ClassVar[int] = 10

    def __init__(
        self,
        config: ProviderConfig,
        *,
        route: Optional[ProviderRoute] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._config = config
        self._route = route or default_route(config.provider)
        self._client = client
        self._timeout_s = timeout_s if timeout_s is not None else self._route.timeout_s

    @property
    def route(self) -> ProviderRoute:
        return self._route

    async def generate_questions(
        self,
        topics: Sequence[str],
        count: int,
        difficulty: RequestedDifficulty,
        style: InterviewerStyle,
        resume_text: Optional[str] = None,
    ) -> RawPayload:
        api_key = self._require_key()
        body = self._generation_body(
            system=prompts.system_instruction(style),
            prompt=prompts.generation_prompt(topics, count, difficulty, resume_text),
        )
        return await self._dispatch("generate", body, api_key)

    async def evaluate_answers(
        self,
        questions: Sequence[Question],
        answers: Answers,
        style: InterviewerStyle,
    ) -> RawPayload:
        api_key = self._require_key()
        body = self._evaluation_body(
            system=prompts.system_instruction(style),
            prompt=prompts.evaluation_prompt(
                questions,
                answers,
                score_scale=self.question_score_scale,
                not_answered=settings.NOT_ANSWERED_TEXT,
            ),
        )
        return await self._dispatch("evaluate", body, api_key)

    def _require_key(self) -> str:
        api_key = self._config.api_key.strip()
        if not api_key:
            raise AuthError(f"Missing API key for provider '{self.name}'")
        return api_key

    async def _dispatch(self, task: str, body: Dict[str, Any], api_key: str) -> RawPayload:
        logger.info(
            "LLM request send provider=%s model=%s task=%s timeout=%.1fs",
            self.name,
            self._route.model,
            task,
            self._timeout_s,
        )
        response = await _post(
            self._url(api_key),
            body,
            self._headers(api_key),
            self._timeout_s,
            self._client,
        )
        if response.status_code in (401, 403):
            logger.error("LLM rejected credentials provider=%s status=%s", self.name, response.status_code)
            raise AuthError(
                f"Provider '{self.name}' rejected the API key",
                status_code=response.status_code,
            )
        if not 200 <= response.status_code < 300:
            logger.error("LLM error status provider=%s status=%s", self.name, response.status_code)
            raise TransportError(
                f"Provider '{self.name}' returned status {response.status_code}",
                status_code=response.status_code,
            )
        try:
            envelope = response.json()
        except ValueError as exc:
            logger.error("Invalid JSON envelope from provider=%s: %s", self.name, exc)
            raise MalformedResponseError(f"Provider '{self.name}' response was not JSON") from exc
        payload = self._decode(self._extract_content(envelope))
        logger.info("LLM request done provider=%s task=%s", self.name, task)
        return payload

    def _url(self, api_key: str) -> str:
        return self._route.url()

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        headers.update(self._route.extra_headers)
        return headers

    @abstractmethod
    def _generation_body(self, *, system: str, prompt: str) -> Dict[str, Any]: ...

    @abstractmethod
    def _evaluation_body(self, *, system: str, prompt: str) -> Dict[str, Any]: ...

    @abstractmethod
    def _extract_content(self, envelope: Any) -> str: ...

    @abstractmethod
    def _decode(self, content: str) -> RawPayload: ...


def build_adapter(
    config: ProviderConfig,
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: Optional[float] = None,
) -> ProviderAdapter:
    """Instantiate the adapter variant bound for ``config.provider``."""

    factory = get_provider(config.provider)
    return factory(config, client=client, timeout_s=timeout_s)


async def _post(
    url: str,
    payload: Dict[str, Any],
    headers: Dict[str, str],
    timeout: float,
    client: Optional[httpx.AsyncClient],
) -> httpx.Response:  # Dispatch HTTP request
    try:
        if client is not None:
            return await asyncio.wait_for(client.post(url, json=payload, headers=headers), timeout=timeout)
        async with httpx.AsyncClient(timeout=timeout) as http_client:
            return await asyncio.wait_for(http_client.post(url, json=payload, headers=headers), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        logger.error("LLM transport timeout after %.1fs", timeout)
        raise TransportError(f"Provider call timed out after {timeout:.1f}s", timeout=True) from exc
    except httpx.HTTPError as exc:
        logger.error("LLM transport failure: %s", exc)
        raise TransportError(f"Provider transport failed: {exc}") from exc


def _strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines:
            lines = lines[1:]
            while lines and lines[0].strip() == "":
                lines = lines[1:]
            while lines and lines[-1].strip() == "":
                lines = lines[:-1]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text


def _parse_json_text(text: str, *, provider: str) -> RawPayload:  # Whole text must be one JSON value
    if not text.strip():
        raise MalformedResponseError(f"Provider '{provider}' returned empty content")
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("LLM content is not JSON provider=%s preview=%s", provider, _preview(text))
        raise MalformedResponseError(f"Provider '{provider}' content was not valid JSON") from exc


def _preview(text: str) -> str:  # Build preview string for logging
    first = text.strip().splitlines()[0] if text.strip() else ""
    if len(first) > 120:
        first = first[:117] + "..."
    return first


__all__ = ["ProviderAdapter", "RawPayload", "build_adapter"]
