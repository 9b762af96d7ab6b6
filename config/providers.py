from __future__ import annotations  # Provider configuration schema

from typing import Dict, Literal

from pydantic import BaseModel, Field

from .settings import settings

ProviderName = Literal["gemini", "deepseek"]


class ProviderConfig(BaseModel):  # User-supplied provider selection
    provider: ProviderName
    api_key: str = ""

    def has_key(self) -> bool:
        return bool(self.api_key.strip())


class ProviderRoute(BaseModel):  # HTTP endpoint configuration for one provider
    name: str
    base_url: str
    endpoint: str
    model: str
    timeout_s: float = Field(ge=0.1)
    generation_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    evaluation_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    extra_headers: Dict[str, str] = Field(default_factory=dict)

    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.endpoint.format(model=self.model)}"


def default_route(provider: ProviderName) -> ProviderRoute:  # Build route from settings
    if provider == "gemini":
        return ProviderRoute(
            name="gemini",
            base_url=settings.GEMINI_BASE_URL,
            endpoint="/v1beta/models/{model}:generateContent",
            model=settings.GEMINI_MODEL,
            timeout_s=settings.PROVIDER_TIMEOUT_S,
        )
    if provider == "deepseek":
        return ProviderRoute(
            name="deepseek",
            base_url=settings.DEEPSEEK_BASE_URL,
            endpoint="/chat/completions",
            model=settings.DEEPSEEK_MODEL,
            timeout_s=settings.PROVIDER_TIMEOUT_S,
        )
    raise KeyError(f"No default route for provider '{provider}'")
