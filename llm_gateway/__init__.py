from __future__ import annotations  # Re-export llm_gateway public API

from config.registry import FREEFORM_PROVIDER_KEY, SCHEMA_PROVIDER_KEY, bind_provider

from .freeform_provider import FreeformProvider
from .llm_gateway import ProviderAdapter, RawPayload, build_adapter
from .schema_provider import SchemaProvider

bind_provider(SCHEMA_PROVIDER_KEY, SchemaProvider)
bind_provider(FREEFORM_PROVIDER_KEY, FreeformProvider)

__all__ = ["FreeformProvider", "ProviderAdapter", "RawPayload", "SchemaProvider", "build_adapter"]
