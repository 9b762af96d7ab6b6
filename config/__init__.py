"""Configuration package for the interview core."""
from .providers import ProviderConfig, ProviderName, ProviderRoute, default_route
from .registry import FREEFORM_PROVIDER_KEY, SCHEMA_PROVIDER_KEY, bind_provider, bound_providers, get_provider
from .settings import Settings, settings

__all__ = [
    "ProviderConfig",
    "ProviderName",
    "ProviderRoute",
    "default_route",
    "FREEFORM_PROVIDER_KEY",
    "SCHEMA_PROVIDER_KEY",
    "bind_provider",
    "bound_providers",
    "get_provider",
    "Settings",
    "settings",
]
