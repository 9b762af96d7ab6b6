"""In-memory provider registry for LLM adapters."""
from typing import Any, Callable, Dict, List

_REGISTRY: Dict[str, Callable[..., Any]] = {}


def bind_provider(key: str, factory: Callable[..., Any]) -> None:
    """Bind an adapter factory to a provider name."""
    _REGISTRY[key] = factory


def get_provider(key: str) -> Callable[..., Any]:
    """Retrieve the adapter factory for a provider.

    Raises:
        KeyError: If no factory has been bound for ``key``.
    """

    if key not in _REGISTRY:
        raise KeyError(f"Provider not bound in registry: {key}")
    return _REGISTRY[key]


def bound_providers() -> List[str]:
    return sorted(_REGISTRY)


SCHEMA_PROVIDER_KEY = "gemini"
FREEFORM_PROVIDER_KEY = "deepseek"
