"""Session event logging and provider call timing."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
