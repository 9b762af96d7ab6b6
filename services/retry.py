"""Bounded retry with linear backoff for provider calls."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from interview.errors import TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int,
    backoff_s: float,
    should_continue: Optional[Callable[[], bool]] = None,
) -> T:
    """Await ``operation``, retrying retryable ``TransportError`` up to ``retries`` times.

    ``should_continue`` is checked before and after each backoff sleep; when it
    returns False the last error is raised without another attempt. Every other exception
    propagates immediately.
    """

    attempt = 0
    while True:
        try:
            return await operation()
        except TransportError as exc:
            if not exc.retryable or attempt >= retries:
                raise
            if should_continue is not None and not should_continue():
                raise
            attempt += 1
            logger.warning("Provider call failed (%s); retry %d/%d", exc.message, attempt, retries)
            if backoff_s > 0:
                await asyncio.sleep(backoff_s * attempt)
            if should_continue is not None and not should_continue():
                logger.info("Caller superseded during backoff; dropping retry %d/%d", attempt, retries)
                raise


__all__ = ["call_with_retry"]
