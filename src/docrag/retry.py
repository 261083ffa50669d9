"""Bounded retry for provider calls.

Only errors listed in *retry_on* are retried; everything else propagates
on the first failure.  Retrying embedding and upsert calls is safe because
vector ids are deterministic, so a repeated upsert overwrites rather than
duplicates.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from docrag.errors import TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retries(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    retry_on: tuple[type[BaseException], ...] = (TransientProviderError,),
    what: str = "provider call",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run *fn* up to *attempts* times with exponential back-off.

    Raises the last error once attempts are exhausted.
    """
    if attempts < 1:
        raise ValueError(f"attempts must be >= 1, got {attempts}")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt == attempts:
                logger.error("%s failed after %d attempt(s): %s", what, attempts, exc)
                raise
            wait = base_delay * 2 ** (attempt - 1)
            logger.warning(
                "Retry %d/%d for %s (wait %.1fs): %s", attempt, attempts - 1, what, wait, exc
            )
            sleep(wait)
    raise AssertionError("unreachable")  # pragma: no cover
