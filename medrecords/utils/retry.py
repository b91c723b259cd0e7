# medrecords/utils/retry.py
import logging
import time
from typing import Callable, TypeVar

from medrecords.core.errors import BackendUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def call_with_retry(
    call: Callable[[], T],
    *,
    attempts: int = 3,
    delay: float = 0.2,
    description: str = "backend call",
) -> T:
    """
    Run ``call``, retrying only on BackendUnavailable, at most ``attempts``
    times in total. The last BackendUnavailable is re-raised.

    Every other error (SchemaMismatch, NotFound, ...) propagates on the first
    occurrence: retrying cannot fix it.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return call()
        except BackendUnavailable as e:
            if attempt == attempts:
                logger.error(f"{description} failed after {attempts} attempts: {e.message}")
                raise
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e.message}")
            if delay > 0:
                time.sleep(delay * attempt)
    raise AssertionError("unreachable")
