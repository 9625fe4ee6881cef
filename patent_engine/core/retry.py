"""
Retry/Backoff Supervisor.

Wraps a whole search flow. Each retry restarts the flow from the beginning
because half-submitted forms cannot be resumed. Backoff is linear
(``base_delay * attempt``): the failures it targets are rendering lag, not
server overload. Errors never escape; exhaustion yields an ERROR sentinel.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar, Union

from patent_engine.core.errors import EngineError
from patent_engine.core.models import ResultSet

logger = logging.getLogger("patent_engine.retry")

T = TypeVar("T")


class RetrySupervisor:
    """Bounded retries with linear backoff and an optional per-attempt timeout."""

    def __init__(
        self,
        attempt_timeout: Optional[float] = None,
        source_name: str = "",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            attempt_timeout: Hard timeout for one attempt in seconds, None for no limit
            source_name: Stamped on the ERROR sentinel
            sleep: Awaitable used between attempts
        """
        self._attempt_timeout = attempt_timeout
        self._source_name = source_name
        self._sleep = sleep
        self.attempts = 0

    async def run(
        self,
        operation_name: str,
        fn: Callable[[], Awaitable[T]],
        max_attempts: int = 3,
        base_delay: float = 2.0,
    ) -> Union[T, ResultSet]:
        """Run ``fn`` until it succeeds, a non-retryable error occurs, or attempts run out."""
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error = "unknown error"
        self.attempts = 0
        for attempt in range(1, max_attempts + 1):
            self.attempts = attempt
            logger.info(f"[Retry] {operation_name}: attempt {attempt}/{max_attempts}")
            try:
                if self._attempt_timeout is not None:
                    return await asyncio.wait_for(fn(), timeout=self._attempt_timeout)
                return await fn()
            except asyncio.TimeoutError:
                last_error = f"{operation_name} timed out after {self._attempt_timeout}s"
                logger.warning(f"[Retry] {last_error}")
            except EngineError as e:
                last_error = e.message
                if not e.retryable:
                    logger.error(f"[Retry] ✗ {operation_name}: {e.code} is not retryable: {e.message}")
                    return ResultSet.error(e.message, self._source_name)
                logger.warning(f"[Retry] {operation_name} failed with {e.code}: {e.message}")
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"[Retry] {operation_name} failed: {last_error}")

            if attempt < max_attempts:
                delay = base_delay * attempt
                logger.info(f"[Retry] Waiting {delay:.1f}s before retrying {operation_name}")
                await self._sleep(delay)

        logger.error(f"[Retry] ✗ {operation_name} failed after {max_attempts} attempts: {last_error}")
        return ResultSet.error(
            f"{operation_name} failed after {max_attempts} attempts: {last_error}",
            self._source_name,
        )
