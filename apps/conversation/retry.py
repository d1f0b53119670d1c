"""
Retry bookkeeping and timeout enforcement for completion calls.
"""
import asyncio
import logging
from typing import Awaitable, Dict, TypeVar

from convolib.exceptions import LLMTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryHandler:
    """
    Per-agent retry counters for one run, plus the completion timeout.

    Counters are reset whenever a new run starts. Retries are never
    automatic; the controller only consults this handler when the user
    asks for a retry.

    Args:
        max_retries: Retries allowed per agent within a run.
        timeout_seconds: Upper bound for every completion call.
    """

    def __init__(self, max_retries: int = 3, timeout_seconds: float = 30.0):
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self._counts: Dict[int, int] = {}

    def attempts(self, agent_id: int) -> int:
        return self._counts.get(agent_id, 0)

    def can_retry(self, agent_id: int) -> bool:
        return self.attempts(agent_id) < self.max_retries

    def record_retry(self, agent_id: int) -> int:
        self._counts[agent_id] = self.attempts(agent_id) + 1
        logger.info(f"Retry {self._counts[agent_id]}/{self.max_retries} for agent {agent_id}")
        return self._counts[agent_id]

    def exhausted_message(self, agent_id: int) -> str:
        return f"Maximum retries ({self.max_retries}) exceeded for agent {agent_id}"

    def reset(self) -> None:
        self._counts.clear()

    async def call_with_timeout(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` but give up after ``timeout_seconds``.

        Raises:
            LLMTimeoutError: If the call does not finish in time.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Completion call timed out after {self.timeout_seconds:g}s")
            raise LLMTimeoutError(self.timeout_seconds) from e
