"""Per-agent concurrency limits shared by every session in the process."""

import asyncio
import logging

logger = logging.getLogger(__name__)


class LimiterRegistry:
    """Lazily creates one semaphore per agent and hands back the same one after.

    Waiters on a semaphore are released in FIFO order. Each agent has its
    own queue, so there is no ordering between agents. Create the registry
    inside the running event loop that will use it.
    """

    def __init__(self, limits: dict[str, int] | None = None, default_limit: int = 1) -> None:
        self._limits = dict(limits or {})
        self._default_limit = default_limit
        self._semaphores: dict[str, asyncio.Semaphore] = {}

    def limit_for(self, agent: str) -> int:
        return max(1, self._limits.get(agent, self._default_limit))

    def get(self, agent: str, limit: int | None = None) -> asyncio.Semaphore:
        """Return the agent's semaphore, creating it on first use.

        ``limit`` only applies when the semaphore does not exist yet.
        """
        semaphore = self._semaphores.get(agent)
        if semaphore is None:
            if limit is not None:
                self._limits[agent] = limit
            cap = self.limit_for(agent)
            semaphore = asyncio.Semaphore(cap)
            self._semaphores[agent] = semaphore
            logger.debug("Created limiter for %s (max %d in flight)", agent, cap)
        return semaphore
