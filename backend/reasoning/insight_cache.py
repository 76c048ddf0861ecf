"""Per-patient memoization of insight generation with shared in-flight tasks."""
import asyncio
from typing import Awaitable, Callable, Dict, Optional

from backend.config.logging_config import get_logger
from backend.models.enums import InsightSource
from backend.models.insights import MasterAIResponse

logger = get_logger(__name__)

InsightFactory = Callable[[], Awaitable[MasterAIResponse]]


class InsightCache:
    """
    Memoizes one insight result per patient id.

    Concurrent callers for the same key share a single in-flight task, so the
    model is called at most once per key. A task that raises or is cancelled
    is evicted, and so is a deterministic fallback result unless
    ``keep_fallbacks`` is set, leaving the next call free to retry the model.
    """

    def __init__(self, keep_fallbacks: bool = False):
        self.keep_fallbacks = keep_fallbacks
        self._results: Dict[str, MasterAIResponse] = {}
        self._inflight: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._results)

    def __contains__(self, key: str) -> bool:
        return key in self._results

    def peek(self, key: str) -> Optional[MasterAIResponse]:
        """Completed result for a key, without starting anything."""
        return self._results.get(key)

    async def get_or_create(self, key: str, factory: InsightFactory) -> MasterAIResponse:
        """
        Return the cached result for ``key``, joining or starting the task that produces it.

        Args:
            key: Patient identifier
            factory: Zero-argument coroutine function producing the result

        Returns:
            The memoized or freshly produced insight object

        Raises:
            Whatever ``factory`` raises; the failed task is evicted first.
        """
        cached = self._results.get(key)
        if cached is not None:
            logger.debug("Insight cache hit", patient_id=key)
            return cached

        task = self._inflight.get(key)
        if task is None:
            logger.debug("Insight cache miss", patient_id=key)
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._settle(key, done))
        else:
            logger.debug("Joining in-flight insight task", patient_id=key)

        # shield: one caller going away must not cancel the work others await
        return await asyncio.shield(task)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        else:
            # cleared or replaced while running; keep nothing from it
            return

        if task.cancelled():
            logger.info("Insight task cancelled, evicted", patient_id=key)
            return
        error = task.exception()
        if error is not None:
            logger.warning("Insight task failed, evicted", patient_id=key, error=str(error))
            return

        result = task.result()
        if result.insight_source == InsightSource.DETERMINISTIC and not self.keep_fallbacks:
            logger.info("Fallback insights not cached", patient_id=key)
            return
        self._results[key] = result

    def invalidate(self, key: str) -> None:
        """Drop one patient's entry."""
        self._results.pop(key, None)
        self._inflight.pop(key, None)

    def clear(self) -> None:
        """Drop every entry; running tasks finish but their results are discarded."""
        count = len(self._results)
        self._results.clear()
        self._inflight.clear()
        logger.info("Insight cache cleared", entries=count)


# Global instance
_insight_cache: Optional[InsightCache] = None


def get_insight_cache() -> InsightCache:
    """Get or create the global insight cache."""
    global _insight_cache
    if _insight_cache is None:
        from backend.config.settings import get_settings
        _insight_cache = InsightCache(keep_fallbacks=get_settings().cache_fallback_insights)
    return _insight_cache
