"""Base class for collectors that run on a fixed interval"""
import asyncio
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from logging_config import get_logger, log_error


logger = get_logger(__name__)


class BaseCollector(ABC):
    """Runs poll_once() every period_seconds until cancelled.

    Ticks are strictly sequential: a tick that runs longer than the period
    delays the next one instead of overlapping it. Any exception raised by
    a tick is logged and counted, and the loop carries on.
    """

    def __init__(self, name: str, period_seconds: float, help_text: str = ""):
        self._name = name
        self._help_text = help_text
        self.period_seconds = period_seconds

        # Poll state
        self.tick_count = 0
        self.error_count = 0
        self.last_success_time: float = 0
        self.last_error: Optional[str] = None
        self.started_at: float = 0

        # Parsing and gauge updates run here, never on the event loop
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{name}_collector")

    @property
    def name(self) -> str:
        return self._name

    @property
    def help_text(self) -> str:
        return self._help_text or f"{self.name} collector"

    @abstractmethod
    async def poll_once(self) -> bool:
        """Run one tick. Returns True when the tick updated metrics."""

    async def run_blocking(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a synchronous function on this collector's executor"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def run(self) -> None:
        """Poll forever on the fixed interval"""
        loop = asyncio.get_running_loop()
        self.started_at = time.time()
        next_tick = loop.time()
        while True:
            await self.tick()
            next_tick += self.period_seconds
            delay = next_tick - loop.time()
            if delay < 0:
                # Overran the period: start the next tick right away
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)

    async def tick(self) -> bool:
        """Run poll_once() and record the outcome"""
        self.tick_count += 1
        try:
            ok = await self.poll_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_error(logger, e, {"component": "collector", "collector": self.name, "tick": self.tick_count})
            self._record_failure(f"{type(e).__name__}: {e}")
            return False

        if ok:
            self.last_success_time = time.time()
            self.last_error = None
        return ok

    def _record_failure(self, reason: str) -> None:
        self.error_count += 1
        self.last_error = reason

    def is_healthy(self, now: Optional[float] = None) -> bool:
        """Healthy when the last success is within two periods.

        A collector that has not reached its first deadline yet counts as
        healthy.
        """
        now = time.time() if now is None else now
        reference = self.last_success_time or self.started_at
        if not reference:
            return True
        return now - reference < self.period_seconds * 2

    def get_status(self) -> Dict[str, Any]:
        """Status information for the /status endpoint"""
        age = time.time() - self.last_success_time if self.last_success_time > 0 else None
        return {
            "class": self.__class__.__name__,
            "help": self.help_text,
            "period_seconds": self.period_seconds,
            "ticks": self.tick_count,
            "errors": self.error_count,
            "last_success_seconds_ago": round(age, 1) if age is not None else None,
            "last_error": self.last_error,
            "healthy": self.is_healthy(),
        }

    def cleanup(self):
        """Cleanup resources"""
        self._executor.shutdown(wait=False)
