"""Builds one collector per target and runs each as its own asyncio task"""
import asyncio
from typing import Dict, List, Optional

import httpx

from collectors.base import BaseCollector
from collectors.http_target import HttpTargetCollector
from logging_config import get_logger
from metrics.errors import AuthResolutionError
from metrics.models import Target
from metrics.registry import GaugeRegistry


logger = get_logger(__name__)


class PollerScheduler:
    """Owns the per-target collectors and their tasks.

    Collectors are built (and their gauges registered) in the constructor,
    so configuration problems surface before the server starts serving.
    Targets do not share a schedule: each task sleeps and polls on its own.
    """

    def __init__(self, targets: List[Target], registry: GaugeRegistry, client: httpx.AsyncClient,
                 timeout_seconds: float = 10.0, label_ttl_seconds: Optional[int] = None,
                 skip_unresolvable_targets: bool = False):
        self.registry = registry
        self.client = client
        self.collectors: Dict[str, BaseCollector] = {}
        self.skipped_targets: Dict[str, str] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

        for target in targets:
            try:
                collector = HttpTargetCollector(
                    target,
                    registry,
                    client,
                    timeout_seconds=timeout_seconds,
                    label_ttl_seconds=label_ttl_seconds,
                )
            except AuthResolutionError as e:
                if not skip_unresolvable_targets:
                    raise
                logger.error(
                    "Skipping target with unresolvable bearer token",
                    target=target.name,
                    error=str(e),
                    event_type="target_skipped",
                )
                self.skipped_targets[target.name] = str(e)
                continue
            self.register_collector(collector)

    def register_collector(self, collector: BaseCollector) -> None:
        """Register a collector to be run by start()"""
        if not isinstance(collector, BaseCollector):
            raise ValueError("Collector must inherit from BaseCollector")

        self.collectors[collector.name] = collector
        logger.info("Registered collector", collector=collector.name, period_seconds=collector.period_seconds)

    def get_collector(self, name: str) -> Optional[BaseCollector]:
        """Get collector by name"""
        return self.collectors.get(name)

    def start(self) -> None:
        """Start one polling task per collector"""
        for name, collector in self.collectors.items():
            if name in self._tasks and not self._tasks[name].done():
                continue
            self._tasks[name] = asyncio.create_task(collector.run(), name=f"poll-{name}")
        logger.info("Started pollers", count=len(self._tasks), event_type="pollers_started")

    async def stop(self) -> None:
        """Cancel every polling task. In-flight requests are abandoned."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        for collector in self.collectors.values():
            collector.cleanup()
        logger.info("Stopped pollers", count=len(tasks), event_type="pollers_stopped")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    def is_healthy(self) -> bool:
        return all(collector.is_healthy() for collector in self.collectors.values())

    def get_collector_status(self) -> Dict[str, Dict]:
        """Get status information for all collectors"""
        return {name: collector.get_status() for name, collector in self.collectors.items()}
