"""Gauge registry shared by all target pollers and the /metrics endpoint"""
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from logging_config import get_logger

from .errors import RegistrationError
from .models import MetricDef, Target


logger = get_logger(__name__)

LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


@dataclass(frozen=True)
class GaugeHandle:
    """A registered gauge and its fixed label schema"""
    name: str
    label_names: Tuple[str, ...]
    gauge: Gauge = field(compare=False, repr=False)


@dataclass
class MetricSnapshot:
    """Point-in-time copy of one gauge's label combinations"""
    name: str
    label_names: Tuple[str, ...]
    samples: List[Tuple[Tuple[str, ...], float]]


class GaugeRegistry:
    """Maps metric names to gauges and records observations.

    Gauges are registered once at startup. Targets may share a metric name
    as long as they declare the same label schema. Label combinations are
    created on first observation and kept until evict_stale() removes them.
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._handles: Dict[str, GaugeHandle] = {}
        self._last_seen: Dict[Tuple[str, Tuple[str, ...]], float] = {}
        self._lock = threading.RLock()

    def register(self, target: Target) -> List[GaugeHandle]:
        """Register every metric of a target"""
        return self.register_metrics(target.metrics)

    def register_metrics(self, metric_defs: Iterable[MetricDef]) -> List[GaugeHandle]:
        """Register gauges for metric definitions, reusing compatible ones"""
        with self._lock:
            return [self._register_one(metric) for metric in metric_defs]

    def _register_one(self, metric: MetricDef) -> GaugeHandle:
        label_names = metric.label_names
        existing = self._handles.get(metric.name)
        if existing is not None:
            if existing.label_names != label_names:
                raise RegistrationError(
                    f"metric '{metric.name}' already registered with labels "
                    f"{list(existing.label_names)}, cannot re-register with {list(label_names)}"
                )
            return existing

        self._validate_label_names(metric.name, label_names)
        try:
            gauge = Gauge(metric.name, metric.help_text, labelnames=label_names, registry=self.registry)
        except ValueError as e:
            raise RegistrationError(f"cannot register metric '{metric.name}': {e}") from e

        handle = GaugeHandle(metric.name, label_names, gauge)
        self._handles[metric.name] = handle
        logger.info("Registered gauge", metric=metric.name, labels=list(label_names))
        return handle

    @staticmethod
    def _validate_label_names(metric_name: str, label_names: Sequence[str]) -> None:
        seen = set()
        for name in label_names:
            if not LABEL_NAME_RE.match(name) or name.startswith("__"):
                raise RegistrationError(f"invalid label name '{name}' for metric '{metric_name}'")
            if name in seen:
                raise RegistrationError(f"duplicate label name '{name}' for metric '{metric_name}'")
            seen.add(name)

    def handle(self, name: str) -> Optional[GaugeHandle]:
        """Look up a registered gauge by metric name"""
        return self._handles.get(name)

    def list_metrics(self) -> List[str]:
        return list(self._handles.keys())

    def observe(self, handle: GaugeHandle, label_values: Sequence[str], value: float) -> None:
        """Set the value of one label combination, creating it if needed"""
        if len(label_values) != len(handle.label_names):
            raise AssertionError(
                f"metric '{handle.name}' expects {len(handle.label_names)} label values, got {len(label_values)}"
            )
        key = (handle.name, tuple(label_values))
        with self._lock:
            handle.gauge.labels(*label_values).set(value)
            self._last_seen[key] = time.monotonic()

    def evict_stale(self, max_age_seconds: float, now: Optional[float] = None) -> int:
        """Remove label combinations not observed within max_age_seconds"""
        now = time.monotonic() if now is None else now
        removed = 0
        with self._lock:
            stale = [key for key, seen in self._last_seen.items() if now - seen > max_age_seconds]
            for name, label_values in stale:
                try:
                    self._handles[name].gauge.remove(*label_values)
                except KeyError:
                    pass  # already gone
                del self._last_seen[(name, label_values)]
                removed += 1
        if removed:
            logger.info("Evicted stale label combinations", count=removed, max_age_seconds=max_age_seconds)
        return removed

    def gather_all(self) -> List[MetricSnapshot]:
        """Snapshot every registered gauge"""
        snapshots = []
        for handle in list(self._handles.values()):
            samples = []
            for family in handle.gauge.collect():
                for sample in family.samples:
                    label_values = tuple(sample.labels[name] for name in handle.label_names)
                    samples.append((label_values, sample.value))
            snapshots.append(MetricSnapshot(handle.name, handle.label_names, samples))
        return snapshots

    def render(self) -> bytes:
        """Text exposition format for the /metrics endpoint"""
        return generate_latest(self.registry)
