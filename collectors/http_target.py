"""Collector that polls one HTTP target and feeds its gauges"""
import os
import time
from typing import Dict, List, Optional

import httpx

from collectors.base import BaseCollector
from logging_config import get_logger, log_poll_completed
from metrics.errors import AuthResolutionError, TransportError
from metrics.models import ExtractedSample, Target
from metrics.registry import GaugeHandle, GaugeRegistry
from metrics.transformer import extract


logger = get_logger(__name__)

# Share of the poll period a single request may take
_TIMEOUT_PERIOD_RATIO = 0.9


class HttpTargetCollector(BaseCollector):
    """Polls a target's URI and writes extracted samples into the gauge registry.

    Construction fails fast when the target's bearer token variable is
    unset or its gauges cannot be registered. At runtime every failure is
    contained in the tick that hit it.
    """

    def __init__(self, target: Target, registry: GaugeRegistry, client: httpx.AsyncClient,
                 timeout_seconds: float = 10.0, label_ttl_seconds: Optional[int] = None):
        super().__init__(target.name, target.period_seconds, help_text=f"{target.method.value} {target.uri}")
        self.target = target
        self.registry = registry
        self.client = client
        self.label_ttl_seconds = label_ttl_seconds
        self.timeout_seconds = min(timeout_seconds, target.period_seconds * _TIMEOUT_PERIOD_RATIO)

        token_env = target.use_bearer_token_from
        if token_env and token_env not in os.environ:
            raise AuthResolutionError(
                f"Bearer token environment variable '{token_env}' for target '{target.name}' is not set"
            )

        self._handles: Dict[str, GaugeHandle] = {handle.name: handle for handle in registry.register(target)}
        self.last_samples_count = 0
        self.last_status_code: Optional[int] = None

    def build_request(self) -> httpx.Request:
        """Build the request for one tick. The bearer token is read fresh every time."""
        headers = httpx.Headers()

        token_env = self.target.use_bearer_token_from
        if token_env:
            token = os.environ.get(token_env)
            if token is None:
                raise AuthResolutionError(f"Bearer token environment variable '{token_env}' is not set")
            headers["Authorization"] = f"Bearer {token}"

        # User headers go last so they can replace the Authorization header
        for key, value in self.target.headers.items():
            headers[key] = value

        return self.client.build_request(
            self.target.method.value,
            self.target.uri,
            headers=headers,
            data=self.target.form_params or None,
            timeout=self.timeout_seconds,
        )

    async def fetch(self, request: httpx.Request) -> bytes:
        """Send the request and return the full body of a 2xx response"""
        try:
            response = await self.client.send(request)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self.target.uri} failed: {type(e).__name__}: {e}") from e

        self.last_status_code = response.status_code
        if not response.is_success:
            raise TransportError(
                f"Request to {self.target.uri} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content

    async def poll_once(self) -> bool:
        start_time = time.time()
        log = logger.bind(target=self.name)

        try:
            request = self.build_request()
        except AuthResolutionError as e:
            log.error("Cannot build request", error=str(e), event_type="auth_error")
            self._record_failure(str(e))
            return False

        log.debug("Sending request", method=request.method, uri=str(request.url))
        try:
            body = await self.fetch(request)
        except TransportError as e:
            if e.status_code is not None:
                log.warning("HTTP request failed", status_code=e.status_code, event_type="http_status_error")
            else:
                log.error("HTTP request failed", error=str(e), event_type="transport_error")
            self._record_failure(str(e))
            return False

        result = await self.run_blocking(extract, self.target, body)
        if result.format_mismatch:
            log.warning("Target is in XML mode but returned JSON", event_type="format_mismatch")
        if result.parse_error is not None:
            log.warning("Failed to parse response body", error=str(result.parse_error), event_type="parse_error")
            self._record_failure(str(result.parse_error))
            return False

        await self.run_blocking(self.apply_samples, result.samples)

        self.last_samples_count = len(result.samples)
        log_poll_completed(logger, self.name, len(result.samples), time.time() - start_time, self.last_status_code)
        return True

    def apply_samples(self, samples: List[ExtractedSample]) -> None:
        """Write one tick's samples, then evict stale label combinations if a TTL is set"""
        self.update_metrics(samples)
        if self.label_ttl_seconds:
            self.registry.evict_stale(self.label_ttl_seconds)

    def update_metrics(self, samples: List[ExtractedSample]) -> int:
        """Write samples into their gauges. Returns how many were written."""
        written = 0
        for sample in samples:
            handle = self._handles.get(sample.metric_name)
            if handle is None:
                logger.warning("Dropping sample for unregistered metric", target=self.name, metric=sample.metric_name)
                continue
            self.registry.observe(handle, sample.label_values, sample.value)
            written += 1
        return written

    def get_status(self):
        status = super().get_status()
        status.update({
            "uri": self.target.uri,
            "method": self.target.method.value,
            "last_status_code": self.last_status_code,
            "last_samples_count": self.last_samples_count,
        })
        return status
