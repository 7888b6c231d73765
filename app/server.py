"""FastAPI server setup and routes"""
import html
import time
import os
from typing import List, Optional

import httpx
from fastapi import FastAPI, Response, HTTPException
from fastapi.responses import HTMLResponse

from config import Config
from collectors.scheduler import PollerScheduler
from metrics.models import Target
from metrics.registry import GaugeRegistry
from logging_config import get_logger


logger = get_logger(__name__)


class MetricsServer:
    """FastAPI server exposing the gauges filled by the target pollers"""

    def __init__(self, config: Config, targets: List[Target], client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.targets = targets
        self.app = FastAPI(
            title="json2prom exporter",
            version=config.service_version,
            docs_url=None,  # Disable docs for security
            redoc_url=None,  # Disable redoc for security
            openapi_url=None  # Disable OpenAPI schema for security
        )
        self.start_time = time.time()

        # Shared by every poller and by /metrics
        self.registry = GaugeRegistry()
        self.client = client or httpx.AsyncClient(follow_redirects=True)

        # Gauges are registered here, so schema errors abort startup
        self.scheduler = PollerScheduler(
            targets,
            self.registry,
            self.client,
            timeout_seconds=config.http_timeout_seconds,
            label_ttl_seconds=config.label_ttl_seconds,
            skip_unresolvable_targets=config.skip_unresolvable_targets,
        )

        # Setup routes
        self._setup_routes()

        # Setup startup/shutdown events
        self._setup_events()

    def _setup_routes(self):
        """Setup FastAPI routes"""

        @self.app.get('/metrics', response_class=Response)
        def get_metrics():
            """Serve gauges in the Prometheus text exposition format"""
            return Response(self.registry.render(), media_type=self.registry.content_type)

        @self.app.get('/health')
        def health_check():
            """Health check endpoint"""
            collectors = self.scheduler.get_collector_status()
            is_healthy = self.scheduler.is_healthy()

            health_data = {
                "status": "healthy" if is_healthy else "unhealthy",
                "targets": len(collectors),
                "unhealthy_targets": sorted(name for name, status in collectors.items() if not status["healthy"]),
                "skipped_targets": sorted(self.scheduler.skipped_targets),
            }

            if not is_healthy:
                raise HTTPException(status_code=503, detail=health_data)

            return health_data

        @self.app.get('/status')
        def get_status():
            """Detailed status information"""
            collectors = self.scheduler.get_collector_status()
            ticks = sum(status["ticks"] for status in collectors.values())
            errors = sum(status["errors"] for status in collectors.values())

            return {
                "service": {
                    "name": self.config.service_name,
                    "version": self.config.service_version,
                    "uptime_seconds": round(time.time() - self.start_time, 1),
                    "hostname": os.uname().nodename
                },
                "polling": {
                    "running": self.scheduler.running,
                    "total_ticks": ticks,
                    "total_errors": errors,
                    "success_rate": round((ticks - errors) / max(ticks, 1) * 100, 1),
                    "http_timeout_seconds": self.config.http_timeout_seconds,
                    "label_ttl_seconds": self.config.label_ttl_seconds,
                },
                "targets": collectors,
                "skipped_targets": self.scheduler.skipped_targets,
                "metrics": self.registry.list_metrics(),
            }

        @self.app.get('/targets')
        def list_targets():
            """List configured targets and their metric schemas"""
            return {
                "targets": [
                    {
                        "name": target.name,
                        "uri": target.uri,
                        "method": target.method.value,
                        "xml_mode": target.xml_mode,
                        "period_seconds": target.period_seconds,
                        "enabled": target.name in self.scheduler.collectors,
                        "metrics": [
                            {"name": metric.name, "labels": list(metric.label_names)}
                            for metric in target.metrics
                        ],
                    }
                    for target in self.targets
                ]
            }

        @self.app.get('/', response_class=HTMLResponse)
        def index():
            """Web interface"""
            return self._generate_html_interface()

    def _setup_events(self):
        """Setup FastAPI startup/shutdown events"""

        @self.app.on_event("startup")
        async def startup_event():
            """Start one poller per target"""
            logger.info(
                "Application startup initiated",
                service_name=self.config.service_name,
                service_version=self.config.service_version,
                targets=list(self.scheduler.collectors),
                event_type="server_startup"
            )
            self.scheduler.start()

        @self.app.on_event("shutdown")
        async def shutdown_event():
            """Cleanup on shutdown"""
            logger.info("Shutting down metrics exporter", event_type="server_shutdown")
            await self.scheduler.stop()
            await self.client.aclose()

    def _generate_html_interface(self) -> str:
        """Generate HTML interface"""
        collectors = self.scheduler.get_collector_status()
        rows = []
        for target in self.targets:
            info = collectors.get(target.name)
            if info is None:
                state = '<span class="bad">Skipped</span>'
            elif info["healthy"]:
                state = '<span class="ok">Healthy</span>'
            else:
                state = '<span class="bad">Unhealthy</span>'
            gauges = ', '.join(html.escape(metric.name) for metric in target.metrics)
            rows.append(
                f'<tr><td>{html.escape(target.name)}</td><td>{state}</td>'
                f'<td>{target.method.value} {html.escape(target.uri)}</td>'
                f'<td>{target.period_seconds:g}s</td><td>{gauges}</td></tr>'
            )

        return f"""<!DOCTYPE html>
<html>
<head>
    <title>json2prom exporter</title>
    <style>
        body {{ font-family: sans-serif; margin: 2em; }}
        td, th {{ padding: 4px 12px; text-align: left; }}
        .ok {{ color: green; }}
        .bad {{ color: red; }}
    </style>
</head>
<body>
    <h1>json2prom exporter</h1>
    <p>Polls HTTP endpoints and exports jq-extracted values as gauges.
       Endpoints: <a href="/metrics">/metrics</a> | <a href="/health">/health</a> |
       <a href="/status">/status</a> | <a href="/targets">/targets</a></p>
    <table>
        <tr><th>Target</th><th>State</th><th>Request</th><th>Period</th><th>Gauges</th></tr>
        {''.join(rows)}
    </table>
</body>
</html>
"""

    def get_app(self) -> FastAPI:
        """Get the FastAPI application"""
        return self.app
