import logging

import uvicorn
from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse

from k8s_eagle import __version__
from k8s_eagle.modules.supervisor import Supervisor

logger = logging.getLogger(__name__)


def _label(value: str) -> str:
    """Escape a Prometheus label value."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def create_health_app(supervisor: Supervisor, dispatcher=None) -> FastAPI:
    """
    Build the health/status application over a running supervisor.

    Args:
        supervisor: Supervisor whose watchers are reported
        dispatcher: Optional dispatcher, for the pending deliveries gauge
    """
    app = FastAPI(title="k8s-eagle", version=__version__, docs_url=None, redoc_url=None)

    @app.get("/healthz")
    async def healthz():
        """
        Minimal health check endpoint for Kubernetes liveness probes.

        Returns:
            200: Process is running
        """
        return {"status": "ok"}

    @app.get("/status")
    async def status():
        """
        Per-watcher state.

        Returns:
            200: At least one watcher is still running
            503: Every watcher has terminated
        """
        watchers = supervisor.status()
        if supervisor.all_terminated:
            return JSONResponse(
                status_code=503,
                content={"status": "terminated", "watchers": watchers},
            )
        return {"status": "running", "version": __version__, "watchers": watchers}

    @app.get("/metrics")
    async def metrics():
        """Prometheus-compatible metrics."""
        lines = [
            "# HELP k8s_eagle_events_processed_total Data-bearing events handled per watcher",
            "# TYPE k8s_eagle_events_processed_total counter",
        ]
        watchers = supervisor.status()
        for entry in watchers:
            lines.append(
                f'k8s_eagle_events_processed_total{{watcher="{_label(entry["name"])}"}} '
                f'{entry["events_processed"]}'
            )
        lines += [
            "# HELP k8s_eagle_watcher_restarts_total Watch loop restarts per watcher",
            "# TYPE k8s_eagle_watcher_restarts_total counter",
        ]
        for entry in watchers:
            lines.append(
                f'k8s_eagle_watcher_restarts_total{{watcher="{_label(entry["name"])}"}} {entry["restarts"]}'
            )
        lines += [
            "# HELP k8s_eagle_watcher_up Whether the watcher is streaming (1) or not (0)",
            "# TYPE k8s_eagle_watcher_up gauge",
        ]
        for entry in watchers:
            up = 1 if entry["state"] == "streaming" else 0
            lines.append(f'k8s_eagle_watcher_up{{watcher="{_label(entry["name"])}"}} {up}')
        if dispatcher is not None:
            lines += [
                "# HELP k8s_eagle_pending_deliveries Event groups still being delivered",
                "# TYPE k8s_eagle_pending_deliveries gauge",
                f"k8s_eagle_pending_deliveries {dispatcher.pending}",
            ]

        return Response(content="\n".join(lines) + "\n", media_type="text/plain")

    return app


def build_health_server(app: FastAPI, port: int, host: str = "0.0.0.0") -> uvicorn.Server:
    """Create a uvicorn server that runs inside the current event loop."""
    config = uvicorn.Config(app, host=host, port=port, log_config=None, lifespan="off")
    server = uvicorn.Server(config)
    # Signals are handled by the main process
    server.install_signal_handlers = lambda: None
    return server
