"""FastAPI dashboard exposing poller state, recent responses, and metrics."""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query

from rpc_poller.infra.config import AppConfig
from rpc_poller.infra.metrics import MetricsSink
from rpc_poller.polling.builder import PollerBuilder


class DashboardState:
    """Registered pollers plus a bounded ring of their latest responses."""

    def __init__(self, max_responses: int = 200) -> None:
        self.pollers: Dict[str, PollerBuilder] = {}
        self.responses: Deque[Dict[str, Any]] = deque(maxlen=max_responses)

    def register(self, name: str, poller: PollerBuilder) -> None:
        self.pollers[name] = poller

    def record_response(self, name: str, response: Any) -> None:
        self.responses.append(
            {
                "poller": name,
                "received_at": datetime.now(timezone.utc).isoformat(),
                "response": response,
            }
        )

    def poller_snapshot(self, name: str) -> Optional[Dict[str, Any]]:
        poller = self.pollers.get(name)
        if poller is None:
            return None
        if poller.schedule is not None:
            return {"name": name, **poller.schedule.snapshot()}
        return {
            "name": name,
            "method": poller.method,
            "state": poller.state.value,
            "poll_count": poller.poll_count,
        }

    def snapshot(self) -> List[Dict[str, Any]]:
        return [self.poller_snapshot(name) for name in self.pollers]


def create_app(config: AppConfig, state: DashboardState, metrics: MetricsSink) -> FastAPI:
    app = FastAPI(title="RPC Poller Dashboard", version="0.1")

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "ok", "transport": config.transport.url, "pollers": len(state.pollers)}

    @app.get("/pollers")
    async def pollers() -> List[Dict[str, Any]]:
        return state.snapshot()

    @app.get("/pollers/{name}")
    async def poller(name: str) -> Dict[str, Any]:
        snapshot = state.poller_snapshot(name)
        if snapshot is None:
            raise HTTPException(status_code=404, detail=f"Unknown poller {name}")
        return snapshot

    @app.post("/pollers/{name}/stop")
    async def stop_poller(name: str) -> Dict[str, Any]:
        poller = state.pollers.get(name)
        if poller is None:
            raise HTTPException(status_code=404, detail=f"Unknown poller {name}")
        poller.stop()
        return {"name": name, "state": poller.state.value}

    @app.get("/responses")
    async def responses(limit: int = Query(50, ge=0)) -> List[Dict[str, Any]]:
        items = list(state.responses)
        return items[max(len(items) - limit, 0):]

    @app.get("/metrics")
    async def metrics_view() -> Dict[str, Any]:
        return metrics.export()

    return app


async def run_dashboard(config: AppConfig, state: DashboardState, metrics: MetricsSink) -> None:
    """Serve the dashboard until cancelled, if enabled."""

    if not config.dashboard.enable:
        return

    import uvicorn

    app = create_app(config, state, metrics)
    config_kwargs = {"host": config.dashboard.host, "port": config.dashboard.port, "log_level": "info"}
    server = uvicorn.Server(uvicorn.Config(app, **config_kwargs))
    await server.serve()


__all__ = ["create_app", "run_dashboard", "DashboardState"]
