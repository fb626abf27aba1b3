"""Config loading utilities for the poller runner and dashboard."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


@dataclass
class TransportConfig:
    url: str = "http://127.0.0.1:8545"
    kind: str = "http"
    timeout_seconds: float = 10.0
    poll_interval_seconds: Optional[float] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def poll_interval(self) -> Optional[timedelta]:
        if self.poll_interval_seconds is None:
            return None
        return timedelta(seconds=self.poll_interval_seconds)


@dataclass
class PollerSettings:
    method: str
    params: Any = None
    poll_interval_seconds: Optional[float] = None
    limit: Optional[int] = None
    single_flight: bool = False
    discard_after_stop: bool = False

    @property
    def poll_interval(self) -> Optional[timedelta]:
        if self.poll_interval_seconds is None:
            return None
        return timedelta(seconds=self.poll_interval_seconds)


@dataclass
class DashboardConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    enable: bool = False


@dataclass
class MetricsConfig:
    emit_textfile: bool = False
    metrics_file: str = "var/poller_metrics.prom"


@dataclass
class AppConfig:
    transport: TransportConfig
    pollers: List[PollerSettings]
    dashboard: DashboardConfig
    metrics: MetricsConfig


def parse_config(raw: Optional[Dict[str, Any]]) -> AppConfig:
    """Build an :class:`AppConfig` from an already-parsed mapping."""

    raw = raw or {}
    transport = raw.get("transport", {})
    dashboard = raw.get("dashboard", {})
    metrics = raw.get("metrics", {})

    pollers = []
    for entry in raw.get("pollers", []):
        if "method" not in entry:
            raise ValueError("Every poller entry needs a method")
        limit = entry.get("limit")
        interval = entry.get("poll_interval_seconds")
        pollers.append(
            PollerSettings(
                method=str(entry["method"]),
                params=entry.get("params"),
                poll_interval_seconds=float(interval) if interval is not None else None,
                limit=int(limit) if limit is not None else None,
                single_flight=bool(entry.get("single_flight", False)),
                discard_after_stop=bool(entry.get("discard_after_stop", False)),
            )
        )

    transport_interval = transport.get("poll_interval_seconds")
    return AppConfig(
        transport=TransportConfig(
            url=transport.get("url", env_or_default("RPC_URL", "http://127.0.0.1:8545")),
            kind=transport.get("kind", "http"),
            timeout_seconds=float(transport.get("timeout_seconds", 10.0)),
            poll_interval_seconds=float(transport_interval) if transport_interval is not None else None,
            headers=dict(transport.get("headers", {})),
        ),
        pollers=pollers,
        dashboard=DashboardConfig(
            host=dashboard.get("host", "0.0.0.0"),
            port=int(dashboard.get("port", 8000)),
            enable=bool(dashboard.get("enable", False)),
        ),
        metrics=MetricsConfig(
            emit_textfile=bool(metrics.get("emit_textfile", False)),
            metrics_file=metrics.get("metrics_file", "var/poller_metrics.prom"),
        ),
    )


def load_config(path: str | Path) -> AppConfig:
    resolved = Path(path).expanduser().resolve()
    with resolved.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return parse_config(raw)


def env_or_default(key: str, default: str) -> str:
    return os.getenv(key, default)


__all__ = [
    "load_config",
    "parse_config",
    "env_or_default",
    "AppConfig",
    "TransportConfig",
    "PollerSettings",
    "DashboardConfig",
    "MetricsConfig",
]
