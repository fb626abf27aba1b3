"""Counters and gauges for poller instrumentation."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict


@dataclass
class MetricsSink:
    """Thread-safe counters and gauges with an optional Prometheus textfile."""

    counters: Dict[str, int] = field(default_factory=dict)
    gauges: Dict[str, float] = field(default_factory=dict)
    metrics_file: Path = Path("var/poller_metrics.prom")
    emit_textfile: bool = False
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("rpc_poller.metrics"))
    _lock: threading.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()

    def incr(self, name: str, value: int = 1) -> None:
        with self._lock:
            self.counters[name] = self.counters.get(name, 0) + value
            self._persist_unlocked()

    def set_gauge(self, name: str, value: float) -> None:
        with self._lock:
            self.gauges[name] = float(value)
            self._persist_unlocked()

    def counter(self, name: str) -> int:
        with self._lock:
            return self.counters.get(name, 0)

    def export(self) -> Dict[str, float | int]:
        """Return a merged view of all current metrics."""

        with self._lock:
            snapshot = {**self.counters, **self.gauges}
        return snapshot

    def _persist_unlocked(self) -> None:
        if not self.emit_textfile:
            return
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.metrics_file.with_suffix(".tmp")
            temp_path.write_text(self._render_prom_text(), encoding="utf-8")
            os.replace(temp_path, self.metrics_file)
        except OSError as exc:
            self.logger.warning("Could not write metrics textfile %s: %s", self.metrics_file, exc)

    def _render_prom_text(self) -> str:
        lines = [f"{name} {int(value)}" for name, value in sorted(self.counters.items())]
        lines.extend(f"{name} {float(value)}" for name, value in sorted(self.gauges.items()))
        return "\n".join(lines) + "\n"


__all__ = ["MetricsSink"]
