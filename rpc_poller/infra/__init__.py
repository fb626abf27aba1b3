"""Infrastructure utilities for logging, metrics, and configuration."""

from .config import AppConfig, load_config
from .logging import configure_logging
from .metrics import MetricsSink

__all__ = [
    "AppConfig",
    "load_config",
    "configure_logging",
    "MetricsSink",
]
