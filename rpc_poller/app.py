"""Runner wiring a JSON-RPC transport to configured pollers and the dashboard."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import signal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rpc_poller.dashboard.app import DashboardState, run_dashboard
from rpc_poller.data.transport import HttpJsonRpcTransport, RpcTransport
from rpc_poller.data.websocket import WebSocketJsonRpcTransport
from rpc_poller.infra.config import AppConfig, PollerSettings, TransportConfig, load_config, parse_config
from rpc_poller.infra.logging import configure_logging
from rpc_poller.infra.metrics import MetricsSink
from rpc_poller.polling.builder import PollerBuilder
from rpc_poller.polling.schedule import PollState, SingleFlight
from rpc_poller.polling.timers import AsyncioTimerHost, TimerHost

DEFAULT_CONFIG_PATH = Path(os.getenv("CONFIG_PATH", "config/pollers.yaml"))
COMPLETION_CHECK_SECONDS = 0.25


def read_config(path: Path, logger: logging.Logger) -> AppConfig:
    """Load configuration from YAML, defaulting to an empty config when missing."""

    if not path.exists():
        logger.warning("Config file %s not found, using defaults", path)
        return parse_config({})
    return load_config(path)


def build_transport(config: TransportConfig, logger: logging.Logger) -> RpcTransport:
    if config.kind == "websocket":
        return WebSocketJsonRpcTransport(
            config.url,
            poll_interval=config.poll_interval,
            timeout=config.timeout_seconds,
            logger=logger.getChild("transport"),
        )
    if config.kind == "http":
        return HttpJsonRpcTransport(
            config.url,
            poll_interval=config.poll_interval,
            timeout=config.timeout_seconds,
            headers=config.headers,
            logger=logger.getChild("transport"),
        )
    raise ValueError(f"Unknown transport kind {config.kind!r}")


def build_poller(
    settings: PollerSettings,
    transport: RpcTransport,
    timer_host: TimerHost,
    metrics: MetricsSink,
    logger: logging.Logger,
) -> PollerBuilder:
    poller = PollerBuilder(
        transport,
        settings.method,
        settings.params,
        timer_host=timer_host,
        flight_policy=SingleFlight() if settings.single_flight else None,
        metrics=metrics,
        discard_after_stop=settings.discard_after_stop,
        logger=logger,
    )
    poller.set_limit(settings.limit)
    if settings.poll_interval is not None:
        poller.set_poll_interval(settings.poll_interval)
    return poller


class PollerApp:
    """Starts every configured poller and runs until stopped or all are done."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.logger = logging.getLogger("rpc_poller.app")
        self.metrics = MetricsSink(
            emit_textfile=config.metrics.emit_textfile,
            metrics_file=Path(config.metrics.metrics_file),
        )
        self.state = DashboardState()
        self.timer_host = AsyncioTimerHost(logger=self.logger.getChild("timers"))
        self.transport = build_transport(config.transport, self.logger)
        self.pollers: Dict[str, PollerBuilder] = {}
        self.stop_event = asyncio.Event()

    def start_pollers(self) -> None:
        for index, settings in enumerate(self.config.pollers):
            name = f"{settings.method}#{index}"
            poller = build_poller(
                settings, self.transport, self.timer_host, self.metrics, self.logger.getChild("poller")
            )
            self.state.register(name, poller)
            self.pollers[name] = poller
            poller.start(self._handler_for(name))

    def _handler_for(self, name: str):
        def handle(response: Any) -> None:
            self.state.record_response(name, response)
            self.logger.info(
                "Response from %s", name,
                extra={"event": "poll_response", "poller": name, "response": response},
            )

        return handle

    def all_stopped(self) -> bool:
        return all(poller.state is PollState.STOPPED for poller in self.pollers.values())

    async def _watch_completion(self) -> None:
        while not self.stop_event.is_set():
            if self.all_stopped():
                self.logger.info("All pollers finished", extra={"event": "pollers_finished"})
                self.stop_event.set()
                return
            await asyncio.sleep(COMPLETION_CHECK_SECONDS)

    async def run(self) -> None:
        if not self.config.pollers:
            self.logger.warning("No pollers configured; nothing to do.")
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop_event.set)
            except NotImplementedError:
                # Windows/limited environments
                pass

        self.start_pollers()
        tasks = [
            asyncio.create_task(self._watch_completion()),
            asyncio.create_task(run_dashboard(self.config, self.state, self.metrics)),
        ]
        await self.stop_event.wait()
        await self.shutdown(tasks)

    async def shutdown(self, tasks: Sequence[asyncio.Task]) -> None:
        for poller in self.pollers.values():
            poller.stop()
        try:
            await asyncio.wait_for(self.timer_host.drain(), timeout=self.config.transport.timeout_seconds)
        except asyncio.TimeoutError:
            self.logger.warning(
                "Calls still in flight at shutdown were abandoned",
                extra={"event": "shutdown_abandoned", "pending": self.timer_host.pending_tasks()},
            )
        self.timer_host.shutdown()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        close = getattr(self.transport, "close", None)
        if close is not None:
            result = close()
            if asyncio.iscoroutine(result):
                await result
        self.logger.info("Metrics at shutdown", extra={"event": "shutdown", "metrics": self.metrics.export()})


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.url:
        config.transport.url = args.url
    if args.websocket:
        config.transport.kind = "websocket"
    if args.method:
        config.pollers = [
            PollerSettings(
                method=args.method,
                params=json.loads(args.params) if args.params else None,
                poll_interval_seconds=args.interval,
                limit=args.limit,
                single_flight=args.single_flight,
            )
        ]
    return config


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll JSON-RPC methods on a timer")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    parser.add_argument("--url", help="Override the transport URL")
    parser.add_argument("--websocket", action="store_true", help="Use the WebSocket transport")
    parser.add_argument("--method", help="Poll a single method instead of the configured pollers")
    parser.add_argument("--params", help="JSON-encoded params for --method")
    parser.add_argument("--interval", type=float, help="Poll interval in seconds for --method")
    parser.add_argument("--limit", type=int, help="Stop after this many successful polls")
    parser.add_argument("--single-flight", action="store_true", help="Skip ticks while a call is in flight")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    configure_logging()
    args = parse_args(argv)
    config = apply_overrides(read_config(Path(args.config), logging.getLogger(__name__)), args)
    asyncio.run(PollerApp(config).run())


if __name__ == "__main__":
    main()
