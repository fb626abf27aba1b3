import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from rpc_poller.infra.config import load_config, parse_config

CONFIG_YAML = """
transport:
  url: "wss://rpc.example.org"
  kind: websocket
  timeout_seconds: 4
  poll_interval_seconds: 2.5
pollers:
  - method: eth_blockNumber
    poll_interval_seconds: 5
    limit: 3
  - method: eth_getBalance
    params: ["0xabc", "latest"]
    single_flight: true
    discard_after_stop: true
dashboard:
  port: 9100
  enable: true
metrics:
  emit_textfile: true
  metrics_file: "var/test.prom"
"""


class ConfigTest(unittest.TestCase):
    def test_load_config_parses_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "pollers.yaml"
            path.write_text(CONFIG_YAML, encoding="utf-8")
            config = load_config(path)

        self.assertEqual("wss://rpc.example.org", config.transport.url)
        self.assertEqual("websocket", config.transport.kind)
        self.assertEqual(4.0, config.transport.timeout_seconds)
        self.assertEqual(timedelta(seconds=2.5), config.transport.poll_interval)

        block, balance = config.pollers
        self.assertEqual("eth_blockNumber", block.method)
        self.assertEqual(timedelta(seconds=5), block.poll_interval)
        self.assertEqual(3, block.limit)
        self.assertFalse(block.single_flight)
        self.assertIsNone(block.params)

        self.assertEqual(["0xabc", "latest"], balance.params)
        self.assertIsNone(balance.limit)
        self.assertIsNone(balance.poll_interval)
        self.assertTrue(balance.single_flight)
        self.assertTrue(balance.discard_after_stop)

        self.assertEqual(9100, config.dashboard.port)
        self.assertTrue(config.dashboard.enable)
        self.assertTrue(config.metrics.emit_textfile)
        self.assertEqual("var/test.prom", config.metrics.metrics_file)

    def test_defaults_for_empty_config(self) -> None:
        config = parse_config(None)

        self.assertEqual("http", config.transport.kind)
        self.assertIsNone(config.transport.poll_interval)
        self.assertEqual([], config.pollers)
        self.assertFalse(config.dashboard.enable)
        self.assertFalse(config.metrics.emit_textfile)

    def test_poller_without_method_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            parse_config({"pollers": [{"limit": 3}]})


if __name__ == "__main__":
    unittest.main()
