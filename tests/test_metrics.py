"""Run metrics tests."""

import os
import tempfile
import unittest

from tests.common import METRICS, REGISTRY, reset_metrics

from padding_machines.dist import Sampler
from padding_machines.errors import InvalidParameterError
from padding_machines.metrics import record_error, record_machine_set, write_metrics
from padding_machines.params import RegulatorParams
from padding_machines.regulator import RegulatorBuilder


class TestMetricsDefinition(unittest.TestCase):
    """Test that all metrics are registered."""

    def test_metrics_exist(self):
        expected = {
            "machines_generated",
            "machine_states",
            "generation_errors",
            "generation_duration",
            "last_generation_timestamp",
        }
        self.assertEqual(set(METRICS), expected)


class TestMetricsUpdate(unittest.TestCase):
    """Test metric updates for runs."""

    def setUp(self):
        reset_metrics()

    def test_record_machine_set(self):
        """Test counters and gauges after a successful run."""
        machine_set = RegulatorBuilder(RegulatorParams(277, 0.94, 3.55, 3.95, 100), Sampler(0)).build()
        record_machine_set(machine_set, 0.25)

        self.assertEqual(
            REGISTRY.get_sample_value("padmach_machines_generated_total", {"family": "regulator"}), 2.0
        )
        self.assertEqual(
            REGISTRY.get_sample_value("padmach_machine_states", {"family": "regulator", "label": "client"}),
            float(len(machine_set.get("client"))),
        )
        self.assertEqual(
            REGISTRY.get_sample_value("padmach_generation_duration_seconds", {"family": "regulator"}), 0.25
        )
        self.assertGreater(REGISTRY.get_sample_value("padmach_last_generation_timestamp_seconds"), 0)

    def test_record_error(self):
        """Test that errors are counted by family and kind."""
        record_error("front", InvalidParameterError("front", "num_states", 0, "must be >= 1"))
        record_error("front", InvalidParameterError("front", "num_states", 0, "must be >= 1"))
        self.assertEqual(
            REGISTRY.get_sample_value(
                "padmach_generation_errors_total", {"family": "front", "kind": "InvalidParameterError"}
            ),
            2.0,
        )

    def test_write_metrics(self):
        """Test the textfile output."""
        record_error("surakav", ValueError("boom"))
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "padmach.prom")
            write_metrics(path)
            with open(path, encoding="utf-8") as f:
                content = f.read()
        self.assertIn('padmach_generation_errors_total{family="surakav",kind="ValueError"} 1.0', content)
        self.assertIn("padmach_last_generation_timestamp_seconds", content)


if __name__ == "__main__":
    unittest.main()
