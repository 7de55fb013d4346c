"""Command line interface tests."""

import io
import os
import json
import tempfile
import unittest
from unittest.mock import patch

from tests.common import (
    EVENT_TRACE,
    REGISTRY,
    clear_padmach_env,
    machine_generator,
    reset_metrics,
    write_trace,
)

from padding_machines.emitter import deserialize

FRONT_ARGS = ["front", "14", "1000", "5"]


class CliTestCase(unittest.TestCase):

    def setUp(self):
        """Back up the environment and reset metrics."""
        self.env_backup = os.environ.copy()
        clear_padmach_env()
        reset_metrics()

    def tearDown(self):
        """Restore environment variables."""
        os.environ.clear()
        os.environ.update(self.env_backup)

    def run_cli(self, argv):
        with patch("sys.stdout", new_callable=io.StringIO) as stdout:
            code = machine_generator.main(["--log-level", "CRITICAL"] + argv)
        return code, stdout.getvalue()


class TestGenerate(CliTestCase):
    """Test machine generation from the command line."""

    def test_front(self):
        """Test one decodable line for a FRONT machine."""
        code, output = self.run_cli(["--seed", "7"] + FRONT_ARGS)
        self.assertEqual(code, 0)
        lines = output.splitlines()
        self.assertEqual(len(lines), 1)
        label, rest = lines[0].split(": ", 1)
        encoded, length = rest.rsplit(" ", 1)
        self.assertEqual(label, "front")
        self.assertEqual(length, f"({len(encoded)})")
        self.assertEqual(len(deserialize(encoded)), 6)

    def test_same_seed_same_output(self):
        """Test byte-identical output for the same seed."""
        _, first = self.run_cli(["--seed", "7"] + FRONT_ARGS)
        _, second = self.run_cli(["--seed", "7"] + FRONT_ARGS)
        _, other = self.run_cli(["--seed", "8"] + FRONT_ARGS)
        self.assertEqual(first, second)
        self.assertNotEqual(first, other)

    def test_seed_from_environment(self):
        """Test that PADMACH_SEED seeds the run and --seed overrides it."""
        _, flagged = self.run_cli(["--seed", "7"] + FRONT_ARGS)
        os.environ["PADMACH_SEED"] = "7"
        _, from_env = self.run_cli(FRONT_ARGS)
        self.assertEqual(flagged, from_env)
        _, overridden = self.run_cli(["--seed", "8"] + FRONT_ARGS)
        self.assertNotEqual(flagged, overridden)

    def test_pipelined(self):
        """Test one line per pipeline, or one line when merged."""
        args = ["--seed", "3", "pipelined-front", "10", "100", "3", "4"]
        code, output = self.run_cli(args)
        self.assertEqual(code, 0)
        self.assertEqual([line.split(":")[0] for line in output.splitlines()],
                         ["pipeline-0", "pipeline-1", "pipeline-2"])

        code, output = self.run_cli(args + ["--merged"])
        self.assertEqual(code, 0)
        lines = output.splitlines()
        self.assertEqual(len(lines), 1)
        self.assertTrue(lines[0].startswith("merged: "))

    def test_regulator(self):
        """Test relay and client lines."""
        code, output = self.run_cli(["regulator", "277", "0.94", "3.55", "3.95", "100"])
        self.assertEqual(code, 0)
        self.assertEqual([line.split(":")[0] for line in output.splitlines()], ["relay", "client"])

    def test_surakav(self):
        """Test client and relay lines from a trace file."""
        path = write_trace(EVENT_TRACE)
        try:
            code, output = self.run_cli(["surakav", "--trace", path, "--on-exhaustion", "end"])
        finally:
            os.remove(path)
        self.assertEqual(code, 0)
        self.assertEqual([line.split(":")[0] for line in output.splitlines()], ["client", "relay"])

    def test_json_output_file(self):
        """Test JSON output written to a file."""
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "machines.json")
            code, output = self.run_cli(["--format", "json", "--output", path, "--seed", "1"] + FRONT_ARGS)
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        self.assertEqual(code, 0)
        self.assertEqual(output, "")
        self.assertEqual(document["family"], "front")
        self.assertEqual(len(document["machines"]), 1)

    def test_metrics_file(self):
        """Test that run metrics are written when requested."""
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "padmach.prom")
            code, _ = self.run_cli(["--metrics-file", path] + FRONT_ARGS)
            with open(path, encoding="utf-8") as f:
                content = f.read()
        self.assertEqual(code, 0)
        self.assertIn('padmach_machines_generated_total{family="front"} 1.0', content)


class TestFailures(CliTestCase):
    """Test exit codes and that nothing is emitted on failure."""

    def test_invalid_parameters(self):
        """Test exit code 2 and empty output for invalid parameters."""
        cases = [
            ["front", "14", "3", "5"],
            ["front", "0", "100", "5"],
            ["pipelined-front", "10", "100", "0", "4"],
            ["regulator", "277", "1.5", "3.55", "3.95", "100"],
            ["regulator", "277", "0.94", "3.55", "0.5", "100"],
        ]
        for argv in cases:
            with self.subTest(argv=argv):
                code, output = self.run_cli(argv)
                self.assertEqual(code, 2)
                self.assertEqual(output, "")
        self.assertEqual(
            REGISTRY.get_sample_value(
                "padmach_generation_errors_total", {"family": "regulator", "kind": "InvalidParameterError"}
            ),
            2.0,
        )

    def test_trace_errors(self):
        """Test exit code 2 for missing and malformed traces."""
        path = write_trace("0.0 1\n0.1 zero\n")
        try:
            for trace in (path, "/nonexistent/reference.trace"):
                with self.subTest(trace=trace):
                    code, output = self.run_cli(["surakav", "--trace", trace])
                    self.assertEqual(code, 2)
                    self.assertEqual(output, "")
        finally:
            os.remove(path)

    def test_invalid_environment(self):
        """Test that invalid environment values terminate."""
        os.environ["PADMACH_SEED"] = "seed"
        with self.assertRaises(SystemExit):
            self.run_cli(FRONT_ARGS)

    def test_negative_seed(self):
        code, output = self.run_cli(["--seed", "-1"] + FRONT_ARGS)
        self.assertEqual(code, 2)
        self.assertEqual(output, "")


class TestDecode(CliTestCase):
    """Test decoding serialized machines."""

    def test_decode(self):
        """Test that encoded machines decode to their JSON form."""
        _, output = self.run_cli(["--seed", "4", "regulator", "277", "0.94", "3.55", "3.95", "100"])
        encoded = [line.split(": ", 1)[1].rsplit(" ", 1)[0] for line in output.splitlines()]
        code, decoded = self.run_cli(["decode"] + encoded)
        self.assertEqual(code, 0)
        machines = json.loads(decoded)
        self.assertEqual([m["label"] for m in machines], ["relay", "client"])

    def test_decode_garbage(self):
        """Test exit code 1 for undecodable input."""
        code, output = self.run_cli(["decode", "01garbage"])
        self.assertEqual(code, 1)
        self.assertEqual(output, "")


if __name__ == "__main__":
    unittest.main()
