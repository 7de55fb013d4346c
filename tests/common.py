"""Shared helpers and imports for padding machine tests."""

import os
import sys
import math
import tempfile
from pathlib import Path

# Ensure the project root is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

CLI_MODULE = "machine_generator"

# Import modules after adjusting sys.path
machine_generator = __import__(CLI_MODULE)

from padding_machines.metrics import METRICS, REGISTRY

__all__ = [
    "CLI_MODULE",
    "PROJECT_ROOT",
    "machine_generator",
    "METRICS",
    "REGISTRY",
    "assert_well_formed",
    "clear_padmach_env",
    "reset_metrics",
    "write_trace",
]

# A small client/relay exchange: 3 out, 2 in, 4 out
EVENT_TRACE = """\
# timestamp direction
0.000 1
0.001 1
0.003 1
0.010 -1
0.012 -1
0.020 1
0.021 1
0.023 1
0.026 1
"""


def clear_padmach_env():
    """Remove all PADMACH_* variables from the environment."""
    for key in list(os.environ.keys()):
        if key.startswith("PADMACH_"):
            del os.environ[key]


def reset_metrics():
    """Clear gauge/counter state between tests."""
    for metric in METRICS.values():
        if hasattr(metric, "_metrics"):
            metric._metrics.clear()
        if hasattr(metric, "_value"):
            try:
                metric._value.set(0)
            except AttributeError:
                # Counters do not allow direct set when using prometheus_client; ignore
                pass


def write_trace(content: str, suffix: str = ".trace") -> str:
    """Write a temporary trace file and return its path (caller removes it)."""
    handle, path = tempfile.mkstemp(suffix=suffix)
    with os.fdopen(handle, "w", encoding="utf-8") as f:
        f.write(content)
    return path


def assert_well_formed(test, machine):
    """Probabilities sum to one per event and every target exists."""
    for state in machine.states:
        for event in state.events:
            targets = state.transitions_for(event)
            test.assertTrue(
                math.isclose(sum(targets.values()), 1.0, abs_tol=1e-9),
                f"{state.name} {event.value} sums to {sum(targets.values())}"
            )
            for target in targets:
                test.assertTrue(0 <= target <= machine.end_index, f"{state.name} -> {target}")
