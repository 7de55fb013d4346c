#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Prometheus metrics for generator runs.

The generator is a batch job, so metrics go to a node-exporter textfile
instead of an HTTP endpoint.
"""

import time
import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, write_to_textfile

from .machine import MachineSet

logger = logging.getLogger(__name__)

REGISTRY = CollectorRegistry()

# Prometheus metrics map
METRICS = {
    "machines_generated": Counter(
        "padmach_machines_generated_total",
        "Number of machines generated per defense family.",
        ["family"],
        registry=REGISTRY
    ),
    "machine_states": Gauge(
        "padmach_machine_states",
        "Number of states in the last generated machine.",
        ["family", "label"],
        registry=REGISTRY
    ),
    "generation_errors": Counter(
        "padmach_generation_errors_total",
        "Number of failed generation runs per family and error kind.",
        ["family", "kind"],
        registry=REGISTRY
    ),
    "generation_duration": Gauge(
        "padmach_generation_duration_seconds",
        "Wall-clock duration of the last generation run.",
        ["family"],
        registry=REGISTRY
    ),
    "last_generation_timestamp": Gauge(
        "padmach_last_generation_timestamp_seconds",
        "Unix timestamp of the last successful generation run.",
        registry=REGISTRY
    )
}


def record_machine_set(machine_set: MachineSet, duration: float) -> None:
    """Update metrics after a successful run."""
    family = machine_set.family
    for machine in machine_set:
        METRICS["machines_generated"].labels(family=family).inc()
        METRICS["machine_states"].labels(family=family, label=machine.label).set(len(machine))
    METRICS["generation_duration"].labels(family=family).set(duration)
    METRICS["last_generation_timestamp"].set(time.time())


def record_error(family: str, error: Exception) -> None:
    METRICS["generation_errors"].labels(family=family, kind=type(error).__name__).inc()


def write_metrics(path: str) -> None:
    """
    Write the registry in the textfile collector format.

    Raises:
        OSError: if the file cannot be written
    """
    write_to_textfile(path, REGISTRY)
    logger.debug(f"Metrics written to {path}")
