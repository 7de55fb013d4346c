#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Padding machine generator CLI.

Builds FRONT, pipelined FRONT, RegulaTor or Surakav machines and prints
their serialized form, one line per machine. Diagnostics go to stderr.
"""

import io
import sys
import json
import time
import logging
import argparse
from typing import List, Optional

from padding_machines import metrics
from padding_machines.builder import get_builder
from padding_machines.config import configure_logging, parse_env
from padding_machines.dist import Sampler
from padding_machines.emitter import OUTPUT_FORMATS, deserialize, emit, to_dict
from padding_machines.errors import InvalidParameterError, MachineError, TraceLoadError
from padding_machines.machine import MachineSet
from padding_machines.params import (
    EXHAUSTION_POLICIES, FrontParams, PipelinedFrontParams, RegulatorParams, SurakavParams,
)
from padding_machines.trace import TRACE_FORMATS

logger = logging.getLogger("machine_generator")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Padding machine generator")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (overrides PADMACH_SEED)")
    parser.add_argument("--format", choices=OUTPUT_FORMATS, default=None,
                        help="Output format (overrides PADMACH_OUTPUT_FORMAT)")
    parser.add_argument("--output", default=None,
                        help="Write machines to this file instead of stdout")
    parser.add_argument("--log-level", default=None,
                        help="DEBUG, INFO, WARNING, ERROR or CRITICAL (overrides PADMACH_LOG_LEVEL)")
    parser.add_argument("--metrics-file", default=None,
                        help="Prometheus textfile to write run metrics to (overrides PADMACH_METRICS_FILE)")

    commands = parser.add_subparsers(dest="command", required=True)

    front = commands.add_parser("front", help="Single FRONT machine")
    _add_front_arguments(front)

    pipelined = commands.add_parser("pipelined-front", help="Several independent FRONT pipelines")
    _add_front_arguments(pipelined, pipelines=True)
    pipelined.add_argument("--merged", action="store_true",
                           help="Emit one machine that enters a random pipeline")

    regulator = commands.add_parser("regulator", help="RegulaTor relay and client machines")
    regulator.add_argument("initial_rate", type=float, help="Surge rate R in packets/sec")
    regulator.add_argument("decay", type=float, help="Decay rate D, in (0, 1)")
    regulator.add_argument("threshold", type=float, help="Surge threshold T")
    regulator.add_argument("upload_ratio", type=float, help="Upload ratio U, >= 1")
    regulator.add_argument("cells_per_state", type=int, help="Padding cells per send state")

    surakav = commands.add_parser("surakav", help="Surakav client and relay machines")
    surakav.add_argument("--trace", required=True, help="Reference trace file")
    surakav.add_argument("--trace-format", choices=TRACE_FORMATS, default="auto",
                         help="Reference trace format")
    surakav.add_argument("--on-exhaustion", choices=EXHAUSTION_POLICIES, default="repeat",
                         help="Repeat the last burst forever or end the machine")

    decode = commands.add_parser("decode", help="Decode serialized machines to JSON")
    decode.add_argument("encoded", nargs="+", help="Serialized machine strings")

    return parser


def _add_front_arguments(parser: argparse.ArgumentParser, pipelines: bool = False):
    parser.add_argument("padding_window", type=float, help="Maximum padding window in seconds")
    parser.add_argument("padding_budget", type=int, help="Padding budget in cells (per pipeline when pipelined)")
    if pipelines:
        parser.add_argument("num_pipelines", type=int, help="Number of pipelines")
    parser.add_argument("num_states", type=int, help="Number of padding states")
    parser.add_argument("--min-window", type=float, default=None,
                        help="Minimum padding window in seconds (default: min(1, window / 2))")


def make_params(args: argparse.Namespace):
    """Turn parsed arguments into the family's parameter set."""
    if args.command in ("front", "pipelined-front"):
        front = FrontParams(args.padding_window, args.padding_budget, args.num_states, args.min_window)
        if args.command == "front":
            return front
        return PipelinedFrontParams(front, args.num_pipelines)
    if args.command == "regulator":
        return RegulatorParams(
            args.initial_rate, args.decay, args.threshold, args.upload_ratio, args.cells_per_state
        )
    return SurakavParams.from_file(args.trace, args.trace_format, args.on_exhaustion)


def generate(args: argparse.Namespace, sampler: Sampler) -> MachineSet:
    builder = get_builder(args.command)(make_params(args), sampler)
    machine_set = builder.build()
    if getattr(args, "merged", False):
        merged = machine_set.merged()
        machine_set = MachineSet(machine_set.family, machine_set.params, (merged,))
    return machine_set


def decode(encoded: List[str], stream) -> None:
    machines = [to_dict(deserialize(text)) for text in encoded]
    stream.write(json.dumps(machines, sort_keys=True, indent=2))
    stream.write("\n")


def write_output(text: str, path: Optional[str]):
    if path is None:
        sys.stdout.write(text)
        sys.stdout.flush()
        return
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info(f"Machines written to {path}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    config = parse_env()

    seed = args.seed if args.seed is not None else config["seed"]
    if seed is not None and seed < 0:
        logger.error(f"Invalid seed {seed}: must be a non-negative integer")
        return 2
    fmt = args.format or config["output_format"]
    metrics_file = args.metrics_file or config["metrics_file"]

    # Everything is rendered before anything is written, so failures emit nothing
    buffer = io.StringIO()
    exit_code = 0
    started = time.monotonic()
    try:
        if args.command == "decode":
            decode(args.encoded, buffer)
        else:
            machine_set = generate(args, Sampler(seed))
            emit(machine_set, buffer, fmt)
            metrics.record_machine_set(machine_set, time.monotonic() - started)
            logger.info(
                f"Generated {len(machine_set)} {machine_set.family} machine(s): "
                f"{', '.join(f'{m.label} ({len(m)} states)' for m in machine_set)}"
            )
        write_output(buffer.getvalue(), args.output)
    except (InvalidParameterError, TraceLoadError) as e:
        logger.error(str(e))
        metrics.record_error(args.command, e)
        exit_code = 2
    except MachineError as e:
        logger.error(f"{type(e).__name__}: {e}")
        metrics.record_error(args.command, e)
        exit_code = 1
    except OSError as e:
        logger.error(f"Cannot write output: {e}")
        metrics.record_error(args.command, e)
        exit_code = 1

    if metrics_file:
        try:
            metrics.write_metrics(metrics_file)
        except OSError as e:
            logger.error(f"Cannot write metrics to {metrics_file}: {e}")
            exit_code = exit_code or 1
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
