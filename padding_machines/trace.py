#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Reference trace parsing and burst segmentation.

Two on-disk formats are understood:

- events: ``<timestamp seconds> <signed direction>`` per line; positive
  direction is client -> relay. Extra columns are ignored.
- bursts: one non-negative integer per line, the number of cells in a
  burst; ``0`` hands the sending side over without a burst.

Blank lines and ``#`` comments are skipped in both.
"""

import logging
from enum import IntEnum
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .errors import TraceLoadError

logger = logging.getLogger(__name__)

# Maximum number of bursts taken from a reference trace
CUTOFF_LENGTH = 8000

TRACE_FORMATS = ("auto", "events", "bursts")


class Direction(IntEnum):
    OUTGOING = 1    # client -> relay
    INCOMING = -1   # relay -> client

    def flipped(self) -> "Direction":
        return Direction.INCOMING if self is Direction.OUTGOING else Direction.OUTGOING


@dataclass(frozen=True)
class TraceEvent:
    timestamp: float     # seconds
    direction: Direction


@dataclass(frozen=True)
class Burst:
    direction: Direction
    count: int
    inter_event_times: Tuple[float, ...] = ()  # microseconds


def read_records(path: str) -> List[Tuple[int, List[str]]]:
    """
    Read a trace file into (line number, columns) records.

    Raises:
        TraceLoadError: if the file cannot be read
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()
    except (OSError, UnicodeDecodeError) as e:
        raise TraceLoadError(path, f"cannot read trace: {e}") from e
    return list(_records(lines))


def _records(lines: Iterable[str]):
    for number, line in enumerate(lines, start=1):
        content = line.split("#", 1)[0].strip()
        if content:
            yield number, content.split()


def detect_format(records: Sequence[Tuple[int, List[str]]]) -> str:
    """Single integer column everywhere means bursts, anything else events."""
    if records and all(len(cols) == 1 and cols[0].isdigit() for _, cols in records):
        return "bursts"
    return "events"


def parse_events(records: Sequence[Tuple[int, List[str]]], source: str = "<trace>") -> List[TraceEvent]:
    """
    Parse timestamped records.

    Raises:
        TraceLoadError: on a malformed record or a zero direction
    """
    events = []
    for number, cols in records:
        if len(cols) < 2:
            raise TraceLoadError(source, "expected '<timestamp> <direction>'", number)
        try:
            timestamp = float(cols[0])
            direction = float(cols[1])
        except ValueError:
            raise TraceLoadError(source, f"non-numeric record {' '.join(cols)!r}", number)
        if direction == 0 or direction != direction:
            raise TraceLoadError(source, "direction must be positive or negative", number)
        events.append(TraceEvent(timestamp, Direction.OUTGOING if direction > 0 else Direction.INCOMING))
    return events


def parse_burst_counts(records: Sequence[Tuple[int, List[str]]], source: str = "<trace>") -> List[int]:
    """
    Parse burst-count records.

    Raises:
        TraceLoadError: on anything but a single non-negative integer
    """
    counts = []
    for number, cols in records:
        if len(cols) != 1:
            raise TraceLoadError(source, "expected a single burst size", number)
        try:
            value = int(cols[0])
        except ValueError:
            raise TraceLoadError(source, f"burst size {cols[0]!r} is not an integer", number)
        if value < 0:
            raise TraceLoadError(source, f"burst size {value} is negative", number)
        counts.append(value)
    return counts


def segment_bursts(events: Sequence[TraceEvent]) -> List[Burst]:
    """
    Split events into bursts of consecutive same-direction events.

    Inter-event times are measured within a burst, in microseconds.
    """
    bursts: List[Burst] = []
    current: List[TraceEvent] = []

    def close():
        gaps = tuple(
            (later.timestamp - earlier.timestamp) * 1000000.0
            for earlier, later in zip(current, current[1:])
        )
        bursts.append(Burst(current[0].direction, len(current), gaps))

    for event in events:
        if current and event.direction != current[0].direction:
            close()
            if len(bursts) >= CUTOFF_LENGTH:
                logger.warning(f"Reference trace truncated at {CUTOFF_LENGTH} bursts")
                return bursts
            current = []
        current.append(event)
    if current:
        close()
    return bursts


def bursts_from_counts(counts: Sequence[int]) -> List[Burst]:
    """
    Turn a burst-count sequence into bursts.

    The client sends first; sides alternate after every burst and a ``0``
    entry hands over the sending side without producing a burst.
    """
    bursts: List[Burst] = []
    direction = Direction.OUTGOING
    for count in counts:
        if count:
            if len(bursts) >= CUTOFF_LENGTH:
                logger.warning(f"Reference trace truncated at {CUTOFF_LENGTH} bursts")
                break
            bursts.append(Burst(direction, int(count)))
        direction = direction.flipped()
    return bursts
