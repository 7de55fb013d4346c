#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Validated parameter sets, one per defense family
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import InvalidParameterError
from .trace import (
    TRACE_FORMATS, Burst, TraceEvent, bursts_from_counts, detect_format,
    parse_burst_counts, parse_events, read_records, segment_bursts,
)

EXHAUSTION_POLICIES = ("repeat", "end")


def _require_real(family: str, name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidParameterError(family, name, value, "must be a real number")
    if not math.isfinite(value):
        raise InvalidParameterError(family, name, value, "must be finite")
    return float(value)


def _require_int(family: str, name: str, value: Any, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameterError(family, name, value, "must be an integer")
    if value < minimum:
        raise InvalidParameterError(family, name, value, f"must be >= {minimum}")
    return value


@dataclass(frozen=True)
class FrontParams:
    padding_window: float            # W_max, seconds
    padding_budget: int              # N, cells
    num_states: int                  # padding states
    min_window: Optional[float] = None

    family = "front"

    @property
    def effective_min_window(self) -> float:
        if self.min_window is None:
            # strictly below the window so the scale is always drawn
            return min(1.0, self.padding_window / 2.0)
        return self.min_window

    def validate(self) -> "FrontParams":
        window = _require_real(self.family, "padding_window", self.padding_window)
        if window <= 0:
            raise InvalidParameterError(self.family, "padding_window", self.padding_window, "must be positive")
        _require_int(self.family, "padding_budget", self.padding_budget)
        _require_int(self.family, "num_states", self.num_states)
        if self.num_states > self.padding_budget:
            raise InvalidParameterError(
                self.family, "num_states", self.num_states,
                f"exceeds padding_budget={self.padding_budget} (each state needs at least one cell)",
            )
        if self.min_window is not None:
            low = _require_real(self.family, "min_window", self.min_window)
            if not 0 < low <= window:
                raise InvalidParameterError(
                    self.family, "min_window", self.min_window, "must be in (0, padding_window]"
                )
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "padding_window": float(self.padding_window),
            "padding_budget": self.padding_budget,
            "num_states": self.num_states,
            "min_window": float(self.effective_min_window),
        }


@dataclass(frozen=True)
class PipelinedFrontParams:
    front: FrontParams
    num_pipelines: int

    family = "pipelined-front"

    def validate(self) -> "PipelinedFrontParams":
        if not isinstance(self.front, FrontParams):
            raise InvalidParameterError(self.family, "front", self.front, "must be FrontParams")
        self.front.validate()
        _require_int(self.family, "num_pipelines", self.num_pipelines)
        return self

    def as_dict(self) -> Dict[str, Any]:
        data = self.front.as_dict()
        data["num_pipelines"] = self.num_pipelines
        return data


@dataclass(frozen=True)
class RegulatorParams:
    initial_rate: float      # R, packets/sec
    decay: float             # D, per second, in (0, 1)
    threshold: float         # T, surge threshold
    upload_ratio: float      # U, received cells per sent cell
    cells_per_state: int

    family = "regulator"

    def validate(self) -> "RegulatorParams":
        rate = _require_real(self.family, "initial_rate", self.initial_rate)
        if rate <= 0:
            raise InvalidParameterError(self.family, "initial_rate", self.initial_rate, "must be positive")
        decay = _require_real(self.family, "decay", self.decay)
        if not 0 < decay < 1:
            raise InvalidParameterError(self.family, "decay", self.decay, "must be in (0, 1)")
        threshold = _require_real(self.family, "threshold", self.threshold)
        if threshold <= 0:
            raise InvalidParameterError(self.family, "threshold", self.threshold, "must be positive")
        ratio = _require_real(self.family, "upload_ratio", self.upload_ratio)
        if ratio < 1:
            raise InvalidParameterError(self.family, "upload_ratio", self.upload_ratio, "must be >= 1")
        _require_int(self.family, "cells_per_state", self.cells_per_state)
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "initial_rate": float(self.initial_rate),
            "decay": float(self.decay),
            "threshold": float(self.threshold),
            "upload_ratio": float(self.upload_ratio),
            "cells_per_state": self.cells_per_state,
        }


@dataclass(frozen=True)
class SurakavParams:
    bursts: Tuple[Burst, ...]
    on_exhaustion: str = "repeat"
    source: str = ""

    family = "surakav"

    @classmethod
    def from_events(cls, events: Sequence[TraceEvent], on_exhaustion: str = "repeat",
                    source: str = "") -> "SurakavParams":
        """
        Build parameters from a timestamped reference trace.

        Raises:
            InvalidParameterError: empty trace, non-finite or decreasing timestamps
        """
        if not events:
            raise InvalidParameterError(cls.family, "trace", source or "<events>", "reference trace is empty")
        previous = None
        for position, event in enumerate(events):
            if not math.isfinite(event.timestamp):
                raise InvalidParameterError(
                    cls.family, "trace", event.timestamp, f"event {position} has a non-finite timestamp"
                )
            if previous is not None and event.timestamp < previous:
                raise InvalidParameterError(
                    cls.family, "trace", event.timestamp,
                    f"event {position} goes back in time (previous timestamp {previous})",
                )
            previous = event.timestamp
        return cls(tuple(segment_bursts(events)), on_exhaustion, source).validate()

    @classmethod
    def from_burst_counts(cls, counts: Sequence[int], on_exhaustion: str = "repeat",
                          source: str = "") -> "SurakavParams":
        return cls(tuple(bursts_from_counts(counts)), on_exhaustion, source).validate()

    @classmethod
    def from_file(cls, path: str, fmt: str = "auto", on_exhaustion: str = "repeat") -> "SurakavParams":
        """
        Load a reference trace file.

        Raises:
            TraceLoadError: unreadable file or malformed record
            InvalidParameterError: trace content outside the valid domain
        """
        if fmt not in TRACE_FORMATS:
            raise InvalidParameterError(cls.family, "trace_format", fmt, f"must be one of {TRACE_FORMATS}")
        records = read_records(path)
        if fmt == "auto":
            fmt = detect_format(records)
        if fmt == "bursts":
            return cls.from_burst_counts(parse_burst_counts(records, path), on_exhaustion, path)
        return cls.from_events(parse_events(records, path), on_exhaustion, path)

    def validate(self) -> "SurakavParams":
        if self.on_exhaustion not in EXHAUSTION_POLICIES:
            raise InvalidParameterError(
                self.family, "on_exhaustion", self.on_exhaustion, f"must be one of {EXHAUSTION_POLICIES}"
            )
        if not self.bursts:
            raise InvalidParameterError(self.family, "trace", self.source or "<bursts>", "contains no bursts")
        for position, burst in enumerate(self.bursts):
            if isinstance(burst.count, bool) or not isinstance(burst.count, int) or burst.count < 1:
                raise InvalidParameterError(self.family, "trace", burst.count, f"burst {position} has no events")
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "num_bursts": len(self.bursts),
            "total_cells": sum(b.count for b in self.bursts),
            "on_exhaustion": self.on_exhaustion,
        }
