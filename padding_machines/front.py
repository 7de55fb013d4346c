#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
FRONT machine builder.

FRONT front-loads padding following a Rayleigh-shaped schedule. The machine
approximates the schedule with a chain of padding states, each covering an
equal share of the Rayleigh probability mass and sending cells with
normally distributed gaps.
"""

import math
import logging
from dataclasses import dataclass
from typing import List, Optional

from .builder import MICROSECONDS, MachineBuilder, add_start_state, cell_action, register_builder
from .dist import RAYLEIGH_HORIZON_MASS, Dist, Sampler, rayleigh_horizon, rayleigh_ppf
from .errors import DegenerateDistributionError
from .graph import END, StateGraph
from .machine import Event
from .params import FrontParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaddingInterval:
    start: float             # microseconds since the first real packet
    width: float             # microseconds
    budget: int              # cells
    remaining_window: float  # microseconds from start to the window horizon

    @property
    def middle(self) -> float:
        return self.start + self.width / 2.0


def split_budget(budget: int, num_states: int) -> List[int]:
    """
    Split ``budget`` cells over ``num_states`` states as evenly as possible.
    The first ``budget % num_states`` states get one extra cell.
    """
    base, remainder = divmod(budget, num_states)
    return [base + 1 if i < remainder else base for i in range(num_states)]


def padding_intervals(scale: float, budget: int, num_states: int) -> List[PaddingInterval]:
    """
    Cut a Rayleigh window into ``num_states`` intervals of equal mass.

    Args:
        scale: Rayleigh scale (padding window) in microseconds
        budget: Total padding cells
        num_states: Number of intervals

    Returns:
        Intervals in time order; the last one ends at the window horizon
    """
    horizon = rayleigh_horizon(scale)
    boundaries = [0.0]
    for i in range(1, num_states):
        mass = i / num_states
        if mass >= RAYLEIGH_HORIZON_MASS:
            raise DegenerateDistributionError(
                f"{num_states} states do not fit before the Rayleigh horizon"
            )
        boundaries.append(rayleigh_ppf(mass, scale))
    boundaries.append(horizon)

    return [
        PaddingInterval(start, end - start, cells, horizon - start)
        for start, end, cells in zip(boundaries, boundaries[1:], split_budget(budget, num_states))
    ]


def padding_timeout(interval: PaddingInterval, scale: float) -> Dist:
    """Normal gap distribution spreading the interval's budget over its width."""
    mean = interval.width / interval.budget
    stdev = scale ** 2 / (interval.budget * interval.middle * math.sqrt(math.pi))
    return Dist.normal(mean, stdev, 0.0, mean * 2.0)


def add_padding_chain(graph: StateGraph, scale: float, budget: int, num_states: int,
                      prefix: str = "") -> List[PaddingInterval]:
    """
    Append the padding states of one FRONT schedule to ``graph``.

    States are named ``{prefix}pad-{i}``; each keeps padding until its
    limit is reached and then hands over to the next one, the last one ends
    the machine.
    """
    intervals = padding_intervals(scale, budget, num_states)
    for i, interval in enumerate(intervals):
        node = graph.add_state(
            f"{prefix}pad-{i}",
            timeout=padding_timeout(interval, scale),
            action=cell_action(),
            limit=Dist.uniform(1.0, float(interval.budget)),
        )
        following = f"{prefix}pad-{i + 1}" if i + 1 < len(intervals) else END
        node.on(Event.PADDING_SENT, node.name)
        node.on(Event.LIMIT_REACHED, following)
    return intervals


@register_builder
class FrontBuilder(MachineBuilder):
    """Single FRONT machine with ``num_states`` padding states."""

    family = "front"
    params_type = FrontParams

    def __init__(self, params: FrontParams, sampler: Optional[Sampler] = None, label: str = "front"):
        super().__init__(params, sampler)
        self.label = label
        self.scale: Optional[float] = None
        self.intervals: List[PaddingInterval] = []

    def draw_scale(self) -> float:
        """Sample this machine's Rayleigh scale in microseconds."""
        low = self.params.effective_min_window * MICROSECONDS
        high = self.params.padding_window * MICROSECONDS
        return self.sampler.uniform(low, high)

    def build_graphs(self) -> List[StateGraph]:
        params = self.params
        self.scale = self.draw_scale()
        logger.debug(f"{self.label}: Rayleigh scale {self.scale:.1f}us")

        graph = StateGraph(self.family, self.label)
        add_start_state(graph, [("pad-0", 1.0)])
        self.intervals = add_padding_chain(graph, self.scale, params.padding_budget, params.num_states)
        return [graph]
