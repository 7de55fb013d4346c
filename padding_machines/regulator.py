#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
RegulaTor machine builder.

The relay sends at a rate that surges to R and then decays as R * D^t.
The decaying curve is approximated by a chain of constant-rate send
states, each covering ``cells_per_state`` cells. The client answers with
one cell for every U cells received.
"""

import math
import logging
from dataclasses import dataclass
from typing import List, Optional

from scipy import optimize

from .builder import (
    MICROSECONDS, MachineBuilder, add_block_state, add_start_state, cell_action, register_builder,
)
from .dist import Dist, Sampler
from .graph import NOP, StateGraph
from .machine import Event, U64_MAX
from .params import RegulatorParams

logger = logging.getLogger(__name__)

MIN_SEND_RATE = 1.0          # packets/sec, floor of the decay
MAX_SEND_STATES = 10000
NUM_BOOT_STATES = 9
BOOT_TIMEOUT = 100000.0      # microseconds
COUNT_LIMIT = 2.0


@dataclass(frozen=True)
class SendLevel:
    start: float   # seconds since the surge
    width: float   # seconds, inf for the open-ended last level
    rate: float    # packets/sec


def decayed_rate(t: float, initial_rate: float, decay: float) -> float:
    """R * D^t"""
    return initial_rate * decay ** t


def interval_width(start: float, cells: float, initial_rate: float, decay: float) -> float:
    """
    Width of the interval beginning at ``start`` that holds ``cells`` cells
    when sent at the rate of its midpoint.

    Returns:
        Width in seconds, or inf when the decayed rate can never cover
        ``cells`` (the covered count peaks below it)
    """
    def covered(half: float) -> float:
        return decayed_rate(start + half, initial_rate, decay) * half * 2.0

    # covered() rises up to this half-width and falls after it
    peak = -1.0 / math.log(decay)
    if covered(peak) < cells:
        return math.inf
    half = optimize.brentq(lambda h: covered(h) - cells, 0.0, peak, xtol=1e-12)
    return half * 2.0


def rate_schedule(params: RegulatorParams) -> List[SendLevel]:
    """
    Discretize the decay curve into send levels.

    The schedule stops at the first level whose width is infinite or whose
    rate falls below MIN_SEND_RATE, or at level MAX_SEND_STATES; that level
    is clamped to the floor.
    """
    levels: List[SendLevel] = []
    t = 0.0
    while True:
        width = interval_width(t, params.cells_per_state, params.initial_rate, params.decay)
        if math.isinf(width):
            rate, final = MIN_SEND_RATE, True
        else:
            rate = decayed_rate(t + width / 2.0, params.initial_rate, params.decay)
            final = rate < MIN_SEND_RATE
            if final:
                rate = MIN_SEND_RATE
            elif len(levels) + 1 == MAX_SEND_STATES:
                logger.warning(
                    f"Rate schedule truncated at {MAX_SEND_STATES} send states "
                    f"({rate:.2f} pkt/s), last state sends at {MIN_SEND_RATE} pkt/s"
                )
                rate, width, final = MIN_SEND_RATE, math.inf, True
        levels.append(SendLevel(t, width, rate))
        if final:
            return levels
        t += width


@register_builder
class RegulatorBuilder(MachineBuilder):
    """Relay-side surge/decay machine plus the client-side upload machine."""

    family = "regulator"
    params_type = RegulatorParams

    def __init__(self, params: RegulatorParams, sampler: Optional[Sampler] = None):
        super().__init__(params, sampler)
        self.levels: List[SendLevel] = []

    def build_graphs(self) -> List[StateGraph]:
        self.levels = rate_schedule(self.params)
        logger.debug(
            f"Rate schedule: {len(self.levels)} send states, "
            f"{self.levels[0].rate:.2f} -> {self.levels[-1].rate:.2f} pkt/s"
        )
        return [self._relay_graph(), self._client_graph()]

    def _relay_graph(self) -> StateGraph:
        params = self.params
        graph = StateGraph(self.family, "relay", allowed_blocked_microsec=U64_MAX)
        add_start_state(graph, [("block", 1.0)], events=(Event.NON_PADDING_SENT,))
        add_block_state(graph, "boot-0")

        # Bootstrap: wait for real traffic before surging
        for i in range(NUM_BOOT_STATES):
            node = graph.add_state(
                f"boot-{i}",
                timeout=Dist.fixed(BOOT_TIMEOUT),
                action=cell_action(),
                bypass=True,
                replace=True,
            )
            node.on(Event.PADDING_SENT, node.name)
            node.on(Event.NON_PADDING_SENT, f"boot-{i + 1}" if i + 1 < NUM_BOOT_STATES else "send-0")

        last = len(self.levels) - 1
        for i, level in enumerate(self.levels):
            node = graph.add_state(
                f"send-{i}",
                timeout=Dist.fixed(MICROSECONDS / level.rate),
                action=cell_action(),
                # the last level keeps sending at the floor rate forever
                limit=Dist.fixed(float(params.cells_per_state)) if i < last else None,
                bypass=True,
                replace=True,
            )
            node.on(Event.PADDING_SENT, node.name)
            if i < last:
                node.on(Event.LIMIT_REACHED, f"send-{i + 1}")
            if i > 0:
                surge = min(1.0, 2.0 / (params.threshold * level.rate))
                node.on(Event.NON_PADDING_SENT, "send-0", surge)
                if surge < 1.0:
                    node.on(Event.NON_PADDING_SENT, NOP, 1.0 - surge)
        return graph

    def _client_graph(self) -> StateGraph:
        ratio = self.params.upload_ratio
        num_counts = int(ratio)
        last_advance = 1.0 - (ratio - num_counts)

        graph = StateGraph(self.family, "client", allowed_blocked_microsec=U64_MAX)
        for i in range(num_counts):
            node = graph.add_state(
                f"count-{i}",
                timeout=Dist.fixed(0.0),
                action=Dist.forever(),
                limit=Dist.fixed(COUNT_LIMIT),
                action_is_block=True,
                bypass=True,
                replace=True,
            )
            following = f"count-{i + 1}" if i + 1 < num_counts else "send"
            advance = last_advance if i + 1 == num_counts else 1.0
            for event in (Event.PADDING_RECV, Event.NON_PADDING_RECV):
                node.on(event, following, advance)
                if advance < 1.0:
                    node.on(event, node.name, 1.0 - advance)
            if advance < 1.0:
                node.on(Event.LIMIT_REACHED, following)

        send = graph.add_state(
            "send",
            timeout=Dist.fixed(0.0),
            action=cell_action(),
            bypass=True,
            replace=True,
        )
        send.on(Event.PADDING_SENT, "count-0")
        return graph

