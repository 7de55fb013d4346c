#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Surakav machine builder.

Replays the burst structure of a reference trace. Client and relay each get
a state per burst: the side that sent the burst in the reference trace pads
until it has sent as many cells, while the other side blocks until it has
received them.
"""

import logging
from typing import List

from .builder import MachineBuilder, add_block_state, add_start_state, cell_action, register_builder
from .dist import Dist, EmpiricalDistribution
from .graph import END, StateGraph
from .machine import Event, U64_MAX
from .params import SurakavParams
from .trace import Burst, Direction

logger = logging.getLogger(__name__)

# Gap between padding cells of a burst without usable timing information
DEFAULT_SEND_TIMEOUT = 5.0   # microseconds

SIDES = {"client": Direction.OUTGOING, "relay": Direction.INCOMING}


def send_timeout(burst: Burst) -> Dist:
    """Timer of a SEND state: the burst's observed inter-event range."""
    return EmpiricalDistribution(burst.inter_event_times).to_dist(Dist.fixed(DEFAULT_SEND_TIMEOUT))


@register_builder
class SurakavBuilder(MachineBuilder):
    """Client and relay machines mirroring the bursts of a reference trace."""

    family = "surakav"
    params_type = SurakavParams

    def build_graphs(self) -> List[StateGraph]:
        bursts = self.params.bursts
        logger.debug(
            f"Reference trace {self.params.source or '<bursts>'}: {len(bursts)} bursts, "
            f"{sum(b.count for b in bursts)} cells, on exhaustion: {self.params.on_exhaustion}"
        )
        return [self._side_graph(label, direction) for label, direction in SIDES.items()]

    def _side_graph(self, label: str, sending: Direction) -> StateGraph:
        bursts = self.params.bursts
        repeat = self.params.on_exhaustion == "repeat"

        graph = StateGraph(self.family, label, allowed_blocked_microsec=U64_MAX)
        add_start_state(graph, [("block", 1.0)])
        add_block_state(graph, "burst-0")

        for i, burst in enumerate(bursts):
            final = i + 1 == len(bursts)
            # the final burst repeats its statistics forever unless the machine ends
            limit = None if final and repeat else Dist.fixed(float(burst.count))
            name = f"burst-{i}"

            if burst.direction == sending:
                node = graph.add_state(
                    name,
                    timeout=send_timeout(burst),
                    action=cell_action(),
                    limit=limit,
                    bypass=True,
                    replace=True,
                )
                node.on(Event.PADDING_SENT, name)
            else:
                node = graph.add_state(
                    name,
                    timeout=Dist.fixed(0.0),
                    action=Dist.forever(),
                    limit=limit,
                    action_is_block=True,
                    bypass=True,
                    replace=True,
                )
                node.on(Event.NON_PADDING_RECV, name)
                node.on(Event.PADDING_RECV, name)

            if not final:
                node.on(Event.LIMIT_REACHED, f"burst-{i + 1}")
            elif not repeat:
                node.on(Event.LIMIT_REACHED, END)
        return graph
