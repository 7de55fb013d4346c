#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Pipelined FRONT: several independent FRONT machines layered over one flow
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .assembler import assemble
from .builder import MachineBuilder, register_builder
from .front import FrontBuilder
from .graph import END, NOP, StateGraph
from .machine import Event, Machine, MachineSet
from .params import PipelinedFrontParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelinedMachine(MachineSet):
    """MachineSet whose machines are mutually unaware, concurrently active pipelines."""

    @property
    def pipelines(self) -> Tuple[Machine, ...]:
        return self.machines

    def merged(self, label: str = "merged") -> Machine:
        """Single machine whose start state picks one pipeline uniformly."""
        return merge_pipelines(self.machines, self.family, label, self.params)


def merge_pipelines(pipelines: Sequence[Machine], family: str, label: str = "merged",
                    params: Optional[Mapping] = None) -> Machine:
    """
    Merge machines into one that enters exactly one of them at random.

    Each pipeline's start state is replaced by a shared start state that
    spreads the pipeline's entry transitions with weight 1/len(pipelines).
    Every pipeline keeps its own states, so each one still carries the full
    padding budget.
    """
    if not pipelines:
        raise ValueError("nothing to merge")
    share = 1.0 / len(pipelines)
    first = pipelines[0]
    graph = StateGraph(
        family, label,
        allowed_padding_bytes=first.allowed_padding_bytes,
        max_padding_frac=first.max_padding_frac,
        allowed_blocked_microsec=first.allowed_blocked_microsec,
        max_blocking_frac=first.max_blocking_frac,
        include_small_packets=first.include_small_packets,
    )

    renames: List[Dict[int, str]] = []
    entry: Dict[Event, List[Tuple[str, float]]] = {}
    for number, machine in enumerate(pipelines):
        names = {state.index: f"p{number}/{state.name}" for state in machine.states[1:]}
        names[0] = "start"
        names[machine.nop_index] = NOP
        names[machine.end_index] = END
        renames.append(names)
        for transition in machine.states[0].transitions:
            entry.setdefault(transition.event, []).append(
                (names[transition.target], transition.probability * share)
            )

    start = graph.add_state("start")
    for event, targets in entry.items():
        for target, weight in targets:
            start.on(event, target, weight)

    for machine, names in zip(pipelines, renames):
        for state in machine.states[1:]:
            node = graph.add_state(
                names[state.index],
                timeout=state.timeout,
                action=state.action,
                limit=state.limit,
                action_is_block=state.action_is_block,
                bypass=state.bypass,
                replace=state.replace,
                limit_includes_nonpadding=state.limit_includes_nonpadding,
            )
            for transition in state.transitions:
                node.on(transition.event, names[transition.target], transition.probability)

    return assemble(graph, params)


@register_builder
class PipelinedFrontBuilder(MachineBuilder):
    """``num_pipelines`` FRONT machines, each drawing from its own child sampler."""

    family = "pipelined-front"
    params_type = PipelinedFrontParams

    def __init__(self, params, sampler=None):
        super().__init__(params, sampler)
        self.pipeline_builders: List[FrontBuilder] = []

    def build_graphs(self) -> List[StateGraph]:
        children = self.sampler.spawn(self.params.num_pipelines)
        self.pipeline_builders = [
            FrontBuilder(self.params.front, child, label=f"pipeline-{number}")
            for number, child in enumerate(children)
        ]
        graphs = []
        for builder in self.pipeline_builders:
            graph = builder.build_graphs()[0]
            graph.family = self.family
            graphs.append(graph)
        logger.debug(
            f"Pipeline scales: {', '.join(f'{b.scale:.1f}us' for b in self.pipeline_builders)}"
        )
        return graphs

    def package(self, machines: Tuple[Machine, ...]) -> PipelinedMachine:
        return PipelinedMachine(self.family, self.params.as_dict(), machines)
