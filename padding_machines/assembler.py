#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Machine assembler: index assignment, probability normalization and
structural validation of builder output.
"""

import math
import logging
from collections import deque
from typing import Any, Dict, List, Mapping, Optional

from .errors import DegenerateDistributionError, StructuralError
from .graph import END, NOP, StateGraph
from .machine import EVENT_ORDER, Event, Machine, State, Transition

logger = logging.getLogger(__name__)

# Largest deviation from 1.0 that is treated as floating-point drift
DRIFT_TOLERANCE = 1e-6

# Tolerance for an assembled machine's probability sums
SUM_TOLERANCE = 1e-9


def _normalize(state: str, event: Event, targets: Mapping[str, float],
               index: Mapping[str, int]) -> List[Transition]:
    for target, weight in targets.items():
        if target not in index:
            raise StructuralError(f"{event.value} references unknown state {target!r}", state)
        if not math.isfinite(weight) or weight < 0:
            raise StructuralError(f"{event.value} -> {target!r} has invalid weight {weight}", state)

    total = math.fsum(targets.values())
    if total <= 0:
        raise StructuralError(f"{event.value} carries no probability mass", state)
    if abs(total - 1.0) > DRIFT_TOLERANCE:
        raise StructuralError(f"{event.value} probabilities sum to {total}, not 1", state)

    ordered = sorted(targets.items(), key=lambda item: index[item[0]])
    return [
        Transition(event, index[target], weight / total)
        for target, weight in ordered
        if weight > 0
    ]


def assemble(graph: StateGraph, params: Optional[Mapping[str, Any]] = None) -> Machine:
    """
    Turn a builder graph into a validated, immutable Machine.

    Args:
        graph: Graph produced by a family builder
        params: Provenance parameters recorded on the machine

    Returns:
        Machine with contiguous indices, start state at index 0

    Raises:
        StructuralError: dangling targets, bad or missing probability mass,
            unreachable states, invalid distributions
    """
    if graph.start is None or not len(graph):
        raise StructuralError(f"{graph.family}/{graph.label} graph has no states")

    order = [graph.start] + [name for name in graph.nodes if name != graph.start]
    index: Dict[str, int] = {name: position for position, name in enumerate(order)}
    index[NOP] = len(order)
    index[END] = len(order) + 1

    states = []
    for name in order:
        node = graph.node(name)
        transitions: List[Transition] = []
        for event in sorted(node.transitions, key=EVENT_ORDER.get):
            transitions.extend(_normalize(name, event, node.transitions[event], index))

        try:
            node.timeout.validate(f"{name}.timeout")
            node.action.validate(f"{name}.action")
            if node.limit is not None:
                node.limit.validate(f"{name}.limit")
        except DegenerateDistributionError as e:
            raise StructuralError(str(e), name) from e

        states.append(State(
            index=index[name],
            name=name,
            timeout=node.timeout,
            action=node.action,
            limit=node.limit,
            action_is_block=node.action_is_block,
            bypass=node.bypass,
            replace=node.replace,
            limit_includes_nonpadding=node.limit_includes_nonpadding,
            transitions=tuple(transitions),
        ))

    machine = Machine(
        family=graph.family,
        label=graph.label,
        states=tuple(states),
        params=dict(params or {}),
        allowed_padding_bytes=graph.allowed_padding_bytes,
        max_padding_frac=graph.max_padding_frac,
        allowed_blocked_microsec=graph.allowed_blocked_microsec,
        max_blocking_frac=graph.max_blocking_frac,
        include_small_packets=graph.include_small_packets,
    )
    validate_machine(machine)
    logger.debug(f"Assembled {graph.family}/{graph.label}: {len(machine)} states")
    return machine


def validate_machine(machine: Machine) -> Machine:
    """
    Structural checks on an already indexed machine.

    Raises:
        StructuralError: on any violated invariant
    """
    if not machine.states:
        raise StructuralError(f"{machine.family}/{machine.label} has no states")

    for position, state in enumerate(machine.states):
        if state.index != position:
            raise StructuralError(f"index {state.index} stored at position {position}", state.name)

        sums: Dict[Event, float] = {}
        for transition in state.transitions:
            if not 0 <= transition.target <= machine.end_index:
                raise StructuralError(
                    f"{transition.event.value} references missing state {transition.target}", state.name
                )
            if not math.isfinite(transition.probability) or transition.probability < 0:
                raise StructuralError(
                    f"{transition.event.value} has invalid probability {transition.probability}", state.name
                )
            sums[transition.event] = sums.get(transition.event, 0.0) + transition.probability

        for event, total in sums.items():
            if abs(total - 1.0) > SUM_TOLERANCE:
                raise StructuralError(f"{event.value} probabilities sum to {total}", state.name)

        if state.limit is not None and state.limit.param1 < 0:
            raise StructuralError("negative limit", state.name)

    # Every state must be reachable from the start state
    seen = {0}
    queue = deque([0])
    while queue:
        for successor in machine.successors(queue.popleft()):
            if successor not in seen:
                seen.add(successor)
                queue.append(successor)
    unreachable = [s.name for s in machine.states if s.index not in seen]
    if unreachable:
        raise StructuralError(f"{machine.family}/{machine.label} has unreachable states: {unreachable}")

    return machine
