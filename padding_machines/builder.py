#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Common machine builder capability shared by all defense families
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple, Type

from .assembler import assemble
from .dist import Dist, Sampler
from .errors import InvalidParameterError
from .graph import StateGraph, StateNode
from .machine import Event, Machine, MachineSet

logger = logging.getLogger(__name__)

TOR_CELL_SIZE = 512.0
MICROSECONDS = 1000000.0

BUILDERS: Dict[str, Type["MachineBuilder"]] = {}


def register_builder(cls: Type["MachineBuilder"]) -> Type["MachineBuilder"]:
    BUILDERS[cls.family] = cls
    return cls


def get_builder(family: str) -> Type["MachineBuilder"]:
    try:
        return BUILDERS[family]
    except KeyError:
        raise InvalidParameterError("builder", "family", family, f"must be one of {sorted(BUILDERS)}")


def cell_action() -> Dist:
    """Padding action: one fixed-size cell."""
    return Dist.fixed(TOR_CELL_SIZE)


def add_start_state(graph: StateGraph, targets: Sequence[Tuple[str, float]],
                    events: Sequence[Event] = (Event.NON_PADDING_SENT, Event.NON_PADDING_RECV),
                    name: str = "start") -> StateNode:
    """Idle start state that leaves on the first real traffic."""
    node = graph.add_state(name)
    for event in events:
        for target, weight in targets:
            node.on(event, target, weight)
    return node


def add_block_state(graph: StateGraph, target: str, name: str = "block") -> StateNode:
    """State that starts an endless block and moves on once blocking begins."""
    node = graph.add_state(
        name,
        timeout=Dist.fixed(0.0),
        action=Dist.forever(),
        action_is_block=True,
        bypass=True,
        replace=True,
    )
    node.on(Event.BLOCKING_BEGIN, target)
    return node


class MachineBuilder(ABC):
    """
    Turns one family's parameter set into assembled machines.

    Parameters are validated on construction, before any graph is built.
    """

    family = ""
    params_type: type = object

    def __init__(self, params, sampler: Optional[Sampler] = None):
        if not isinstance(params, self.params_type):
            raise InvalidParameterError(
                self.family, "params", type(params).__name__, f"expected {self.params_type.__name__}"
            )
        self.params = params.validate()
        self.sampler = sampler if sampler is not None else Sampler()

    @abstractmethod
    def build_graphs(self) -> List[StateGraph]:
        """Construct the family's state graphs, in emission order."""

    def build(self) -> MachineSet:
        """Build, assemble and package all machines of this family."""
        provenance = self.params.as_dict()
        machines = tuple(assemble(graph, provenance) for graph in self.build_graphs())
        logger.debug(
            f"{self.family}: built {len(machines)} machine(s) "
            f"({', '.join(f'{m.label}={len(m)}' for m in machines)} states)"
        )
        return self.package(machines)

    def package(self, machines: Tuple[Machine, ...]) -> MachineSet:
        return MachineSet(self.family, self.params.as_dict(), machines)
