#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Canonical, immutable machine description handed to the emitter
"""

from enum import Enum
from types import MappingProxyType
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from .dist import Dist

U64_MAX = 2 ** 64 - 1


class Event(Enum):
    """Events that trigger transitions in the execution framework"""
    NON_PADDING_RECV = "NonPaddingRecv"
    PADDING_RECV = "PaddingRecv"
    NON_PADDING_SENT = "NonPaddingSent"
    PADDING_SENT = "PaddingSent"
    BLOCKING_BEGIN = "BlockingBegin"
    BLOCKING_END = "BlockingEnd"
    LIMIT_REACHED = "LimitReached"
    UPDATE_MTU = "UpdateMTU"


# Canonical event order used for emission
EVENT_ORDER = {event: position for position, event in enumerate(Event)}


@dataclass(frozen=True)
class Transition:
    event: Event
    target: int          # state index, or Machine.nop_index / Machine.end_index
    probability: float


@dataclass(frozen=True)
class State:
    index: int
    name: str
    timeout: Dist = field(default_factory=Dist)
    action: Dist = field(default_factory=Dist)
    limit: Optional[Dist] = None
    action_is_block: bool = False
    bypass: bool = False
    replace: bool = False
    limit_includes_nonpadding: bool = False
    transitions: Tuple[Transition, ...] = ()

    def transitions_for(self, event: Event) -> Dict[int, float]:
        """Target -> probability for one event (empty if the event is ignored)."""
        return {t.target: t.probability for t in self.transitions if t.event is event}

    @property
    def events(self) -> List[Event]:
        seen = []
        for transition in self.transitions:
            if transition.event not in seen:
                seen.append(transition.event)
        return seen


@dataclass(frozen=True)
class Machine:
    """
    Ordered states with normalized transitions plus provenance metadata.
    State 0 is the start state.
    """
    family: str
    label: str
    states: Tuple[State, ...]
    params: Mapping[str, Any] = field(default_factory=dict)
    allowed_padding_bytes: int = U64_MAX
    max_padding_frac: float = 0.0
    allowed_blocked_microsec: int = 0
    max_blocking_frac: float = 0.0
    include_small_packets: bool = False

    def __post_init__(self):
        # read-only view over a private copy
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __len__(self) -> int:
        return len(self.states)

    @property
    def nop_index(self) -> int:
        """Special target: no transition happens."""
        return len(self.states)

    @property
    def end_index(self) -> int:
        """Special target: the machine stops."""
        return len(self.states) + 1

    def is_special(self, target: int) -> bool:
        return target in (self.nop_index, self.end_index)

    def state(self, name: str) -> State:
        for state in self.states:
            if state.name == name:
                return state
        raise KeyError(name)

    def successors(self, index: int) -> Set[int]:
        """Real states reachable in one transition from ``index``."""
        return {
            t.target for t in self.states[index].transitions
            if t.probability > 0 and not self.is_special(t.target)
        }


@dataclass(frozen=True)
class MachineSet:
    """All machines produced by one builder invocation, in emission order."""
    family: str
    params: Mapping[str, Any]
    machines: Tuple[Machine, ...]

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __iter__(self) -> Iterator[Machine]:
        return iter(self.machines)

    def __len__(self) -> int:
        return len(self.machines)

    @property
    def labels(self) -> List[str]:
        return [m.label for m in self.machines]

    def get(self, label: str) -> Machine:
        for machine in self.machines:
            if machine.label == label:
                return machine
        raise KeyError(label)

    @property
    def machine(self) -> Machine:
        """The only machine of a single-machine set."""
        if len(self.machines) != 1:
            raise ValueError(f"{self.family} produced {len(self.machines)} machines")
        return self.machines[0]
