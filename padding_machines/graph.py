#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Mutable state graph with named states, filled in by the family builders
and turned into a Machine by the assembler.
"""

from typing import Dict, Iterator, Optional

from .dist import Dist
from .machine import Event, U64_MAX

# Special targets, resolved to framework indices at assembly
END = "<end>"
NOP = "<nop>"


class StateNode:
    """One named state under construction."""

    def __init__(self, name: str, timeout: Optional[Dist] = None, action: Optional[Dist] = None,
                 limit: Optional[Dist] = None, action_is_block: bool = False,
                 bypass: bool = False, replace: bool = False,
                 limit_includes_nonpadding: bool = False):
        self.name = name
        self.timeout = timeout or Dist.none()
        self.action = action or Dist.none()
        self.limit = limit
        self.action_is_block = action_is_block
        self.bypass = bypass
        self.replace = replace
        self.limit_includes_nonpadding = limit_includes_nonpadding
        self.transitions: Dict[Event, Dict[str, float]] = {}

    def on(self, event: Event, target: str, weight: float = 1.0) -> "StateNode":
        """
        Add probability mass for ``event`` moving to ``target``.

        Args:
            event: Triggering event
            target: State name, END or NOP
            weight: Probability weight (accumulates for repeated targets)

        Returns:
            The node itself, for chaining
        """
        targets = self.transitions.setdefault(event, {})
        targets[target] = targets.get(target, 0.0) + weight
        return self

    def __repr__(self) -> str:
        return f"StateNode({self.name!r}, events={[e.value for e in self.transitions]})"


class StateGraph:
    """Ordered collection of named states plus machine-level budgets."""

    def __init__(self, family: str, label: str, allowed_padding_bytes: int = U64_MAX,
                 max_padding_frac: float = 0.0, allowed_blocked_microsec: int = 0,
                 max_blocking_frac: float = 0.0, include_small_packets: bool = False):
        self.family = family
        self.label = label
        self.start: Optional[str] = None
        self.nodes: Dict[str, StateNode] = {}
        self.allowed_padding_bytes = allowed_padding_bytes
        self.max_padding_frac = max_padding_frac
        self.allowed_blocked_microsec = allowed_blocked_microsec
        self.max_blocking_frac = max_blocking_frac
        self.include_small_packets = include_small_packets

    def add_state(self, name: str, **attributes) -> StateNode:
        """Create a state; the first state added is the start state."""
        if name in (END, NOP):
            raise ValueError(f"{name!r} is a reserved target name")
        if name in self.nodes:
            raise ValueError(f"duplicate state name {name!r}")
        node = StateNode(name, **attributes)
        self.nodes[name] = node
        if self.start is None:
            self.start = name
        return node

    def node(self, name: str) -> StateNode:
        return self.nodes[name]

    def __contains__(self, name: str) -> bool:
        return name in self.nodes

    def __iter__(self) -> Iterator[StateNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)
