#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Machine serialization.

A machine is encoded as a two-digit format version followed by the base64
form of its zlib-compressed canonical JSON. The encoding is a pure function
of the machine, so the same machine always produces the same string.
"""

import json
import zlib
import base64
import binascii
import logging
from typing import Any, Dict, List, Optional, TextIO

from .assembler import validate_machine
from .dist import Dist, DistType
from .errors import DegenerateDistributionError, SerializationError, StructuralError
from .machine import EVENT_ORDER, Event, Machine, MachineSet, State, Transition

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
OUTPUT_FORMATS = ("text", "json")


def _dist_to_dict(dist: Dist) -> Dict[str, Any]:
    return {
        "dist": dist.dist.value,
        "param1": dist.param1,
        "param2": dist.param2,
        "start": dist.start,
        "max": dist.max,
    }


def _dist_from_dict(data: Dict[str, Any]) -> Dist:
    return Dist(
        DistType(data["dist"]),
        float(data["param1"]),
        float(data["param2"]),
        float(data["start"]),
        float(data["max"]),
    )


def _state_to_dict(state: State) -> Dict[str, Any]:
    transitions: Dict[str, List[List[Any]]] = {}
    for transition in state.transitions:
        transitions.setdefault(transition.event.value, []).append(
            [transition.target, transition.probability]
        )
    return {
        "name": state.name,
        "timeout": _dist_to_dict(state.timeout),
        "action": _dist_to_dict(state.action),
        "limit": _dist_to_dict(state.limit) if state.limit is not None else None,
        "action_is_block": state.action_is_block,
        "bypass": state.bypass,
        "replace": state.replace,
        "limit_includes_nonpadding": state.limit_includes_nonpadding,
        "transitions": transitions,
    }


def _state_from_dict(index: int, data: Dict[str, Any]) -> State:
    events = sorted((Event(name) for name in data["transitions"]), key=EVENT_ORDER.get)
    transitions = tuple(
        Transition(event, int(target), float(probability))
        for event in events
        for target, probability in data["transitions"][event.value]
    )
    limit: Optional[Dist] = None
    if data["limit"] is not None:
        limit = _dist_from_dict(data["limit"])
    return State(
        index=index,
        name=data["name"],
        timeout=_dist_from_dict(data["timeout"]),
        action=_dist_from_dict(data["action"]),
        limit=limit,
        action_is_block=bool(data["action_is_block"]),
        bypass=bool(data["bypass"]),
        replace=bool(data["replace"]),
        limit_includes_nonpadding=bool(data["limit_includes_nonpadding"]),
        transitions=transitions,
    )


def to_dict(machine: Machine) -> Dict[str, Any]:
    """Canonical dictionary form of a machine."""
    return {
        "family": machine.family,
        "label": machine.label,
        "params": dict(machine.params),
        "allowed_padding_bytes": machine.allowed_padding_bytes,
        "max_padding_frac": machine.max_padding_frac,
        "allowed_blocked_microsec": machine.allowed_blocked_microsec,
        "max_blocking_frac": machine.max_blocking_frac,
        "include_small_packets": machine.include_small_packets,
        "states": [_state_to_dict(state) for state in machine.states],
    }


def from_dict(data: Dict[str, Any]) -> Machine:
    """
    Rebuild a machine from its dictionary form.

    Raises:
        SerializationError: on missing fields or values of the wrong kind
    """
    try:
        states = tuple(_state_from_dict(i, state) for i, state in enumerate(data["states"]))
        machine = Machine(
            family=data["family"],
            label=data["label"],
            states=states,
            params=dict(data["params"]),
            allowed_padding_bytes=int(data["allowed_padding_bytes"]),
            max_padding_frac=float(data["max_padding_frac"]),
            allowed_blocked_microsec=int(data["allowed_blocked_microsec"]),
            max_blocking_frac=float(data["max_blocking_frac"]),
            include_small_packets=bool(data["include_small_packets"]),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"malformed machine description: {e!r}") from e

    try:
        for state in machine.states:
            state.timeout.validate(f"{state.name}.timeout")
            state.action.validate(f"{state.name}.action")
            if state.limit is not None:
                state.limit.validate(f"{state.name}.limit")
        validate_machine(machine)
    except (DegenerateDistributionError, StructuralError) as e:
        raise SerializationError(f"invalid machine: {e}") from e
    return machine


def _canonical_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


def serialize(machine: Machine) -> str:
    """Encode a machine into its compact string form."""
    payload = zlib.compress(_canonical_json(to_dict(machine)).encode("utf-8"), 9)
    return "%02d" % FORMAT_VERSION + base64.b64encode(payload).decode("ascii")


def deserialize(text: str) -> Machine:
    """
    Decode a string produced by ``serialize``.

    Raises:
        SerializationError: unknown version, corrupt payload or invalid machine
    """
    text = text.strip()
    version = text[:2]
    if not version.isdigit() or int(version) != FORMAT_VERSION:
        raise SerializationError(f"unsupported format version {version!r}, expected {FORMAT_VERSION:02d}")
    try:
        payload = zlib.decompress(base64.b64decode(text[2:], validate=True))
        data = json.loads(payload.decode("utf-8"))
    except (binascii.Error, zlib.error, UnicodeDecodeError, ValueError) as e:
        raise SerializationError(f"corrupt machine payload: {e}") from e
    if not isinstance(data, dict):
        raise SerializationError("machine payload is not an object")
    return from_dict(data)


def emit(machine_set: MachineSet, stream: TextIO, fmt: str = "text") -> None:
    """
    Write all machines of a set to ``stream``.

    Args:
        machine_set: Builder output
        stream: Text stream to write to
        fmt: "text" for one ``<label>: <encoded> (<length>)`` line per
            machine, "json" for a document with the canonical machine dicts
    """
    if fmt not in OUTPUT_FORMATS:
        raise ValueError(f"unknown output format {fmt!r}, expected one of {OUTPUT_FORMATS}")

    encoded = [(machine, serialize(machine)) for machine in machine_set]
    if fmt == "text":
        for machine, text in encoded:
            stream.write(f"{machine.label}: {text} ({len(text)})\n")
    else:
        document = {
            "family": machine_set.family,
            "params": dict(machine_set.params),
            "format_version": FORMAT_VERSION,
            "machines": [
                {"label": machine.label, "encoded": text, "machine": to_dict(machine)}
                for machine, text in encoded
            ],
        }
        stream.write(json.dumps(document, sort_keys=True, indent=2))
        stream.write("\n")
    logger.debug(f"Emitted {len(encoded)} {machine_set.family} machine(s) as {fmt}")
