#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Exception hierarchy for machine generation
"""

from typing import Any, Optional


class MachineError(Exception):
    """Base class for all machine generation failures."""


class InvalidParameterError(MachineError, ValueError):
    """A parameter set field is outside its declared domain."""

    def __init__(self, family: str, parameter: str, value: Any, reason: str):
        self.family = family
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"{family}: invalid {parameter}={value!r}: {reason}")


class DegenerateDistributionError(MachineError, ValueError):
    """A distribution was shaped from non-finite or contradictory inputs."""


class StructuralError(MachineError):
    """The assembled state graph is inconsistent (builder defect)."""

    def __init__(self, message: str, state: Optional[str] = None):
        self.state = state
        if state is not None:
            message = f"state {state!r}: {message}"
        super().__init__(message)


class TraceLoadError(MachineError):
    """A reference trace could not be read or parsed."""

    def __init__(self, source: str, message: str, line: Optional[int] = None):
        self.source = source
        self.line = line
        location = f"{source}:{line}" if line is not None else source
        super().__init__(f"{location}: {message}")


class SerializationError(MachineError, ValueError):
    """An encoded machine could not be decoded."""
