#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Padding machine generators for FRONT, pipelined FRONT, RegulaTor and Surakav
"""

from .builder import BUILDERS, MachineBuilder, get_builder
from .dist import Dist, DistType, Sampler
from .emitter import deserialize, emit, serialize
from .errors import (
    DegenerateDistributionError, InvalidParameterError, MachineError,
    SerializationError, StructuralError, TraceLoadError,
)
from .front import FrontBuilder
from .machine import Event, Machine, MachineSet, State, Transition
from .params import FrontParams, PipelinedFrontParams, RegulatorParams, SurakavParams
from .pipelined_front import PipelinedFrontBuilder, PipelinedMachine
from .regulator import RegulatorBuilder
from .surakav import SurakavBuilder

__all__ = [
    'BUILDERS',
    'MachineBuilder',
    'get_builder',
    'Dist',
    'DistType',
    'Sampler',
    'serialize',
    'deserialize',
    'emit',
    'MachineError',
    'InvalidParameterError',
    'DegenerateDistributionError',
    'StructuralError',
    'TraceLoadError',
    'SerializationError',
    'Event',
    'Machine',
    'MachineSet',
    'State',
    'Transition',
    'FrontParams',
    'PipelinedFrontParams',
    'RegulatorParams',
    'SurakavParams',
    'FrontBuilder',
    'PipelinedFrontBuilder',
    'PipelinedMachine',
    'RegulatorBuilder',
    'SurakavBuilder'
]

__version__ = '1.0.0'
