#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright © 2025 kogeler
# SPDX-License-Identifier: Apache-2.0

"""
Distribution descriptors and the seeded random source used by the builders.

A ``Dist`` is the closed-form parameter tuple embedded in a machine state;
the external framework samples it at runtime. ``Sampler`` draws concrete
values when a builder needs one at construction time.
"""

import math
import logging
from enum import Enum
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import numpy as np
from scipy import stats

from .errors import DegenerateDistributionError

logger = logging.getLogger(__name__)

# CDF mass at which a Rayleigh window is cut off, a bit more than six
# standard deviations.
RAYLEIGH_HORIZON_MASS = 0.9996645373720975


class DistType(Enum):
    """Distribution kinds understood by the execution framework."""
    NONE = "None"
    UNIFORM = "Uniform"
    NORMAL = "Normal"
    LOGNORMAL = "LogNormal"
    BINOMIAL = "Binomial"
    GEOMETRIC = "Geometric"
    PARETO = "Pareto"
    POISSON = "Poisson"
    WEIBULL = "Weibull"
    GAMMA = "Gamma"
    BETA = "Beta"


def _positive(value: float) -> bool:
    return math.isfinite(value) and value > 0


# Per-kind shape checks on (param1, param2)
_SHAPE_RULES = {
    DistType.NONE: (lambda p1, p2: True, "no shape"),
    DistType.UNIFORM: (lambda p1, p2: 0 <= p1 <= p2, "requires 0 <= param1 <= param2"),
    DistType.NORMAL: (lambda p1, p2: math.isfinite(p1) and p1 >= 0 and _positive(p2),
                      "requires a non-negative mean and a positive stdev"),
    DistType.LOGNORMAL: (lambda p1, p2: math.isfinite(p1) and _positive(p2),
                         "requires a finite mu and a positive sigma"),
    DistType.BINOMIAL: (lambda p1, p2: p1 >= 0 and float(p1).is_integer() and 0 <= p2 <= 1,
                        "requires an integral trial count and 0 <= p <= 1"),
    DistType.GEOMETRIC: (lambda p1, p2: 0 < p1 <= 1, "requires 0 < p <= 1"),
    DistType.PARETO: (lambda p1, p2: _positive(p1) and _positive(p2),
                      "requires a positive scale and shape"),
    DistType.POISSON: (lambda p1, p2: math.isfinite(p1) and p1 >= 0,
                       "requires a non-negative lambda"),
    DistType.WEIBULL: (lambda p1, p2: _positive(p1) and _positive(p2),
                       "requires a positive scale and shape"),
    DistType.GAMMA: (lambda p1, p2: _positive(p1) and _positive(p2),
                     "requires a positive scale and shape"),
    DistType.BETA: (lambda p1, p2: _positive(p1) and _positive(p2),
                    "requires positive alpha and beta"),
}


@dataclass(frozen=True)
class Dist:
    """
    Closed-form distribution descriptor.

    Samples are clamped at zero, capped at ``max`` when ``max`` > 0 and then
    shifted by ``start``.
    """
    dist: DistType = DistType.NONE
    param1: float = 0.0
    param2: float = 0.0
    start: float = 0.0
    max: float = 0.0

    @classmethod
    def none(cls) -> "Dist":
        return cls()

    @classmethod
    def fixed(cls, value: float) -> "Dist":
        """Degenerate uniform distribution that always yields ``value``."""
        return cls(DistType.UNIFORM, float(value), float(value))

    @classmethod
    def uniform(cls, low: float, high: float) -> "Dist":
        return cls(DistType.UNIFORM, float(low), float(high))

    @classmethod
    def normal(cls, mean: float, stdev: float, start: float = 0.0, max: float = 0.0) -> "Dist":
        return cls(DistType.NORMAL, float(mean), float(stdev), float(start), float(max))

    @classmethod
    def forever(cls) -> "Dist":
        """Infinite duration, used by block actions that never expire."""
        return cls.fixed(math.inf)

    @property
    def is_forever(self) -> bool:
        return self.dist is DistType.UNIFORM and self.param1 == math.inf and self.param2 == math.inf

    def validate(self, context: str = "") -> "Dist":
        """
        Check the descriptor is well formed.

        Args:
            context: Prefix for the error message (e.g. state and field)

        Returns:
            The descriptor itself, for chaining

        Raises:
            DegenerateDistributionError: on NaN, misplaced infinity or bad shape
        """
        prefix = f"{context}: " if context else ""
        values = (self.param1, self.param2, self.start, self.max)
        if any(math.isnan(v) for v in values):
            raise DegenerateDistributionError(f"{prefix}{self.dist.value} has a NaN parameter")
        if not (math.isfinite(self.start) and math.isfinite(self.max)):
            raise DegenerateDistributionError(f"{prefix}start and max must be finite")
        if self.start < 0 or self.max < 0:
            raise DegenerateDistributionError(f"{prefix}start and max must be non-negative")
        if self.is_forever:
            return self
        if not (math.isfinite(self.param1) and math.isfinite(self.param2)):
            raise DegenerateDistributionError(
                f"{prefix}{self.dist.value}({self.param1}, {self.param2}) has a non-finite parameter"
            )
        check, requirement = _SHAPE_RULES[self.dist]
        if not check(self.param1, self.param2):
            raise DegenerateDistributionError(
                f"{prefix}{self.dist.value}({self.param1}, {self.param2}) {requirement}"
            )
        return self


class Sampler:
    """
    Seeded random source backed by a numpy Generator.

    One instance is created per invocation and handed to the builder.
    Parallel units get their own child via ``spawn`` instead of sharing it.
    """

    def __init__(self, seed: Optional[int] = None,
                 seed_sequence: Optional[np.random.SeedSequence] = None):
        """
        Args:
            seed: Non-negative integer seed; None draws fresh OS entropy
            seed_sequence: Explicit seed sequence (used for spawned children)
        """
        if seed_sequence is None:
            seed_sequence = np.random.SeedSequence(seed)
        self.seed_sequence = seed_sequence
        self.rng = np.random.default_rng(seed_sequence)
        self.draws = 0

    def spawn(self, count: int) -> List["Sampler"]:
        """Return ``count`` independent child samplers."""
        if count < 1:
            raise ValueError(f"cannot spawn {count} samplers")
        return [Sampler(seed_sequence=child) for child in self.seed_sequence.spawn(count)]

    def uniform(self, low: float, high: float) -> float:
        """
        Draw one value from [low, high).

        A zero-width range returns ``low`` without consuming entropy.
        """
        if not (math.isfinite(low) and math.isfinite(high)):
            raise DegenerateDistributionError(f"uniform range [{low}, {high}] is not finite")
        if low > high:
            raise DegenerateDistributionError(f"uniform range [{low}, {high}] is inverted")
        if low == high:
            return float(low)
        self.draws += 1
        return float(self.rng.uniform(low, high))

    def draw(self, dist: Dist) -> float:
        """Draw a concrete value from a validated descriptor."""
        dist.validate()
        p1, p2 = dist.param1, dist.param2
        kind = dist.dist

        if kind is DistType.NONE:
            return dist.start
        if kind is DistType.UNIFORM and p1 == p2:
            value = p1
        else:
            self.draws += 1
            if kind is DistType.UNIFORM:
                value = self.rng.uniform(p1, p2)
            elif kind is DistType.NORMAL:
                value = self.rng.normal(p1, p2)
            elif kind is DistType.LOGNORMAL:
                value = self.rng.lognormal(p1, p2)
            elif kind is DistType.BINOMIAL:
                value = self.rng.binomial(int(p1), p2)
            elif kind is DistType.GEOMETRIC:
                value = self.rng.geometric(p1)
            elif kind is DistType.PARETO:
                # numpy samples the Lomax form; shift and scale to Pareto(scale, shape)
                value = (self.rng.pareto(p2) + 1.0) * p1
            elif kind is DistType.POISSON:
                value = self.rng.poisson(p1)
            elif kind is DistType.WEIBULL:
                value = p1 * self.rng.weibull(p2)
            elif kind is DistType.GAMMA:
                value = self.rng.gamma(p2, p1)
            else:
                value = self.rng.beta(p1, p2)

        value = max(0.0, float(value))
        if dist.max > 0:
            value = min(value, dist.max)
        return dist.start + value


def rayleigh_cdf(t: float, scale: float) -> float:
    """Cumulative distribution function of the Rayleigh distribution."""
    return float(stats.rayleigh.cdf(t, scale=scale))


def rayleigh_ppf(mass: float, scale: float) -> float:
    """Inverse CDF of the Rayleigh distribution."""
    return float(stats.rayleigh.ppf(mass, scale=scale))


def rayleigh_horizon(scale: float) -> float:
    """Time at which a Rayleigh window of the given scale is considered over."""
    if not _positive(scale):
        raise DegenerateDistributionError(f"Rayleigh scale {scale} must be positive and finite")
    return rayleigh_ppf(RAYLEIGH_HORIZON_MASS, scale)


class EmpiricalDistribution:
    """Summary of observed samples (e.g. inter-event times of one burst)."""

    def __init__(self, samples: Iterable[float]):
        self.samples = np.asarray(list(samples), dtype=float)
        if self.samples.size and not np.all(np.isfinite(self.samples)):
            raise DegenerateDistributionError("empirical samples must be finite")
        if self.samples.size and np.any(self.samples < 0):
            raise DegenerateDistributionError("empirical samples must be non-negative")

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def mean(self) -> float:
        return float(self.samples.mean()) if self.samples.size else 0.0

    @property
    def bounds(self) -> Tuple[float, float]:
        if not self.samples.size:
            return 0.0, 0.0
        return float(self.samples.min()), float(self.samples.max())

    def to_dist(self, fallback: Dist) -> Dist:
        """
        Closed-form descriptor covering the observed range.

        Args:
            fallback: Descriptor used when there are no samples or all of
                them are zero

        Returns:
            Uniform(min, max) of the samples, or ``fallback``
        """
        if not self.samples.size or not np.any(self.samples):
            return fallback
        low, high = self.bounds
        return Dist.uniform(low, high)
