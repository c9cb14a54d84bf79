"""
Noise Sources
=============

Standard-normal random streams driving the stochastic term of the column.

Every column owns exactly one stream. Draws are strictly ordered, so a fixed
seed reproduces the same trajectory.
"""

import numpy as np
from typing import Protocol, Sequence, Union, runtime_checkable

import logging

logger = logging.getLogger(__name__)

# Anything numpy.random.default_rng accepts as a seed
Seed = Union[int, np.random.SeedSequence, None]


@runtime_checkable
class NoiseSource(Protocol):
    """Anything that produces the next N(0, 1) sample"""

    def standard_normal(self) -> float:
        ...


class GaussianNoise:
    """
    I.i.d. standard-normal samples from numpy's default generator

    Args:
        seed: Integer or SeedSequence for numpy.random.default_rng
            (None draws fresh entropy)
    """

    def __init__(self, seed: Seed = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def standard_normal(self) -> float:
        return float(self.rng.standard_normal())

    def __repr__(self) -> str:
        return f"GaussianNoise(seed={self.seed})"


class FixedSequenceNoise:
    """
    Deterministic stand-in for GaussianNoise

    Cycles through a fixed list of values. Used to test the integration
    scheme independently of randomness and to replay recorded noise.
    """

    def __init__(self, values: Sequence[float]):
        if len(values) == 0:
            raise ValueError("FixedSequenceNoise needs at least one value")
        self.values = [float(v) for v in values]
        self.n_draws = 0

    def standard_normal(self) -> float:
        value = self.values[self.n_draws % len(self.values)]
        self.n_draws += 1
        return value

    def __repr__(self) -> str:
        return f"FixedSequenceNoise({self.values!r})"
