"""
Stochastic Runge-Kutta Integrator
=================================

Fixed step, explicit 4-stage SRK4 scheme for an SDE with additive noise on a
single variable.

Storage: one preallocated (n_variables, 5) array. Row j is the stage buffer
of variable j:

    [current, y1, y2, y3, y4]

Stage i evaluates the right-hand side at slot i-1 and writes

    y_i = current + A[i-1] * dt * f(slot i-1),    A = (0.5, 0.5, 1, 1)

so stage 1 is evaluated at the current state and stages 2-4 at the previous
stage value. After the fourth stage all five slots are combined with the
weights (-3, 2, 4, 2, 1) / 6, which equals the classical

    current + (k1 + 2 k2 + 2 k3 + k4) / 6,    k_i = dt * f_i

The noise increment scale * sqrt(dt) * xi is drawn once per step, before the
stages, and added to the noise-bearing variable after the combination. Stage
evaluations never see it. The alternative form of the scheme feeds a pair of
correlated draws into the first two stages with stage noise coefficients
B = (0.75, 0.75, 0, 0); it is not used here.

Slots 1-4 are stale between steps; only the combination reads them.
"""

import numpy as np
from typing import Callable, Optional

import logging

from .noise import NoiseSource, GaussianNoise

logger = logging.getLogger(__name__)

# Stage coefficients
A = (0.5, 0.5, 1.0, 1.0)

# Combination weights over [current, y1, y2, y3, y4], in units of 1/6
WEIGHTS = np.array([-3.0, 2.0, 4.0, 2.0, 1.0])

N_SLOTS = 5


def combine(buffers: np.ndarray) -> np.ndarray:
    """
    Fold stage buffers into the new current values

    Args:
        buffers: Array of shape (n, 5) or a single 5-slot buffer

    Returns:
        The deterministic update (-3 y0 + 2 y1 + 4 y2 + 2 y3 + y4) / 6
    """
    return (buffers @ WEIGHTS) / 6.0


class SRK4Integrator:
    """
    Owns the stage buffers and advances them one step at a time

    Args:
        rhs: Callable mapping a state vector to its time derivative
        initial: Initial current values, one per variable
        dt: Fixed step size (ms)
        noise: Standard-normal source (default: unseeded GaussianNoise)
        noise_index: Row receiving the stochastic term (None: no noise)
        noise_scale: Amplitude of the stochastic term
    """

    def __init__(self, rhs: Callable[[np.ndarray], np.ndarray],
                 initial: np.ndarray, dt: float,
                 noise: Optional[NoiseSource] = None,
                 noise_index: Optional[int] = None,
                 noise_scale: float = 0.0):
        if dt <= 0:
            raise ValueError(f"Step size must be positive, got dt={dt}")

        initial = np.asarray(initial, dtype=float)
        self.rhs = rhs
        self.dt = float(dt)
        self.sqrt_dt = np.sqrt(self.dt)
        self.noise = noise if noise is not None else GaussianNoise()
        self.noise_index = noise_index
        self.noise_scale = float(noise_scale)

        self.buffers = np.zeros((initial.size, N_SLOTS))
        self.buffers[:, 0] = initial

        # Noise increment of the most recent step
        self.last_increment = 0.0

    @property
    def current(self) -> np.ndarray:
        """View of the current values (slot 0)"""
        return self.buffers[:, 0]

    def buffer(self, index: int) -> np.ndarray:
        """View of one variable's 5-slot stage buffer"""
        return self.buffers[index]

    def noise_increment(self) -> float:
        """Draw the stochastic increment for the next step"""
        xi = self.noise.standard_normal()
        return self.noise_scale * self.sqrt_dt * xi

    def step(self) -> None:
        """Advance all variables by one step of size dt"""
        # === STEP 1: NOISE ===
        increment = self.noise_increment()

        # === STEP 2: STAGES ===
        b = self.buffers
        y0 = b[:, 0]
        for i in range(4):
            f = self.rhs(b[:, i])
            b[:, i + 1] = y0 + A[i] * self.dt * f

        # === STEP 3: COMBINATION ===
        new = combine(b)
        if self.noise_index is not None:
            new[self.noise_index] += increment

        # === STEP 4: COMMIT ===
        b[:, 0] = new
        self.last_increment = increment

    def reset(self, initial: np.ndarray) -> None:
        """Replace the current values and clear the stage slots"""
        self.buffers[:] = 0.0
        self.buffers[:, 0] = np.asarray(initial, dtype=float)
        self.last_increment = 0.0
