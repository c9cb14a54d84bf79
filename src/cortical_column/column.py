"""
Cortical Column
===============

The simulated unit: pyramidal and interneuron populations coupled through
four PSP channels, with sodium-dependent adaptation of the pyramidal cells.

A column owns its stage buffers, its noise stream and its parameters. Other
code may:
- set the external input drive between steps (set_input)
- read the current values between steps (read_out)

and nothing else. Independent columns share no state and can run in
separate processes or threads.
"""

import numpy as np
from typing import Dict, Optional, Protocol, Sequence, Union, runtime_checkable

import logging

from .parameters import (
    ColumnParameters,
    STATE_VARIABLES,
    INDEX,
    initial_state,
)
from .model import derivatives, firing_rates, currents
from .noise import NoiseSource, GaussianNoise
from .integrator import SRK4Integrator

logger = logging.getLogger(__name__)


@runtime_checkable
class InputDrive(Protocol):
    """Capability handed to stimulation protocols: set the external input"""

    def set_input(self, value: float) -> None:
        ...


class CorticalColumn:
    """
    Two-population neural mass model advanced by a stochastic RK4 scheme

    Args:
        par: Either [sigma_p, g_KNa, dphi] or a full ColumnParameters
        dt: Fixed step size in ms
        noise: Standard-normal source (default: GaussianNoise(seed))
        seed: Seed for the default noise source
    """

    def __init__(self, par: Union[Sequence[float], ColumnParameters, None] = None,
                 dt: float = 0.1,
                 noise: Optional[NoiseSource] = None,
                 seed: Optional[int] = None):
        if par is None:
            self.params = ColumnParameters()
        elif isinstance(par, ColumnParameters):
            self.params = par
        else:
            self.params = ColumnParameters.from_sequence(par)

        self._input = 0.0
        self.n_steps = 0

        self.integrator = SRK4Integrator(
            rhs=self._rhs,
            initial=initial_state(self.params),
            dt=dt,
            noise=noise if noise is not None else GaussianNoise(seed),
            noise_index=INDEX['x_ep'],
            noise_scale=self.params.noise_scale,
        )

        logger.info(
            f"Initialized cortical column: sigma_p={self.params.sigma_p}, "
            f"g_KNa={self.params.g_KNa}, dphi={self.params.dphi}, dt={dt} ms"
        )

    def _rhs(self, y: np.ndarray) -> np.ndarray:
        return derivatives(y, self.params, self._input)

    # =========================================================================
    # STEPPING
    # =========================================================================

    def step(self) -> None:
        """Advance the column by one time step dt"""
        self.integrator.step()
        self.n_steps += 1

    def run(self, n_steps: int) -> None:
        """Advance n_steps steps with the current input held fixed"""
        for _ in range(n_steps):
            self.step()

    def reset(self) -> None:
        """Return to the resting state with zero input"""
        self.integrator.reset(initial_state(self.params))
        self._input = 0.0
        self.n_steps = 0

    # =========================================================================
    # EXTERNAL INPUT
    # =========================================================================

    def set_input(self, value: float) -> None:
        """Set the external drive read by the model during the next step"""
        self._input = float(value)

    @property
    def input(self) -> float:
        return self._input

    # =========================================================================
    # READ-OUT
    # =========================================================================

    @property
    def dt(self) -> float:
        return self.integrator.dt

    @property
    def time(self) -> float:
        """Simulated time in ms"""
        return self.n_steps * self.integrator.dt

    @property
    def noise(self) -> NoiseSource:
        return self.integrator.noise

    def read_out(self) -> Dict[str, float]:
        """Current value of every state variable, by name"""
        current = self.integrator.current
        return {name: float(current[i]) for i, name in enumerate(STATE_VARIABLES)}

    def state_vector(self) -> np.ndarray:
        """Copy of the current values in STATE_VARIABLES order"""
        return self.integrator.current.copy()

    def __getitem__(self, name: str) -> float:
        return float(self.integrator.current[INDEX[name]])

    def firing_rates(self) -> Dict[str, float]:
        return firing_rates(self.integrator.current, self.params)

    def currents(self) -> Dict[str, float]:
        return currents(self.integrator.current, self.params)

    def __repr__(self) -> str:
        return (f"CorticalColumn(sigma_p={self.params.sigma_p}, g_KNa={self.params.g_KNa}, "
                f"dphi={self.params.dphi}, dt={self.dt}, t={self.time:.1f} ms)")
