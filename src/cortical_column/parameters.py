"""
Cortical Column Parameters
==========================

Parameter set for the two-population (pyramidal / interneuron) neural mass
model of slow-wave sleep and K-complexes.

Three parameters select the dynamical regime and are passed at construction:
- sigma_p: gain of the pyramidal firing-rate sigmoid
- g_KNa:   conductance of the sodium-activated potassium current
- dphi:    amplitude of the background noise

Everything else is a fixed constant of the model. Constants can be overridden
per instance but never change during a simulation.

Units: time in ms, voltage in mV, concentration in mM, rates in ms^-1.

References:
- Weigenand A, Schellenberger Costa M, Ngo H-VV, Claussen JC, Martinetz T 2014
  "Characterization of K-Complexes and Slow Wave Activity in a Neural Mass
  Model" PLoS Comput Biol 10:e1003923
"""

import numpy as np
from dataclasses import dataclass, asdict
from typing import Dict, Sequence, Tuple

import logging

logger = logging.getLogger(__name__)


# Order of the dynamic variables inside the stage buffers
STATE_VARIABLES: Tuple[str, ...] = (
    'Vp',    # pyramidal membrane voltage
    'Vi',    # interneuron membrane voltage
    'Na',    # intracellular sodium concentration
    's_ep',  # PSP pyramidal -> pyramidal
    's_ei',  # PSP pyramidal -> interneuron
    's_gp',  # PSP interneuron -> pyramidal
    's_gi',  # PSP interneuron -> interneuron
    'x_ep',  # derivative of s_ep
    'x_ei',  # derivative of s_ei
    'x_gp',  # derivative of s_gp
    'x_gi',  # derivative of s_gi
)

N_VARIABLES = len(STATE_VARIABLES)
INDEX: Dict[str, int] = {name: i for i, name in enumerate(STATE_VARIABLES)}

# Names of the regime parameters, in the order of the construction list
FREE_PARAMETERS: Tuple[str, ...] = ('sigma_p', 'g_KNa', 'dphi')


@dataclass(frozen=True)
class ColumnParameters:
    """
    Complete parameter set of a cortical column

    The first three fields are the free parameters; all other fields are
    model constants with their published default values.
    """

    # === FREE PARAMETERS ===
    sigma_p: float = 4.0       # mV, pyramidal sigmoid gain
    g_KNa: float = 1.33        # mS/cm^2, KNa conductance
    dphi: float = 2.0          # ms^-1, noise amplitude

    # === MEMBRANE TIME CONSTANTS (ms) ===
    tau_p: float = 30.0
    tau_i: float = 30.0

    # === FIRING RATES ===
    Qp_max: float = 30e-3      # ms^-1
    Qi_max: float = 60e-3      # ms^-1
    theta_p: float = -58.5     # mV, half-activation
    theta_i: float = -58.5     # mV
    sigma_i: float = 6.0       # mV
    C1: float = np.pi / np.sqrt(3.0)  # logistic -> sigmoid gain scaling

    # === SODIUM DYNAMICS ===
    alpha_Na: float = 2.0      # mM ms, influx per spike
    tau_Na: float = 1.0        # ms
    R_pump: float = 0.09       # mM/ms, Na-K pump strength
    Na_eq: float = 9.5         # mM, equilibrium concentration
    pump_half: float = 15.0    # mM, pump half activation

    # KNa activation m(Na) = KNa_max / (1 + (KNa_half / Na)^KNa_hill)
    KNa_max: float = 0.37
    KNa_half: float = 38.7     # mM
    KNa_hill: float = 3.5

    # === SYNAPSES ===
    gamma_e: float = 70e-3     # ms^-1, AMPA PSP rate
    gamma_g: float = 58.6e-3   # ms^-1, GABA PSP rate
    g_L: float = 1.0
    g_AMPA: float = 1.0
    g_GABA: float = 1.0

    # === REVERSAL POTENTIALS (mV) ===
    E_AMPA: float = 0.0
    E_GABA: float = -70.0
    E_L_p: float = -66.0
    E_L_i: float = -64.0
    E_K: float = -100.0

    # === BACKGROUND NOISE ===
    mphi: float = 0.0          # ms^-1, mean rate

    # === CONNECTIVITY (dimensionless) ===
    N_pp: float = 120.0
    N_ip: float = 72.0
    N_pi: float = 90.0
    N_ii: float = 90.0

    @classmethod
    def from_sequence(cls, par: Sequence[float], **overrides) -> 'ColumnParameters':
        """
        Build parameters from the ordered list [sigma_p, g_KNa, dphi]

        Args:
            par: Three real values selecting the regime
            **overrides: Optional replacements for model constants

        Raises:
            ValueError: If par does not hold exactly three values
        """
        values = list(par)
        if len(values) != len(FREE_PARAMETERS):
            raise ValueError(
                f"Expected {len(FREE_PARAMETERS)} parameters {FREE_PARAMETERS}, "
                f"got {len(values)}"
            )
        free = {name: float(v) for name, v in zip(FREE_PARAMETERS, values)}
        free.update(overrides)
        return cls(**free)

    def to_dict(self) -> Dict[str, float]:
        """All constants by name, as stored with saved traces"""
        return asdict(self)

    @property
    def free(self) -> Tuple[float, float, float]:
        """The regime parameters as an ordered tuple"""
        return (self.sigma_p, self.g_KNa, self.dphi)

    @property
    def noise_scale(self) -> float:
        """Amplitude of the stochastic term on x_ep (ms^-2 per sqrt(ms))"""
        return self.gamma_e ** 2 * self.dphi


def initial_state(params: ColumnParameters) -> np.ndarray:
    """
    Resting state of the column

    Voltages start at their leak reversal potentials, sodium at its
    equilibrium concentration and all PSPs at zero.
    """
    y = np.zeros(N_VARIABLES)
    y[INDEX['Vp']] = params.E_L_p
    y[INDEX['Vi']] = params.E_L_i
    y[INDEX['Na']] = params.Na_eq
    return y
