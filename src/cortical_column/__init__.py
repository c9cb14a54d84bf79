"""
Cortical Column
===============

Neural mass model of a cortical column for slow-wave sleep and K-complexes.

Core components:
- parameters: model constants and the [sigma_p, g_KNa, dphi] regime
- model: firing rates, currents and derivatives (pure functions)
- integrator: fixed step stochastic Runge-Kutta (SRK4) scheme
- column: the simulated unit (step, input drive, read-out)

Around the core:
- noise: standard-normal streams
- stimulation: semi-periodic and closed-loop stimulation protocols
- recorder: trace sampling and HDF5/CSV output
- simulation: run driver, ensembles and command line
- analysis, visualization: post-processing of traces
- config: simulation configurations and presets

Based on: Weigenand A, Schellenberger Costa M, Ngo H-VV, Claussen JC,
Martinetz T (2014) "Characterization of K-Complexes and Slow Wave Activity in
a Neural Mass Model" PLoS Comput Biol 10:e1003923
"""

from .parameters import (
    ColumnParameters,
    STATE_VARIABLES,
    initial_state,
)

from .noise import (
    NoiseSource,
    GaussianNoise,
    FixedSequenceNoise,
)

from .integrator import (
    SRK4Integrator,
    combine,
)

from .column import (
    CorticalColumn,
    InputDrive,
)

from .stimulation import (
    StimulationMode,
    StimulationSettings,
    StimulationProtocol,
)

from .recorder import TraceRecorder

from .config import (
    SimulationConfig,
    get_config,
)

from .simulation import (
    SimulationResult,
    run_simulation,
    run_ensemble,
)

__all__ = [
    # Core
    'ColumnParameters',
    'STATE_VARIABLES',
    'initial_state',
    'SRK4Integrator',
    'combine',
    'CorticalColumn',
    'InputDrive',

    # Noise
    'NoiseSource',
    'GaussianNoise',
    'FixedSequenceNoise',

    # Edges
    'StimulationMode',
    'StimulationSettings',
    'StimulationProtocol',
    'TraceRecorder',
    'SimulationConfig',
    'get_config',
    'SimulationResult',
    'run_simulation',
    'run_ensemble',
]

__version__ = '0.1.0'
