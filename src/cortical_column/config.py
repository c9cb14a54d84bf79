"""
Simulation configurations for the cortical column

A SimulationConfig holds everything a run needs (regime parameters, step
size, durations, recording, stimulation, seed) and round-trips through JSON
or YAML. Presets are registered in the module level config_manager.
"""
import json
import yaml
from pathlib import Path
from dataclasses import dataclass, asdict, field
from typing import Dict, Any, List, Optional, Union
import numpy as np

import logging

from .parameters import ColumnParameters, STATE_VARIABLES
from .stimulation import StimulationMode, StimulationSettings

logger = logging.getLogger(__name__)

# Default output location
RESULTS_DIR = Path("results")
CONFIG_DIR = Path("configs")

YAML_SUFFIXES = ('.yaml', '.yml')


@dataclass
class SimulationConfig:
    """Configuration for a single simulation run"""
    name: str = "default"
    description: str = ""

    # Regime parameters [sigma_p, g_KNa, dphi]
    sigma_p: float = 4.0  # mV
    g_KNa: float = 1.33  # mS/cm^2
    dphi: float = 2.0  # ms^-1

    # Integration
    dt: float = 0.1  # ms
    duration: float = 30000.0  # ms, recorded
    onset: float = 10000.0  # ms, discarded transient

    # Recording
    record_every: int = 10  # steps
    variables: List[str] = field(default_factory=lambda: ['Vp', 'Vi', 'Na'])

    # Noise stream seed (None: fresh entropy)
    seed: Optional[int] = None

    # Stimulation
    stimulation: StimulationSettings = field(default_factory=StimulationSettings)

    # Output
    output_dir: str = str(RESULTS_DIR)

    # Sweep parameters (for parameter studies)
    sweep_params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.stimulation, dict):
            self.stimulation = StimulationSettings(**self.stimulation)
        self.validate()

    def validate(self):
        """Raise ValueError for settings that cannot be simulated"""
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.duration < 0 or self.onset < 0:
            raise ValueError(f"duration and onset must be non-negative, "
                             f"got duration={self.duration}, onset={self.onset}")
        if self.record_every < 1:
            raise ValueError(f"record_every must be at least 1, got {self.record_every}")
        unknown = [v for v in self.variables if v not in STATE_VARIABLES]
        if unknown:
            raise ValueError(f"Unknown state variables: {unknown}")

    @property
    def onset_steps(self) -> int:
        return int(round(self.onset / self.dt))

    @property
    def n_steps(self) -> int:
        return int(round(self.duration / self.dt))

    def column_parameters(self) -> ColumnParameters:
        """Parameters of the column described by this config"""
        return ColumnParameters.from_sequence([self.sigma_p, self.g_KNa, self.dphi])

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        d = asdict(self)
        d['stimulation'] = self.stimulation.to_dict()
        return d

    def save(self, filename: Union[str, Path, None] = None) -> Path:
        """Save configuration to file (.json, .yaml or .yml)"""
        if filename is None:
            CONFIG_DIR.mkdir(exist_ok=True)
            filename = CONFIG_DIR / f"{self.name}.json"
        else:
            filename = Path(filename)

        with open(filename, 'w') as f:
            if filename.suffix in YAML_SUFFIXES:
                yaml.safe_dump(self.to_dict(), f, sort_keys=False)
            else:
                json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Configuration saved to {filename}")
        return filename

    @classmethod
    def load(cls, filename: Union[str, Path]) -> 'SimulationConfig':
        """Load configuration from a .json, .yaml or .yml file"""
        filename = Path(filename)
        with open(filename, 'r') as f:
            if filename.suffix in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            elif filename.suffix == '.json':
                data = json.load(f)
            else:
                raise ValueError(f"Unsupported configuration format: {filename.suffix}")
        return cls(**data)

    def copy(self, **kwargs) -> 'SimulationConfig':
        """Copy with some fields replaced"""
        return SimulationConfig(**{**self.to_dict(), **kwargs})


class ConfigurationManager:
    """Named simulation configurations, one of them active"""

    def __init__(self):
        self.configs: Dict[str, SimulationConfig] = {}
        self.active_config: Optional[SimulationConfig] = None

    def register(self, config: SimulationConfig) -> SimulationConfig:
        self.configs[config.name] = config
        return config

    def create_config(self, name: str, base_config: str = None, **kwargs) -> SimulationConfig:
        """New configuration, derived from base_config when it is registered"""
        base = self.configs.get(base_config) if base_config else None
        if base is not None:
            return self.register(base.copy(name=name, **kwargs))
        return self.register(SimulationConfig(name=name, **kwargs))

    def load_config(self, name: str, filename: Union[str, Path, None] = None) -> SimulationConfig:
        """Load and register a configuration; without filename, search CONFIG_DIR"""
        if filename is None:
            candidates = [CONFIG_DIR / f"{name}{suffix}" for suffix in ('.json',) + YAML_SUFFIXES]
            found = [path for path in candidates if path.exists()]
            if not found:
                raise FileNotFoundError(f"No configuration file for '{name}' in {CONFIG_DIR}")
            filename = found[0]

        config = SimulationConfig.load(filename)
        self.configs[name] = config
        logger.info(f"Loaded configuration '{name}' from {filename}")
        return config

    def set_active(self, name: str):
        if name not in self.configs:
            raise ValueError(f"Configuration '{name}' not found")
        self.active_config = self.configs[name]

    def get_active(self) -> SimulationConfig:
        """Active configuration (a default one if none was set)"""
        if self.active_config is None:
            self.active_config = SimulationConfig()
        return self.active_config

    def create_parameter_sweep(self, base_name: str, param_name: str,
                               param_values: np.ndarray) -> Dict[str, SimulationConfig]:
        """
        One configuration per value of a regime parameter

        The configurations are returned, not registered. Each carries its
        position in the sweep in sweep_params.
        """
        base = self.configs.get(base_name, SimulationConfig(name=base_name))
        n_values = len(param_values)

        sweep = {}
        for index, value in enumerate(param_values):
            value = float(value)
            config = base.copy(
                name=f"{base_name}_{param_name}_{index}",
                description=f"{base.description} [{param_name}={value:g}]".strip(),
                sweep_params={'parameter': param_name, 'value': value,
                              'index': index, 'total': n_values},
                **{param_name: value}
            )
            sweep[config.name] = config

        logger.info(f"Created sweep of {param_name} over {n_values} values")
        return sweep


# Predefined simulation configurations
def create_standard_configs() -> Dict[str, SimulationConfig]:
    """Create standard simulation configurations"""
    configs = {}

    configs['default'] = SimulationConfig(
        name='default',
        description='Default regime with background noise'
    )

    configs['noise_free'] = SimulationConfig(
        name='noise_free',
        description='Deterministic dynamics without background noise',
        dphi=0.0,
        seed=0
    )

    # Stronger adaptation drives the column into slow oscillations
    configs['high_adaptation'] = SimulationConfig(
        name='high_adaptation',
        description='Increased KNa conductance',
        sigma_p=4.7,
        g_KNa=2.0
    )

    configs['semi_periodic_stimulation'] = SimulationConfig(
        name='semi_periodic_stimulation',
        description='Pulse stimulation every 5 +/- 1 s',
        stimulation=StimulationSettings(
            mode=StimulationMode.SEMI_PERIODIC,
            strength=2.0,
            duration=100.0,
            isi=5000.0,
            isi_jitter=1000.0
        )
    )

    configs['closed_loop_stimulation'] = SimulationConfig(
        name='closed_loop_stimulation',
        description='Two pulses locked to down state onsets',
        g_KNa=2.0,
        stimulation=StimulationSettings(
            mode=StimulationMode.PHASE_DEPENDENT,
            strength=2.0,
            duration=100.0,
            isi=6000.0,
            isi_jitter=0.0,
            burst_count=2,
            burst_interval=1000.0,
            threshold=-68.0,
            delay=400.0
        )
    )

    return configs


config_manager = ConfigurationManager()
for preset in create_standard_configs().values():
    config_manager.register(preset)
config_manager.set_active('default')


def get_config(name: str = None) -> SimulationConfig:
    """Preset or registered configuration by name, or the active one"""
    if name is None:
        return config_manager.get_active()
    try:
        return config_manager.configs[name]
    except KeyError:
        raise ValueError(f"Configuration '{name}' not found") from None


def create_sweep(param_name: str, start: float, stop: float,
                 num: int = 20, scale: str = 'linear') -> np.ndarray:
    """Values for a sweep of param_name, evenly spaced on a linear or log scale"""
    if scale == 'linear':
        return np.linspace(start, stop, num)
    if scale == 'log':
        return np.geomspace(start, stop, num)
    raise ValueError(f"Unknown scale for {param_name}: {scale}")
