#!/usr/bin/env python3
"""
Cortical Column Simulation Driver
=================================

Runs a column from a SimulationConfig:
1. discard the onset transient (no stimulation, no recording)
2. run `duration` ms with the stimulation protocol and the recorder attached
3. return traces, stimulation markers and a summary

Usage:
    # Default regime, 30 s after a 10 s onset
    cortical-column

    # Preset with custom duration, saved as CSV with a figure
    cortical-column --preset high_adaptation --duration 60000 --format csv --plot

    # Configuration file
    cortical-column --config my_run.yaml --seed 3
"""

import argparse
import sys
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
import time

import numpy as np
import pandas as pd

import logging

from .column import CorticalColumn
from .config import SimulationConfig, config_manager, get_config
from .noise import GaussianNoise, NoiseSource
from .recorder import TraceRecorder
from .stimulation import StimulationProtocol
from .analysis import summarize

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Outcome of one simulation run"""
    config: SimulationConfig
    traces: pd.DataFrame
    markers: List[float] = field(default_factory=list)
    final_state: Dict[str, float] = field(default_factory=dict)
    summary: Dict = field(default_factory=dict)
    wall_time_s: float = 0.0

    @property
    def diverged(self) -> bool:
        return not self.summary.get('all_finite', True)


def stream_seeds(seed: Optional[int]) -> Tuple[np.random.SeedSequence, np.random.SeedSequence]:
    """
    Independent child seeds for the column noise and the stimulation jitter

    Both are spawned from one SeedSequence, so a run is reproducible from
    config.seed while the two streams never share state.
    """
    noise_seed, jitter_seed = np.random.SeedSequence(seed).spawn(2)
    return noise_seed, jitter_seed


def run_simulation(config: SimulationConfig,
                   noise: Optional[NoiseSource] = None) -> SimulationResult:
    """
    Simulate one column as described by config

    Args:
        config: Simulation configuration
        noise: Optional noise source replacing the seeded GaussianNoise

    Returns:
        SimulationResult with traces sampled every config.record_every steps.
        Trace times are in ms since the end of the onset period.
    """
    start = time.time()

    noise_seed, jitter_seed = stream_seeds(config.seed)
    if noise is None:
        noise = GaussianNoise(noise_seed)
    column = CorticalColumn(config.column_parameters(), dt=config.dt, noise=noise)

    # === PHASE 1: ONSET ===
    column.run(config.onset_steps)

    # === PHASE 2: RECORDED RUN ===
    n_steps = config.n_steps
    protocol = StimulationProtocol(column, config.stimulation, dt=config.dt, seed=jitter_seed)
    recorder = TraceRecorder.for_steps(n_steps, config.record_every, config.variables)

    for step in range(n_steps):
        protocol.update(step, column.read_out())
        column.step()
        recorder.sample(step, (step + 1) * config.dt, column.read_out())

    traces = recorder.to_dataframe()
    result = SimulationResult(
        config=config,
        traces=traces,
        markers=list(protocol.marker_times),
        final_state=column.read_out(),
        summary=summarize(traces),
        wall_time_s=time.time() - start,
    )

    if result.diverged:
        logger.warning(f"Simulation '{config.name}' produced non-finite values")
    logger.info(f"Simulation '{config.name}' complete: {n_steps} steps, "
                f"{len(result.markers)} stimuli, {result.wall_time_s:.1f} s")
    return result


def run_ensemble(config: SimulationConfig, seeds: Sequence[int],
                 n_workers: int = 1) -> List[SimulationResult]:
    """
    Run one simulation per seed

    Each run builds its own column and noise stream, so results depend on the
    seed only and not on n_workers.
    """
    configs = [config.copy(name=f"{config.name}_seed{seed}", seed=int(seed)) for seed in seeds]

    if n_workers > 1 and len(configs) > 1:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            results = list(executor.map(run_simulation, configs))
    else:
        results = [run_simulation(c) for c in configs]

    logger.info(f"Ensemble of {len(results)} runs complete")
    return results


def save_result(result: SimulationResult, output_dir: Path, fmt: str = 'h5') -> Path:
    """Write traces (and config) of a run into output_dir"""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    stem = output_dir / f"{result.config.name}_{timestamp}"

    result.config.save(stem.with_suffix('.json'))

    if fmt == 'csv':
        path = stem.with_suffix('.csv')
        result.traces.to_csv(path, index=False)
        if result.markers:
            pd.DataFrame({'marker_time': result.markers}).to_csv(
                stem.parent / f"{stem.name}_markers.csv", index=False)
    elif fmt == 'h5':
        path = stem.with_suffix('.h5')
        recorder = TraceRecorder.from_dataframe(result.traces, result.config.record_every)
        metadata = result.config.column_parameters().to_dict()
        metadata.update(name=result.config.name, dt=result.config.dt)
        recorder.save_hdf5(path, metadata=metadata, markers=result.markers)
    else:
        raise ValueError(f"Unknown output format: {fmt}")

    logger.info(f"Results saved to {path}")
    return path


# =============================================================================
# COMMAND LINE
# =============================================================================

def parse_args(argv: Optional[Sequence[str]] = None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description='Cortical column neural mass simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument('--config', type=str,
                        help='Configuration file (.json, .yaml)')
    source.add_argument('--preset', type=str, default='default',
                        help='Named preset configuration (default: default)')

    parser.add_argument('--duration', type=float, help='Recorded duration in ms')
    parser.add_argument('--onset', type=float, help='Discarded onset in ms')
    parser.add_argument('--dt', type=float, help='Step size in ms')
    parser.add_argument('--seed', type=int, help='Noise seed')

    parser.add_argument('--output', type=str, default='results',
                        help='Output directory (default: results)')
    parser.add_argument('--format', choices=['h5', 'csv'], default='h5',
                        help='Trace file format (default: h5)')
    parser.add_argument('--plot', action='store_true',
                        help='Save a figure of the traces')

    parser.add_argument('--list-presets', action='store_true',
                        help='List preset configurations and exit')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')

    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if args.list_presets:
        for name, config in config_manager.configs.items():
            print(f"  - {name}: {config.description}")
        return 0

    config = SimulationConfig.load(args.config) if args.config else get_config(args.preset)

    overrides = {key: getattr(args, key) for key in ('duration', 'onset', 'dt', 'seed')
                 if getattr(args, key) is not None}
    if overrides:
        config = config.copy(**overrides)

    result = run_simulation(config)
    path = save_result(result, Path(args.output), fmt=args.format)

    if args.plot:
        from .visualization import plot_traces
        plot_traces(result.traces, markers=result.markers,
                    path=path.with_suffix('.png'), title=config.name)

    print(f"Saved {len(result.traces)} samples to {path}")
    for name, stats in result.summary['variables'].items():
        print(f"  {name}: mean={stats['mean']:.3f}, min={stats['min']:.3f}, max={stats['max']:.3f}")

    return 1 if result.diverged else 0


if __name__ == "__main__":
    sys.exit(main())
