"""
Trace Recorder
==============

Samples the column read-out every N steps into preallocated arrays and
writes the traces to HDF5 or CSV.
"""

import numpy as np
import pandas as pd
import h5py
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Union

import logging

from .parameters import STATE_VARIABLES

logger = logging.getLogger(__name__)


class TraceRecorder:
    """
    Fixed-size store for sampled state variables

    Args:
        variables: Names of the variables to record (default: all)
        n_samples: Capacity in samples
        record_every: Keep every record_every-th call to sample()
    """

    def __init__(self, variables: Optional[Sequence[str]] = None,
                 n_samples: int = 0, record_every: int = 1):
        variables = list(variables) if variables else list(STATE_VARIABLES)
        unknown = [v for v in variables if v not in STATE_VARIABLES]
        if unknown:
            raise ValueError(f"Unknown state variables: {unknown}")
        if record_every < 1:
            raise ValueError(f"record_every must be at least 1, got {record_every}")
        if n_samples < 0:
            raise ValueError(f"n_samples must be non-negative, got {n_samples}")

        self.variables: List[str] = variables
        self.record_every = int(record_every)
        self.capacity = int(n_samples)

        self.time = np.zeros(self.capacity)
        self.data: Dict[str, np.ndarray] = {v: np.zeros(self.capacity) for v in variables}
        self.n_recorded = 0

        logger.info(f"Initialized recorder: {len(variables)} variables, "
                    f"{self.capacity} samples, every {self.record_every} steps")

    @classmethod
    def for_steps(cls, n_steps: int, record_every: int = 1,
                  variables: Optional[Sequence[str]] = None) -> 'TraceRecorder':
        """Recorder sized for a run of n_steps steps"""
        n_samples = (n_steps + record_every - 1) // record_every
        return cls(variables, n_samples=n_samples, record_every=record_every)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, record_every: int = 1) -> 'TraceRecorder':
        """Full recorder holding the samples of a to_dataframe() result"""
        variables = [c for c in df.columns if c != 'time']
        recorder = cls(variables, n_samples=len(df), record_every=record_every)
        recorder.time[:] = df['time'].to_numpy()
        for v in variables:
            recorder.data[v][:] = df[v].to_numpy()
        recorder.n_recorded = len(df)
        return recorder

    def sample(self, step_index: int, time_ms: float, readout: Dict[str, float]) -> bool:
        """
        Store readout if step_index falls on the recording grid

        Returns:
            True if a sample was stored

        Raises:
            IndexError: If the recorder is full
        """
        if step_index % self.record_every != 0:
            return False
        if self.n_recorded >= self.capacity:
            raise IndexError(f"Recorder full ({self.capacity} samples)")

        n = self.n_recorded
        self.time[n] = time_ms
        for v in self.variables:
            self.data[v][n] = readout[v]
        self.n_recorded += 1
        return True

    def trace(self, name: str) -> np.ndarray:
        """Recorded samples of one variable"""
        return self.data[name][:self.n_recorded]

    def to_dataframe(self) -> pd.DataFrame:
        """Recorded samples with a 'time' column (ms)"""
        columns = {'time': self.time[:self.n_recorded]}
        columns.update({v: self.trace(v) for v in self.variables})
        return pd.DataFrame(columns)

    def save_csv(self, filepath: Union[str, Path]) -> Path:
        filepath = Path(filepath)
        self.to_dataframe().to_csv(filepath, index=False)
        logger.info(f"Traces saved to {filepath}")
        return filepath

    def save_hdf5(self, filepath: Union[str, Path], metadata: Optional[Dict] = None,
                  markers: Optional[Sequence[float]] = None) -> Path:
        """
        Save traces to HDF5

        Layout:
            /time              sample times (ms)
            /traces/<name>     one dataset per variable
            /markers           stimulation onsets (ms), if given
            attrs              timestamp, record_every and metadata
        """
        filepath = Path(filepath)
        with h5py.File(filepath, 'w') as f:
            f.attrs['timestamp'] = datetime.now().isoformat()
            f.attrs['record_every'] = self.record_every
            for key, value in (metadata or {}).items():
                f.attrs[key] = value

            f.create_dataset('time', data=self.time[:self.n_recorded])
            traces = f.create_group('traces')
            for v in self.variables:
                traces.create_dataset(v, data=self.trace(v))

            if markers is not None:
                f.create_dataset('markers', data=np.asarray(markers, dtype=float))

        logger.info(f"Traces saved to {filepath}")
        return filepath


def load_hdf5(filepath: Union[str, Path]) -> Dict:
    """Read a file written by TraceRecorder.save_hdf5"""
    with h5py.File(filepath, 'r') as f:
        result = {
            'time': f['time'][()],
            'traces': {name: ds[()] for name, ds in f['traces'].items()},
            'attrs': dict(f.attrs),
        }
        result['markers'] = f['markers'][()] if 'markers' in f else np.array([])
    return result
