"""
Trace Analysis
==============

Post-processing of recorded column traces:
- power spectra (slow oscillation band lies below ~1.5 Hz)
- down state / K-complex detection by threshold excursions
- summary statistics with a divergence check
"""

import numpy as np
import pandas as pd
from scipy import ndimage, signal
from typing import Dict, Optional, Tuple


def power_spectrum(trace: np.ndarray, dt_ms: float,
                   nperseg: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Welch power spectral density of a trace

    Args:
        trace: Samples spaced dt_ms apart
        dt_ms: Sample spacing in ms
        nperseg: Segment length (default: min(len(trace), 2^14))

    Returns:
        (frequencies in Hz, power spectral density)
    """
    trace = np.asarray(trace, dtype=float)
    fs = 1000.0 / dt_ms
    if nperseg is None:
        nperseg = min(len(trace), 2 ** 14)
    return signal.welch(trace - trace.mean(), fs=fs, nperseg=nperseg)


def dominant_frequency(trace: np.ndarray, dt_ms: float,
                       fmin: float = 0.0, fmax: float = np.inf) -> float:
    """Frequency (Hz) of the largest spectral peak in [fmin, fmax]"""
    f, pxx = power_spectrum(trace, dt_ms)
    band = (f >= fmin) & (f <= fmax)
    if not band.any():
        raise ValueError(f"No frequencies in band [{fmin}, {fmax}] Hz")
    return float(f[band][np.argmax(pxx[band])])


def detect_down_states(trace: np.ndarray, dt_ms: float, threshold: float,
                       min_duration: float = 0.0) -> np.ndarray:
    """
    Onset times of excursions below threshold

    Args:
        trace: Voltage samples spaced dt_ms apart
        dt_ms: Sample spacing in ms
        threshold: Down state threshold (same unit as trace)
        min_duration: Shortest excursion to keep, in ms

    Returns:
        Onset times in ms (sample index * dt_ms)
    """
    below = np.asarray(trace) < threshold
    labels, n = ndimage.label(below)
    onsets = []
    for region in ndimage.find_objects(labels):
        start, stop = region[0].start, region[0].stop
        if (stop - start) * dt_ms >= min_duration:
            onsets.append(start * dt_ms)
    return np.array(onsets, dtype=float)


def summarize(traces: pd.DataFrame) -> Dict:
    """
    Statistics of every recorded variable

    Returns:
        {'all_finite': bool, 'n_samples': int,
         'variables': {name: {'mean', 'std', 'min', 'max'}}}
    """
    variables = [c for c in traces.columns if c != 'time']
    values = traces[variables].to_numpy(dtype=float)
    stats = {}
    for name in variables:
        column = traces[name].to_numpy(dtype=float)
        if column.size:
            stats[name] = {
                'mean': float(np.mean(column)),
                'std': float(np.std(column)),
                'min': float(np.min(column)),
                'max': float(np.max(column)),
            }
        else:
            stats[name] = {'mean': np.nan, 'std': np.nan, 'min': np.nan, 'max': np.nan}
    return {
        'all_finite': bool(np.all(np.isfinite(values))),
        'n_samples': len(traces),
        'variables': stats,
    }
