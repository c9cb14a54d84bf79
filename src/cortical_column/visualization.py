"""
Plotting of recorded column traces
"""

import matplotlib.pyplot as plt
import pandas as pd
from pathlib import Path
from typing import Optional, Sequence, Union

import logging

logger = logging.getLogger(__name__)

# Axis labels per variable
UNITS = {
    'Vp': 'Vp (mV)',
    'Vi': 'Vi (mV)',
    'Na': 'Na (mM)',
}


def plot_traces(traces: pd.DataFrame, variables: Optional[Sequence[str]] = None,
                markers: Optional[Sequence[float]] = None,
                path: Union[str, Path, None] = None,
                title: str = ""):
    """
    One panel per variable against time in seconds

    Stimulation markers (ms) are drawn as vertical lines in every panel.
    The figure is saved to path if given, and returned.
    """
    variables = list(variables) if variables else [c for c in traces.columns if c != 'time']
    t = traces['time'].to_numpy() / 1000.0

    fig, axes = plt.subplots(len(variables), 1, figsize=(10, 2.2 * len(variables)),
                             sharex=True, squeeze=False)
    for ax, name in zip(axes[:, 0], variables):
        ax.plot(t, traces[name].to_numpy(), 'k', lw=0.8)
        for m in markers or []:
            ax.axvline(m / 1000.0, color='r', lw=0.8, alpha=0.6)
        ax.set_ylabel(UNITS.get(name, name))
        ax.grid(alpha=0.3)

    axes[-1, 0].set_xlabel('Time (s)')
    if title:
        axes[0, 0].set_title(title)
    fig.tight_layout()

    if path is not None:
        fig.savefig(path, dpi=150)
        logger.info(f"Figure saved to {path}")

    return fig
