import matplotlib
matplotlib.use('Agg')

import pytest

from cortical_column.parameters import ColumnParameters
from cortical_column.noise import FixedSequenceNoise


@pytest.fixture
def silent_params():
    """Column without firing, adaptation or noise: the rest state is a fixed point"""
    return ColumnParameters(g_KNa=0.0, dphi=0.0, Qp_max=0.0, Qi_max=0.0)


@pytest.fixture
def zero_noise():
    return FixedSequenceNoise([0.0])
