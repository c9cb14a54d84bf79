import numpy as np
import pandas as pd
import pytest

from cortical_column.config import SimulationConfig
from cortical_column.noise import FixedSequenceNoise
from cortical_column.recorder import load_hdf5
from cortical_column.simulation import (
    main,
    run_ensemble,
    run_simulation,
    save_result,
    stream_seeds,
)
from cortical_column.stimulation import StimulationMode, StimulationSettings


@pytest.fixture
def short_config():
    return SimulationConfig(name='short', dphi=0.0, seed=0, duration=200.0, onset=50.0,
                            record_every=10, variables=['Vp', 'Vi', 'Na'])


def periodic_stimulation(**kwargs):
    return StimulationSettings(mode=StimulationMode.SEMI_PERIODIC, strength=2.0,
                               duration=10.0, isi=100.0, isi_jitter=0.0, **kwargs)


def test_short_run(short_config):
    result = run_simulation(short_config)

    assert list(result.traces.columns) == ['time', 'Vp', 'Vi', 'Na']
    assert len(result.traces) == 200
    assert result.traces['time'].iloc[0] == pytest.approx(0.1)
    assert result.traces['time'].iloc[-1] == pytest.approx(199.1)
    assert result.markers == []
    assert not result.diverged
    assert result.summary['n_samples'] == 200
    assert set(result.final_state) >= {'Vp', 'Vi', 'Na', 'x_ep'}


def test_same_seed_same_traces():
    config = SimulationConfig(name='noisy', seed=7, duration=100.0, onset=20.0)
    a = run_simulation(config)
    b = run_simulation(config)
    pd.testing.assert_frame_equal(a.traces, b.traces)


def test_injected_noise_source(short_config):
    config = short_config.copy(dphi=2.0)
    silent = run_simulation(config, noise=FixedSequenceNoise([0.0]))
    reference = run_simulation(short_config)
    pd.testing.assert_frame_equal(silent.traces, reference.traces)


def test_stimulation_markers_and_response(short_config):
    config = short_config.copy(duration=350.0, stimulation=periodic_stimulation())
    stimulated = run_simulation(config)
    baseline = run_simulation(short_config.copy(duration=350.0))

    assert stimulated.markers == pytest.approx([100.0, 200.0, 300.0])

    before = stimulated.traces['time'] < 100.0
    diff = (stimulated.traces['Vp'] - baseline.traces['Vp']).abs()
    assert diff[before].max() == 0.0
    assert diff[~before].max() > 0.0


def test_ensemble_does_not_depend_on_workers():
    config = SimulationConfig(name='ens', seed=0, duration=50.0, onset=0.0)
    serial = run_ensemble(config, [1, 2], n_workers=1)
    parallel = run_ensemble(config, [1, 2], n_workers=2)

    assert [r.config.name for r in serial] == ['ens_seed1', 'ens_seed2']
    assert [r.config.seed for r in parallel] == [1, 2]
    for a, b in zip(serial, parallel):
        pd.testing.assert_frame_equal(a.traces, b.traces)
    assert not serial[0].traces.equals(serial[1].traces)


def test_save_result_hdf5(tmp_path, short_config):
    config = short_config.copy(duration=150.0, stimulation=periodic_stimulation())
    result = run_simulation(config)
    path = save_result(result, tmp_path / 'out', fmt='h5')

    assert path.suffix == '.h5'
    assert path.with_suffix('.json').exists()
    data = load_hdf5(path)
    np.testing.assert_allclose(data['traces']['Vp'], result.traces['Vp'])
    np.testing.assert_allclose(data['markers'], [100.0])
    assert data['attrs']['name'] == 'short'
    assert data['attrs']['record_every'] == 10
    assert data['attrs']['g_KNa'] == 1.33
    assert data['attrs']['Qp_max'] == 30e-3


def test_save_result_csv(tmp_path, short_config):
    config = short_config.copy(duration=150.0, stimulation=periodic_stimulation())
    result = run_simulation(config)
    path = save_result(result, tmp_path, fmt='csv')

    pd.testing.assert_frame_equal(pd.read_csv(path), result.traces)
    markers = pd.read_csv(tmp_path / f"{path.stem}_markers.csv")
    assert markers['marker_time'].tolist() == pytest.approx([100.0])


def test_save_result_unknown_format(tmp_path, short_config):
    result = run_simulation(short_config.copy(duration=10.0))
    with pytest.raises(ValueError):
        save_result(result, tmp_path, fmt='mat')


def test_cli_run(tmp_path):
    code = main(['--preset', 'noise_free', '--duration', '100', '--onset', '0',
                 '--output', str(tmp_path), '--format', 'csv', '--plot'])
    assert code == 0
    csv = list(tmp_path.glob('noise_free_*.csv'))
    assert len(csv) == 1
    assert len(pd.read_csv(csv[0])) == 100
    assert csv[0].with_suffix('.png').exists()


def test_cli_config_file(tmp_path):
    config_path = SimulationConfig(name='from_file', dphi=0.0, duration=20.0,
                                   onset=0.0).save(tmp_path / 'run.yaml')
    code = main(['--config', str(config_path), '--seed', '3', '--output', str(tmp_path / 'out')])
    assert code == 0
    assert len(list((tmp_path / 'out').glob('from_file_*.h5'))) == 1


def test_cli_lists_presets(capsys):
    assert main(['--list-presets']) == 0
    out = capsys.readouterr().out
    assert 'noise_free' in out
    assert 'closed_loop_stimulation' in out


def test_noise_and_jitter_streams_are_independent():
    noise_seed, jitter_seed = stream_seeds(7)
    noise_rng = np.random.default_rng(noise_seed)
    jitter_rng = np.random.default_rng(jitter_seed)
    plain_rng = np.random.default_rng(7)

    noise_state = noise_rng.bit_generator.state['state']
    jitter_state = jitter_rng.bit_generator.state['state']
    assert noise_state != jitter_state
    assert plain_rng.bit_generator.state['state'] not in (noise_state, jitter_state)

    # Same config seed, same pair of streams
    again, _ = stream_seeds(7)
    assert np.random.default_rng(again).standard_normal() == \
        np.random.default_rng(noise_seed).standard_normal()


def test_jitter_does_not_follow_noise_draws(short_config):
    stimulation = StimulationSettings(mode=StimulationMode.SEMI_PERIODIC, duration=5.0,
                                      isi=100.0, isi_jitter=40.0)
    config = short_config.copy(dphi=2.0, duration=2000.0, onset=0.0, stimulation=stimulation)
    a = run_simulation(config)
    b = run_simulation(config)
    assert a.markers == b.markers

    _, jitter_seed = stream_seeds(config.seed)
    u = np.random.default_rng(jitter_seed).uniform(-40.0, 40.0)
    assert a.markers[0] == pytest.approx(round((100.0 + u) / 0.1) * 0.1)

    # Not the draw a generator seeded like the noise stream would make
    assert u != np.random.default_rng(config.seed).uniform(-40.0, 40.0)
