from pathlib import Path
import pytest

from ahdcsim.config.load import load_config, loads_config
from ahdcsim.config.schemas import Config, DigitizationCfg, DriftCfg, RunCfg


def test_defaults_match_front_end_calibration():
    cfg = Config()
    d = cfg.digitization
    assert d.sampling_time == 44.0
    assert d.electron_yield == 9500.0
    assert d.adc_max == 4095
    assert (d.tmin, d.tmax) == (0.0, 6000.0)
    assert d.delay == 1000.0
    assert d.landau_width == 240.0
    assert cfg.noise.mean == 300.0 and cfg.noise.stdev == 5.0


def test_historical_option_names_are_accepted():
    cfg = loads_config(
        """
        [digitization]
        samplingTime = 10.0
        electronYield = 5000.0
        Landau_width = 120.0
        """
    )
    assert cfg.digitization.sampling_time == 10.0
    assert cfg.digitization.electron_yield == 5000.0
    assert cfg.digitization.landau_width == 120.0
    # snake_case works as well
    assert DigitizationCfg(sampling_time=2.0).sampling_time == 2.0


def test_invalid_values_are_rejected():
    with pytest.raises(ValueError):
        DigitizationCfg(tmin=100.0, tmax=100.0)
    with pytest.raises(ValueError):
        DigitizationCfg(Landau_width=500.0)
    with pytest.raises(ValueError):
        DigitizationCfg(samplingTime=0.0)
    with pytest.raises(ValueError):
        RunCfg(diagnostics_level=3)
    with pytest.raises(ValueError):
        DriftCfg(cell_radius_mm=8.0, drift_length_mm=6.0)
    with pytest.raises(ValueError):
        DriftCfg(wire_top_mm=[0.0, 0.0])


def test_load_config_from_file(tmp_path: Path):
    p = tmp_path / "run.toml"
    p.write_text(
        """
        [run]
        workers = 0
        seed = 7
        diagnostics_level = 0

        [synth]
        n_hits = 3
        """
    )
    cfg = load_config(p)
    assert cfg.run.workers == 0
    assert cfg.run.seed == 7
    assert cfg.synth.n_hits == 3
    # untouched sections keep their defaults
    assert cfg.drift.cell_radius_mm == 4.0
