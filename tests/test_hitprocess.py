import numpy as np
import pytest

from ahdcsim.config.schemas import Config
from ahdcsim.electronics.decoder import EMPTY_HIT
from ahdcsim.hitprocess.ahdc import AHDCHitProcess
from ahdcsim.physics.steps import HitId, HitRecord


def _hp():
    return AHDCHitProcess.from_config(Config())


def _hit():
    return HitRecord(hit_id=HitId(1, 2, 1, 30), edep_MeV=[0.004, 0.006],
                     t_ns=[3.0, 4.0], r_mm=[[1.0, 0.0, 0.0], [0.0, 2.0, 10.0]])


def test_integrate_dgt_fields():
    dgt = _hp().integrate_dgt(_hit(), 7, np.random.default_rng(0))
    assert dgt["hitn"] == 7
    assert (dgt["sector"], dgt["layer"], dgt["component"]) == (1, 21, 30)
    assert dgt["ADC_order"] == 0
    assert abs(dgt["ADC_ped"] - 300) <= 10
    assert dgt["ADC_nsteps"] == 2
    assert dgt["ADC_mcEtot"] == pytest.approx(10.0)
    assert dgt["ADC_mctime"] == 3.0
    assert dgt["ADC_ADC"] > 0
    assert "ADC_t_cfd" in dgt
    assert dgt["ADC_flags"] == 0
    assert isinstance(dgt["ADC_ADC"], int)


def test_undefined_observables_are_omitted():
    empty = HitRecord(hit_id=HitId(0, 1, 1, 1), edep_MeV=[], t_ns=[], r_mm=np.zeros((0, 3)))
    dgt = _hp().integrate_dgt(empty, 0, np.random.default_rng(0))
    assert "ADC_t_cfd" not in dgt
    assert "ADC_mctime" not in dgt
    assert dgt["ADC_flags"] & EMPTY_HIT
    assert dgt["ADC_integral"] == 0


def test_multi_dgt_and_charge_time():
    hp = _hp()
    wf = hp.multi_dgt(_hit(), 0, np.random.default_rng(0))["wf"]
    assert len(wf) == 137
    assert all(0 <= v <= 4095 for v in wf)

    ct = hp.charge_time(_hit(), 0)
    assert sorted(ct) == [0, 1]
    assert ct[0][0] == pytest.approx(9500.0 * 4.0)
    # electronics time = step time + drift time
    assert ct[0][1] > 3.0 + 5.0


def test_voltage_peaks_after_delay():
    hp = _hp()
    at_peak = hp.voltage(1.0, 500.0, 1500.0)
    assert at_peak > hp.voltage(1.0, 500.0, 1300.0)
    assert at_peak > hp.voltage(1.0, 500.0, 1700.0)
    assert hp.voltage(2.0, 500.0, 1500.0) == pytest.approx(2.0 * at_peak)


def test_process_is_consistent_and_reproducible():
    hp = _hp()
    a = hp.process(_hit(), 3, np.random.default_rng(11))
    b = hp.process(_hit(), 3, np.random.default_rng(11))
    assert a.dgt == b.dgt
    assert a.multi == b.multi
    assert a.hitn == 3
    assert a.dgt["ADC_ADC"] == int(a.decoded["max_value"])
    assert set(a.charge_time) == {0, 1}
