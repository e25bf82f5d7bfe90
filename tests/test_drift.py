import numpy as np
import pytest

from ahdcsim.physics.drift import (
    DriftCalibration,
    DriftGeometry,
    DriftPhysicsModel,
    OutOfRangeGeometry,
    compute_doca,
)
from ahdcsim.physics.steps import Step


def _model():
    geom = DriftGeometry(wire_top_mm=np.array([0.0, 0.0, -150.0]),
                         wire_bottom_mm=np.array([0.0, 0.0, 150.0]))
    return DriftPhysicsModel(geom)


def test_compute_doca_point_to_wire():
    doca, along = compute_doca(np.array([[3.0, 0.0, 0.0], [0.0, -4.0, 75.0]]),
                               np.array([0.0, 0.0, -150.0]), np.array([0.0, 0.0, 150.0]))
    assert np.allclose(doca, [3.0, 4.0])
    assert np.allclose(along, [0.5, 0.75])


def test_drift_time_polynomial_at_transition_points():
    est = _model().from_doca(2.0)
    # t(s) = 5 + 38 s + 16 s^2 - 2.3 s^3 + 0.25 s^4
    assert est.drift_time_ns == pytest.approx(130.6)
    assert est.amplification.s_mm == 2.0
    assert est.pads.s_mm == pytest.approx(4.0)
    assert est.pads.t_ns == pytest.approx(329.8)
    assert est.end.s_mm == 6.0
    assert est.end.t_ns == pytest.approx(636.2)
    assert not est.out_of_range


def test_zero_doca_gives_time_offset():
    assert _model().from_doca(0.0).drift_time_ns == pytest.approx(5.0)


def test_drift_time_increases_with_doca():
    m = _model()
    t = [m.from_doca(d).drift_time_ns for d in np.linspace(0.0, 4.0, 41)]
    assert np.all(np.diff(t) > 0)


def test_diffusion_spreads():
    c = DriftCalibration()
    est = _model().from_doca(1.0)
    amp = est.amplification
    assert amp.sigma_z_mm == pytest.approx(np.sqrt(0.004 + 0.0002))
    assert amp.sigma_phi_rad == pytest.approx(np.sqrt(2e-5 + 1e-6))
    assert amp.sigma_t_ns == pytest.approx(amp.sigma_z_mm * c.dtime_ds(1.0))
    assert est.pad_shift == pytest.approx(est.pads.phi_rad / 0.0436)
    # spreads grow along the drift path
    assert est.amplification.sigma_z_mm < est.pads.sigma_z_mm < est.end.sigma_z_mm


def test_out_of_range_is_clamped_and_flagged():
    m = _model()
    est = m.from_doca(5.0)
    assert est.out_of_range
    assert "cell radius" in est.reason
    assert est.doca_mm == 5.0
    assert est.drift_time_ns == pytest.approx(m.from_doca(4.0).drift_time_ns)
    with pytest.raises(OutOfRangeGeometry):
        m.from_doca(5.0, strict=True)


def test_step_beyond_wire_end_is_flagged():
    m = _model()
    est = m.estimate(Step(1.0, 0.0, np.array([1.0, 0.0, 200.0])))
    assert est.out_of_range
    assert est.doca_mm == pytest.approx(1.0)
    with pytest.raises(ValueError):
        m.estimate(Step(1.0, 0.0, np.array([1.0, 0.0, 200.0])), strict=True)


def test_estimate_many_matches_single():
    m = _model()
    steps = [Step(1.0, 0.0, np.array([x, 0.0, 0.0])) for x in (0.5, 1.5, 3.5)]
    many = m.estimate_many(steps)
    assert [e.drift_time_ns for e in many] == pytest.approx([m.estimate(s).drift_time_ns for s in steps])
    assert m.estimate_many([]) == ()
