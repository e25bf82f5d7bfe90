import numpy as np

from ahdcsim.config.schemas import DriftCfg
from ahdcsim.physics.drift import DriftPhysicsModel, compute_doca
from ahdcsim.physics.steps import HitId
from ahdcsim.sim.synth import synth_track_hits


def test_synthetic_steps_stay_inside_cell():
    model = DriftPhysicsModel.from_cfg(DriftCfg())
    g = model.geometry
    hits = synth_track_hits(50, g, np.random.default_rng(2), steps_per_hit=6,
                            hit_id=HitId(0, 3, 2, 11))
    assert len(hits) == 50
    for h in hits:
        assert len(h) == 6
        assert h.hit_id.layer == 32
        doca, along = compute_doca(h.r_mm, g.wire_top_mm, g.wire_bottom_mm)
        assert np.all(doca < g.cell_radius_mm)
        assert np.all((along > 0) & (along < 1))
        assert np.all(np.diff(h.t_ns) >= 0)
        assert np.all(h.edep_MeV >= 0)
        assert not any(e.out_of_range for e in model.estimate_many(h.steps()))


def test_max_doca_limits_impact_parameter():
    g = DriftPhysicsModel.from_cfg(DriftCfg()).geometry
    hits = synth_track_hits(20, g, np.random.default_rng(4), steps_per_hit=1, max_doca_mm=1.0)
    for h in hits:
        doca, _ = compute_doca(h.r_mm, g.wire_top_mm, g.wire_bottom_mm)
        assert doca[0] < 1.0
