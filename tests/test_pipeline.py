from pathlib import Path

import numpy as np
from typer.testing import CliRunner

from ahdcsim.config.load import loads_config
from ahdcsim.config.schemas import Config
from ahdcsim.electronics.hit_signal import Signal
from ahdcsim.hitprocess.ahdc import AHDCHitProcess
from ahdcsim.physics.steps import HitId
from ahdcsim.pipelines.core import app, process_hits, run_pipeline, summarize
from ahdcsim.sim.synth import synth_track_hits
from ahdcsim.vis.waveform import save_waveform_png


def _quiet_cfg(**synth) -> Config:
    cfg = loads_config(
        """
        [run]
        workers = 0
        seed = 123
        progress = false
        diagnostics_level = 0
        """
    )
    return cfg.model_copy(update={"synth": cfg.synth.model_copy(update=synth)})


def test_run_pipeline_inline_config():
    results = run_pipeline(cfg=_quiet_cfg(n_hits=5))
    assert len(results) == 5
    assert [r.hitn for r in results] == list(range(5))
    s = summarize(results)
    assert s["n_hits"] == 5
    assert s["n_empty"] == 0
    assert s["n_out_of_range"] == 0
    assert s["mean_mcEtot_keV"] > 0


def test_pool_matches_single_process():
    cfg = _quiet_cfg()
    hp = AHDCHitProcess.from_config(cfg)
    recs = synth_track_hits(70, hp.model.geometry, np.random.default_rng(5), steps_per_hit=3,
                            hit_id=HitId(0, 1, 1, 1))
    serial = process_hits(recs, hp, seed=9, workers=0)
    pooled = process_hits(recs, hp, seed=9, workers=2, chunk_hits=16)
    assert [r.dgt for r in serial] == [r.dgt for r in pooled]
    assert [r.multi for r in serial] == [r.multi for r in pooled]
    assert process_hits([], hp) == []


def test_waveform_png(tmp_path: Path):
    sig = Signal.from_drift_times([10.0], [500.0])
    sig.digitize()
    out = save_waveform_png(sig, str(tmp_path / "wf.png"))
    assert Path(out).exists()


def test_cli_runs_config(tmp_path: Path):
    p = tmp_path / "run.toml"
    p.write_text(
        """
        [run]
        workers = 0
        seed = 1
        progress = false
        diagnostics_level = 0

        [synth]
        n_hits = 4
        """
    )
    result = CliRunner().invoke(app, [str(p), "--n-hits", "3"])
    assert result.exit_code == 0, result.output
    assert "Processed 3 hits" in result.output


def test_viz_cli_writes_png(tmp_path: Path):
    from ahdcsim.cli.viz import app as viz_app

    p = tmp_path / "run.toml"
    p.write_text("[run]\nseed = 2\ndiagnostics_level = 0\n")
    out = tmp_path / "hit.png"
    result = CliRunner().invoke(viz_app, ["waveform-png", str(p), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert out.exists()


def test_viz_cli_drift_table(tmp_path: Path):
    from ahdcsim.cli.viz import app as viz_app

    p = tmp_path / "run.toml"
    p.write_text("[run]\ndiagnostics_level = 0\n")
    result = CliRunner().invoke(viz_app, ["drift-table", str(p), "--n", "5"])
    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert len(lines) == 6
    assert lines[1].split()[1] == "5.00"
