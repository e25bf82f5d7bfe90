from __future__ import annotations

import typer
from typing import Optional

import numpy as np

from ahdcsim.config.load import load_config
from ahdcsim.electronics.hit_signal import Signal
from ahdcsim.hitprocess.ahdc import AHDCHitProcess
from ahdcsim.physics.drift import DriftPhysicsModel
from ahdcsim.physics.steps import HitId
from ahdcsim.sim.synth import synth_track_hits
from ahdcsim.vis.waveform import save_waveform_png

app = typer.Typer(help="Drift-chamber waveform visualization tools")

@app.command("waveform-png")
def waveform_png(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    out: Optional[str] = typer.Option(None, "--out", "-o", help="Output PNG path (defaults to hit_<n>.png)"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for the synthetic hit and its noise"),
):
    """Digitize one synthetic hit and render analog + ADC samples to a PNG."""
    cfg = load_config(cfg_path)
    hp = AHDCHitProcess.from_config(cfg)
    rng = np.random.default_rng(seed if seed is not None else cfg.run.seed)
    s = cfg.synth
    rec = synth_track_hits(1, hp.model.geometry, rng, steps_per_hit=s.steps_per_hit,
                           hit_id=HitId(0, s.superlayer, s.layer_index, s.component),
                           mean_edep_MeV=s.mean_edep_MeV, t0_ns=s.t0_ns)[0]
    sig = Signal.from_record(rec, 0, hp.model, params=cfg.digitization)
    if cfg.noise.enabled:
        sig.generate_noise(cfg.noise.mean, cfg.noise.stdev, rng)
    sig.digitize()
    out_png = save_waveform_png(sig, out)
    typer.echo(f"Wrote {out_png}")

@app.command("drift-table")
def drift_table(
    cfg_path: str = typer.Argument(..., help="Path to TOML config file"),
    n: int = typer.Option(9, "--n", help="Number of doca points from 0 to the cell radius"),
):
    """Print drift time and spreads versus doca for the configured calibration."""
    cfg = load_config(cfg_path)
    model = DriftPhysicsModel.from_cfg(cfg.drift)
    typer.echo(f"{'doca[mm]':>9} {'t[ns]':>9} {'sigma_t':>8} {'phi[rad]':>9} {'pad_shift':>9}")
    for d in np.linspace(0.0, model.geometry.cell_radius_mm, n):
        e = model.from_doca(float(d))
        typer.echo(f"{d:9.3f} {e.drift_time_ns:9.2f} {e.amplification.sigma_t_ns:8.3f} "
                   f"{e.pads.phi_rad:9.5f} {e.pad_shift:9.3f}")

if __name__ == "__main__":
    app()
