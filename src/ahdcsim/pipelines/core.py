from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import typer

import numpy as np
from tqdm import tqdm

from ahdcsim.config.load import load_config
from ahdcsim.config.schemas import Config
from ahdcsim.electronics.decoder import EMPTY_HIT, NO_THRESHOLD_CROSSING, OUT_OF_RANGE, SATURATED
from ahdcsim.hitprocess.ahdc import AHDCHitProcess, ProcessedHit
from ahdcsim.physics.steps import HitId, HitRecord
from ahdcsim.sim.synth import synth_track_hits


# ----------------- worker state -----------------

# Set once per worker process by _init_worker and only read afterwards.
_WORKER_PROCESS: Optional[AHDCHitProcess] = None


def _init_worker(hit_process: AHDCHitProcess) -> None:
    global _WORKER_PROCESS
    _WORKER_PROCESS = hit_process


def _process_chunk(
    items: Sequence[Tuple[int, HitRecord, np.random.SeedSequence]],
) -> List[ProcessedHit]:
    """Worker: process a chunk of (hitn, record, seed) with the installed hit process."""
    hp = _WORKER_PROCESS
    if hp is None:
        raise RuntimeError("worker used before _init_worker")
    return [hp.process(rec, hitn, np.random.default_rng(ss)) for hitn, rec, ss in items]


def _auto_chunk_size(n_hits: int, workers: int) -> int:
    # a few chunks per worker keeps the pool busy without tiny tasks
    return max(16, min(2000, n_hits // max(1, 4 * workers) or 1))


# ----------------- public API -----------------

def process_hits(
    records: Sequence[HitRecord],
    hit_process: AHDCHitProcess,
    *,
    seed: Optional[int] = None,
    workers: int | str = "auto",
    chunk_hits: int | str = "auto",
    progress: bool = False,
    diagnostics_level: int = 0,
) -> List[ProcessedHit]:
    """
    Digitize and decode independent hits, optionally on a process pool.

    Every hit gets its own noise stream spawned from `seed`, so the output
    does not depend on how hits are spread over workers. If workers == 0 (or
    there are few hits) everything runs in-process.
    """
    recs = list(records)
    N = len(recs)
    if N == 0:
        return []

    seeds = np.random.SeedSequence(seed).spawn(N)
    items = list(zip(range(N), recs, seeds))

    if workers == "auto":
        workers = max(1, os.cpu_count() or 1)
    elif isinstance(workers, int):
        workers = max(0, workers)
    else:
        raise ValueError("workers must be int or 'auto'")

    # Single-process path (also good for debugging)
    if workers == 0 or N < 64:
        it = tqdm(items, desc="hits", unit="hit") if progress else items
        out = [hit_process.process(rec, hitn, np.random.default_rng(ss)) for hitn, rec, ss in it]
        if diagnostics_level >= 1:
            print(f"[pipeline] Processed {N} hits in-process")
        return out

    from concurrent.futures import ProcessPoolExecutor

    if chunk_hits == "auto":
        chunk_hits = _auto_chunk_size(N, workers)
    else:
        chunk_hits = int(chunk_hits)
    chunks = [items[i:i + chunk_hits] for i in range(0, N, chunk_hits)]

    pbar = tqdm(total=N, desc=f"hits x{workers}", unit="hit") if progress else None
    results: List[ProcessedHit] = []
    # the immutable hit process is installed once per worker
    with ProcessPoolExecutor(max_workers=workers, initializer=_init_worker,
                             initargs=(hit_process,)) as ex:
        for chunk_out in ex.map(_process_chunk, chunks):
            results.extend(chunk_out)
            if pbar:
                pbar.update(len(chunk_out))
    if pbar:
        pbar.close()
    if diagnostics_level >= 1:
        print(f"[pipeline] Processed {N} hits on {workers} workers ({len(chunks)} chunks)")
    return results


def summarize(results: Sequence[ProcessedHit]) -> dict:
    """Counts of status flags and mean decoded quantities over processed hits."""
    flags = np.array([int(r.decoded["flags"]) for r in results], dtype=np.int64)
    t_cfd = [r.decoded["t_cfd"] for r in results if r.decoded["t_cfd"] is not None]
    e_dec = np.array([r.decoded["energy_keV"] for r in results], dtype=np.float64)
    e_mc = np.array([r.decoded["mcEtot"] for r in results], dtype=np.float64)
    return {
        "n_hits": len(results),
        "n_empty": int(np.count_nonzero(flags & EMPTY_HIT)),
        "n_out_of_range": int(np.count_nonzero(flags & OUT_OF_RANGE)),
        "n_no_crossing": int(np.count_nonzero(flags & NO_THRESHOLD_CROSSING)),
        "n_saturated": int(np.count_nonzero(flags & SATURATED)),
        "mean_t_cfd_ns": float(np.mean(t_cfd)) if t_cfd else None,
        "mean_energy_keV": float(e_dec.mean()) if e_dec.size else 0.0,
        "mean_mcEtot_keV": float(e_mc.mean()) if e_mc.size else 0.0,
    }


def run_pipeline(
    cfg_path: str | Path | None = None,
    *,
    cfg: Config | None = None,
    n_hits: Optional[int] = None,
    workers: Optional[int] = None,
) -> List[ProcessedHit]:
    """
    Synthesize hits per [synth], digitize/decode them and print a summary.

    CLI flags (--n-hits/--workers) override the corresponding config fields
    when not None.
    """
    if cfg is None:
        if cfg_path is None:
            raise ValueError("need a config path or a Config object")
        cfg = load_config(cfg_path)

    diag_level = cfg.run.diagnostics_level
    hp = AHDCHitProcess.from_config(cfg)

    if diag_level >= 1:
        print(f"[run] config = {cfg_path if cfg_path is not None else '<inline>'}")
        d = cfg.digitization
        print(f"[run] sampling={d.sampling_time} ns yield={d.electron_yield} adc_max={d.adc_max} "
              f"window=[{d.tmin}, {d.tmax}] delay={d.delay} width={d.landau_width}")

    synth = cfg.synth
    rng = np.random.default_rng(cfg.run.seed)
    records = synth_track_hits(
        n_hits if n_hits is not None else synth.n_hits,
        hp.model.geometry,
        rng,
        steps_per_hit=synth.steps_per_hit,
        hit_id=HitId(0, synth.superlayer, synth.layer_index, synth.component),
        max_doca_mm=synth.max_doca_mm,
        mean_edep_MeV=synth.mean_edep_MeV,
        t0_ns=synth.t0_ns,
    )
    if diag_level >= 1:
        print(f"[pipeline] Got {len(records)} hits")

    results = process_hits(
        records,
        hp,
        seed=cfg.run.seed,
        workers=workers if workers is not None else cfg.run.workers,
        chunk_hits=cfg.run.chunk_hits,
        progress=cfg.run.progress,
        diagnostics_level=diag_level,
    )

    if diag_level >= 1:
        s = summarize(results)
        print(f"[pipeline] hits={s['n_hits']} empty={s['n_empty']} out_of_range={s['n_out_of_range']} "
              f"no_crossing={s['n_no_crossing']} saturated={s['n_saturated']}")
        print(f"[pipeline] <t_cfd>={s['mean_t_cfd_ns']} ns <E_dec>={s['mean_energy_keV']:.3f} keV "
              f"<E_mc>={s['mean_mcEtot_keV']:.3f} keV")
        if diag_level >= 2 and results:
            print(f"[pipeline] First hit dgt: {results[0].dgt}")

    if cfg.vis.export_png and records:
        from ahdcsim.electronics.hit_signal import Signal
        from ahdcsim.vis.waveform import save_waveform_png

        sig = Signal.from_record(records[0], 0, hp.model, params=cfg.digitization)
        if cfg.noise.enabled:
            sig.generate_noise(cfg.noise.mean, cfg.noise.stdev, np.random.default_rng(cfg.run.seed))
        sig.digitize()
        try:
            out_png = save_waveform_png(sig, cfg.vis.png_path)
            if diag_level >= 1:
                print(f"[pipeline] Wrote PNG {out_png}")
        except OSError as e:
            if diag_level >= 1:
                print(f"[pipeline] PNG export failed: {e!r}")

    return results


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Drift-chamber hit digitization pipeline (ahdcsim.pipelines.core)")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    n_hits: Optional[int] = typer.Option(
        None,
        "--n-hits",
        "-n",
        help="Override [synth].n_hits",
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        help="Override [run].workers (0 = single process)",
    ),
):
    """
    Run the synthetic-hit digitization pipeline for a single config.
    """
    results = run_pipeline(cfg_path, n_hits=n_hits, workers=workers)
    typer.echo(f"Processed {len(results)} hits")


if __name__ == "__main__":
    app()
