from __future__ import annotations
import numpy as np
from ..physics.drift import DriftGeometry
from ..physics.steps import HitId, HitRecord

C_MM_PER_NS = 299.792458

def _wire_basis(geometry: DriftGeometry) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    w = geometry.wire_bottom_mm - geometry.wire_top_mm
    w = w / np.linalg.norm(w)
    t = np.array([1.0, 0.0, 0.0])
    if abs(w @ t) > 0.9:
        t = np.array([0.0, 1.0, 0.0])
    e1 = np.cross(w, t); e1 /= np.linalg.norm(e1)
    e2 = np.cross(w, e1)
    return w, e1, e2

def synth_track_hits(
    n_hits: int,
    geometry: DriftGeometry,
    rng: np.random.Generator | None = None,
    steps_per_hit: int = 8,
    hit_id: HitId | None = None,
    max_doca_mm: float | None = None,
    mean_edep_MeV: float = 0.002,
    t0_ns: float = 5.0,
    beta: float = 0.5,
) -> list[HitRecord]:
    """
    Straight tracks crossing one cell, each split into `steps_per_hit` steps.

      - impact parameter b uniform in [0, max_doca) around the wire,
      - track direction perpendicular to the impact vector with a small tilt
        along the wire,
      - steps spread uniformly over the chord inside the cell radius,
      - per-step energy from a gamma distribution (mean `mean_edep_MeV`),
      - times t0 + path / (beta * c).
    """
    rng = rng or np.random.default_rng()
    hit_id = hit_id or HitId(sector=0, superlayer=1, layer_index=1, component=1)
    R = geometry.cell_radius_mm
    b_max = min(max_doca_mm if max_doca_mm is not None else R, R)
    w, e1, e2 = _wire_basis(geometry)
    L = geometry.wire_length_mm
    v = beta * C_MM_PER_NS

    hits: list[HitRecord] = []
    for _ in range(n_hits):
        b = rng.uniform(0.0, b_max)
        ang = rng.uniform(0.0, 2.0 * np.pi)
        radial = np.cos(ang) * e1 + np.sin(ang) * e2
        tangent = -np.sin(ang) * e1 + np.cos(ang) * e2
        along = rng.uniform(0.1, 0.9) * L
        # closest point of the track to the wire
        P = geometry.wire_top_mm + along * w + b * radial
        d = tangent + rng.uniform(-0.2, 0.2) * w
        d /= np.linalg.norm(d)

        half = 0.999 * np.sqrt(max(R * R - b * b, 0.0))
        s = np.linspace(-half, half, steps_per_hit) if steps_per_hit > 1 else np.zeros(1)
        r = P[None, :] + s[:, None] * d[None, :]
        edep = rng.gamma(2.0, mean_edep_MeV / 2.0, size=steps_per_hit)
        t = t0_ns + (s - s[0]) / v
        hits.append(HitRecord(hit_id=hit_id, edep_MeV=edep, t_ns=t, r_mm=r))
    return hits
