"""
ahdcsim.physics.drift

Drift and diffusion of ionization charge inside one drift cell.

Each Step is reduced to its distance of closest approach (doca) to the sense
wire; the drift time, drift angle and diffusion spreads then follow from
empirical polynomials in the drift path length s [mm]:

    t(s)         = tof + a_t s + b_t s^2 + c_t s^3 + d_t s^4      [ns]
    phi(s)       = a_phi s + b_phi s^2                            [rad]
    sigma_phi(s) = sqrt(c_phi s + d_phi s^2)                      [rad]
    sigma_z(s)   = sqrt(a_z s + b_z s^2)                          [mm]
    sigma_t(s)   = sigma_z(s) * dt/ds(s)                          [ns]

The polynomials are evaluated at three transition points along the path:

    amplification  s = doca
    pads           s = doca + (drift_length - cell_radius)
    end            s = drift_length

Everything here is stateless; DriftPhysicsModel only holds the immutable
geometry/calibration it was built with.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple
import numpy as np

from .steps import Step


class OutOfRangeGeometry(ValueError):
    """Step lies outside the physically valid drift-cell envelope."""


@dataclass(frozen=True)
class DriftGeometry:
    wire_top_mm: np.ndarray
    wire_bottom_mm: np.ndarray
    cell_radius_mm: float = 4.0
    drift_length_mm: float = 6.0
    pad_width_mm: float = 4.0
    pad_length_mm: float = 4.0
    pad_spacing_mm: float = 0.5
    phi_per_pad: float = 0.0436

    @property
    def pad_gap_mm(self) -> float:
        return self.drift_length_mm - self.cell_radius_mm

    @property
    def wire_length_mm(self) -> float:
        return float(np.linalg.norm(self.wire_bottom_mm - self.wire_top_mm))


@dataclass(frozen=True)
class DriftCalibration:
    tof_ns: float = 5.0
    a_t: float = 38.0
    b_t: float = 16.0
    c_t: float = -2.3
    d_t: float = 0.25
    a_phi: float = 0.012
    b_phi: float = 0.0015
    c_phi: float = 2.0e-5
    d_phi: float = 1.0e-6
    a_z: float = 0.004
    b_z: float = 0.0002

    def time(self, s):
        return self.tof_ns + s * (self.a_t + s * (self.b_t + s * (self.c_t + s * self.d_t)))

    def dtime_ds(self, s):
        return self.a_t + s * (2 * self.b_t + s * (3 * self.c_t + s * 4 * self.d_t))

    def phi(self, s):
        return self.a_phi * s + self.b_phi * s * s

    def sigma_phi(self, s):
        return np.sqrt(np.maximum(self.c_phi * s + self.d_phi * s * s, 0.0))

    def sigma_z(self, s):
        return np.sqrt(np.maximum(self.a_z * s + self.b_z * s * s, 0.0))

    def sigma_t(self, s):
        return self.sigma_z(s) * np.abs(self.dtime_ds(s))


@dataclass(frozen=True, slots=True)
class StageSpread:
    """Drift time/angle and their spreads at one transition point."""
    s_mm: float
    t_ns: float
    sigma_t_ns: float
    phi_rad: float
    sigma_phi_rad: float
    sigma_z_mm: float


@dataclass(frozen=True, slots=True)
class DriftEstimate:
    doca_mm: float
    drift_time_ns: float
    amplification: StageSpread
    pads: StageSpread
    end: StageSpread
    pad_shift: float
    out_of_range: bool = False
    reason: Optional[str] = None

    @property
    def stages(self) -> Tuple[StageSpread, StageSpread, StageSpread]:
        return (self.amplification, self.pads, self.end)

    @classmethod
    def from_time(cls, drift_time_ns: float) -> "DriftEstimate":
        """Estimate with a known drift time and no diffusion (external timing)."""
        st = StageSpread(0.0, float(drift_time_ns), 0.0, 0.0, 0.0, 0.0)
        return cls(doca_mm=0.0, drift_time_ns=float(drift_time_ns),
                   amplification=st, pads=st, end=st, pad_shift=0.0)


def compute_doca(
    r_mm: np.ndarray,
    wire_top_mm: np.ndarray,
    wire_bottom_mm: np.ndarray,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Perpendicular distance from point(s) to the wire line.

    Returns
    -------
    doca_mm, along
        `along` is the fractional position of the projection on the wire
        segment (0 at top, 1 at bottom); values outside [0, 1] fall beyond
        the wire ends.
    """
    r = np.atleast_2d(np.asarray(r_mm, dtype=np.float64))
    top = np.asarray(wire_top_mm, dtype=np.float64)
    u = np.asarray(wire_bottom_mm, dtype=np.float64) - top
    uu = float(u @ u)
    if uu == 0:
        raise ValueError("Zero-length wire")
    w = r - top
    along = (w @ u) / uu
    perp = w - along[:, None] * u[None, :]
    return np.linalg.norm(perp, axis=1), along


class DriftPhysicsModel:
    """
    Maps Steps to DriftEstimates for a fixed geometry/calibration.

    Out-of-range steps (doca beyond the cell radius, or projecting beyond the
    wire ends) are evaluated at the clamped doca and flagged; pass
    strict=True to get an OutOfRangeGeometry exception instead.
    """

    def __init__(self, geometry: DriftGeometry, calibration: DriftCalibration | None = None):
        self.geometry = geometry
        self.calibration = calibration or DriftCalibration()

    @classmethod
    def from_cfg(cls, cfg_drift) -> "DriftPhysicsModel":
        geom = DriftGeometry(
            wire_top_mm=np.asarray(cfg_drift.wire_top_mm, dtype=np.float64),
            wire_bottom_mm=np.asarray(cfg_drift.wire_bottom_mm, dtype=np.float64),
            cell_radius_mm=cfg_drift.cell_radius_mm,
            drift_length_mm=cfg_drift.drift_length_mm,
            pad_width_mm=cfg_drift.pad_width_mm,
            pad_length_mm=cfg_drift.pad_length_mm,
            pad_spacing_mm=cfg_drift.pad_spacing_mm,
            phi_per_pad=cfg_drift.phi_per_pad,
        )
        calib = DriftCalibration(
            tof_ns=cfg_drift.tof_ns,
            a_t=cfg_drift.a_t, b_t=cfg_drift.b_t, c_t=cfg_drift.c_t, d_t=cfg_drift.d_t,
            a_phi=cfg_drift.a_phi, b_phi=cfg_drift.b_phi,
            c_phi=cfg_drift.c_phi, d_phi=cfg_drift.d_phi,
            a_z=cfg_drift.a_z, b_z=cfg_drift.b_z,
        )
        return cls(geom, calib)

    # --- single-point physics -------------------------------------------

    def _stage(self, s: float) -> StageSpread:
        c = self.calibration
        return StageSpread(
            s_mm=float(s),
            t_ns=float(c.time(s)),
            sigma_t_ns=float(c.sigma_t(s)),
            phi_rad=float(c.phi(s)),
            sigma_phi_rad=float(c.sigma_phi(s)),
            sigma_z_mm=float(c.sigma_z(s)),
        )

    def from_doca(self, doca_mm: float, along: float = 0.5, strict: bool = False) -> DriftEstimate:
        """Drift estimate for a given doca (and position along the wire)."""
        g = self.geometry
        reason = None
        if not np.isfinite(doca_mm) or doca_mm < 0:
            reason = f"invalid doca {doca_mm!r} mm"
        elif doca_mm > g.cell_radius_mm:
            reason = f"doca {doca_mm:.3f} mm beyond cell radius {g.cell_radius_mm} mm"
        elif along < 0.0 or along > 1.0:
            reason = f"projection {along:.3f} outside wire segment"
        if reason is not None and strict:
            raise OutOfRangeGeometry(reason)

        d = float(np.clip(doca_mm, 0.0, g.cell_radius_mm)) if np.isfinite(doca_mm) else g.cell_radius_mm
        amp = self._stage(d)
        pads = self._stage(d + g.pad_gap_mm)
        end = self._stage(g.drift_length_mm)
        return DriftEstimate(
            doca_mm=float(doca_mm),
            drift_time_ns=amp.t_ns,
            amplification=amp,
            pads=pads,
            end=end,
            pad_shift=pads.phi_rad / g.phi_per_pad,
            out_of_range=reason is not None,
            reason=reason,
        )

    def estimate(self, step: Step, strict: bool = False) -> DriftEstimate:
        doca, along = compute_doca(step.r_mm, self.geometry.wire_top_mm, self.geometry.wire_bottom_mm)
        return self.from_doca(float(doca[0]), float(along[0]), strict=strict)

    def estimate_many(self, steps: Sequence[Step] | Iterable[Step], strict: bool = False) -> Tuple[DriftEstimate, ...]:
        steps = list(steps)
        if not steps:
            return ()
        r = np.stack([s.r_mm for s in steps], axis=0)
        doca, along = compute_doca(r, self.geometry.wire_top_mm, self.geometry.wire_bottom_mm)
        return tuple(self.from_doca(float(d), float(a), strict=strict) for d, a in zip(doca, along))
