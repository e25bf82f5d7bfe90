from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple
import numpy as np

KEV_PER_MEV = 1000.0

@dataclass(frozen=True, slots=True)
class Step:
    """
    One raw energy-deposit record along a particle path.

    edep_keV: deposited energy [keV], >= 0
    t_ns: absolute time [ns]
    r_mm: position [mm], shape (3,)
    """
    edep_keV: float
    t_ns: float
    r_mm: np.ndarray

    def __post_init__(self):
        if self.edep_keV < 0:
            raise ValueError(f"Negative energy deposit: {self.edep_keV} keV")


@dataclass(frozen=True, slots=True)
class HitId:
    sector: int
    superlayer: int
    layer_index: int
    component: int

    @property
    def layer(self) -> int:
        return 10 * self.superlayer + self.layer_index


@dataclass(slots=True)
class HitRecord:
    """
    Raw hit as handed over by the enclosing hit-processing framework.

    Sequences are parallel (one entry per step). Energies arrive in MeV
    and are converted to keV by .steps().
    """
    hit_id: HitId
    edep_MeV: np.ndarray
    t_ns: np.ndarray
    r_mm: np.ndarray  # (N, 3)
    extras: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.edep_MeV = np.asarray(self.edep_MeV, dtype=np.float64).reshape(-1)
        self.t_ns = np.asarray(self.t_ns, dtype=np.float64).reshape(-1)
        self.r_mm = np.asarray(self.r_mm, dtype=np.float64).reshape(-1, 3)
        n = self.edep_MeV.size
        if self.t_ns.size != n or self.r_mm.shape[0] != n:
            raise ValueError(
                f"HitRecord sequences differ in length: "
                f"edep={n}, t={self.t_ns.size}, r={self.r_mm.shape[0]}"
            )
        if np.any(self.edep_MeV < 0):
            raise ValueError("HitRecord contains negative energy deposits")

    def __len__(self) -> int:
        return int(self.edep_MeV.size)

    def steps(self) -> Tuple[Step, ...]:
        return tuple(
            Step(edep_keV=float(e) * KEV_PER_MEV, t_ns=float(t), r_mm=r.copy())
            for e, t, r in zip(self.edep_MeV, self.t_ns, self.r_mm)
        )


def steps_from_arrays(
    edep_keV: Sequence[float],
    t_ns: Sequence[float],
    r_mm: Sequence[Sequence[float]] | None = None,
) -> Tuple[Step, ...]:
    """Build Steps directly in keV; positions default to the origin."""
    n = len(edep_keV)
    if len(t_ns) != n:
        raise ValueError(f"edep_keV ({n}) and t_ns ({len(t_ns)}) differ in length")
    if r_mm is None:
        r = np.zeros((n, 3))
    else:
        r = np.asarray(r_mm, dtype=np.float64).reshape(-1, 3)
    return tuple(Step(float(e), float(t), r[i].copy()) for i, (e, t) in enumerate(zip(edep_keV, t_ns)))
