from __future__ import annotations
from typing import Callable, Sequence, Union
import numpy as np
from scipy.stats import landau

# scipy.stats.landau is the Boost standard form: mode at -0.42931..., and its
# scale is pi/2 times the classic (CERNLIB) Landau width.
LANDAU_MODE = -0.42931452986133525
LANDAU_SCALE = np.pi / 2.0
LANDAU_WIDTH_MAX = 400.0

ArrayLike = Union[float, Sequence[float], np.ndarray]
Waveform = Callable[[ArrayLike], Union[float, np.ndarray]]


def landau_pulse(t: ArrayLike, peak: float, width: float) -> np.ndarray:
    """
    Unit-area Landau pulse with its maximum at `peak` [ns].

    `width` [ns] is the classic Landau width, so the height is 0.1807 / width
    and the area (collected charge) does not depend on it.
    """
    t = np.asarray(t, dtype=np.float64)
    c = LANDAU_SCALE * width
    return landau.pdf((t - peak) / c + LANDAU_MODE) / c


def make_waveform(
    edep_keV: Sequence[float],
    drift_time_ns: Sequence[float],
    *,
    delay: float,
    width: Union[float, Sequence[float]],
    tmin: float,
    tmax: float,
) -> Waveform:
    """
    Analog response of one hit as a pure function of time.

        waveform(t) = sum_s edep[s] * landau_pulse(t - delay; peak=drift[s], width[s])

    Peaks are bounded to [tmin, tmax] and widths to (0, 400] ns, the same
    bounds the front-end shape parameters are allowed to take. `width` is
    either shared by all steps or given per step. The returned closure has
    no side effects; scalar input gives a float, array input an array.
    """
    e = np.asarray(edep_keV, dtype=np.float64).reshape(-1)
    peaks = np.clip(np.asarray(drift_time_ns, dtype=np.float64).reshape(-1), tmin, tmax)
    if e.shape != peaks.shape:
        raise ValueError(f"edep ({e.size}) and drift times ({peaks.size}) differ in length")
    if np.any(e < 0):
        raise ValueError("Energies must be non-negative")

    w = np.broadcast_to(np.asarray(width, dtype=np.float64), e.shape).copy()
    if np.any(w <= 0):
        raise ValueError("Landau width must be positive")
    w = np.minimum(w, LANDAU_WIDTH_MAX)
    c = LANDAU_SCALE * w

    def waveform(t: ArrayLike):
        tt = np.asarray(t, dtype=np.float64)
        flat = np.atleast_1d(tt).reshape(-1)
        if e.size == 0:
            out = np.zeros_like(flat)
        else:
            x = (flat[None, :] - delay - peaks[:, None]) / c[:, None] + LANDAU_MODE
            out = e @ (landau.pdf(x) / c[:, None])
        if tt.ndim == 0:
            return float(out[0])
        return out.reshape(tt.shape)

    return waveform
