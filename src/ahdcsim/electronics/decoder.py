from __future__ import annotations
from typing import Dict, Optional, Sequence
import numpy as np

# Decode() status bits
EMPTY_HIT = 1
OUT_OF_RANGE = 2
NO_THRESHOLD_CROSSING = 4
SATURATED = 8


class NoThresholdCrossing(ValueError):
    """The discriminator never fired inside the sampling window."""


def estimate_pedestal(samples: Sequence[float], n_baseline: int = 5) -> float:
    x = np.asarray(samples, dtype=np.float64)
    if x.size == 0:
        return 0.0
    return float(x[: max(1, n_baseline)].mean())


def apply_cfd(
    samples: Sequence[float],
    *,
    tmin: float,
    sampling_time: float,
    fraction: float = 0.5,
    delay: int = 0,
    pedestal: float = 0.0,
    arm_fraction: float = 0.1,
) -> float:
    """
    Constant-fraction discriminator on a sampled waveform.

    delay == 0
        Leading-edge constant fraction: earliest sample at or above
        fraction * peak, linearly interpolated with the previous sample.
    delay > 0
        Classic CFD: bipolar signal fraction * x[i] - x[i - delay]; returns the
        first positive -> non-positive zero crossing once the input is above
        arm_fraction * peak.

    Returns the crossing time [ns] on the sample time axis (tmin + i * dt).
    Raises NoThresholdCrossing when the peak is not positive or nothing
    crosses inside the window.
    """
    x = np.asarray(samples, dtype=np.float64) - pedestal
    if x.size == 0:
        raise NoThresholdCrossing("empty waveform")
    if not 0 < fraction <= 1:
        raise ValueError(f"CFD fraction must be in (0, 1], got {fraction}")
    if delay < 0:
        raise ValueError(f"CFD delay must be >= 0, got {delay}")

    imax = int(np.argmax(x))
    peak = x[imax]
    if peak <= 0:
        raise NoThresholdCrossing(f"no positive signal (peak={peak:.3g})")
    thr = fraction * peak

    if delay == 0:
        i = int(np.flatnonzero(x >= thr)[0])
        if i == 0:
            return float(tmin)
        x0, x1 = x[i - 1], x[i]
        return float(tmin + (i - 1 + (thr - x0) / (x1 - x0)) * sampling_time)

    delayed = np.zeros_like(x)
    if delay < x.size:
        delayed[delay:] = x[:-delay]
    bip = fraction * x - delayed

    armed = np.flatnonzero(x >= arm_fraction * peak)
    start = max(1, int(armed[0]))
    stop = min(x.size, imax + delay + 1)
    i_rng = np.arange(start, stop)
    hits = i_rng[(bip[i_rng - 1] > 0) & (bip[i_rng] <= 0)]
    if hits.size == 0:
        raise NoThresholdCrossing(
            f"CFD (fraction={fraction}, delay={delay}) has no zero crossing in window"
        )
    i = int(hits[0])
    b0, b1 = bip[i - 1], bip[i]
    return float(tmin + (i - 1 + b0 / (b0 - b1)) * sampling_time)


def decode(
    samples: Sequence[float],
    *,
    edep_keV: Sequence[float],
    t_ns: Sequence[float],
    tmin: float,
    sampling_time: float,
    electron_yield: float,
    cfd_fraction: float = 0.5,
    cfd_delay: int = 0,
    n_baseline: int = 5,
    tot_threshold: float = 10.0,
    n_saturated: int = 0,
    n_out_of_range: int = 0,
) -> Dict[str, Optional[float]]:
    """
    Extract scalar observables from one digitized waveform.

    Keys
    ----
    t_cfd, t_start, t_ovr, t_max : ns, or None when undefined
    max_value, noise_level, integral : ADC units (pedestal-subtracted)
    energy_keV : integral * sampling_time / electron_yield
    mctime, mcEtot, nsteps : truth aggregates of the raw steps
    flags : bitmask of EMPTY_HIT / OUT_OF_RANGE / NO_THRESHOLD_CROSSING / SATURATED
    """
    e = np.asarray(edep_keV, dtype=np.float64)
    t = np.asarray(t_ns, dtype=np.float64)
    nsteps = int(e.size)

    out: Dict[str, Optional[float]] = {
        "mctime": float(t.min()) if t.size else None,
        "mcEtot": float(e.sum()) if e.size else 0.0,
        "nsteps": nsteps,
    }

    flags = 0
    if nsteps == 0:
        flags |= EMPTY_HIT
    if n_out_of_range:
        flags |= OUT_OF_RANGE
    if n_saturated:
        flags |= SATURATED

    raw = np.asarray(samples, dtype=np.float64)
    ped = estimate_pedestal(raw, n_baseline)
    x = raw - ped
    out["noise_level"] = ped
    out["integral"] = float(x.sum())
    out["energy_keV"] = float(x.sum() * sampling_time / electron_yield)

    out["max_value"] = 0.0
    out["t_max"] = None
    out["t_start"] = None
    out["t_ovr"] = None
    out["t_cfd"] = None

    if nsteps == 0 or x.size == 0:
        # nothing deposited: whatever is left is pedestal noise
        out["integral"] = 0.0
        out["energy_keV"] = 0.0
        flags |= NO_THRESHOLD_CROSSING
        out["flags"] = flags
        return out

    imax = int(np.argmax(x))
    out["max_value"] = float(max(x[imax], 0.0))
    if x[imax] > 0:
        out["t_max"] = float(tmin + imax * sampling_time)

    above = np.flatnonzero(x >= tot_threshold) if x[imax] >= tot_threshold else np.empty(0, dtype=int)
    if above.size:
        out["t_start"] = float(tmin + above[0] * sampling_time)
        out["t_ovr"] = float((above[-1] - above[0] + 1) * sampling_time)

    try:
        out["t_cfd"] = apply_cfd(
            raw,
            tmin=tmin,
            sampling_time=sampling_time,
            fraction=cfd_fraction,
            delay=cfd_delay,
            pedestal=ped,
        )
    except NoThresholdCrossing:
        flags |= NO_THRESHOLD_CROSSING

    out["flags"] = flags
    return out
