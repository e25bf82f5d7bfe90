from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np

from .waveform import Waveform


@dataclass(frozen=True)
class DigitizedWaveform:
    samples: np.ndarray  # int64, clamped to [0, adc_max]
    # settings the samples were taken with
    tmin: float
    sampling_time: float
    electron_yield: float
    n_saturated: int = 0
    n_underflow: int = 0

    def __len__(self) -> int:
        return int(self.samples.size)

    def tolist(self) -> list[int]:
        return [int(v) for v in self.samples]


def n_samples(tmin: float, tmax: float, sampling_time: float) -> int:
    """Number of samples ceil((tmax - tmin) / sampling_time) in the window."""
    if sampling_time <= 0:
        raise ValueError(f"sampling_time must be positive, got {sampling_time}")
    if tmax <= tmin:
        raise ValueError(f"Empty sampling window [{tmin}, {tmax}]")
    # tolerance keeps exact multiples from rounding up
    return int(np.ceil((tmax - tmin) / sampling_time - 1e-9))


def sample_times(tmin: float, tmax: float, sampling_time: float) -> np.ndarray:
    n = n_samples(tmin, tmax, sampling_time)
    return tmin + sampling_time * np.arange(n, dtype=np.float64)


def generate_noise(
    n: int,
    mean: float,
    stdev: float,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    """Gaussian electronics noise; the caller owns the generator."""
    rng = rng or np.random.default_rng()
    if stdev == 0:
        return np.full(n, float(mean))
    return rng.normal(mean, stdev, size=n)


def digitize(
    waveform: Waveform,
    *,
    tmin: float,
    tmax: float,
    sampling_time: float,
    electron_yield: float,
    adc_max: int,
    noise: Optional[Sequence[float]] = None,
) -> DigitizedWaveform:
    """
    Sample `waveform` from tmin every `sampling_time`, apply the gain, add the
    matching noise entry, truncate to an integer code and clamp to [0, adc_max].

    `noise` must have exactly n_samples(tmin, tmax, sampling_time) entries;
    None means noiseless electronics.
    """
    t = sample_times(tmin, tmax, sampling_time)
    n = t.size
    if noise is None:
        nz = np.zeros(n)
    else:
        nz = np.asarray(noise, dtype=np.float64).reshape(-1)
        if nz.size != n:
            raise ValueError(f"Noise has {nz.size} entries, expected {n}")

    analog = electron_yield * np.asarray(waveform(t), dtype=np.float64) + nz
    codes = np.floor(analog)
    n_sat = int(np.count_nonzero(codes > adc_max))
    n_under = int(np.count_nonzero(codes < 0))
    samples = np.clip(codes, 0, adc_max).astype(np.int64)
    return DigitizedWaveform(
        samples=samples,
        tmin=float(tmin),
        sampling_time=float(sampling_time),
        electron_yield=float(electron_yield),
        n_saturated=n_sat,
        n_underflow=n_under,
    )
