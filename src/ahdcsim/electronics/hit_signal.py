from __future__ import annotations
from typing import Dict, List, Optional, Sequence
import numpy as np

from ahdcsim.config.schemas import DecoderCfg, DigitizationCfg
from ahdcsim.physics.drift import DriftEstimate, DriftPhysicsModel
from ahdcsim.physics.steps import HitRecord, Step, steps_from_arrays
from .waveform import Waveform, make_waveform
from .digitizer import DigitizedWaveform, digitize, generate_noise, n_samples, sample_times
from .decoder import apply_cfd, decode, estimate_pedestal


class Signal:
    """
    Signal of one drift-chamber hit.

    Holds the raw Steps and their DriftEstimates (index-aligned, computed
    once at construction), the digitization parameters, and after the
    explicit calls the injected noise and the digitized samples.

    The digitization parameters are plain attributes. Changing them only
    affects later digitize() calls; stored samples are never recomputed
    behind the caller's back.
    """

    def __init__(
        self,
        steps: Sequence[Step],
        estimates: Sequence[DriftEstimate],
        *,
        hitn: int = 0,
        sector: int = 0,
        layer: int = 0,
        component: int = 0,
        params: DigitizationCfg | None = None,
        step_widths: Optional[Sequence[float]] = None,
    ):
        self.steps = tuple(steps)
        self.estimates = tuple(estimates)
        if len(self.steps) != len(self.estimates):
            raise ValueError(
                f"{len(self.steps)} steps but {len(self.estimates)} drift estimates"
            )
        self.hitn = hitn
        self.sector = sector
        self.layer = layer
        self.component = component

        p = params or DigitizationCfg()
        self.sampling_time = p.sampling_time
        self.electron_yield = p.electron_yield
        self.adc_max = p.adc_max
        self.tmin = p.tmin
        self.tmax = p.tmax
        self.delay = p.delay
        self.landau_width = p.landau_width
        self.step_widths = None if step_widths is None else np.asarray(step_widths, dtype=np.float64)

        self.noise: Optional[np.ndarray] = None
        self.dgtz: Optional[np.ndarray] = None
        self.digitized: Optional[DigitizedWaveform] = None

    # --- constructors -----------------------------------------------------

    @classmethod
    def from_record(
        cls,
        record: HitRecord,
        hitn: int,
        model: DriftPhysicsModel,
        params: DigitizationCfg | None = None,
        strict: bool = False,
    ) -> "Signal":
        steps = record.steps()
        return cls(
            steps,
            model.estimate_many(steps, strict=strict),
            hitn=hitn,
            sector=record.hit_id.sector,
            layer=record.hit_id.layer,
            component=record.hit_id.component,
            params=params,
        )

    @classmethod
    def from_drift_times(
        cls,
        edep_keV: Sequence[float],
        drift_time_ns: Sequence[float],
        t_ns: Optional[Sequence[float]] = None,
        **kwargs,
    ) -> "Signal":
        """Signal with externally known drift times (no geometry involved)."""
        t = list(t_ns) if t_ns is not None else [0.0] * len(edep_keV)
        steps = steps_from_arrays(edep_keV, t)
        return cls(steps, [DriftEstimate.from_time(d) for d in drift_time_ns], **kwargs)

    # --- per-step views ---------------------------------------------------

    @property
    def nsteps(self) -> int:
        return len(self.steps)

    @property
    def edep(self) -> np.ndarray:
        return np.array([s.edep_keV for s in self.steps], dtype=np.float64)

    @property
    def g4time(self) -> np.ndarray:
        return np.array([s.t_ns for s in self.steps], dtype=np.float64)

    @property
    def doca(self) -> np.ndarray:
        return np.array([e.doca_mm for e in self.estimates], dtype=np.float64)

    @property
    def drift_time(self) -> np.ndarray:
        return np.array([e.drift_time_ns for e in self.estimates], dtype=np.float64)

    @property
    def out_of_range_steps(self) -> List[int]:
        return [i for i, e in enumerate(self.estimates) if e.out_of_range]

    @property
    def n_samples(self) -> int:
        return n_samples(self.tmin, self.tmax, self.sampling_time)

    # --- analog -----------------------------------------------------------

    def make_waveform(self) -> Waveform:
        widths = self.landau_width if self.step_widths is None else self.step_widths
        return make_waveform(
            self.edep,
            self.drift_time,
            delay=self.delay,
            width=widths,
            tmin=self.tmin,
            tmax=self.tmax,
        )

    def waveform(self, t):
        """Analog response [keV/ns] at time(s) t [ns]."""
        return self.make_waveform()(t)

    # --- noise & digitization ---------------------------------------------

    def set_noise(self, noise: Sequence[float]) -> None:
        self.noise = np.asarray(noise, dtype=np.float64).copy()

    def generate_noise(self, mean: float, stdev: float, rng: np.random.Generator | None = None) -> np.ndarray:
        self.noise = generate_noise(self.n_samples, mean, stdev, rng)
        return self.noise

    def digitize(self) -> np.ndarray:
        """Sample, add noise and convert to ADC codes; overwrites previous samples."""
        self.digitized = digitize(
            self.make_waveform(),
            tmin=self.tmin,
            tmax=self.tmax,
            sampling_time=self.sampling_time,
            electron_yield=self.electron_yield,
            adc_max=self.adc_max,
            noise=self.noise,
        )
        self.dgtz = self.digitized.samples
        return self.dgtz

    # --- decoding ---------------------------------------------------------

    def apply_cfd(self, fraction: float = 0.5, delay: int = 0, analog: bool = False,
                  n_baseline: int = 5) -> float:
        """
        CFD time on the digitized samples, or on the noiseless analog
        waveform sampled at the same cadence when analog=True.
        """
        if analog:
            t = sample_times(self.tmin, self.tmax, self.sampling_time)
            x = self.electron_yield * np.asarray(self.make_waveform()(t))
            return apply_cfd(x, tmin=self.tmin, sampling_time=self.sampling_time,
                             fraction=fraction, delay=delay)
        if self.digitized is None:
            self.digitize()
        d = self.digitized
        return apply_cfd(d.samples, tmin=d.tmin, sampling_time=d.sampling_time,
                         fraction=fraction, delay=delay,
                         pedestal=estimate_pedestal(d.samples, n_baseline))

    def decode(self, cfg: DecoderCfg | None = None) -> Dict[str, Optional[float]]:
        cfg = cfg or DecoderCfg()
        if self.digitized is None:
            self.digitize()
        d = self.digitized
        # timing and energy scale come from the stored samples, not current attributes
        return decode(
            d.samples,
            edep_keV=self.edep,
            t_ns=self.g4time,
            tmin=d.tmin,
            sampling_time=d.sampling_time,
            electron_yield=d.electron_yield,
            cfd_fraction=cfg.cfd_fraction,
            cfd_delay=cfg.cfd_delay,
            n_baseline=cfg.n_baseline,
            tot_threshold=cfg.tot_threshold,
            n_saturated=d.n_saturated,
            n_out_of_range=len(self.out_of_range_steps),
        )

    def get_mc_time(self) -> Optional[float]:
        return float(self.g4time.min()) if self.nsteps else None

    def get_mc_etot(self) -> float:
        return float(self.edep.sum())

    def __repr__(self) -> str:
        return (f"Signal(hitn={self.hitn}, sector={self.sector}, layer={self.layer}, "
                f"component={self.component}, nsteps={self.nsteps})")
