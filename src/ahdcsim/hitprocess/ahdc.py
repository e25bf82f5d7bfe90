"""
ahdcsim.hitprocess.ahdc

Framework-facing side of the digitization: turns one HitRecord into the three
mappings the enclosing hit-processing framework collects.

- integrate_dgt: name -> scalar, one digitized charge/time set per hit
- multi_dgt:     name -> list[int], the raw digitized samples
- charge_time:   step index -> [charge, time at the electronics]

Registration with the framework (factories, identifier sharing, translation
tables) lives outside this package.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol
import numpy as np

from ahdcsim.config.schemas import Config, DecoderCfg, DigitizationCfg, NoiseCfg
from ahdcsim.physics.drift import DriftPhysicsModel
from ahdcsim.physics.steps import HitRecord
from ahdcsim.electronics.hit_signal import Signal
from ahdcsim.electronics.waveform import landau_pulse

# integrate_dgt field -> Decode() key
_DGT_FIELDS = {
    "ADC_ADC": "max_value",
    "ADC_time": "t_ovr",
    "ADC_ped": "noise_level",
    "ADC_integral": "integral",
    "ADC_timestamp": "t_start",
    "ADC_t_cfd": "t_cfd",
    "ADC_mctime": "mctime",
    "ADC_nsteps": "nsteps",
    "ADC_mcEtot": "mcEtot",
    "ADC_energy": "energy_keV",
    "ADC_flags": "flags",
}
_INT_FIELDS = ("ADC_ADC", "ADC_ped", "ADC_integral", "ADC_nsteps", "ADC_flags")


class HitProcess(Protocol):
    """Capabilities the framework expects from a detector hit process."""

    def integrate_dgt(self, hit: HitRecord, hitn: int) -> Dict[str, float]: ...

    def multi_dgt(self, hit: HitRecord, hitn: int) -> Dict[str, List[int]]: ...

    def charge_time(self, hit: HitRecord, hitn: int) -> Dict[int, List[float]]: ...

    def voltage(self, charge: float, time: float, for_time: float) -> float: ...


@dataclass
class ProcessedHit:
    hitn: int
    dgt: Dict[str, float]
    multi: Dict[str, List[int]]
    charge_time: Dict[int, List[float]]
    decoded: Dict[str, Optional[float]]


class AHDCHitProcess:
    """
    Drift-chamber hit process: drift model -> waveform -> digitizer -> decoder.

    The instance only holds immutable configuration and the drift model, so
    one instance can serve every hit of a worker. Each hit gets its own
    Signal and its own noise stream.
    """

    def __init__(
        self,
        model: DriftPhysicsModel,
        digitization: DigitizationCfg | None = None,
        noise: NoiseCfg | None = None,
        decoder: DecoderCfg | None = None,
    ):
        self.model = model
        self.digitization = digitization or DigitizationCfg()
        self.noise = noise or NoiseCfg()
        self.decoder = decoder or DecoderCfg()

    @classmethod
    def from_config(cls, cfg: Config) -> "AHDCHitProcess":
        return cls(
            DriftPhysicsModel.from_cfg(cfg.drift),
            digitization=cfg.digitization,
            noise=cfg.noise,
            decoder=cfg.decoder,
        )

    # --- per hit ----------------------------------------------------------

    def make_signal(self, hit: HitRecord, hitn: int, rng: np.random.Generator | None = None) -> Signal:
        sig = Signal.from_record(hit, hitn, self.model, params=self.digitization)
        if self.noise.enabled:
            sig.generate_noise(self.noise.mean, self.noise.stdev, rng)
        sig.digitize()
        return sig

    def _dgt_from_decoded(self, sig: Signal, decoded: Dict[str, Optional[float]]) -> Dict[str, float]:
        dgt: Dict[str, float] = {
            "hitn": sig.hitn,
            "sector": sig.sector,
            "layer": sig.layer,
            "component": sig.component,
            "ADC_order": 0,
        }
        for name, key in _DGT_FIELDS.items():
            val = decoded.get(key)
            if val is None:
                continue  # undefined observables are left out, never NaN
            dgt[name] = int(val) if name in _INT_FIELDS else float(val)
        return dgt

    def _charge_time_of(self, sig: Signal) -> Dict[int, List[float]]:
        charge = sig.electron_yield * sig.edep
        t_elec = sig.g4time + sig.drift_time
        return {i: [float(q), float(t)] for i, (q, t) in enumerate(zip(charge, t_elec))}

    def integrate_dgt(self, hit: HitRecord, hitn: int, rng: np.random.Generator | None = None) -> Dict[str, float]:
        sig = self.make_signal(hit, hitn, rng)
        return self._dgt_from_decoded(sig, sig.decode(self.decoder))

    def multi_dgt(self, hit: HitRecord, hitn: int, rng: np.random.Generator | None = None) -> Dict[str, List[int]]:
        sig = self.make_signal(hit, hitn, rng)
        return {"wf": sig.digitized.tolist()}

    def charge_time(self, hit: HitRecord, hitn: int) -> Dict[int, List[float]]:
        sig = Signal.from_record(hit, hitn, self.model, params=self.digitization)
        return self._charge_time_of(sig)

    def voltage(self, charge: float, time: float, for_time: float) -> float:
        """Single-step pulse of `charge` peaking at `time`, read at `for_time`."""
        d = self.digitization
        peak = float(np.clip(time, d.tmin, d.tmax))
        return float(charge * landau_pulse(for_time - d.delay, peak, d.landau_width))

    def process(self, hit: HitRecord, hitn: int, rng: np.random.Generator | None = None) -> ProcessedHit:
        """All three framework mappings from a single digitization."""
        sig = self.make_signal(hit, hitn, rng)
        decoded = sig.decode(self.decoder)
        return ProcessedHit(
            hitn=hitn,
            dgt=self._dgt_from_decoded(sig, decoded),
            multi={"wf": sig.digitized.tolist()},
            charge_time=self._charge_time_of(sig),
            decoded=decoded,
        )
