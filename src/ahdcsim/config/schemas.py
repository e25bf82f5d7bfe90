from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import List, Literal, Optional, Union

class RunCfg(BaseModel):
    """
    Global run controls.

    TOML:

    [run]
    workers = "auto"          # int | "auto"; 0 = single process
    seed = 12345              # master seed for per-hit noise streams
    diagnostics_level = 1     # 0=off, 1=minimal, 2=verbose
    """

    workers: Union[int, Literal["auto"]] = "auto"
    chunk_hits: Union[int, Literal["auto"]] = "auto"
    seed: Optional[int] = None
    progress: bool = True

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("workers")
    def _workers_non_negative(cls, v):
        if isinstance(v, int) and v < 0:
            raise ValueError("workers must be >= 0 or 'auto'")
        return v


class DigitizationCfg(BaseModel):
    """
    Front-end sampling parameters (defaults are the fixed calibration values).

    Both the historical option names and snake_case are accepted:

    [digitization]
    samplingTime  = 44.0     # ns
    electronYield = 9500.0   # ADC gain
    adc_max       = 4095     # 12 bits
    tmin          = 0.0      # ns
    tmax          = 6000.0   # ns
    delay         = 1000.0   # ns
    Landau_width  = 240.0    # ns
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sampling_time: float = Field(44.0, alias="samplingTime", gt=0)
    electron_yield: float = Field(9500.0, alias="electronYield", gt=0)
    adc_max: int = Field(4095, gt=0)
    tmin: float = 0.0
    tmax: float = 6000.0
    delay: float = 1000.0
    landau_width: float = Field(240.0, alias="Landau_width", gt=0, le=400)

    @model_validator(mode="after")
    def _window(self) -> "DigitizationCfg":
        if self.tmax <= self.tmin:
            raise ValueError(f"tmax ({self.tmax}) must be larger than tmin ({self.tmin})")
        return self


class NoiseCfg(BaseModel):
    """Gaussian electronics noise; mean acts as the ADC pedestal."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    mean: float = 300.0
    stdev: float = Field(5.0, ge=0)


class DecoderCfg(BaseModel):
    model_config = ConfigDict(frozen=True)

    cfd_fraction: float = Field(0.5, gt=0, le=1)
    cfd_delay: int = Field(0, ge=0)  # index units
    n_baseline: int = Field(5, ge=1)  # samples used for the pedestal
    tot_threshold: float = Field(10.0, ge=0)  # ADC above pedestal


class DriftCfg(BaseModel):
    """
    Cell geometry and drift/diffusion coefficients (mm, ns, rad).

    TOML:

    [drift]
    cell_radius_mm  = 4.0
    drift_length_mm = 6.0
    a_t = 38.0   # ns/mm
    ...
    """

    model_config = ConfigDict(frozen=True)

    # Sense wire, local coordinates
    wire_top_mm: List[float] = [0.0, 0.0, -150.0]
    wire_bottom_mm: List[float] = [0.0, 0.0, 150.0]

    # Geometry
    cell_radius_mm: float = Field(4.0, gt=0)
    drift_length_mm: float = Field(6.0, gt=0)
    pad_width_mm: float = Field(4.0, gt=0)
    pad_length_mm: float = Field(4.0, gt=0)
    pad_spacing_mm: float = Field(0.5, ge=0)
    phi_per_pad: float = Field(0.0436, gt=0)

    # Drift time, drift angle and diffusion polynomials
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

    @field_validator("wire_top_mm", "wire_bottom_mm")
    def _three_vector(cls, v: List[float]) -> List[float]:
        if len(v) != 3:
            raise ValueError("wire end points must have 3 coordinates")
        return v

    @model_validator(mode="after")
    def _envelope(self) -> "DriftCfg":
        if self.drift_length_mm < self.cell_radius_mm:
            raise ValueError(
                f"drift_length_mm ({self.drift_length_mm}) must be >= "
                f"cell_radius_mm ({self.cell_radius_mm})"
            )
        if self.wire_top_mm == self.wire_bottom_mm:
            raise ValueError("wire end points must differ")
        return self


class SynthCfg(BaseModel):
    """Synthetic track source used by the pipeline and demos."""
    n_hits: int = Field(100, ge=0)
    steps_per_hit: int = Field(8, ge=1)
    superlayer: int = 1
    layer_index: int = 1
    component: int = 1
    max_doca_mm: Optional[float] = None  # defaults to drift.cell_radius_mm
    mean_edep_MeV: float = Field(0.002, gt=0)
    t0_ns: float = 5.0


class VisCfg(BaseModel):
    export_png: bool = False
    png_path: str = "waveform.png"


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    digitization: DigitizationCfg = Field(default_factory=DigitizationCfg)
    noise: NoiseCfg = Field(default_factory=NoiseCfg)
    decoder: DecoderCfg = Field(default_factory=DecoderCfg)
    drift: DriftCfg = Field(default_factory=DriftCfg)
    synth: SynthCfg = Field(default_factory=SynthCfg)
    vis: VisCfg = Field(default_factory=VisCfg)
