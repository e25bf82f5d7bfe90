import numpy as np
import matplotlib.pyplot as plt
from pathlib import Path

def save_waveform_png(signal, out_png: str | None = None, n_fine: int = 2000):
    """
    Plot the analog waveform (scaled by the electron yield) over the
    digitized samples of one Signal.
    """
    if out_png is None:
        out_png = f"hit_{signal.hitn}.png"

    t_fine = np.linspace(signal.tmin, signal.tmax, n_fine)
    analog = signal.electron_yield * np.asarray(signal.waveform(t_fine))
    if signal.noise is not None and signal.noise.size:
        analog = analog + float(np.mean(signal.noise))

    plt.figure()
    plt.plot(t_fine, analog, label="analog")
    d = signal.digitized
    if d is not None:
        t = d.tmin + d.sampling_time * np.arange(len(d))
        plt.step(t, d.samples, where="post", label="ADC")
    plt.xlabel("t [ns]")
    plt.ylabel("ADC")
    plt.title(f"{Path(out_png).stem} : layer {signal.layer} component {signal.component}")
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_png, dpi=150)
    plt.close()
    return out_png
