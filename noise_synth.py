"""
Hemi-Sync - Noise Synthesizer
Looping background pink noise from white noise through a leaky integrator:

    y[0] = 0
    y[n] = (y[n-1] + k * white[n]) / (1 + k)
    out[n] = y[n] * attenuation
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.signal import lfilter

from config import NoiseConfig
from logging_utils import log_event


def generate_pink_noise(
    sample_rate: int,
    duration_s: float = 2.0,
    leak: float = 0.02,
    attenuation: float = 0.1,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Return a mono buffer bounded to [-attenuation, attenuation]."""
    length = max(1, int(round(sample_rate * duration_s)))
    rng = rng if rng is not None else np.random.default_rng()
    white = rng.uniform(-1.0, 1.0, length)
    white[0] = 0.0  # forces y[0] == 0

    # y[n] - y[n-1]/(1+k) = k/(1+k) * white[n]
    b = [leak / (1.0 + leak)]
    a = [1.0, -1.0 / (1.0 + leak)]
    pink = lfilter(b, a, white)
    return np.clip(pink, -1.0, 1.0) * attenuation


class NoiseSynthesizer:
    """Owns at most one looping buffer source at a time."""

    def __init__(self, device, noise_config: Optional[NoiseConfig] = None):
        self.device = device
        self.config = noise_config or NoiseConfig()
        self._source = None
        self._seed_sequence = np.random.SeedSequence(self.config.seed) if self.config.seed is not None else None

    @property
    def enabled(self) -> bool:
        return self._source is not None

    @property
    def source(self):
        return self._source

    def _rng(self) -> np.random.Generator:
        if self._seed_sequence is None:
            return np.random.default_rng()
        return np.random.default_rng(self._seed_sequence.spawn(1)[0])

    def enable(self, destination) -> None:
        """Generate a fresh buffer and start looping it into ``destination``."""
        if self._source is not None:
            return
        buffer = generate_pink_noise(
            self.device.sample_rate,
            duration_s=self.config.duration_s,
            leak=self.config.leak,
            attenuation=self.config.attenuation,
            rng=self._rng(),
        )
        source = self.device.create_buffer_source(buffer, loop=True)
        source.connect(destination)
        source.start()
        self._source = source
        log_event("INFO", "Noise", "Pink noise enabled", samples=len(buffer))

    def disable(self) -> None:
        if self._source is None:
            return
        source, self._source = self._source, None
        source.stop()
        source.release()
        log_event("INFO", "Noise", "Pink noise disabled")
