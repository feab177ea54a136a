import numpy as np


def dominant_frequency(samples: np.ndarray | None, sample_rate: int,
                       freq_low: float = 0.0, freq_high: float | None = None) -> float:
    """Strongest frequency of a mono signal, refined by parabolic peak interpolation."""
    if samples is None or len(samples) < 4:
        return 0.0

    windowed = np.asarray(samples, dtype=np.float64) * np.hanning(len(samples))
    spectrum = np.abs(np.fft.rfft(windowed))
    freq_per_bin = sample_rate / len(samples)

    low_bin = max(1, int(freq_low / freq_per_bin))
    high_bin = len(spectrum) - 2
    if freq_high is not None:
        high_bin = min(high_bin, int(freq_high / freq_per_bin) + 1)
    if low_bin >= high_bin:
        return 0.0

    peak = low_bin + int(np.argmax(spectrum[low_bin:high_bin + 1]))
    alpha, beta, gamma = spectrum[peak - 1], spectrum[peak], spectrum[peak + 1]
    denom = alpha - 2.0 * beta + gamma
    offset = 0.5 * (alpha - gamma) / denom if denom != 0 else 0.0
    return (peak + offset) * freq_per_bin


def channel_rms(block: np.ndarray) -> tuple[float, float]:
    """RMS level of the left and right channels of a (frames, 2) block."""
    if block is None or len(block) == 0:
        return 0.0, 0.0
    rms = np.sqrt(np.mean(np.square(block.astype(np.float64)), axis=0))
    return float(rms[0]), float(rms[1])
