from bisect import bisect_right
from dataclasses import dataclass
from enum import Enum


class BrainwaveBand(Enum):
    DELTA = "Delta"
    THETA = "Theta"
    ALPHA = "Alpha"
    BETA = "Beta"


# Lower edges of Theta, Alpha and Beta; each band is half-open [low, high)
_BAND_EDGES = (4.0, 8.0, 13.0)
_BANDS = (BrainwaveBand.DELTA, BrainwaveBand.THETA, BrainwaveBand.ALPHA, BrainwaveBand.BETA)


@dataclass(frozen=True)
class BeatAnalysis:
    beat_hz: float
    band: BrainwaveBand


def beat_frequency(left_hz: float, right_hz: float) -> float:
    """Perceived beat rate between the two ears."""
    return abs(float(left_hz) - float(right_hz))


def classify_band(beat_hz: float) -> BrainwaveBand:
    return _BANDS[bisect_right(_BAND_EDGES, beat_hz)]


def analyze(left_hz: float, right_hz: float) -> BeatAnalysis:
    beat = beat_frequency(left_hz, right_hz)
    return BeatAnalysis(beat_hz=beat, band=classify_band(beat))
