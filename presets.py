"""Factory presets modelled on the Monroe Institute Focus levels."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from config import Waveform

CUSTOM_PRESET = "Custom"


@dataclass(frozen=True)
class Preset:
    name: str
    left_hz: float
    right_hz: float
    carrier_hz: float = 0.0
    waveform: Waveform = Waveform.SINE


FACTORY_PRESETS: Mapping[str, Preset] = MappingProxyType({
    p.name: p for p in (
        # 8 Hz beat, right on the theta/alpha edge
        Preset("Focus 10 (Mind Awake, Body Asleep)", 200.0, 208.0, 50.0),
        # Alpha
        Preset("Focus 12 (Expanded Awareness)", 300.0, 310.0, 100.0),
        # Theta floor for sleep onset
        Preset("Deep Relaxation", 250.0, 254.0, 40.0),
        Preset("Enhanced Creativity", 280.0, 288.0),
    )
})


def get_preset(name: str, presets: Optional[Mapping[str, Preset]] = None) -> Optional[Preset]:
    """Look a preset up by name; None for unknown names and for "Custom"."""
    table = FACTORY_PRESETS if presets is None else presets
    if not name or name == CUSTOM_PRESET:
        return None
    return table.get(name)
