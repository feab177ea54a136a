import json
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from config import (
    CARRIER_HZ_MAX,
    CARRIER_HZ_MIN,
    TONE_HZ_MAX,
    TONE_HZ_MIN,
    Waveform,
    clamp,
)
from logging_utils import log_event
from presets import CUSTOM_PRESET, FACTORY_PRESETS, Preset


def get_presets_file_path(config_dir: Path) -> Path:
    """User presets live next to config.json."""
    return Path(config_dir) / "presets.json"


def preset_to_dict(preset: Preset) -> dict:
    return {
        "left_hz": preset.left_hz,
        "right_hz": preset.right_hz,
        "carrier_hz": preset.carrier_hz,
        "waveform": preset.waveform.name.lower(),
    }


def preset_from_dict(name: str, data: dict) -> Preset:
    """Build a preset from its stored form, clamping to the channel domains.
    Raises KeyError/TypeError/ValueError for malformed entries."""
    waveform = data.get("waveform", "sine")
    if isinstance(waveform, str):
        waveform = Waveform[waveform.upper()]
    else:
        waveform = Waveform(waveform)
    return Preset(
        name=name,
        left_hz=clamp(float(data["left_hz"]), TONE_HZ_MIN, TONE_HZ_MAX),
        right_hz=clamp(float(data["right_hz"]), TONE_HZ_MIN, TONE_HZ_MAX),
        carrier_hz=clamp(float(data.get("carrier_hz", 0.0)), CARRIER_HZ_MIN, CARRIER_HZ_MAX),
        waveform=waveform,
    )


def save_presets_data(presets_file: Path, custom_presets: Mapping[str, Preset]) -> None:
    """Persist user presets to disk."""
    payload = {name: preset_to_dict(p) for name, p in custom_presets.items()}
    with open(presets_file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)


def load_presets_data(presets_file: Path) -> dict[str, Preset]:
    """Load user presets; a missing or unreadable file yields no presets."""
    if not presets_file.exists():
        return {}
    try:
        with open(presets_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        log_event("WARNING", "Presets", "Could not read user presets", path=presets_file, error=e)
        return {}
    if not isinstance(data, dict):
        return {}

    presets: dict[str, Preset] = {}
    for name, entry in data.items():
        if name == CUSTOM_PRESET or not isinstance(entry, dict):
            continue
        try:
            presets[name] = preset_from_dict(name, entry)
        except (KeyError, TypeError, ValueError) as e:
            log_event("WARNING", "Presets", "Skipping malformed preset", name=name, error=e)
    return presets


def merge_presets(custom_presets: Mapping[str, Preset]) -> Mapping[str, Preset]:
    """Factory table with user presets layered over it, read-only."""
    merged = dict(FACTORY_PRESETS)
    merged.update(custom_presets)
    return MappingProxyType(merged)
