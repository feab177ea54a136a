"""
Hemi-Sync - Spatial Automation
Sweeps both channels between their normal and mirrored placements.

Each tick:
  1. target = base * reversal_extent           (per channel)
  2. reversal_extent += step * direction, clamped to [-1, 1];
     direction flips exactly when a bound is reached
  3. current = lerp(current, target, blend)
  4. the new current positions are handed back to the caller
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from config import AutomationConfig, Axis, Channel, clamp


@dataclass(frozen=True)
class SpatialPosition:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def scaled(self, factor: float) -> 'SpatialPosition':
        return SpatialPosition(self.x * factor, self.y * factor, self.z * factor)

    def lerp(self, other: 'SpatialPosition', t: float) -> 'SpatialPosition':
        return SpatialPosition(
            self.x + (other.x - self.x) * t,
            self.y + (other.y - self.y) * t,
            self.z + (other.z - self.z) * t,
        )

    def with_axis(self, axis: Axis, value: float) -> 'SpatialPosition':
        values = {'x': self.x, 'y': self.y, 'z': self.z}
        values[axis.value] = float(value)
        return SpatialPosition(**values)

    def axis(self, axis: Axis) -> float:
        return getattr(self, axis.value)

    def as_list(self) -> list[float]:
        return [self.x, self.y, self.z]

    @classmethod
    def from_sequence(cls, values) -> 'SpatialPosition':
        x, y, z = (float(v) for v in values)
        return cls(x, y, z)


@dataclass
class AutomationState:
    reversal_extent: float = 1.0
    enabled: bool = False
    interval_ms: int = 1000


class SpatialAutomation:
    def __init__(self, base_positions: Dict[Channel, SpatialPosition],
                 config: Optional[AutomationConfig] = None):
        config = config or AutomationConfig()
        self.step = abs(float(config.step))
        self.blend = clamp(float(config.blend), 0.0, 1.0)
        self.state = AutomationState(
            reversal_extent=clamp(float(config.reversal_extent), -1.0, 1.0),
            enabled=bool(config.enabled),
            interval_ms=max(10, int(config.interval_ms)),
        )
        self.base: Dict[Channel, SpatialPosition] = dict(base_positions)
        self.current: Dict[Channel, SpatialPosition] = dict(base_positions)
        self.target: Dict[Channel, SpatialPosition] = dict(base_positions)
        self.direction = self._direction_for(self.state.reversal_extent)

    @staticmethod
    def _direction_for(extent: float) -> int:
        # Head for the opposite bound
        return -1 if extent >= 0.0 else 1

    @property
    def enabled(self) -> bool:
        return self.state.enabled

    @property
    def reversal_extent(self) -> float:
        return self.state.reversal_extent

    @property
    def tick_interval_s(self) -> float:
        return self.state.interval_ms / 10.0 / 1000.0

    def set_enabled(self, enabled: bool, interval_ms: Optional[int] = None) -> None:
        """Disabling freezes the extent and leaves positions where they are."""
        self.state.enabled = bool(enabled)
        if interval_ms is not None:
            self.state.interval_ms = max(10, int(interval_ms))

    def set_reversal_extent(self, extent: float) -> float:
        extent = clamp(float(extent), -1.0, 1.0)
        self.state.reversal_extent = extent
        if extent >= 1.0:
            self.direction = -1
        elif extent <= -1.0:
            self.direction = 1
        return extent

    def set_base(self, channel: Channel, position: SpatialPosition) -> None:
        self.base[channel] = position
        if not self.state.enabled:
            self.current[channel] = position
            self.target[channel] = position

    def tick(self) -> Optional[Dict[Channel, SpatialPosition]]:
        """Advance one step. Returns the new current positions, or None when idle."""
        if not self.state.enabled:
            return None

        extent = self.state.reversal_extent
        for channel, base in self.base.items():
            self.target[channel] = base.scaled(extent)

        extent = round(extent + self.step * self.direction, 9)
        if extent >= 1.0:
            extent = 1.0
            self.direction = -1
        elif extent <= -1.0:
            extent = -1.0
            self.direction = 1
        self.state.reversal_extent = extent

        for channel, target in self.target.items():
            self.current[channel] = self.current.get(channel, target).lerp(target, self.blend)
        return dict(self.current)
