"""
Hemi-Sync - Audio Graph
Pull-based node graph rendered block by block against the synthesis clock.

Parameters are never written in place: the control context schedules events
(set-at-time / linear-ramp-to-at-time) and the render context evaluates the
schedule for every sample of the block it is producing. Event lists and node
connections are immutable tuples that the control context swaps as a whole,
so the render thread always sees a consistent snapshot without locking.
"""

from __future__ import annotations

import math
from typing import Callable, Optional

import numpy as np
from scipy.signal import sawtooth, square

from config import Waveform

_SET = 0
_RAMP = 1


class AudioParam:
    """Automatable scalar evaluated per sample at render time."""

    __slots__ = ('name', 'default', 'min_value', 'max_value', '_clock', '_events')

    def __init__(self, name: str, default: float, clock: Callable[[], float],
                 min_value: float = -math.inf, max_value: float = math.inf):
        self.name = name
        self.default = float(default)
        self.min_value = min_value
        self.max_value = max_value
        self._clock = clock
        self._events: tuple = ()

    @property
    def value(self) -> float:
        """Value the schedule yields at the current synthesis time."""
        return self.value_at(self._clock())

    @value.setter
    def value(self, new_value: float) -> None:
        now = self._clock()
        self._events = ((_SET, now, float(new_value)),)

    @property
    def has_events(self) -> bool:
        return bool(self._events)

    def _clip(self, value: float) -> float:
        return min(self.max_value, max(self.min_value, value))

    def _insert(self, event: tuple) -> None:
        events = [e for e in self._events if e[1] != event[1] or e[0] != event[0]]
        events.append(event)
        events.sort(key=lambda e: e[1])
        self._events = tuple(events)

    def set_value_at_time(self, value: float, when: float) -> None:
        self._insert((_SET, float(when), float(value)))

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> None:
        self._insert((_RAMP, float(end_time), float(value)))

    def cancel_scheduled_values(self, start_time: float) -> None:
        self._events = tuple(e for e in self._events if e[1] < start_time)

    def cancel_and_hold_at_time(self, when: float) -> float:
        """Freeze the value at ``when`` and drop everything scheduled after it.

        ``when`` may lie in the future: whatever is in flight until then keeps
        playing and ends on the held value. History before the current clock
        is folded into a single anchor, so the schedule stays short.
        """
        when = float(when)
        held = self.value_at(when)
        now = min(self._clock(), when)
        if now >= when:
            self._events = ((_SET, when, held),)
            return held

        events = [(_SET, now, self.value_at(now))]
        events.extend(e for e in self._events if now < e[1] < when)
        # A ramp to the held value reproduces whatever segment spans ``when``
        events.append((_RAMP, when, held))
        self._events = tuple(events)
        return held

    def value_at(self, t: float) -> float:
        current = self.default
        prev_t: Optional[float] = None
        prev_v = self.default
        for kind, when, value in self._events:
            if when <= t:
                current = value
                prev_t, prev_v = when, value
                continue
            if kind == _RAMP and prev_t is not None:
                frac = (t - prev_t) / (when - prev_t)
                current = prev_v + (value - prev_v) * frac
            break
        return self._clip(current)

    def values(self, start_time: float, frames: int, sample_rate: int) -> np.ndarray:
        """Per-sample values for a render block starting at ``start_time``."""
        events = self._events
        if not events:
            return np.full(frames, self._clip(self.default), dtype=np.float64)

        times = start_time + np.arange(frames, dtype=np.float64) / sample_rate
        out = np.full(frames, self.default, dtype=np.float64)
        prev_t: Optional[float] = None
        prev_v = self.default
        for kind, when, value in events:
            if kind == _RAMP and prev_t is not None and when > prev_t:
                mask = (times > prev_t) & (times < when)
                if mask.any():
                    out[mask] = prev_v + (value - prev_v) * (times[mask] - prev_t) / (when - prev_t)
            out[times >= when] = value
            prev_t, prev_v = when, value
        return np.clip(out, self.min_value, self.max_value)


class AudioNode:
    """Base node. Output is always stereo float64 of shape (frames, 2)."""

    def __init__(self, context):
        self.context = context
        self._inputs: tuple = ()
        self._outputs: tuple = ()
        self._cache_key: Optional[float] = None
        self._cache: Optional[np.ndarray] = None
        self.released = False

    def connect(self, destination: 'AudioNode') -> 'AudioNode':
        if self.released or destination.released:
            return destination
        if destination not in self._outputs:
            self._outputs = self._outputs + (destination,)
            destination._inputs = destination._inputs + (self,)
        return destination

    def disconnect(self) -> None:
        for destination in self._outputs:
            destination._inputs = tuple(n for n in destination._inputs if n is not self)
        self._outputs = ()

    def release(self) -> None:
        self.disconnect()
        for source in self._inputs:
            source._outputs = tuple(n for n in source._outputs if n is not self)
        self._inputs = ()
        self.released = True

    def pull(self, start_time: float, frames: int) -> np.ndarray:
        if self._cache_key == start_time and self._cache is not None and len(self._cache) == frames:
            return self._cache
        block = self.process(start_time, frames)
        self._cache_key = start_time
        self._cache = block
        return block

    def _mix_inputs(self, start_time: float, frames: int) -> np.ndarray:
        mix = np.zeros((frames, 2), dtype=np.float64)
        for source in self._inputs:
            mix += source.pull(start_time, frames)
        return mix

    def process(self, start_time: float, frames: int) -> np.ndarray:
        return self._mix_inputs(start_time, frames)


class ScheduledSourceNode(AudioNode):
    """Source with start/stop times on the synthesis clock."""

    def __init__(self, context):
        super().__init__(context)
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None

    def start(self, when: Optional[float] = None) -> None:
        if self.start_time is not None:
            return
        self.start_time = self.context.current_time if when is None else float(when)

    def stop(self, when: Optional[float] = None) -> None:
        if self.start_time is None:
            return
        self.stop_time = self.context.current_time if when is None else float(when)

    @property
    def playing(self) -> bool:
        return self.start_time is not None and not self.released and (
            self.stop_time is None or self.stop_time > self.context.current_time)

    def _active_mask(self, start_time: float, frames: int) -> Optional[np.ndarray]:
        """Boolean per-sample mask, or None when the whole block is silent."""
        if self.start_time is None or self.released:
            return None
        sr = self.context.sample_rate
        end_time = start_time + frames / sr
        if self.start_time >= end_time:
            return None
        if self.stop_time is not None and self.stop_time <= start_time:
            return None
        times = start_time + np.arange(frames, dtype=np.float64) / sr
        mask = times >= self.start_time
        if self.stop_time is not None:
            mask &= times < self.stop_time
        return mask


class OscillatorNode(ScheduledSourceNode):
    def __init__(self, context, waveform: Waveform = Waveform.SINE, frequency: float = 440.0):
        super().__init__(context)
        self.frequency = AudioParam('frequency', frequency, context.clock.now,
                                    min_value=0.0, max_value=context.sample_rate / 2.0)
        self.waveform = Waveform(waveform)
        self._phase = 0.0  # cycles, in [0, 1)

    def process(self, start_time: float, frames: int) -> np.ndarray:
        mask = self._active_mask(start_time, frames)
        if mask is None:
            return np.zeros((frames, 2), dtype=np.float64)

        sr = self.context.sample_rate
        freq = self.frequency.values(start_time, frames, sr) * mask
        increments = freq / sr
        phase = self._phase + np.concatenate(([0.0], np.cumsum(increments[:-1])))
        self._phase = float((self._phase + increments.sum()) % 1.0)

        radians = 2.0 * np.pi * phase
        if self.waveform == Waveform.SQUARE:
            mono = square(radians)
        elif self.waveform == Waveform.TRIANGLE:
            mono = sawtooth(radians + np.pi / 2.0, width=0.5)
        else:
            mono = np.sin(radians)
        mono = mono * mask
        return np.column_stack((mono, mono))


class GainNode(AudioNode):
    """Sums its inputs and scales them by the gain param times a fixed ``headroom``."""

    def __init__(self, context, gain: float = 1.0, headroom: float = 1.0):
        super().__init__(context)
        self.gain = AudioParam('gain', gain, context.clock.now, min_value=0.0, max_value=1.0)
        self.headroom = max(0.0, float(headroom))

    def process(self, start_time: float, frames: int) -> np.ndarray:
        mix = self._mix_inputs(start_time, frames)
        level = self.gain.values(start_time, frames, self.context.sample_rate) * self.headroom
        return mix * level[:, None]


class PannerNode(AudioNode):
    """Mono-to-stereo spatial panner.

    Listener sits at the origin facing -z with +y up. Azimuth follows the
    equal-power law; HRTF is rendered with the same law.
    """

    PANNING_MODELS = ("equalpower", "HRTF")
    DISTANCE_MODELS = ("linear", "inverse", "exponential")

    def __init__(self, context, panning_model: str = "HRTF", distance_model: str = "linear",
                 ref_distance: float = 1.0, max_distance: float = 10000.0, rolloff_factor: float = 1.0):
        super().__init__(context)
        now = context.clock.now
        self.position_x = AudioParam('position_x', 0.0, now)
        self.position_y = AudioParam('position_y', 0.0, now)
        self.position_z = AudioParam('position_z', 0.0, now)
        self.panning_model = panning_model if panning_model in self.PANNING_MODELS else "equalpower"
        self.distance_model = distance_model if distance_model in self.DISTANCE_MODELS else "linear"
        self.ref_distance = max(0.0, float(ref_distance))
        self.max_distance = max(self.ref_distance + 1e-9, float(max_distance))
        self.rolloff_factor = max(0.0, float(rolloff_factor))

    def axis_params(self) -> tuple[AudioParam, AudioParam, AudioParam]:
        return self.position_x, self.position_y, self.position_z

    def distance_gain(self, distance: np.ndarray) -> np.ndarray:
        ref = self.ref_distance
        if self.distance_model == "inverse":
            d = np.maximum(distance, ref)
            if ref == 0.0:
                return np.zeros_like(d)
            return ref / (ref + self.rolloff_factor * (d - ref))
        if self.distance_model == "exponential":
            if ref == 0.0:
                return np.zeros_like(distance)
            d = np.maximum(distance, ref)
            return np.power(d / ref, -self.rolloff_factor)
        d = np.clip(distance, ref, self.max_distance)
        rolloff = min(1.0, self.rolloff_factor)
        return 1.0 - rolloff * (d - ref) / (self.max_distance - ref)

    @staticmethod
    def azimuth(x: np.ndarray, z: np.ndarray) -> np.ndarray:
        """Azimuth in degrees folded into [-90, 90]; positive is to the right."""
        horizontal = np.hypot(x, z)
        safe = np.where(horizontal > 0.0, horizontal, 1.0)
        az = np.degrees(np.arccos(np.clip(x / safe, -1.0, 1.0)))
        az = np.where(horizontal > 0.0, az, 90.0)
        az = np.where(z > 0.0, 360.0 - az, az)
        az = np.where(az <= 270.0, 90.0 - az, 450.0 - az)
        az = np.where(az < -90.0, -180.0 - az, az)
        az = np.where(az > 90.0, 180.0 - az, az)
        return az

    def process(self, start_time: float, frames: int) -> np.ndarray:
        mix = self._mix_inputs(start_time, frames)
        mono = mix.mean(axis=1)
        sr = self.context.sample_rate
        x = self.position_x.values(start_time, frames, sr)
        y = self.position_y.values(start_time, frames, sr)
        z = self.position_z.values(start_time, frames, sr)

        pan = self.azimuth(x, z)
        norm = (pan + 90.0) / 180.0
        left_gain = np.cos(norm * np.pi / 2.0)
        right_gain = np.sin(norm * np.pi / 2.0)

        level = self.distance_gain(np.sqrt(x * x + y * y + z * z))
        mono = mono * level
        return np.column_stack((mono * left_gain, mono * right_gain))


class BufferSourceNode(ScheduledSourceNode):
    """Plays a preloaded mono buffer, optionally looping."""

    def __init__(self, context, buffer: np.ndarray, loop: bool = False):
        super().__init__(context)
        self.buffer = np.asarray(buffer, dtype=np.float64)
        self.loop = loop
        self._position = 0

    def process(self, start_time: float, frames: int) -> np.ndarray:
        mask = self._active_mask(start_time, frames)
        length = len(self.buffer)
        if mask is None or length == 0:
            return np.zeros((frames, 2), dtype=np.float64)

        active = int(mask.sum())
        indices = self._position + np.arange(active)
        if self.loop:
            samples = self.buffer[indices % length]
            self._position = int((self._position + active) % length)
        else:
            samples = np.zeros(active, dtype=np.float64)
            valid = indices < length
            samples[valid] = self.buffer[indices[valid]]
            self._position = min(length, self._position + active)

        mono = np.zeros(frames, dtype=np.float64)
        mono[mask] = samples
        return np.column_stack((mono, mono))


class DestinationNode(AudioNode):
    """Final sink; the device renders whatever is connected here."""
