"""
Hemi-Sync - Binaural Engine
The in-process control surface: setters clamp and forward to the graph
manager, toggle drives the playback state machine, and read-side helpers
expose the beat analysis and the per-frame visual feed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from audio_device import AudioDevice, StreamAudioDevice
from audio_session_reporter import AudioSessionReporter
from beat_analyzer import BeatAnalysis, BrainwaveBand, analyze
from config import (
    POSITION_LIMIT,
    SPLIT_X_LIMIT,
    TONE_HZ_MAX,
    TONE_HZ_MIN,
    Axis,
    Channel,
    Config,
    Waveform,
    clamp,
)
from control_loop import ControlScheduler, ScheduledTask
from frequency_utils import channel_rms, dominant_frequency
from logging_utils import log_event
from noise_synth import NoiseSynthesizer
from parameter_smoother import ParameterSmoother
from playback import PlaybackState, PlaybackStateMachine
from presets import CUSTOM_PRESET, FACTORY_PRESETS, Preset, get_preset
from signal_graph import GraphTargets, SignalGraphManager, ToneChannel
from spatial_automation import SpatialAutomation, SpatialPosition


@dataclass(frozen=True)
class VisualFrame:
    """What the particle renderer gets once per animation tick."""
    left_hz: float
    right_hz: float
    is_split_mode: bool
    particle_count: int


VisualConsumer = Callable[[VisualFrame], None]


def _coerce_waveform(waveform) -> Waveform:
    if isinstance(waveform, str):
        return Waveform[waveform.strip().upper()]
    return Waveform(waveform)


def _coerce_enum(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    return enum_cls(str(value).lower())


class BinauralEngine:
    def __init__(
        self,
        config: Optional[Config] = None,
        device: Optional[AudioDevice] = None,
        presets: Optional[Mapping[str, Preset]] = None,
        reporter: Optional[AudioSessionReporter] = None,
    ):
        self.config = config or Config()
        self.device = device if device is not None else StreamAudioDevice(self.config.audio)
        self.presets = presets if presets is not None else FACTORY_PRESETS
        self.reporter = reporter

        tone = self.config.tone
        spatial = self.config.spatial
        positions = {
            Channel.LEFT: SpatialPosition.from_sequence(spatial.left_position),
            Channel.RIGHT: SpatialPosition.from_sequence(spatial.right_position),
        }
        if spatial.split_mode:
            # Persisted positions are only bounded to the single-source range
            positions = {
                channel: pos.with_axis(Axis.X, clamp(pos.x, -SPLIT_X_LIMIT, SPLIT_X_LIMIT))
                for channel, pos in positions.items()
            }
            spatial.left_position = positions[Channel.LEFT].as_list()
            spatial.right_position = positions[Channel.RIGHT].as_list()
        targets = GraphTargets(
            channels={
                Channel.LEFT: ToneChannel(tone.left_hz, tone.waveform),
                Channel.RIGHT: ToneChannel(tone.right_hz, tone.waveform),
            },
            carrier_hz=tone.carrier_hz,
            positions=dict(positions),
            volume=tone.volume,
            noise_enabled=bool(tone.pink_noise),
        )

        smoothing = self.config.smoothing
        self.smoother = ParameterSmoother(
            lambda: self.device.current_time,
            ramp_seconds=smoothing.ramp_ms / 1000.0,
            debounce_seconds=smoothing.debounce_ms / 1000.0,
        )
        self.noise = NoiseSynthesizer(self.device, self.config.noise)
        self.graph = SignalGraphManager(self.device, self.smoother, self.noise, targets, spatial)
        self.playback = PlaybackStateMachine(self.graph)
        self.automation = SpatialAutomation(positions, self.config.automation)

        self.preset_name = tone.preset_name if tone.preset_name in self.presets else CUSTOM_PRESET
        self.split_mode = bool(spatial.split_mode)
        self.particle_count = int(self.config.visual.particle_count)

        self._visual_consumers: list[VisualConsumer] = []
        self._scheduler: Optional[ControlScheduler] = None
        self._tasks: Dict[str, ScheduledTask] = {}
        self._session_started_at: Optional[float] = None

    # Tone controls --------------------------------------------------------

    def set_left_frequency(self, hz: float) -> float:
        hz = self.graph.update_frequency(Channel.LEFT, hz)
        self.config.tone.left_hz = hz
        self._mark_custom()
        return hz

    def set_right_frequency(self, hz: float) -> float:
        hz = self.graph.update_frequency(Channel.RIGHT, hz)
        self.config.tone.right_hz = hz
        self._mark_custom()
        return hz

    def set_carrier_frequency(self, hz: float) -> float:
        """0 disables the carrier."""
        hz = self.graph.update_carrier(hz)
        self.config.tone.carrier_hz = hz
        self._mark_custom()
        return hz

    def set_waveform(self, waveform) -> Waveform:
        waveform = self.graph.update_waveform(_coerce_waveform(waveform))
        self.config.tone.waveform = waveform
        self._mark_custom()
        return waveform

    def set_volume(self, volume: float) -> float:
        volume = self.graph.update_volume(volume)
        self.config.tone.volume = volume
        return volume

    def set_pink_noise(self, enabled: bool) -> None:
        self.graph.update_noise(enabled)
        self.config.tone.pink_noise = bool(enabled)

    def apply_preset(self, name: str) -> bool:
        """Overwrite frequency and waveform targets from a preset.

        Unknown names revert the selection to "Custom" and change nothing else.
        """
        preset = get_preset(name, self.presets)
        if preset is None:
            if name != CUSTOM_PRESET:
                log_event("WARNING", "Presets", "Unknown preset", name=name)
            self._mark_custom()
            return False

        tone = self.config.tone
        tone.left_hz = self.graph.update_frequency(Channel.LEFT, preset.left_hz)
        tone.right_hz = self.graph.update_frequency(Channel.RIGHT, preset.right_hz)
        tone.carrier_hz = self.graph.update_carrier(preset.carrier_hz)
        tone.waveform = self.graph.update_waveform(preset.waveform)
        self.preset_name = preset.name
        tone.preset_name = preset.name
        log_event("INFO", "Presets", "Applied", name=preset.name,
                  left_hz=tone.left_hz, right_hz=tone.right_hz, carrier_hz=tone.carrier_hz)
        return True

    def preset_names(self) -> list[str]:
        return list(self.presets.keys())

    def _mark_custom(self) -> None:
        self.preset_name = CUSTOM_PRESET
        self.config.tone.preset_name = CUSTOM_PRESET

    # Spatial controls -----------------------------------------------------

    def set_split_mode(self, enabled: bool) -> None:
        self.split_mode = bool(enabled)
        self.config.spatial.split_mode = self.split_mode
        if self.split_mode:
            for channel in (Channel.LEFT, Channel.RIGHT):
                base = self.automation.base[channel]
                self._apply_base_position(channel, base.with_axis(Axis.X, self._clamp_axis(Axis.X, base.x)))

    def _clamp_axis(self, axis: Axis, value: float) -> float:
        limit = SPLIT_X_LIMIT if (self.split_mode and axis == Axis.X) else POSITION_LIMIT
        return clamp(float(value), -limit, limit)

    def set_spatial_position(self, channel, axis, value: float) -> SpatialPosition:
        """Move one axis of a channel's base position.

        In single-source mode both channels share the move, so ``channel``
        only selects which position is returned.
        """
        channel = _coerce_enum(Channel, channel)
        axis = _coerce_enum(Axis, axis)
        value = self._clamp_axis(axis, value)
        channels = (channel,) if self.split_mode else (Channel.LEFT, Channel.RIGHT)
        for target in channels:
            self._apply_base_position(target, self.automation.base[target].with_axis(axis, value))
        return self.automation.base[channel]

    def _apply_base_position(self, channel: Channel, position: SpatialPosition) -> None:
        self.automation.set_base(channel, position)
        if channel == Channel.LEFT:
            self.config.spatial.left_position = position.as_list()
        else:
            self.config.spatial.right_position = position.as_list()
        if not self.automation.enabled:
            self.graph.update_position(channel, position)

    def set_reversal_extent(self, extent: float) -> float:
        extent = self.automation.set_reversal_extent(extent)
        self.config.automation.reversal_extent = extent
        return extent

    def set_automation(self, enabled: bool, interval_ms: Optional[int] = None) -> None:
        self.automation.set_enabled(enabled, interval_ms)
        self.config.automation.enabled = self.automation.enabled
        self.config.automation.interval_ms = self.automation.state.interval_ms
        log_event("INFO", "Automation", "Enabled" if self.automation.enabled else "Disabled",
                  interval_ms=self.automation.state.interval_ms)
        self._schedule_automation()

    def automation_tick(self) -> None:
        positions = self.automation.tick()
        if positions is None:
            return
        for channel, position in positions.items():
            self.graph.update_position(channel, position)
        self.config.automation.reversal_extent = self.automation.reversal_extent

    # Playback -------------------------------------------------------------

    def toggle(self) -> PlaybackState:
        if self.playback.is_playing:
            self.stop()
        else:
            self.start()
        return self.playback.state

    def start(self) -> None:
        if self.playback.is_playing:
            return
        self.playback.start()
        self._session_started_at = time.time()

    def stop(self) -> None:
        if not self.playback.is_playing:
            return
        session = self.playback.session
        self.playback.stop()
        self._report_session(session.session_id if session else None)

    def is_playing(self) -> bool:
        return self.playback.is_playing

    def _report_session(self, session_id: Optional[int]) -> None:
        started_at, self._session_started_at = self._session_started_at, None
        if self.reporter is None or not self.config.report_generation_enabled or started_at is None:
            return
        ended_at = time.time()
        analysis = self.analysis()
        measured = self._measure_output()
        self.reporter.save_session({
            "session_id": session_id,
            "started_at": started_at,
            "ended_at": ended_at,
            "seconds": round(max(0.0, ended_at - started_at), 3),
            "preset": self.preset_name,
            "left_hz": self.left_frequency,
            "right_hz": self.right_frequency,
            "carrier_hz": self.carrier_frequency,
            "beat_hz": analysis.beat_hz,
            "band": analysis.band.value,
            "waveform": self.waveform.name.lower(),
            "volume": self.volume,
            "pink_noise": self.graph.targets.noise_enabled,
            "automation": self.automation.enabled,
            **measured,
        })

    def _measure_output(self) -> Dict[str, float]:
        """Dominant frequency and RMS per ear over the last second that was rendered."""
        audio = self.device.recent_audio(1.0)
        left_rms, right_rms = channel_rms(audio)
        measured = {"left_rms": round(left_rms, 5), "right_rms": round(right_rms, 5)}
        for key, column, rms in (("measured_left_hz", 0, left_rms), ("measured_right_hz", 1, right_rms)):
            hz = 0.0
            if rms > 0.0:
                hz = dominant_frequency(audio[:, column], self.device.sample_rate, TONE_HZ_MIN, TONE_HZ_MAX)
            measured[key] = round(float(hz), 2)
        return measured

    # Read surface ---------------------------------------------------------

    @property
    def left_frequency(self) -> float:
        return self.graph.targets.channels[Channel.LEFT].frequency_hz

    @property
    def right_frequency(self) -> float:
        return self.graph.targets.channels[Channel.RIGHT].frequency_hz

    @property
    def carrier_frequency(self) -> float:
        return self.graph.targets.carrier_hz

    @property
    def waveform(self) -> Waveform:
        return self.graph.targets.channels[Channel.LEFT].waveform

    @property
    def volume(self) -> float:
        return self.graph.targets.volume

    def analysis(self) -> BeatAnalysis:
        return analyze(self.left_frequency, self.right_frequency)

    def current_beat_frequency(self) -> float:
        return self.analysis().beat_hz

    def brainwave_band(self) -> BrainwaveBand:
        return self.analysis().band

    # Visual feed ----------------------------------------------------------

    def set_particle_count(self, count: int) -> int:
        self.particle_count = max(0, int(count))
        self.config.visual.particle_count = self.particle_count
        return self.particle_count

    def visual_frame(self) -> VisualFrame:
        return VisualFrame(
            left_hz=self.left_frequency,
            right_hz=self.right_frequency,
            is_split_mode=self.split_mode,
            particle_count=self.particle_count,
        )

    def add_visual_consumer(self, consumer: VisualConsumer) -> None:
        if consumer not in self._visual_consumers:
            self._visual_consumers.append(consumer)

    def remove_visual_consumer(self, consumer: VisualConsumer) -> None:
        if consumer in self._visual_consumers:
            self._visual_consumers.remove(consumer)

    def emit_visual_frame(self) -> None:
        if not self._visual_consumers:
            return
        frame = self.visual_frame()
        for consumer in list(self._visual_consumers):
            try:
                consumer(frame)
            except Exception as e:
                log_event("ERROR", "Visual", "Consumer failed", consumer=getattr(consumer, '__name__', consumer), error=e)

    # Host scheduling ------------------------------------------------------

    def tick(self) -> int:
        """Commit any debounced parameter targets that are now due."""
        return self.graph.flush_pending()

    def attach(self, scheduler: ControlScheduler) -> None:
        """Register the engine's periodic work on a host scheduler."""
        self.detach()
        self._scheduler = scheduler
        self._tasks["smoother"] = scheduler.every(self.config.smoothing.pump_ms / 1000.0, self.tick, "smoother")
        frame_rate = max(1.0, float(self.config.visual.frame_rate_hz))
        self._tasks["visual"] = scheduler.every(1.0 / frame_rate, self.emit_visual_frame, "visual")
        self._schedule_automation()

    def detach(self) -> None:
        if self._scheduler is None:
            return
        for task in self._tasks.values():
            self._scheduler.cancel(task)
        self._tasks.clear()
        self._scheduler = None

    def _schedule_automation(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.cancel(self._tasks.pop("automation", None))
        if self.automation.enabled:
            self._tasks["automation"] = self._scheduler.every(
                self.automation.tick_interval_s, self.automation_tick, "automation")

    def close(self) -> None:
        """Stop playback, drop scheduled work and release the device."""
        self.stop()
        self.detach()
        self.device.close()
