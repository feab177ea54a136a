"""
Hemi-Sync - Audio Device
Owns the synthesis clock and the destination node, renders the graph in
blocks, and opens the real output stream (sounddevice) when one is wanted.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Optional

import numpy as np

from audio_graph import (
    BufferSourceNode,
    DestinationNode,
    GainNode,
    OscillatorNode,
    PannerNode,
)
from config import AudioConfig, Waveform
from logging_utils import log_event


MONITOR_BLOCKS = 256


class DeviceUnavailable(RuntimeError):
    """The audio output device could not be acquired."""


class DeviceState(Enum):
    CLOSED = "closed"
    SUSPENDED = "suspended"
    RUNNING = "running"


class SynthesisClock:
    """Monotonic clock measured in rendered frames, not wall time."""

    def __init__(self, sample_rate: int):
        self.sample_rate = int(sample_rate)
        self.frames = 0

    def now(self) -> float:
        return self.frames / self.sample_rate

    def advance(self, frames: int) -> None:
        self.frames += int(frames)


class AudioDevice:
    """
    Base device: node factories, lifecycle and block rendering.

    Subclasses implement ``_open``/``_start``/``_stop``/``_close`` for their
    backend. ``render`` is what the backend's callback calls.
    """

    def __init__(self, sample_rate: int = 44100):
        self.sample_rate = int(sample_rate)
        self.clock = SynthesisClock(self.sample_rate)
        self.destination = DestinationNode(self)
        self.state = DeviceState.CLOSED
        # Last rendered blocks, kept for session measurements
        self._monitor: deque = deque(maxlen=MONITOR_BLOCKS)

    @property
    def current_time(self) -> float:
        return self.clock.now()

    @property
    def acquired(self) -> bool:
        return self.state != DeviceState.CLOSED

    @property
    def running(self) -> bool:
        return self.state == DeviceState.RUNNING

    # Lifecycle -----------------------------------------------------------

    def acquire(self) -> None:
        """Open the backend if needed. Raises DeviceUnavailable on failure."""
        if self.acquired:
            return
        self._open()
        self.state = DeviceState.SUSPENDED
        log_event("INFO", "Device", "Acquired", device=type(self).__name__, sample_rate=self.sample_rate)

    def resume(self) -> None:
        self.acquire()
        if self.state == DeviceState.RUNNING:
            return
        self._start()
        self._monitor.clear()
        self.state = DeviceState.RUNNING
        log_event("INFO", "Device", "Resumed")

    def suspend(self) -> None:
        if self.state != DeviceState.RUNNING:
            return
        self._stop()
        self.state = DeviceState.SUSPENDED
        log_event("INFO", "Device", "Suspended")

    def close(self) -> None:
        if self.state == DeviceState.CLOSED:
            return
        self.suspend()
        self._close()
        self.state = DeviceState.CLOSED
        log_event("INFO", "Device", "Closed")

    def _open(self) -> None:
        pass

    def _start(self) -> None:
        pass

    def _stop(self) -> None:
        pass

    def _close(self) -> None:
        pass

    # Node factories -------------------------------------------------------

    def create_oscillator(self, waveform: Waveform = Waveform.SINE, frequency: float = 440.0) -> OscillatorNode:
        return OscillatorNode(self, waveform=waveform, frequency=frequency)

    def create_gain(self, gain: float = 1.0, headroom: float = 1.0) -> GainNode:
        return GainNode(self, gain=gain, headroom=headroom)

    def create_panner(self, **kwargs) -> PannerNode:
        return PannerNode(self, **kwargs)

    def create_buffer_source(self, buffer: np.ndarray, loop: bool = False) -> BufferSourceNode:
        return BufferSourceNode(self, buffer, loop=loop)

    # Rendering ------------------------------------------------------------

    def render(self, frames: int) -> np.ndarray:
        """Render one stereo block and advance the clock.

        A suspended device yields silence and its clock stands still.
        """
        if self.state != DeviceState.RUNNING or frames <= 0:
            return np.zeros((max(0, frames), 2), dtype=np.float32)
        start_time = self.clock.now()
        block = self.destination.pull(start_time, frames)
        self.clock.advance(frames)
        block = np.clip(block, -1.0, 1.0).astype(np.float32)
        self._monitor.append(block)
        return block

    def recent_audio(self, seconds: float = 1.0) -> np.ndarray:
        """Up to ``seconds`` of the most recently rendered audio since the last resume."""
        blocks = list(self._monitor)
        if not blocks:
            return np.zeros((0, 2), dtype=np.float32)
        frames = max(0, int(seconds * self.sample_rate))
        return np.concatenate(blocks)[-frames:] if frames else np.zeros((0, 2), dtype=np.float32)


class OfflineAudioDevice(AudioDevice):
    """Device with a simulated clock: time only passes when ``advance`` renders it."""

    def __init__(self, sample_rate: int = 44100, block_size: int = 512, available: bool = True):
        super().__init__(sample_rate)
        self.block_size = max(1, int(block_size))
        self.available = available

    def _open(self) -> None:
        if not self.available:
            raise DeviceUnavailable("offline device marked unavailable")

    def advance(self, seconds: float) -> np.ndarray:
        """Render ``seconds`` of audio in block-size chunks and return it."""
        total = int(np.ceil(seconds * self.sample_rate - 1e-9))
        blocks = []
        remaining = total
        while remaining > 0:
            frames = min(self.block_size, remaining)
            blocks.append(self.render(frames))
            remaining -= frames
        if not blocks:
            return np.zeros((0, 2), dtype=np.float32)
        return np.concatenate(blocks)


class StreamAudioDevice(AudioDevice):
    """Real output through a sounddevice OutputStream callback."""

    def __init__(self, audio_config: Optional[AudioConfig] = None):
        self.audio_config = audio_config or AudioConfig()
        super().__init__(self.audio_config.sample_rate)
        self._stream = None

    def _open(self) -> None:
        try:
            import sounddevice as sd

            device_info = sd.query_devices(self.audio_config.device_index, 'output')
            native_rate = int(device_info.get('default_samplerate') or self.audio_config.sample_rate)
            channels = max(1, min(self.audio_config.channels, int(device_info['max_output_channels'])))
            # Rate is fixed before any node exists, so resetting the clock is safe here
            self.sample_rate = native_rate
            self.clock = SynthesisClock(native_rate)
            self._stream = sd.OutputStream(
                samplerate=native_rate,
                blocksize=self.audio_config.block_size,
                device=self.audio_config.device_index,
                channels=channels,
                dtype='float32',
                latency=self.audio_config.latency,
                callback=self._audio_callback,
            )
            log_event("INFO", "Device", "Output stream opened", device=device_info['name'], channels=channels)
        except Exception as e:
            # OSError when PortAudio itself is missing, PortAudioError for device faults
            self._stream = None
            raise DeviceUnavailable(f"cannot open audio output: {e}") from e

    def _start(self) -> None:
        try:
            self._stream.start()
        except Exception as e:
            raise DeviceUnavailable(f"cannot start audio output: {e}") from e

    def _stop(self) -> None:
        if self._stream is not None:
            self._stream.stop()

    def _close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def _audio_callback(self, outdata, frames, time_info, status):
        block = self.render(frames)
        channels = outdata.shape[1]
        if channels == 1:
            outdata[:, 0] = block.mean(axis=1)
        else:
            outdata[:, :2] = block
            if channels > 2:
                outdata[:, 2:] = 0.0
