"""
Hemi-Sync - Signal Graph Manager
Builds and tears down the playback node graph and routes every live parameter
change through the smoother.

    left osc  -> left panner  -\
    right osc -> right panner --> gain -> destination
    carrier osc ---------------/
    pink noise ---------------/
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from audio_graph import AudioParam, GainNode, OscillatorNode, PannerNode
from config import (
    CARRIER_HZ_MAX,
    CARRIER_HZ_MIN,
    MIX_HEADROOM,
    TONE_HZ_MAX,
    TONE_HZ_MIN,
    Channel,
    SpatialConfig,
    Waveform,
    clamp,
)
from logging_utils import log_event
from noise_synth import NoiseSynthesizer
from parameter_smoother import ParameterSmoother
from spatial_automation import SpatialPosition

_session_ids = itertools.count(1)


@dataclass(frozen=True)
class ToneChannel:
    frequency_hz: float
    waveform: Waveform = Waveform.SINE


@dataclass
class GraphTargets:
    """Stored targets; what the next ``build`` will use."""
    channels: Dict[Channel, ToneChannel]
    carrier_hz: float
    positions: Dict[Channel, SpatialPosition]
    volume: float
    noise_enabled: bool = False

    @property
    def carrier(self) -> Optional[ToneChannel]:
        if self.carrier_hz <= 0.0:
            return None
        return ToneChannel(self.carrier_hz, self.channels[Channel.LEFT].waveform)


@dataclass
class Session:
    """Every node of one playback run. Only the graph manager touches it."""
    oscillators: Dict[Channel, OscillatorNode]
    panners: Dict[Channel, PannerNode]
    gain: GainNode
    carrier: Optional[OscillatorNode] = None
    session_id: int = field(default_factory=lambda: next(_session_ids))
    live: bool = True

    def params(self) -> list[AudioParam]:
        params = [self.gain.gain]
        params.extend(osc.frequency for osc in self.oscillators.values())
        for panner in self.panners.values():
            params.extend(panner.axis_params())
        if self.carrier is not None:
            params.append(self.carrier.frequency)
        return params

    def node_count(self) -> int:
        return len(self.oscillators) + len(self.panners) + 1 + (1 if self.carrier is not None else 0)


class SignalGraphManager:
    def __init__(self, device, smoother: ParameterSmoother, noise: NoiseSynthesizer,
                 targets: GraphTargets, spatial_config: Optional[SpatialConfig] = None):
        self.device = device
        self.smoother = smoother
        self.noise = noise
        self.targets = targets
        self.spatial_config = spatial_config or SpatialConfig()
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def live(self) -> bool:
        return self._session is not None and self._session.live

    # Lifecycle ------------------------------------------------------------

    def build(self, channels: Dict[Channel, ToneChannel], carrier: Optional[ToneChannel],
              positions: Dict[Channel, SpatialPosition], volume: float) -> Session:
        """Construct the full graph. A live session is returned unchanged."""
        if self.live:
            log_event("WARNING", "Graph", "Build requested while a session is live",
                      session=self._session.session_id)
            return self._session

        # Raises DeviceUnavailable; nothing has been allocated yet
        self.device.acquire()

        gain = self.device.create_gain(0.0, headroom=MIX_HEADROOM)
        self.smoother.set_now(gain.gain, clamp(volume, 0.0, 1.0))

        oscillators: Dict[Channel, OscillatorNode] = {}
        panners: Dict[Channel, PannerNode] = {}
        for channel in (Channel.LEFT, Channel.RIGHT):
            tone = channels[channel]
            osc = self.device.create_oscillator(tone.waveform, tone.frequency_hz)
            self.smoother.set_now(osc.frequency, tone.frequency_hz)
            panner = self._create_panner()
            self._set_position_now(panner, positions[channel])
            osc.connect(panner)
            panner.connect(gain)
            oscillators[channel] = osc
            panners[channel] = panner

        carrier_osc = None
        if carrier is not None and carrier.frequency_hz > 0.0:
            carrier_osc = self._create_carrier(carrier, gain)

        gain.connect(self.device.destination)
        for osc in oscillators.values():
            osc.start()
        if carrier_osc is not None:
            carrier_osc.start()

        session = Session(oscillators=oscillators, panners=panners, gain=gain, carrier=carrier_osc)
        self._session = session
        log_event("INFO", "Graph", "Session built", session=session.session_id,
                  left_hz=channels[Channel.LEFT].frequency_hz,
                  right_hz=channels[Channel.RIGHT].frequency_hz,
                  carrier_hz=carrier.frequency_hz if carrier else 0.0,
                  volume=f"{volume:.2f}")
        return session

    def teardown(self, session: Optional[Session]) -> None:
        """Stop and release every node of ``session``. Safe to repeat."""
        if session is None or not session.live:
            return
        session.live = False
        self.smoother.discard(session.params())
        if self._session is session:
            self.noise.disable()
            self._session = None

        nodes = list(session.oscillators.values())
        if session.carrier is not None:
            nodes.append(session.carrier)
        for osc in nodes:
            osc.stop()
            osc.release()
        for panner in session.panners.values():
            panner.release()
        session.gain.release()
        log_event("INFO", "Graph", "Session torn down", session=session.session_id)

    def enable_noise(self) -> None:
        if self.live:
            self.noise.enable(self._session.gain)

    def flush_pending(self) -> int:
        return self.smoother.pump()

    # Parameter updates ----------------------------------------------------

    def update_frequency(self, channel: Channel, hz: float) -> float:
        hz = clamp(float(hz), TONE_HZ_MIN, TONE_HZ_MAX)
        current = self.targets.channels[channel]
        self.targets.channels[channel] = replace(current, frequency_hz=hz)
        if self.live:
            self.smoother.request(self._session.oscillators[channel].frequency, hz, owner=self._session)
        return hz

    def update_waveform(self, waveform: Waveform) -> Waveform:
        waveform = Waveform(waveform)
        for channel, tone in self.targets.channels.items():
            self.targets.channels[channel] = replace(tone, waveform=waveform)
        if self.live:
            # No intermediate shape exists, so the switch is immediate
            for osc in self._session.oscillators.values():
                osc.waveform = waveform
            if self._session.carrier is not None:
                self._session.carrier.waveform = waveform
        return waveform

    def update_carrier(self, hz: float) -> float:
        hz = clamp(float(hz), CARRIER_HZ_MIN, CARRIER_HZ_MAX)
        self.targets.carrier_hz = hz
        if not self.live:
            return hz

        session = self._session
        if hz <= 0.0:
            if session.carrier is not None:
                carrier, session.carrier = session.carrier, None
                self.smoother.discard([carrier.frequency])
                carrier.stop()
                carrier.release()
                log_event("INFO", "Graph", "Carrier disabled", session=session.session_id)
        elif session.carrier is None:
            session.carrier = self._create_carrier(self.targets.carrier, session.gain)
            session.carrier.start()
            log_event("INFO", "Graph", "Carrier enabled", session=session.session_id, carrier_hz=hz)
        else:
            self.smoother.request(session.carrier.frequency, hz, owner=session)
        return hz

    def update_volume(self, volume: float) -> float:
        volume = clamp(float(volume), 0.0, 1.0)
        self.targets.volume = volume
        if self.live:
            self.smoother.request(self._session.gain.gain, volume, owner=self._session)
        return volume

    def update_position(self, channel: Channel, position: SpatialPosition) -> None:
        self.targets.positions[channel] = position
        if not self.live:
            return
        panner = self._session.panners[channel]
        for param, value in zip(panner.axis_params(), (position.x, position.y, position.z)):
            self.smoother.request(param, value, owner=self._session)

    def update_noise(self, enabled: bool) -> None:
        self.targets.noise_enabled = bool(enabled)
        if not self.live:
            return
        if enabled:
            self.noise.enable(self._session.gain)
        else:
            self.noise.disable()

    # Helpers --------------------------------------------------------------

    def _create_panner(self) -> PannerNode:
        spatial = self.spatial_config
        return self.device.create_panner(
            panning_model=spatial.panning_model,
            distance_model=spatial.distance_model,
            ref_distance=spatial.ref_distance,
            max_distance=spatial.max_distance,
            rolloff_factor=spatial.rolloff_factor,
        )

    def _create_carrier(self, carrier: ToneChannel, gain: GainNode) -> OscillatorNode:
        osc = self.device.create_oscillator(carrier.waveform, carrier.frequency_hz)
        self.smoother.set_now(osc.frequency, carrier.frequency_hz)
        osc.connect(gain)
        return osc

    def _set_position_now(self, panner: PannerNode, position: SpatialPosition) -> None:
        for param, value in zip(panner.axis_params(), (position.x, position.y, position.z)):
            self.smoother.set_now(param, value)
