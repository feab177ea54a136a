"""
Hemi-Sync - Playback State Machine
Idle <-> Playing. The only component allowed to build or tear down a session.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from audio_device import DeviceUnavailable
from logging_utils import log_event
from signal_graph import Session, SignalGraphManager


class PlaybackState(Enum):
    IDLE = "idle"
    PLAYING = "playing"


class PlaybackStateMachine:
    def __init__(self, graph: SignalGraphManager):
        self.graph = graph
        self.state = PlaybackState.IDLE
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    def start(self) -> Session:
        """Idle -> Playing. Raises DeviceUnavailable and stays Idle on failure."""
        if self.state == PlaybackState.PLAYING:
            return self._session

        device = self.graph.device
        targets = self.graph.targets
        try:
            device.resume()
            session = self.graph.build(targets.channels, targets.carrier, targets.positions, targets.volume)
        except DeviceUnavailable as e:
            log_event("ERROR", "Playback", "Device unavailable, staying idle", error=e)
            device.suspend()
            raise

        self._session = session
        if targets.noise_enabled:
            self.graph.enable_noise()
        self.state = PlaybackState.PLAYING
        log_event("INFO", "Playback", "Playing", session=session.session_id)
        return session

    def stop(self) -> None:
        """Playing -> Idle. A no-op when already idle."""
        if self.state == PlaybackState.IDLE:
            return

        session, self._session = self._session, None
        self.graph.teardown(session)
        self.graph.device.suspend()
        self.state = PlaybackState.IDLE
        log_event("INFO", "Playback", "Idle")

    def toggle(self) -> PlaybackState:
        if self.state == PlaybackState.PLAYING:
            self.stop()
        else:
            self.start()
        return self.state
