import unittest

import numpy as np

from audio_device import DeviceUnavailable, OfflineAudioDevice
from config import Channel, Waveform
from graph_helpers import make_graph
from signal_graph import SignalGraphManager
from spatial_automation import SpatialPosition


def build(graph: SignalGraphManager):
    t = graph.targets
    return graph.build(t.channels, t.carrier, t.positions, t.volume)


class TestBuildTeardown(unittest.TestCase):
    def test_build_wires_tones_through_panners(self):
        graph = make_graph()
        session = build(graph)
        self.assertTrue(session.live)
        self.assertIsNone(session.carrier)
        self.assertEqual(graph.device.destination._inputs, (session.gain,))
        self.assertEqual(set(session.gain._inputs), set(session.panners.values()))
        for channel in (Channel.LEFT, Channel.RIGHT):
            self.assertEqual(session.panners[channel]._inputs, (session.oscillators[channel],))
        self.assertEqual(session.oscillators[Channel.LEFT].frequency.value, 200.0)
        self.assertEqual(session.gain.gain.value, 0.5)

    def test_carrier_bypasses_panners(self):
        graph = make_graph(carrier_hz=50.0)
        session = build(graph)
        self.assertIsNotNone(session.carrier)
        self.assertIn(session.carrier, session.gain._inputs)
        self.assertEqual(session.carrier.frequency.value, 50.0)
        for panner in session.panners.values():
            self.assertNotIn(session.carrier, panner._inputs)

    def test_second_build_returns_existing_session(self):
        graph = make_graph(carrier_hz=50.0)
        first = build(graph)
        inputs = graph.device.destination._inputs
        second = build(graph)
        self.assertIs(first, second)
        self.assertEqual(graph.device.destination._inputs, inputs)
        self.assertEqual(len(first.gain._inputs), 3)

    def test_teardown_releases_everything_and_is_idempotent(self):
        graph = make_graph(carrier_hz=50.0)
        session = build(graph)
        nodes = list(session.oscillators.values()) + list(session.panners.values()) + [session.gain, session.carrier]
        graph.teardown(session)
        self.assertFalse(session.live)
        self.assertIsNone(graph.session)
        self.assertEqual(graph.device.destination._inputs, ())
        self.assertTrue(all(node.released for node in nodes))
        graph.teardown(session)
        graph.teardown(None)

    def test_build_fails_when_device_unavailable(self):
        graph = make_graph(OfflineAudioDevice(available=False))
        with self.assertRaises(DeviceUnavailable):
            build(graph)
        self.assertIsNone(graph.session)
        self.assertEqual(graph.device.destination._inputs, ())


class TestUpdates(unittest.TestCase):
    def setUp(self):
        self.graph = make_graph()
        self.device = self.graph.device

    def _play(self):
        self.device.resume()
        return build(self.graph)

    def test_idle_updates_only_store_targets(self):
        self.assertEqual(self.graph.update_frequency(Channel.LEFT, 5000.0), 999.0)
        self.assertEqual(self.graph.update_frequency(Channel.RIGHT, 0.0), 1.0)
        self.assertEqual(self.graph.update_volume(-1.0), 0.0)
        self.assertEqual(self.graph.update_carrier(300.0), 200.0)
        self.assertIsNone(self.graph.session)
        session = self._play()
        self.assertEqual(session.oscillators[Channel.LEFT].frequency.value, 999.0)
        self.assertIsNotNone(session.carrier)

    def test_live_frequency_reaches_target_after_one_horizon(self):
        session = self._play()
        self.graph.update_frequency(Channel.LEFT, 300.0)
        self.device.advance(0.03)
        midway = session.oscillators[Channel.LEFT].frequency.value
        self.assertGreater(midway, 200.0)
        self.assertLess(midway, 300.0)
        self.device.advance(0.04)
        self.assertAlmostEqual(session.oscillators[Channel.LEFT].frequency.value, 300.0)

    def test_waveform_switch_is_immediate(self):
        session = self._play()
        self.graph.update_waveform(Waveform.SQUARE)
        self.assertTrue(all(osc.waveform == Waveform.SQUARE for osc in session.oscillators.values()))
        self.assertEqual(self.graph.targets.channels[Channel.RIGHT].waveform, Waveform.SQUARE)

    def test_carrier_zero_disables_and_nonzero_enables(self):
        session = self._play()
        self.graph.update_carrier(60.0)
        carrier = session.carrier
        self.assertIsNotNone(carrier)
        self.assertIn(carrier, session.gain._inputs)
        self.graph.update_carrier(0.0)
        self.assertIsNone(session.carrier)
        self.assertTrue(carrier.released)

    def test_position_ramps_per_axis(self):
        session = self._play()
        self.graph.update_position(Channel.LEFT, SpatialPosition(-5.0, 2.0, 0.0))
        self.device.advance(0.1)
        panner = session.panners[Channel.LEFT]
        self.assertAlmostEqual(panner.position_x.value, -5.0)
        self.assertAlmostEqual(panner.position_y.value, 2.0)

    def test_updates_after_teardown_leave_released_nodes_alone(self):
        session = self._play()
        osc = session.oscillators[Channel.LEFT]
        self.graph.teardown(session)
        self.graph.update_frequency(Channel.LEFT, 333.0)
        self.graph.update_volume(0.9)
        self.assertEqual(osc.frequency.value, 200.0)
        self.assertEqual(self.graph.targets.channels[Channel.LEFT].frequency_hz, 333.0)

    def test_teardown_drops_pending_ramps(self):
        session = self._play()
        self.graph.update_frequency(Channel.LEFT, 250.0)
        self.graph.update_frequency(Channel.LEFT, 260.0)
        self.assertEqual(self.graph.smoother.pending_count, 1)
        self.graph.teardown(session)
        self.assertEqual(self.graph.smoother.pending_count, 0)
        self.device.advance(0.2)
        self.assertEqual(self.graph.flush_pending(), 0)

    def test_noise_follows_session(self):
        self.graph.update_noise(True)
        self.assertFalse(self.graph.noise.enabled)
        session = self._play()
        self.graph.enable_noise()
        self.assertIn(self.graph.noise.source, session.gain._inputs)
        self.graph.update_noise(False)
        self.assertFalse(self.graph.noise.enabled)

    def test_burst_settles_on_last_target_without_flush(self):
        session = self._play()
        osc = session.oscillators[Channel.RIGHT]
        for hz in (220.0, 240.0, 260.0):
            self.graph.update_frequency(Channel.RIGHT, hz)
            self.device.advance(0.01)
        self.device.advance(0.5)
        self.assertAlmostEqual(osc.frequency.value, 260.0)


class TestMixHeadroom(unittest.TestCase):
    def test_everything_centred_at_full_volume_stays_below_full_scale(self):
        graph = make_graph(carrier_hz=200.0)
        for channel in (Channel.LEFT, Channel.RIGHT):
            graph.update_position(channel, SpatialPosition(0.0, 0.0, 0.0))
        graph.update_volume(1.0)
        graph.update_noise(True)
        graph.device.resume()
        build(graph)
        graph.enable_noise()

        start = graph.device.current_time
        block = graph.device.destination.pull(start, 8000)
        peak = float(np.max(np.abs(block)))
        self.assertLess(peak, 1.0)
        self.assertGreater(peak, 0.5)


if __name__ == "__main__":
    unittest.main()
