import unittest

import numpy as np

from audio_device import OfflineAudioDevice
from audio_graph import AudioParam, PannerNode
from config import Waveform
from frequency_utils import channel_rms, dominant_frequency


class TestAudioParam(unittest.TestCase):
    def setUp(self):
        self.param = AudioParam('frequency', 0.0, clock=lambda: 0.0)
        self.param.set_value_at_time(100.0, 0.0)
        self.param.linear_ramp_to_value_at_time(200.0, 1.0)

    def test_value_at_follows_linear_ramp(self):
        self.assertAlmostEqual(self.param.value_at(0.0), 100.0)
        self.assertAlmostEqual(self.param.value_at(0.5), 150.0)
        self.assertAlmostEqual(self.param.value_at(1.0), 200.0)
        self.assertAlmostEqual(self.param.value_at(5.0), 200.0)

    def test_values_matches_value_at_per_sample(self):
        values = self.param.values(0.0, 10, 10)
        expected = [self.param.value_at(i / 10) for i in range(10)]
        np.testing.assert_allclose(values, expected)

    def test_cancel_and_hold_freezes_ramp(self):
        held = self.param.cancel_and_hold_at_time(0.5)
        self.assertAlmostEqual(held, 150.0)
        self.assertAlmostEqual(self.param.value_at(0.9), 150.0)

    def test_values_clipped_to_range(self):
        param = AudioParam('gain', 0.5, clock=lambda: 0.0, min_value=0.0, max_value=1.0)
        param.set_value_at_time(3.0, 0.0)
        self.assertEqual(param.value_at(0.1), 1.0)
        self.assertTrue(np.all(param.values(0.0, 16, 8000) == 1.0))

    def test_no_events_returns_default(self):
        param = AudioParam('x', 0.25, clock=lambda: 0.0)
        self.assertFalse(param.has_events)
        self.assertEqual(param.value, 0.25)


class TestNodes(unittest.TestCase):
    def setUp(self):
        self.device = OfflineAudioDevice(sample_rate=8000, block_size=256)
        self.device.resume()

    def test_oscillator_renders_requested_frequency(self):
        osc = self.device.create_oscillator(Waveform.SINE, 440.0)
        osc.connect(self.device.destination)
        osc.start()
        block = self.device.advance(1.0)
        self.assertEqual(block.shape, (8000, 2))
        self.assertAlmostEqual(dominant_frequency(block[:, 0], 8000), 440.0, delta=1.0)

    def test_square_and_triangle_shapes_are_bounded(self):
        for waveform in (Waveform.SQUARE, Waveform.TRIANGLE):
            device = OfflineAudioDevice(sample_rate=8000)
            device.resume()
            osc = device.create_oscillator(waveform, 100.0)
            osc.connect(device.destination)
            osc.start()
            block = device.advance(0.5)
            self.assertLessEqual(np.max(np.abs(block)), 1.0)
            self.assertAlmostEqual(dominant_frequency(block[:, 0], 8000), 100.0, delta=2.0)

    def test_stopped_oscillator_is_silent(self):
        osc = self.device.create_oscillator(Waveform.SINE, 220.0)
        osc.connect(self.device.destination)
        osc.start()
        self.device.advance(0.1)
        osc.stop()
        block = self.device.advance(0.1)
        self.assertFalse(osc.playing)
        self.assertTrue(np.all(block == 0.0))

    def test_gain_scales_output(self):
        gain = self.device.create_gain(0.5)
        gain.gain.value = 0.5
        osc = self.device.create_oscillator(Waveform.SQUARE, 100.0)
        osc.connect(gain)
        gain.connect(self.device.destination)
        osc.start()
        block = self.device.advance(0.2)
        self.assertAlmostEqual(float(np.max(np.abs(block))), 0.5, places=5)

    def test_panner_places_source_right(self):
        panner = self.device.create_panner(panning_model="equalpower")
        panner.position_x.value = 1.0
        osc = self.device.create_oscillator(Waveform.SINE, 300.0)
        osc.connect(panner)
        panner.connect(self.device.destination)
        osc.start()
        left, right = channel_rms(self.device.advance(0.5))
        self.assertLess(left, 1e-6)
        self.assertAlmostEqual(right, np.sqrt(0.5), places=2)

    def test_azimuth_orientation(self):
        az = PannerNode.azimuth(np.array([1.0, -1.0, 0.0, 0.0]), np.array([0.0, 0.0, -1.0, 1.0]))
        np.testing.assert_allclose(az, [90.0, -90.0, 0.0, 0.0], atol=1e-9)

    def test_linear_distance_attenuates(self):
        panner = self.device.create_panner(distance_model="linear", max_distance=10.0)
        gains = panner.distance_gain(np.array([0.5, 1.0, 5.5, 10.0, 20.0]))
        np.testing.assert_allclose(gains, [1.0, 1.0, 0.5, 0.0, 0.0])

    def test_buffer_source_loops(self):
        device = OfflineAudioDevice(sample_rate=10, block_size=3)
        device.resume()
        source = device.create_buffer_source(np.array([0.0, 0.25, 0.5, 0.75]), loop=True)
        source.connect(device.destination)
        source.start()
        block = device.advance(1.0)
        expected = [0.0, 0.25, 0.5, 0.75, 0.0, 0.25, 0.5, 0.75, 0.0, 0.25]
        np.testing.assert_allclose(block[:, 0], expected, atol=1e-6)

    def test_release_disconnects_node(self):
        osc = self.device.create_oscillator()
        osc.connect(self.device.destination)
        self.assertEqual(self.device.destination._inputs, (osc,))
        osc.release()
        self.assertEqual(self.device.destination._inputs, ())
        self.assertTrue(osc.released)


class TestDevice(unittest.TestCase):
    def test_suspended_device_renders_silence_and_holds_clock(self):
        device = OfflineAudioDevice(sample_rate=8000)
        block = device.render(128)
        self.assertTrue(np.all(block == 0.0))
        self.assertEqual(device.current_time, 0.0)

    def test_clock_advances_only_while_running(self):
        device = OfflineAudioDevice(sample_rate=8000)
        device.resume()
        device.advance(0.5)
        self.assertAlmostEqual(device.current_time, 0.5)
        device.suspend()
        device.advance(0.5)
        self.assertAlmostEqual(device.current_time, 0.5)

    def test_recent_audio_keeps_latest_rendered_frames(self):
        device = OfflineAudioDevice(sample_rate=8000, block_size=256)
        self.assertEqual(device.recent_audio(1.0).shape, (0, 2))
        device.resume()
        osc = device.create_oscillator(frequency=250.0)
        osc.connect(device.destination)
        osc.start()
        block = device.advance(0.5)
        recent = device.recent_audio(0.25)
        self.assertEqual(recent.shape, (2000, 2))
        np.testing.assert_array_equal(recent, block[-2000:])

        device.suspend()
        device.advance(0.5)
        self.assertEqual(len(device.recent_audio(1.0)), 4000)
        device.resume()
        self.assertEqual(len(device.recent_audio(1.0)), 0)


if __name__ == "__main__":
    unittest.main()
