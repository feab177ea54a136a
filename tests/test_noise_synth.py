import unittest

import numpy as np

from audio_device import OfflineAudioDevice
from config import NoiseConfig
from noise_synth import NoiseSynthesizer, generate_pink_noise


class TestGeneratePinkNoise(unittest.TestCase):
    def test_samples_bounded_for_any_seed(self):
        for seed in range(8):
            buffer = generate_pink_noise(8000, rng=np.random.default_rng(seed))
            self.assertEqual(len(buffer), 16000)
            self.assertEqual(buffer[0], 0.0)
            self.assertLessEqual(float(np.max(np.abs(buffer))), 0.1)

    def test_matches_leaky_integrator(self):
        buffer = generate_pink_noise(1000, duration_s=0.1, rng=np.random.default_rng(3))
        white = np.random.default_rng(3).uniform(-1.0, 1.0, 100)
        k = 0.02
        y = 0.0
        expected = [0.0]
        for n in range(1, 100):
            y = (y + k * white[n]) / (1 + k)
            expected.append(y * 0.1)
        np.testing.assert_allclose(buffer, expected, atol=1e-12)

    def test_spectrum_tilts_toward_low_frequencies(self):
        buffer = generate_pink_noise(8000, rng=np.random.default_rng(11))
        spectrum = np.abs(np.fft.rfft(buffer)) ** 2
        freqs = np.fft.rfftfreq(len(buffer), 1 / 8000)
        low = spectrum[(freqs > 10) & (freqs < 100)].mean()
        high = spectrum[(freqs > 1000) & (freqs < 3000)].mean()
        self.assertGreater(low, high * 10)


class TestNoiseSynthesizer(unittest.TestCase):
    def setUp(self):
        self.device = OfflineAudioDevice(sample_rate=8000)
        self.device.acquire()
        self.gain = self.device.create_gain(1.0)
        self.gain.connect(self.device.destination)
        self.noise = NoiseSynthesizer(self.device, NoiseConfig(seed=1))

    def test_enable_twice_keeps_single_source(self):
        self.noise.enable(self.gain)
        source = self.noise.source
        self.noise.enable(self.gain)
        self.assertIs(self.noise.source, source)
        self.assertEqual(len(self.gain._inputs), 1)

    def test_disable_releases_source_and_is_idempotent(self):
        self.noise.enable(self.gain)
        source = self.noise.source
        self.noise.disable()
        self.assertFalse(self.noise.enabled)
        self.assertTrue(source.released)
        self.assertEqual(self.gain._inputs, ())
        self.noise.disable()
        self.assertFalse(self.noise.enabled)

    def test_buffer_loops_past_its_length(self):
        self.noise.enable(self.gain)
        self.device.resume()
        block = self.device.advance(2.5)
        self.assertTrue(np.any(block[-400:] != 0.0))


if __name__ == "__main__":
    unittest.main()
