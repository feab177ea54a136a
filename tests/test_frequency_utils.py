import unittest

import numpy as np

from frequency_utils import channel_rms, dominant_frequency


class TestFrequencyUtils(unittest.TestCase):
    def test_dominant_frequency_between_bins(self):
        sample_rate = 1000
        t = np.arange(1000) / sample_rate
        samples = np.sin(2 * np.pi * 123.4 * t)
        self.assertAlmostEqual(dominant_frequency(samples, sample_rate), 123.4, delta=0.2)

    def test_dominant_frequency_respects_band(self):
        sample_rate = 1000
        t = np.arange(1000) / sample_rate
        samples = np.sin(2 * np.pi * 50 * t) + 0.3 * np.sin(2 * np.pi * 200 * t)
        self.assertAlmostEqual(dominant_frequency(samples, sample_rate, freq_low=100.0), 200.0, delta=0.5)

    def test_dominant_frequency_empty_or_none(self):
        self.assertEqual(dominant_frequency(None, 1000), 0.0)
        self.assertEqual(dominant_frequency(np.array([]), 1000), 0.0)

    def test_dominant_frequency_invalid_band(self):
        samples = np.ones(100)
        self.assertEqual(dominant_frequency(samples, 1000, freq_low=400.0, freq_high=200.0), 0.0)

    def test_channel_rms(self):
        block = np.zeros((100, 2))
        block[:, 1] = 0.5
        left, right = channel_rms(block)
        self.assertEqual(left, 0.0)
        self.assertAlmostEqual(right, 0.5)
        self.assertEqual(channel_rms(np.zeros((0, 2))), (0.0, 0.0))


if __name__ == "__main__":
    unittest.main()
