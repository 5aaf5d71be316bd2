"""Tests for the peaks module."""

import numpy as np
import pytest

from aprange.ranging.histogram import CoarseHistogram, coarsen
from aprange.ranging.peaks import find_all_peaks


@pytest.fixture
def hist(two_peak_spectrum):
    """Coarse histogram of the two-peak spectrum."""
    return coarsen(*two_peak_spectrum)


class TestFindAllPeaks:
    def test_finds_both_peaks(self, hist):
        peaks = find_all_peaks(hist)
        positions = [pos for pos, _ in peaks]
        assert positions == pytest.approx([27.0, 40.0], abs=0.011)

    def test_sorted_with_intensities(self, hist):
        peaks = find_all_peaks(hist)
        assert [pos for pos, _ in peaks] == sorted(pos for pos, _ in peaks)
        assert peaks[0][1] > peaks[1][1]

    def test_flat_background_has_no_peaks(self, hist):
        peaks = find_all_peaks(hist)
        assert all(
            abs(pos - 27.0) < 0.05 or abs(pos - 40.0) < 0.05
            for pos, _ in peaks
        )

    def test_minimum_peak_height(self, hist):
        peaks = find_all_peaks(hist, min_peak_max_counts=200)
        assert [pos for pos, _ in peaks] == pytest.approx([27.0], abs=0.011)

    def test_low_sensitivity_misses_weak_peak(self, hist):
        peaks = find_all_peaks(hist, sensitivity=0.01)
        assert [pos for pos, _ in peaks] == pytest.approx([27.0], abs=0.011)

    def test_empty_histogram(self):
        hist = CoarseHistogram(0.0, 0.01, np.zeros(0))
        assert find_all_peaks(hist) == []
