"""Tests for the histogram module."""

import numpy as np
import pytest

from aprange.errors import InvalidHistogramError
from aprange.ranging.histogram import CoarseHistogram, coarsen
from aprange.ranging.ranges import Range


class TestCoarsen:
    def test_narrow_peak_keeps_resolution(self):
        values = [0, 1, 5, 100, 5, 1, 0]
        hist = coarsen(10.0, 0.5, values)
        assert hist.coarsen_factor == 1
        assert len(hist) == 7
        # edges at the last/first bins not exceeding 1% of the maximum
        assert hist.max_peak_fw1pm == pytest.approx(4 * 0.5)
        assert hist.max_peak_position == pytest.approx(11.5)

    def test_broad_peak_is_coarsened(self):
        values = np.concatenate([np.zeros(10), np.full(61, 100.0), np.zeros(11)])
        hist = coarsen(0.0, 0.01, values)
        # peak width of 62 bins requires a factor of 3
        assert hist.coarsen_factor == 3
        assert hist.bin_width == pytest.approx(0.03)
        # last partial group is truncated
        assert len(hist) == 82 // 3
        assert hist.values[0] == 0.0
        assert hist.values[3] == pytest.approx(200.0)
        assert hist.values.sum() == pytest.approx(6100.0)

    def test_factor_is_minimal(self, spectrum_factory):
        _, _, values = spectrum_factory([(5.0, 1e6, 0.2)], length=1000)
        hist = coarsen(0.0, 0.01, values)
        width = round(hist.max_peak_fw1pm / hist.raw_bin_width)
        assert width / hist.coarsen_factor <= 30
        assert width / (hist.coarsen_factor - 1) > 30

    def test_all_zero_histogram(self):
        hist = coarsen(2.0, 0.1, np.zeros(10))
        assert hist.coarsen_factor == 1
        assert hist.max_peak_position == pytest.approx(2.0)

    def test_empty_histogram(self):
        hist = coarsen(0.0, 0.01, [])
        assert hist.is_empty
        assert len(hist) == 0

    def test_invalid_bin_width(self):
        with pytest.raises(InvalidHistogramError):
            coarsen(0.0, 0.0, [1.0, 2.0])
        with pytest.raises(InvalidHistogramError):
            coarsen(0.0, -0.01, [1.0, 2.0])

    def test_flat_histogram_keeps_bins(self):
        hist = coarsen(0.0, 0.01, np.ones(61))
        assert hist.coarsen_factor == 2
        assert len(hist) == 30

    def test_single_bin(self):
        hist = coarsen(0.0, 0.01, [7.0])
        assert hist.coarsen_factor == 1
        assert len(hist) == 1

    def test_values_are_read_only(self):
        hist = coarsen(0.0, 0.01, [0.0, 3.0, 1.0])
        with pytest.raises(ValueError):
            hist.values[0] = 5.0


class TestCoarseHistogram:
    @pytest.fixture
    def hist(self):
        """Histogram with ten bins of width 0.5 starting at 10."""
        values = np.array([0, 0, 1, 4, 9, 4, 1, 0, 0, 0], dtype=float)
        return CoarseHistogram(10.0, 0.5, values, max_index=4, fw1pm_bins=4)

    def test_geometry(self, hist):
        assert hist.bin_width == pytest.approx(0.5)
        assert hist.end == pytest.approx(15.0)
        assert hist.positions[:3] == pytest.approx([10.0, 10.5, 11.0])

    def test_index_and_position(self, hist):
        assert hist.get_index(12.0) == 4
        assert hist.get_pos(4) == pytest.approx(12.0)
        assert hist.get_index(hist.get_pos(7)) == 7

    def test_find_local_max(self, hist):
        assert hist.find_local_max(10.5, 14.0) == pytest.approx(12.0)

    def test_find_local_max_without_counts(self, hist):
        # no positive bin in [13.5, 14.5)
        assert hist.find_local_max(13.5, 14.5) == pytest.approx(14.5)

    def test_find_local_max_beyond_end(self, hist):
        assert hist.find_local_max(14.0, 20.0) == pytest.approx(20.0)

    def test_max_peak_name(self, hist):
        ranges = [Range("Fe", 11.0, 11.5), Range("Al", 11.75, 12.5)]
        assert hist.max_peak_name(ranges) == "Al"
        assert hist.max_peak_name(ranges[:1]) == "Not Ranged"

    def test_mass_resolving_power(self, hist):
        # 12.0 / 2.0 = 6.0
        assert hist.max_peak_mrp == pytest.approx(6.0)

    def test_width_scale(self, hist):
        assert hist.width_scale(12.0) == pytest.approx(1.0)
        assert hist.width_scale(48.0) == pytest.approx(2.0)
        assert hist.width_scale(-1.0) == pytest.approx(0.0)
