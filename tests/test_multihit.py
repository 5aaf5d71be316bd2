"""Tests for the multihit module."""

import numpy as np
import pytest

from aprange.analysis.multihit import (
    MultiHitModel,
    PulseFold,
    PulseState,
    analyze_multihits,
)
from aprange.errors import MissingFieldsError, PreconditionError
from aprange.ranging.histogram import CoarseHistogram
from aprange.ranging.ranges import Range

# table indices
A, B, OTHER, UNRANGED, TOTAL = range(5)


@pytest.fixture
def hist():
    """Flat histogram from 0 to 50 Da."""
    return CoarseHistogram(0.0, 0.5, np.ones(100))


@pytest.fixture
def ranges():
    """Two considered ranges and one other range."""
    return [
        Range("A", 10.0, 12.0, multi_use=True, position=11.0),
        Range("B", 20.0, 22.0, multi_use=True, position=21.0),
        Range("C", 30.0, 32.0, position=31.0),
    ]


@pytest.fixture
def run(hist, ranges, event_factory):
    """Run the complete analysis on a list of event records."""
    def _run(records, **kwargs):
        return analyze_multihits(hist, ranges, event_factory(records), **kwargs)
    return _run


def push(fold, pulses, ranges=None, coords=None):
    pulses = np.asarray(pulses, dtype=np.int64)
    if ranges is None:
        ranges = np.zeros(len(pulses), dtype=np.int64)
    if coords is None:
        coords = np.zeros((len(pulses), 3))
    fold.push(ranges, pulses, coords)


class TestPulseFold:
    def test_same_pulse_pairs(self):
        fold = PulseFold(1)
        push(fold, [1, 1, 1])
        # last group stays open until finished
        assert fold.group_size == 3
        assert fold.dp_multis.sum() == 0
        fold.finish()
        assert fold.dp_multis[0, 0, 0] == 3
        assert fold.event_pulses == 1
        assert fold.state is PulseState.SAW_MULTI

    def test_consecutive_singles(self):
        fold = PulseFold(1)
        push(fold, [1, 4])
        assert fold.event_pulses == 1
        assert fold.group_size == 1
        fold.finish()
        assert fold.dp_multis[:, :, 0].sum() == 0
        assert fold.dp_multis[0, 0, 3] == 1
        assert fold.dp_histogram[3] == 1
        assert fold.pulse_span == (1, 4)
        assert fold.state is PulseState.SAW_PSEUDO_PAIR

    def test_rejected_pseudo_pair(self):
        fold = PulseFold(1)
        push(fold, [1, 10])
        fold.finish()
        assert fold.dp_multis.sum() == 0
        assert fold.dp_histogram[9] == 1
        assert fold.state is PulseState.SAW_SINGLE

    def test_multi_breaks_single_chain(self):
        fold = PulseFold(1)
        push(fold, [1, 2, 2, 3])
        fold.finish()
        assert fold.dp_multis[:, :, 1:].sum() == 0
        assert fold.dp_multis[0, 0, 0] == 1
        assert fold.hreg[0, 1] == 2
        assert fold.hreg[1, 1] == 1
        assert fold.event_pulses == 3
        assert fold.state is PulseState.SAW_SINGLE

    def test_singles_out_of_order_ignored(self):
        fold = PulseFold(1)
        push(fold, [5, 3])
        fold.finish()
        assert fold.dp_histogram.sum() == 0
        assert fold.dp_multis.sum() == 0
        assert fold.state is PulseState.SAW_SINGLE

    def test_group_continues_in_next_chunk(self):
        fold = PulseFold(1)
        push(fold, [1, 1])
        push(fold, [1, 2])
        assert fold.event_pulses == 1
        fold.finish()
        assert fold.dp_multis[0, 0, 0] == 3
        assert fold.hreg[2, 1] == 1
        assert fold.event_pulses == 2

    def test_pseudo_pair_across_chunks(self):
        fold = PulseFold(2)
        push(fold, [1], ranges=[1], coords=[(0.0, 0.0, 0.0)])
        push(fold, [2], ranges=[0], coords=[(0.0, 0.0, 20.1)])
        fold.finish()
        # lower range index first, separation from the carried position
        assert fold.dp_unc_multis[0, 1, 1] == 1
        assert fold.dp_distance_correlations[0, 1, 1, 100] == 1

    def test_initial_state(self):
        fold = PulseFold(1)
        assert fold.state is PulseState.IDLE
        assert fold.pulse_span is None
        fold.finish()
        assert fold.state is PulseState.IDLE
        assert fold.event_pulses == 0


class TestMultiHitModel:
    def test_names(self, hist, ranges):
        model = MultiHitModel(hist, ranges)
        assert model.names == ("11.0-A", "21.0-B", "Other", "Unranged", "Total")
        assert model.n_considered == 2
        assert model.dp_multis.shape == (5, 5, 6)

    def test_range_lookup(self, run):
        model = run([
            (1, 11.0, (0, 0, 0)), (2, 21.0, (0, 0, 0)), (3, 31.0, (0, 0, 0)),
            (4, 40.0, (0, 0, 0)), (5, np.nan, (0, 0, 0)),
            (6, 100.0, (0, 0, 0)),
        ])
        assert list(model.total_ion_counts) == [1, 1, 1, 3, 6]
        assert list(model.singles) == [1, 1, 1, 3, 6]

    def test_same_pulse_triple(self, run):
        model = run([
            (7, 11.0, (0, 0, 0)), (7, 11.0, (1, 0, 0)), (7, 21.0, (50, 0, 0)),
        ])
        assert model.dp_cor_multis[A, A, 0] == 1
        assert model.dp_unc_multis[A, B, 0] == 2
        assert model.dp_multis[TOTAL, TOTAL, 0] == 3
        assert model.dp_histogram[0] == 3
        assert model.hreg[2, 1] == 1
        assert model.hreg[2, 0] == 1
        assert model.event_pulses == 1
        assert model.state is PulseState.SAW_MULTI

    def test_separation_histograms(self, run):
        model = run([
            (7, 11.0, (0, 0, 0)), (7, 11.0, (1, 0, 0)), (7, 21.0, (50, 0, 0)),
        ])
        d = model.dp_distance_correlations
        assert d[A, 0, 0].sum() == 4
        assert d[B, 0, 0].sum() == 2
        assert d[A, 0, 1].sum() == 2
        assert d[A, 0, 2].sum() == 1
        assert d[A, 0, 2, 5] == 1

    def test_large_separation_clamped(self, run):
        model = run([(7, 11.0, (0, 0, 0)), (7, 11.0, (1000, 0, 0))])
        assert model.dp_distance_correlations[A, 0, 2, 999] == 1

    def test_pseudo_pair_recorded(self, run):
        model = run([(10, 21.0, (0, 0, 0)), (13, 11.0, (1, 0, 0))])
        # lower range index first
        assert model.dp_multis[A, B, 3] == 1
        assert model.dp_cor_multis[A, B, 3] == 1
        assert model.dp_histogram[3] == 1
        assert model.state is PulseState.SAW_PSEUDO_PAIR

    def test_pseudo_pair_beyond_max_dp(self, run):
        model = run(
            [(10, 21.0, (0, 0, 0)), (13, 11.0, (1, 0, 0))],
            pseudo_multi_max_dp=2,
        )
        assert model.dp_multis.sum() == 0
        assert model.dp_histogram[3] == 1
        assert model.state is PulseState.SAW_SINGLE

    def test_pulse_delta_merges_pulses(self, hist, ranges, event_factory):
        events = event_factory([(10, 11.0, (0, 0, 0)), (9, 21.0, (1, 0, 0))])
        events["pulse_delta"] = [0, 1]
        model = analyze_multihits(hist, ranges, events)
        assert model.dp_multis[A, B, 0] == 1
        assert model.event_pulses == 1

    def test_considered_total_excludes_other(self, run):
        model = run([(7, 11.0, (0, 0, 0)), (7, 31.0, (1, 0, 0))])
        assert model.dp_multis[TOTAL, TOTAL, 0] == 1
        assert model.considered_total(model.dp_multis, 0) == 0

    def test_same_same_totals(self, run):
        model = run([
            (7, 11.0, (0, 0, 0)), (7, 11.0, (1, 0, 0)), (7, 21.0, (50, 0, 0)),
        ])
        assert model.considered_total(model.dp_multis, 0) == 3
        assert model.same_same_total(model.dp_multis, 0) == 1
        assert model.not_same_same_total(model.dp_multis, 0) == 2
        assert np.isnan(model.same_same_ratio(model.dp_multis))

    def test_singles_multiplicity(self, run):
        model = run([(1, 11.0, (0, 0, 0)), (5, 31.0, (0, 0, 0))])
        assert model.hreg[0, 1] == 2
        assert model.hreg[0, 0] == 1

    def test_key_range_statistics(self, run):
        model = run([(1, 11.0, (0, 0, 0)), (5, 11.0, (0, 0, 0))])
        # ToF of 100 and 200 ns
        mean, std = model.tof_statistics
        assert mean == pytest.approx(150.0)
        assert std == pytest.approx(50.0)
        assert model.voltage_statistics[0] == pytest.approx(5000.0)
        assert model.detection_rate == pytest.approx(0.5)

    def test_key_range_by_name(self, hist, ranges):
        assert MultiHitModel(hist, ranges, key_range="B").key_index == 1
        assert MultiHitModel(hist, ranges, key_range="21.0-B").key_index == 1
        assert MultiHitModel(hist, ranges).key_index == 0
        assert MultiHitModel(hist, ranges[2:]).key_index == -1

    def test_detector_separations(self, hist, ranges, event_factory):
        events = event_factory([(7, 11.0, (0, 0, 0)), (7, 11.0, (0, 0, 0))])
        events["detector"] = [(0.0, 0.0), (20.0, 0.0)]
        model = analyze_multihits(
            hist, ranges, events, use_detector_separations=True
        )
        assert model.dp_unc_multis[A, A, 0] == 1

    def test_chunked_stream(self, hist, ranges, event_factory):
        records = [
            (7, 11.0, (0, 0, 0)), (7, 11.0, (1, 0, 0)), (7, 21.0, (50, 0, 0)),
        ]
        full = analyze_multihits(hist, ranges, event_factory(records))
        chunked = analyze_multihits(
            hist, ranges, event_factory(records), chunk_size=1
        )
        assert np.array_equal(full.dp_multis, chunked.dp_multis)
        assert chunked.event_pulses == 1

    def test_chunk_size_invariance(self, hist, ranges, event_factory):
        rng = np.random.default_rng(0)
        pulses = np.sort(rng.integers(0, 300, 500))
        masses = rng.choice([11.0, 21.0, 31.0, 40.0], 500)
        positions = rng.uniform(0.0, 20.0, (500, 3))
        records = list(zip(pulses, masses, map(tuple, positions)))
        full = analyze_multihits(hist, ranges, event_factory(records))
        for chunk_size in (1, 7, 64):
            chunked = analyze_multihits(
                hist, ranges, event_factory(records), chunk_size=chunk_size
            )
            assert np.array_equal(full.dp_multis, chunked.dp_multis)
            assert np.array_equal(full.dp_cor_multis, chunked.dp_cor_multis)
            assert np.array_equal(
                full.dp_distance_correlations, chunked.dp_distance_correlations
            )
            assert np.array_equal(full.hreg, chunked.hreg)
            assert np.array_equal(full.dp_histogram, chunked.dp_histogram)
            assert chunked.event_pulses == full.event_pulses
        assert full.dp_multis[TOTAL, TOTAL].sum() > 0
        assert int(full.total_ion_counts[TOTAL]) == 500

    def test_separation_series(self, run):
        model = run([(7, 11.0, (0, 0, 0)), (7, 11.0, (1, 0, 0))])
        legends = [s.legend for s in model.separation_series()]
        assert legends == ["11.0-A dp=0 all", "11.0-A dp=0 same-same"]

    def test_summary(self, run):
        model = run([
            (7, 11.0, (0, 0, 0)), (7, 11.0, (1, 0, 0)), (9, 21.0, (50, 0, 0)),
        ])
        text = model.summary()
        assert "Total Ions:" in text
        assert "11.0-A" in text
        assert "Pseudo-Doubles dp=1...5:" in text

    def test_finished_model_is_read_only(self, run, event_factory):
        model = run([(1, 11.0, (0, 0, 0))])
        assert model.is_finished
        with pytest.raises(ValueError):
            model.dp_multis[0, 0, 0] = 1
        with pytest.raises(PreconditionError):
            model.finish()
        with pytest.raises(PreconditionError):
            model.process_chunk(event_factory([(2, 11.0, (0, 0, 0))]))

    def test_missing_fields(self, hist, ranges):
        chunk = {"pulse": [1], "mass": [11.0]}
        with pytest.raises(MissingFieldsError) as excinfo:
            analyze_multihits(hist, ranges, [chunk])
        assert "tof" in excinfo.value.missing
