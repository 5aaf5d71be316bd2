"""Shared fixtures for the APRange tests."""

import numpy as np
import pytest
from scipy.stats import norm

from aprange.io.events import EVENT_DTYPE
from aprange.ranging.ranges import Range


def make_spectrum(peaks, length, bin_width=0.01, start=0.0, background=0.0):
    """Build a raw histogram from Gaussian peaks on a flat background.

    Every peak is given as ``(center, counts, sigma)``. The bin contents are
    the exact probability mass of each bin, rounded to integer counts.
    """
    edges = start + np.arange(length + 1) * bin_width
    values = np.full(length, float(background))
    for center, counts, sigma in peaks:
        values += counts * np.diff(norm.cdf(edges, loc=center, scale=sigma))
    return start, bin_width, np.round(values)


def make_events(records):
    """Build an event array from ``(pulse, mass, position)`` records."""
    events = np.zeros(len(records), dtype=EVENT_DTYPE)
    for i, (pulse, mass, position) in enumerate(records):
        events[i]["pulse"] = pulse
        events[i]["mass"] = mass
        events[i]["position"] = position
        events[i]["tof"] = 100.0 * (i + 1)
        events[i]["voltage"] = 5000.0
    return events


@pytest.fixture
def single_peak_spectrum():
    """A single narrow peak of 1000 counts at 20 Da without background."""
    return make_spectrum([(20.005, 1000.0, 0.0165)], length=4000)


@pytest.fixture
def two_peak_spectrum():
    """A dominant peak at 27 Da and a weaker one at 40 Da on a flat background."""
    return make_spectrum(
        [(27.005, 5000.0, 0.02), (40.005, 500.0, 0.02)],
        length=6000,
        background=1.0,
    )


@pytest.fixture
def seed_range():
    """A single seed range around the peak at 20 Da."""
    return Range("Al", 19.9, 20.1, multi_use=True)


@pytest.fixture
def spectrum_factory():
    """Factory for raw histograms (see :func:`make_spectrum`)."""
    return make_spectrum


@pytest.fixture
def event_factory():
    """Factory for event arrays (see :func:`make_events`)."""
    return make_events
