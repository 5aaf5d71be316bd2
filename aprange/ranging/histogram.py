"""
The APRange histogram module
============================

This module reduces a fine-grained raw mass-to-charge histogram to the coarser
working resolution used by all subsequent ranging steps.


Coarsening
----------

The coarsen factor is derived from the dominant (most intense) peak of the raw
histogram. Starting from the bin with the global maximum, the histogram is
scanned to the left and to the right until the intensity drops to 1% of the
maximum or below. The number of bins in between defines the full width at 1% of
the maximum (FW1%M). The coarsen factor is then the smallest positive integer
such that the FW1%M spans no more than 30 coarse bins.

``factor`` consecutive raw bins are summed up into one coarse bin. A trailing
partial group of raw bins is discarded (not padded). The position of a coarse
bin refers to the *left edge* of its first raw bin, i.e.

.. math::
    x_i = x_0 + i \\cdot f \\cdot \\Delta x,

where :math:`x_0` is the start of the raw histogram, :math:`f` the coarsen
factor, and :math:`\\Delta x` the raw bin width. Consequently, the coarse bin
:math:`i` covers the interval :math:`[x_i, x_{i+1})`.


List of classes
---------------

* :class:`CoarseHistogram`: The coarsened (immutable) working histogram.


List of functions
-----------------

* :func:`coarsen`: Coarsen raw histogram.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'CoarseHistogram',
    'coarsen'
]
#
#
#
#
# import modules
import logging
import numpy as np
#
# import some special functions/modules
from aprange.errors import InvalidHistogramError
#
#
#
#
# set up logger
logger = logging.getLogger(__name__)
#
#
#
#
################################################################################
#
# private module-level variables
#
################################################################################
# maximum number of coarse bins spanned by the dominant peak
_MAX_PEAK_BINS = 30
#
# fraction of the maximum used to determine the peak width
_PEAK_WIDTH_FRACTION = 0.01
#
#
#
#
################################################################################
#
# public classes
#
################################################################################
class CoarseHistogram:
    """
    The coarsened working histogram.

    Objects of this class are immutable; the underlying intensity array is
    flagged read-only. A new object has to be created whenever the raw
    histogram changes.

    Parameters
    ----------
    start : float
        The start position (left edge of the first bin).
    raw_bin_width : float
        The bin width of the raw histogram.
    values : ndarray, shape (n,)
        The *n* coarse bin intensities.
    coarsen_factor : int
        The number of raw bins summed up per coarse bin.
    max_index : int
        The index of the dominant peak in the *raw* histogram.
    fw1pm_bins : int
        The full width at 1% of the maximum of the dominant peak in *raw* bins.
    """
    def __init__(self, start, raw_bin_width, values, coarsen_factor = 1,
                 max_index = 0, fw1pm_bins = 1):
        #
        #
        self._start          = float(start)
        self._raw_bin_width  = float(raw_bin_width)
        self._coarsen_factor = int(coarsen_factor)
        self._bin_width      = self._raw_bin_width * self._coarsen_factor
        self._max_index      = int(max_index)
        self._fw1pm_bins     = int(fw1pm_bins)
        #
        # store read-only copy of intensities
        self._values = np.array(values, dtype = np.float64)
        self._values.setflags(write = False)
    #
    #
    def __len__(self):
        return len(self._values)
    #
    #
    def __repr__(self):
        return (
            f"CoarseHistogram(start={self._start}, "
            f"bin_width={self._bin_width}, bins={len(self)}, "
            f"coarsen_factor={self._coarsen_factor})"
        )
    #
    #
    #
    #
    ############################################################################
    #
    # properties
    #
    ############################################################################
    @property
    def bin_width(self):
        """Getter for the coarse bin width."""
        return self._bin_width
    #
    @property
    def coarsen_factor(self):
        """Getter for the number of raw bins per coarse bin."""
        return self._coarsen_factor
    #
    @property
    def end(self):
        """Getter for the right edge of the last coarse bin."""
        return self._start + len(self) * self._bin_width
    #
    @property
    def is_empty(self):
        """Getter for whether the histogram contains no bins."""
        return len(self) == 0
    #
    @property
    def max_peak_fw1pm(self):
        """
        Getter for the full width at 1% of the maximum of the dominant peak (in
        mass-to-charge units).
        """
        return self._fw1pm_bins * self._raw_bin_width
    #
    @property
    def max_peak_index(self):
        """Getter for the coarse bin index of the dominant peak."""
        return self._max_index // self._coarsen_factor
    #
    @property
    def max_peak_mrp(self):
        """
        Getter for the mass resolving power of the dominant peak, truncated to
        one decimal.
        """
        if self.max_peak_fw1pm <= 0.0:
            return 0.0
        return np.trunc(self.max_peak_position / self.max_peak_fw1pm * 10.0) \
               / 10.0
    #
    @property
    def max_peak_position(self):
        """Getter for the position of the dominant peak."""
        return self._start + self._max_index * self._raw_bin_width
    #
    @property
    def positions(self):
        """Getter for the (left edge) positions of all coarse bins."""
        return self._start + np.arange(len(self)) * self._bin_width
    #
    @property
    def raw_bin_width(self):
        """Getter for the bin width of the raw histogram."""
        return self._raw_bin_width
    #
    @property
    def start(self):
        """Getter for the left edge of the first bin."""
        return self._start
    #
    @property
    def values(self):
        """Getter for the (read-only) coarse bin intensities."""
        return self._values
    #
    #
    #
    #
    ############################################################################
    #
    # public methods
    #
    ############################################################################
    def find_local_max(self, min, max):
        """
        Find the position of the most intense bin within an interval.

        Parameters
        ----------
        min : float
            The lower bound of the interval.
        max : float
            The upper bound of the interval.

        Returns
        -------
        pos : float
            The position of the most intense bin in ``[min, max)``. If the
            interval lies (partly) beyond the end of the histogram, or if it
            contains no positive bin, *max* is returned.
        """
        #
        #
        first = self.get_index(min)
        last  = self.get_index(max) - 1
        if first < 0:
            first = 0
        if last < first:
            last = first
        if last >= len(self):
            return float(max)
        #
        #
        window = self._values[first:last+1]
        if len(window) == 0 or window.max() <= 0.0:
            return float(max)
        return self.get_pos(first + int(np.argmax(window)))
    #
    #
    def get_index(self, pos):
        """Convert position into (rounded) coarse bin index."""
        return int(round((pos - self._start) / self._bin_width))
    #
    #
    def get_pos(self, index):
        """Convert coarse bin index into (left edge) position."""
        return self._start + index * self._bin_width
    #
    #
    def max_peak_name(self, ranges):
        """
        Get the name of the range containing the dominant peak.

        Parameters
        ----------
        ranges : iterable of Range
            The ranges to search.

        Returns
        -------
        name : str
            The name of the first range containing the dominant peak, or
            ``"Not Ranged"``.
        """
        #
        #
        pos = self.max_peak_position
        for r in ranges:
            if r.min <= pos <= r.max:
                return r.name
        return "Not Ranged"
    #
    #
    def width_scale(self, pos):
        """
        Get the relative peak width at a position.

        Peak widths are assumed to scale with the square root of the position
        (constant time-of-flight resolution), i.e. the scale is
        :math:`\\sqrt{x / x_\\textnormal{max}}`, where :math:`x_\\textnormal{max}`
        is the position of the dominant peak.
        """
        #
        #
        if self.max_peak_position <= 0.0:
            return 1.0
        return np.sqrt(max(pos, 0.0) / self.max_peak_position)
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def coarsen(start, bin_width, values):
    """
    Coarsen raw histogram.

    Parameters
    ----------
    start : float
        The left edge of the first raw bin.
    bin_width : float
        The raw bin width.
    values : array_like, shape (n,)
        The *n* raw bin intensities.

    Returns
    -------
    hist : CoarseHistogram
        The coarsened histogram. If the input is empty, an empty histogram is
        returned.

    Raises
    ------
    InvalidHistogramError
        If the bin width is not positive.
    """
    #
    #
    if bin_width <= 0.0:
        raise InvalidHistogramError(
            f"Histogram bin width ({bin_width}) must be positive.",
            {"bin_width": bin_width}
        )
    values = np.asarray(values, dtype = np.float64).ravel()
    #
    # degenerate model for empty input
    if len(values) == 0:
        logger.warning("Empty histogram provided; no coarsening possible.")
        return CoarseHistogram(start, bin_width, values)
    #
    #
    # get full width at 1% of maximum of dominant peak
    max_index = int(np.argmax(values))
    left, right = _get_peak_edges(values, max_index)
    width = max(right - left, 1)
    #
    # smallest coarsen factor so that peak spans at most 30 bins
    factor = max(1, int(np.ceil(width / _MAX_PEAK_BINS)))
    #
    #
    # sum consecutive bins (truncating the last partial group); the peak width
    # never exceeds the histogram, so at least one coarse bin remains
    n = len(values) // factor
    coarse = values[:n * factor].reshape(n, factor).sum(axis = 1)
    #
    #
    hist = CoarseHistogram(start, bin_width, coarse, factor, max_index, width)
    logger.info(
        f"Coarsened histogram by factor {factor} ({len(values)} -> {n} bins); "
        f"dominant peak at {hist.max_peak_position:.3f} with FW1%M of "
        f"{hist.max_peak_fw1pm:.4f} (MRP {hist.max_peak_mrp:.1f})."
    )
    return hist
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
def _get_peak_edges(values, max_index):
    """
    Simple function to determine the edges of a peak at 1% of its maximum.
    """
    #
    #
    threshold = _PEAK_WIDTH_FRACTION * values[max_index]
    #
    # scan to the left (defaults to first bin)
    below = np.nonzero(values[:max_index+1] <= threshold)[0]
    left = int(below[-1]) if len(below) > 0 else 0
    #
    # scan to the right (defaults to last bin)
    below = np.nonzero(values[max_index:] <= threshold)[0]
    right = max_index + int(below[0]) if len(below) > 0 else len(values) - 1
    #
    #
    return left, right
