"""
The APRange tail estimation module
==================================

This module estimates the thermal tails of ranges evaluated with the
``LeftTail`` scheme.


Tail model
----------

The intensity right of a range is modeled as

.. math::
    y(x) = \\exp\\left(a + b \\sqrt{x}\\right),

with :math:`b < 0`. The coefficients are obtained by an ordinary least-squares
fit of :math:`\\ln y` against :math:`\\sqrt x` over the coarse bins between the
upper edge of the range and ``considered_tail_range`` beyond it. Bins covered
by other ranges and bins already claimed by the tail of a range further left are
excluded. Ranges are processed strictly from left to right.

The tail ends where the model decays to the background level of the range,
i.e. the background counts per bin :math:`r`:

.. math::
    x_\\textnormal{c} = \\left(\\frac{\\ln r - a} b\\right)^2.

The fit is rejected if :math:`b \\geq 0`, if there are fewer than three usable
bins, if the range has no background, or if :math:`x_\\textnormal{c}` lies
outside :math:`(x_\\textnormal{max}, x_\\textnormal{max} +
\\textnormal{tail\\_range\\_maximum}]`. A rejected range falls back to the
``Left`` scheme.

For an accepted fit, the tail counts

.. math::
    T = \\sum_{x_i < x_\\textnormal{c}} \\left(y(x_i) - r\\right)

are summed over the bin centers :math:`x_i` from the upper edge of the range in
steps of the coarse bin width. The tail is added to the net counts of the range,
and the background variance is increased by :math:`(u T)^2`, where :math:`u` is
the ``tail_estimate_uncertainty``.


List of classes
---------------

* :class:`TailResult`: The outcome of one tail estimation.


List of functions
-----------------

* :func:`estimate_tails`: Estimate tails of all LeftTail ranges.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'TailResult',
    'estimate_tails'
]
#
#
#
#
# import modules
import dataclasses
import logging
import numpy as np
#
# import some special functions/modules
from aprange.io.config import DEFAULT_PARAMETERS
from aprange.ranging.ranges import Scheme
from dataclasses import dataclass
from scipy.stats import linregress
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
# minimum number of data points for the tail fit
_MIN_FIT_POINTS = 3
#
#
#
#
################################################################################
#
# public classes
#
################################################################################
@dataclass
class TailResult:
    """
    The outcome of one tail estimation.

    Attributes
    ----------
    name : str
        The name of the range.
    position : float
        The peak position of the range.
    accepted : bool
        Whether the fit has been accepted.
    tail : float
        The estimated tail counts (zero if rejected).
    intercept : float
        The fit coefficient :math:`a`.
    slope : float
        The fit coefficient :math:`b`.
    crossing : float
        The position where the tail decays to the background level.
    reason : str
        The reason for a rejection.
    """
    name: str
    position: float
    accepted: bool
    tail: float = 0.0
    intercept: float = None
    slope: float = None
    crossing: float = None
    reason: str = ""
    #
    #
    def __str__(self):
        if self.accepted:
            return (
                f"Tail of range \"{self.name}\" at {self.position:.3f}: "
                f"{self.tail:.1f} counts up to {self.crossing:.3f}."
            )
        return (
            f"Tail fit of range \"{self.name}\" at {self.position:.3f} "
            f"rejected ({self.reason}); falling back to scheme \"Left\"."
        )
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def estimate_tails(hist, ranges, **kwargs):
    """
    Estimate tails of all LeftTail ranges.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram.
    ranges : list of Range
        The evaluated ranges (without overlaps). The ranges are not modified.

    Keyword Arguments
    -----------------
    considered_tail_range : float
        The extent of the fit region right of a range.
    tail_estimate_uncertainty : float
        The relative uncertainty of the tail.
    tail_range_maximum : float
        The maximum extent of an accepted tail.

    Returns
    -------
    ranges : list of Range
        The ranges (in input order) with tails added.
    notes : list of TailResult
        The outcome for every LeftTail range, from left to right.
    """
    #
    #
    # get optional keyword arguments
    considered_tail_range = kwargs.get(
        'considered_tail_range', DEFAULT_PARAMETERS['considered_tail_range'])
    uncertainty = kwargs.get(
        'tail_estimate_uncertainty',
        DEFAULT_PARAMETERS['tail_estimate_uncertainty'])
    tail_range_maximum = kwargs.get(
        'tail_range_maximum', DEFAULT_PARAMETERS['tail_range_maximum'])
    #
    #
    ranges = list(ranges)
    if hist.is_empty:
        return ranges, []
    #
    #
    # bins covered by any range
    covered = np.zeros(len(hist), dtype = bool)
    for r in ranges:
        covered |= _range_mask(hist, r)
    claimed = np.zeros(len(hist), dtype = bool)
    #
    #
    notes = []
    order = sorted(
        (i for i, r in enumerate(ranges) if r.scheme.value == Scheme.LEFT_TAIL),
        key = lambda i: ranges[i].min
    )
    for i in order:
        r = ranges[i]
        result = _fit_tail(
            hist, r, ~covered & ~claimed, considered_tail_range,
            tail_range_maximum
        )
        notes.append(result)
        #
        #
        if not result.accepted:
            logger.info(str(result))
            ranges[i] = dataclasses.replace(
                r, scheme = r.scheme.revert(Scheme.LEFT)
            )
            continue
        #
        #
        logger.debug(str(result))
        ranges[i] = dataclasses.replace(
            r, net = r.net + result.tail, tail = result.tail,
            background_variance = r.background_variance +
                                  (uncertainty * result.tail)**2
        )
        # claim tail region
        positions = hist.positions
        claimed |= (positions >= r.max) & (positions < result.crossing)
    #
    #
    return ranges, notes
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
def _fit_tail(hist, r, usable, considered_tail_range, tail_range_maximum):
    """
    Simple function to fit and integrate the tail of a single range.
    """
    #
    #
    def reject(reason, **kw):
        return TailResult(r.name, r.position, False, reason = reason, **kw)
    #
    #
    # collect usable bins right of the range
    positions = hist.positions
    centers = positions + 0.5 * hist.bin_width
    mask = usable & (positions >= r.max) & \
           (positions < r.max + considered_tail_range) & (hist.values > 0.0)
    if np.count_nonzero(mask) < _MIN_FIT_POINTS:
        return reject("insufficient data points")
    #
    #
    # fit ln(y) = a + b sqrt(x)
    fit = linregress(np.sqrt(centers[mask]), np.log(hist.values[mask]))
    a, b = float(fit.intercept), float(fit.slope)
    if not b < 0.0:
        return reject("non-negative slope", intercept = a, slope = b)
    #
    #
    # background level per bin
    n_bins = int(round(r.width / hist.bin_width))
    rate = r.background / n_bins if n_bins > 0 else 0.0
    if rate <= 0.0:
        return reject("no background", intercept = a, slope = b)
    #
    # decay to background level
    root = (np.log(rate) - a) / b
    crossing = root**2
    if root <= 0.0 or not r.max < crossing <= r.max + tail_range_maximum:
        return reject(
            "background crossing out of bounds", intercept = a, slope = b,
            crossing = crossing
        )
    #
    #
    # integrate tail above background
    x = np.arange(r.max + 0.5 * hist.bin_width, crossing, hist.bin_width)
    tail = float(np.sum(np.exp(a + b * np.sqrt(x)) - rate))
    return TailResult(
        r.name, r.position, True, tail = tail, intercept = a, slope = b,
        crossing = crossing
    )
#
#
#
#
def _range_mask(hist, r):
    """
    Simple function to get the bins overlapping with a range.
    """
    #
    #
    positions = hist.positions
    return (positions + hist.bin_width > r.min) & (positions < r.max)
