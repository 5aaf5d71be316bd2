"""
The APRange peak discovery module
=================================

This module scans a coarse histogram for statistically significant peaks.


Algorithm
---------

A window slides across the histogram in steps of one coarse bin, starting at
0.8 Da. The window width at position :math:`x` is

.. math::
    n(x) = \\max\\left(2 n_\\textnormal{pairs},
           2 \\, \\textnormal{round}\\left(\\frac{f \\sqrt{x/x_\\textnormal{max}}}
           2\\right)\\right),
    \\quad f = \\frac{w_\\textnormal{min} \\cdot \\textnormal{FW1\\%M}}
                     {\\Delta x},

which emulates the broadening of peaks with constant time-of-flight
resolution. For every window, the net counts are obtained by subtracting the
half-width background (see :func:`aprange.ranging.rangemath.half_background`).
A signal is detected if

.. math::
    N_\\textnormal{net} > 3.289 \\frac{\\sqrt{B}}{s},

i.e. the 99% one-sided confidence limit scaled by the sensitivity :math:`s`.

Upon detection, the most intense bin within the window is located (continuing
to the right as long as the intensity keeps rising if the maximum is found at
the right edge). The window is then refined around this maximum by
:func:`aprange.ranging.rangemath.net_max`. Peaks whose maximum bin falls short
of the minimum peak counts are rejected. After an accepted peak, the scan
continues behind it so that no peak is detected twice.

The scan stops a guard distance before the end of the histogram which accounts
for the growth of the window width.


List of functions
-----------------

* :func:`find_all_peaks`: Find all significant peaks in a coarse histogram.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'find_all_peaks'
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
from aprange.io.config import DEFAULT_PARAMETERS
from aprange.ranging.rangemath import half_background, integrate, net_max
from aprange.ranging.ranges import Scheme
from timeit import default_timer as timer
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
# 99% one-sided confidence limit
_DETECTION_LIMIT = 3.289
#
# start position of the scan
_SCAN_START = 0.8
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def find_all_peaks(hist, **kwargs):
    """
    Find all significant peaks in a coarse histogram.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram.

    Keyword Arguments
    -----------------
    min_width_factor : float
        The discovery window width in units of the FW1%M of the dominant peak.
    sensitivity : float
        The detection sensitivity.
    min_bin_pairs : int
        The minimum half-width of the discovery window (in bins).
    min_peak_max_counts : float
        The minimum intensity of the maximum bin of a peak.

    Defaults are taken from
    :data:`aprange.io.config.DEFAULT_PARAMETERS`; other keyword arguments are
    ignored.

    Returns
    -------
    peaks : list of tuple
        The ``(position, intensity)`` of all discovered peaks, sorted by
        position. The position refers to the most intense bin of a peak.
    """
    #
    #
    # get optional keyword arguments
    min_width_factor = kwargs.get(
        'min_width_factor', DEFAULT_PARAMETERS['min_width_factor'])
    sensitivity = kwargs.get('sensitivity', DEFAULT_PARAMETERS['sensitivity'])
    min_bin_pairs = int(kwargs.get(
        'min_bin_pairs', DEFAULT_PARAMETERS['min_bin_pairs']))
    min_peak_max_counts = kwargs.get(
        'min_peak_max_counts', DEFAULT_PARAMETERS['min_peak_max_counts'])
    #
    #
    if hist.is_empty:
        return []
    #
    #
    start = timer()
    values = hist.values
    length = len(values)
    #
    # number of bins corresponding to the minimum width at the dominant peak
    factor = min_width_factor * hist.max_peak_fw1pm / hist.bin_width
    #
    # guard against window growth towards the end of the histogram
    stop_bin_width = \
        2 * int(1.5 * factor * hist.width_scale(hist.get_pos(length - 1))) + 2
    #
    #
    peaks = []
    left = max(hist.get_index(_SCAN_START), 0)
    while left < length - stop_bin_width:
        n_bins = max(
            2 * min_bin_pairs,
            2 * int(round(factor * hist.width_scale(hist.get_pos(left)) / 2))
        )
        delta = n_bins // 2
        right = left + n_bins - 1
        #
        # half-width background must not start before the histogram
        if left - delta < 0:
            left += 1
            continue
        #
        #
        try:
            raw = integrate(values, left, right)
            bgd = half_background(values, left, right)
        except(IndexError):
            logger.debug(f"Discovery window at bin {left} exceeds histogram.")
            break
        net = raw - bgd
        if net <= _DETECTION_LIMIT * np.sqrt(bgd) / sensitivity:
            left += 1
            continue
        #
        #
        # locate most intense bin
        max_point = left + int(np.argmax(values[left:right+1]))
        if max_point == right:
            while max_point + 1 < length and \
                  values[max_point+1] > values[max_point]:
                max_point += 1
        max_value = float(values[max_point])
        #
        # refine window around maximum
        try:
            _, _, shift = net_max(
                values, Scheme.HALF, max_point - delta, max_point + delta - 1
            )
        except(IndexError):
            logger.debug(
                f"Refinement window around bin {max_point} exceeds histogram."
            )
            break
        #
        #
        if max_value >= min_peak_max_counts:
            pos = hist.get_pos(max_point)
            logger.debug(
                f"Discovered peak at {pos:.3f} with maximum {max_value:.0f} "
                f"(net {net:.1f}, background {bgd:.1f})."
            )
            peaks.append((pos, max_value))
            # continue behind accepted peak
            left = max_point + delta - 1
            if shift > 0:
                left += shift
        left += 1
    #
    #
    logger.info(
        f"Discovered {len(peaks)} peak(s) in {timer() - start:.3f} seconds."
    )
    return sorted(peaks)
