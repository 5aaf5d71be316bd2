"""
The APRange range integration module
====================================

This module provides the elementary integration primitives which are shared by
the peak discovery and the range determination. All functions operate on the
one-dimensional array of coarse bin intensities and refer to bins by their
(inclusive) index interval ``[first, last]``.


Background schemes
------------------

For a window of width :math:`w = \\textnormal{last} - \\textnormal{first} + 1`
bins, the background is estimated according to one of the following schemes:

- **Left** and **LeftTail**: the background is the integral of a window of
  equal width located a fixed distance to the left. It is subtracted by the
  caller; the net maximization operates on the raw integral only.
- **Half**: :math:`\\lfloor w/2 \\rfloor` bins on either side of the window.
- **Quarter**: :math:`\\lfloor w/4 \\rfloor` bins on either side of the window,
  multiplied by 2 to extrapolate to the background-equivalent width. The
  background variance is doubled accordingly.


Bounds
------

None of the functions clamps indices to the histogram. Any access beyond the
histogram raises an :class:`IndexError`, which must be treated as a violated
precondition by the caller.


List of functions
-----------------

* :func:`background_variance_factor`: Get background variance multiplier.
* :func:`half_background`: Integrate half-width flanks.
* :func:`half_background_left`: Integrate left half-width flank.
* :func:`half_background_right`: Integrate right half-width flank.
* :func:`integrate`: Integrate bin interval.
* :func:`left_background`: Integrate window shifted to the left.
* :func:`net_max`: Find shift maximizing the net counts.
* :func:`quarter_background`: Integrate (doubled) quarter-width flanks.
* :func:`quarter_background_left`: Integrate (doubled) left quarter-width
  flank.
* :func:`quarter_background_right`: Integrate (doubled) right quarter-width
  flank.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'background_variance_factor',
    'half_background',
    'half_background_left',
    'half_background_right',
    'integrate',
    'left_background',
    'net_max',
    'quarter_background',
    'quarter_background_left',
    'quarter_background_right'
]
#
#
#
#
# import modules
import numba
import numpy as np
#
# import some special functions/modules
from aprange.ranging.ranges import Scheme
#
#
#
#
################################################################################
#
# private module-level variables
#
################################################################################
# integer codes of the background schemes used by the compiled kernels
_SCHEME_CODES = {
    Scheme.LEFT:      0,
    Scheme.LEFT_TAIL: 0,
    Scheme.HALF:      1,
    Scheme.QUARTER:   2
}
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def background_variance_factor(scheme):
    """
    Get background variance multiplier.

    Parameters
    ----------
    scheme : Scheme
        The background scheme.

    Returns
    -------
    factor : float
        ``2.0`` for the Quarter scheme, ``1.0`` otherwise.
    """
    #
    #
    return 2.0 if scheme == Scheme.QUARTER else 1.0
#
#
#
#
def half_background(values, first, last, delta = 0):
    """
    Integrate half-width flanks.

    Parameters
    ----------
    values : ndarray, shape (n,)
        The *n* bin intensities.
    first : int
        The first bin of the window.
    last : int
        The last bin of the window (inclusive).
    delta : int
        The shift applied to the window. Defaults to ``0``.

    Returns
    -------
    bgd : float
        The sum of :math:`\\lfloor w/2 \\rfloor` bins on either side of the
        (shifted) window.

    Raises
    ------
    IndexError
        If any flank bin lies outside the histogram.
    """
    #
    #
    return half_background_left(values, first, last, delta) + \
           half_background_right(values, first, last, delta)
#
#
#
#
def half_background_left(values, first, last, delta = 0):
    """Integrate left half-width flank."""
    #
    #
    n = (last - first + 1) // 2
    return _sum(values, first + delta - n, first + delta - 1)
#
#
#
#
def half_background_right(values, first, last, delta = 0):
    """Integrate right half-width flank."""
    #
    #
    n = (last - first + 1) // 2
    return _sum(values, last + delta + 1, last + delta + n)
#
#
#
#
def integrate(values, first, last, delta = 0):
    """
    Integrate bin interval.

    Parameters
    ----------
    values : ndarray, shape (n,)
        The *n* bin intensities.
    first : int
        The first bin.
    last : int
        The last bin (inclusive).
    delta : int
        The shift applied to the interval. Defaults to ``0``.

    Returns
    -------
    raw : float
        The sum over the bins ``first + delta`` to ``last + delta``.

    Raises
    ------
    IndexError
        If the shifted interval exceeds the histogram.
    """
    #
    #
    return _sum(values, first + delta, last + delta)
#
#
#
#
def left_background(values, first, last, delta_bins):
    """
    Integrate window shifted to the left.

    The background of the Left schemes is the integral over a window of the
    same width as ``[first, last]``, shifted *delta_bins* to the left.
    """
    #
    #
    return _sum(values, first - delta_bins, last - delta_bins)
#
#
#
#
def net_max(values, scheme, left, right):
    """
    Find shift maximizing the net counts.

    Starting from the window ``[left, right]``, the net counts are evaluated for
    the shifts ``-1``, ``0``, and ``+1``. If shifting to the left increases the
    net counts, the window keeps moving to the left as long as the net counts
    increase. Otherwise, the same is done to the right. The search is a discrete
    hill climb which stops at the first non-increase; once a direction has been
    chosen, the opposite direction is never tried.

    Parameters
    ----------
    values : ndarray, shape (n,)
        The *n* bin intensities.
    scheme : Scheme
        The background scheme. For the Left schemes, the net counts equal the
        raw counts.
    left : int
        The first bin of the window.
    right : int
        The last bin of the window (inclusive).

    Returns
    -------
    net : float
        The maximum net counts.
    raw : float
        The raw counts of the window at the optimum shift.
    shift : int
        The optimum shift.

    Raises
    ------
    IndexError
        If any evaluated window (including its flanks) exceeds the histogram.
    """
    #
    #
    if right < left:
        raise IndexError(f"Invalid bin window [{left}, {right}].")
    net, raw, shift = __net_max(
        np.asarray(values, dtype = np.float64), _SCHEME_CODES[Scheme(scheme)],
        int(left), int(right)
    )
    return net, raw, int(shift)
#
#
#
#
def quarter_background(values, first, last, delta = 0):
    """
    Integrate (doubled) quarter-width flanks.

    Same as :func:`half_background`, but only :math:`\\lfloor w/4 \\rfloor`
    bins on either side are integrated, and the result is multiplied by 2.
    """
    #
    #
    return quarter_background_left(values, first, last, delta) + \
           quarter_background_right(values, first, last, delta)
#
#
#
#
def quarter_background_left(values, first, last, delta = 0):
    """Integrate (doubled) left quarter-width flank."""
    #
    #
    n = (last - first + 1) // 4
    return 2.0 * _sum(values, first + delta - n, first + delta - 1)
#
#
#
#
def quarter_background_right(values, first, last, delta = 0):
    """Integrate (doubled) right quarter-width flank."""
    #
    #
    n = (last - first + 1) // 4
    return 2.0 * _sum(values, last + delta + 1, last + delta + n)
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
@numba.njit(cache = True)
def __window_net(values, scheme, left, right, shift):
    """
    Calculate net and raw counts of a shifted window.
    """
    #
    #
    first = left + shift
    last  = right + shift
    width = right - left + 1
    if scheme == 1:
        flank = width // 2
    elif scheme == 2:
        flank = width // 4
    else:
        flank = 0
    if first - flank < 0 or last + flank >= len(values):
        raise IndexError("bin window exceeds histogram")
    #
    #
    raw = 0.0
    for i in range(first, last + 1):
        raw += values[i]
    bgd = 0.0
    for i in range(first - flank, first):
        bgd += values[i]
    for i in range(last + 1, last + flank + 1):
        bgd += values[i]
    if scheme == 2:
        bgd *= 2.0
    #
    #
    return raw - bgd, raw
#
#
#
#
@numba.njit(cache = True)
def __net_max(values, scheme, left, right):
    """
    Discrete hill climb of the net counts with respect to the window shift.
    """
    #
    #
    net, raw = __window_net(values, scheme, left, right, 0)
    net_l, raw_l = __window_net(values, scheme, left, right, -1)
    net_r, raw_r = __window_net(values, scheme, left, right, 1)
    #
    #
    shift = 0
    if net_l > net:
        shift = -1
        while net_l > net:
            net = net_l
            raw = raw_l
            shift -= 1
            net_l, raw_l = __window_net(values, scheme, left, right, shift)
        shift += 1
    elif net_r > net:
        shift = 1
        while net_r > net:
            net = net_r
            raw = raw_r
            shift += 1
            net_r, raw_r = __window_net(values, scheme, left, right, shift)
        shift -= 1
    #
    #
    return net, raw, shift
#
#
#
#
@numba.njit(cache = True)
def __sum(values, first, last):
    """
    Sum bin interval.
    """
    #
    #
    total = 0.0
    for i in range(first, last + 1):
        total += values[i]
    return total
#
#
#
#
def _sum(values, first, last):
    """
    Simple function to sum up an inclusive bin interval with bounds check.
    """
    #
    #
    if last < first:
        return 0.0
    if first < 0 or last >= len(values):
        raise IndexError(
            f"Bin interval [{first}, {last}] exceeds histogram with "
            f"{len(values)} bins."
        )
    return __sum(np.asarray(values, dtype = np.float64), first, last)
