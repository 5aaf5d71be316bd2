"""
The APRange range scoreboard module
===================================

This module assigns every range a background subtraction scheme and
determines its integration window and statistics.


Scheme assignment
-----------------

The scheme of a range depends on the distances to its nearest neighbors, where
the neighbors are all other ranges of the working set (including placeholders
for discovered peaks). The first and last range are measured against the start
and end of the histogram, respectively. With the left distance
:math:`d_\\textnormal{l}`, the right distance :math:`d_\\textnormal{r}`, and the
*left range criteria* :math:`c`:

- :math:`d_\\textnormal{l} \\geq c` results in ``Left``,
- else :math:`d_\\textnormal{l} \\geq 0.9` and :math:`d_\\textnormal{r} \\geq
  0.9` results in ``Half``,
- otherwise ``Quarter``.

``LeftTail`` is never assigned automatically. Schemes set by an override are
never changed.


Range determination
-------------------

Starting from the bin of the peak position, an initial window is set up whose
width is

- :math:`\\lfloor \\textnormal{FW1\\%M} \\cdot w_\\textnormal{r} / \\Delta x +
  0.5 \\rfloor` bins for the Left schemes, and
- :math:`4 \\lfloor \\textnormal{FW1\\%M} \\cdot w / \\Delta x / 4 \\cdot
  \\sqrt{x / x_\\textnormal{max}} + 0.5 \\rfloor` bins for Half and Quarter,
  where :math:`w` is the ranging width factor :math:`w_\\textnormal{r}` in
  fixed-width mode and the minimum width factor otherwise.

The window is optimized with :func:`aprange.ranging.rangemath.net_max`. For
Half and Quarter, it is then repeatedly expanded symmetrically (by one bin per
side for Half, two for Quarter), re-optimized, and re-centered as long as the
net counts increase (skipped in fixed-width mode). For the Left schemes, the
background is the integral of a window of equal width shifted
``left_range_delta`` to the left.

The final edges are snapped to the bin boundaries: the lower edge is the left
boundary of the first bin, the upper edge the right boundary of the last bin.
Hence, adjacent ranges can abut exactly.


Overlap resolution
------------------

Overlapping ranges with identical names are merged by keeping the one with the
larger net counts. Placeholders for discovered peaks are dropped in favor of
named ranges. Any other overlap raises an
:class:`aprange.errors.OverlapError`.


List of classes
---------------

* :class:`RangeWindow`: The result of a range determination.


List of functions
-----------------

* :func:`assign_scheme`: Get scheme from neighbor distances.
* :func:`assign_schemes`: Assign schemes to all ranges of a working set.
* :func:`determine_range`: Determine integration window of a range.
* :func:`discovered_ranges`: Create placeholders for discovered peaks.
* :func:`neighbor_distances`: Get distances to nearest neighbors.
* :func:`resolve_overlaps`: Resolve overlapping ranges.
* :func:`score_ranges`: Evaluate all ranges of a working set.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'RangeWindow',
    'assign_scheme',
    'assign_schemes',
    'determine_range',
    'discovered_ranges',
    'neighbor_distances',
    'resolve_overlaps',
    'score_ranges'
]
#
#
#
#
# import modules
import dataclasses
import logging
#
# import some special functions/modules
from aprange.errors import OverlapError
from aprange.io.config import DEFAULT_PARAMETERS
from aprange.ranging.rangemath import background_variance_factor, \
                                      half_background_left, \
                                      half_background_right, \
                                      left_background, net_max, \
                                      quarter_background_left, \
                                      quarter_background_right
from aprange.ranging.ranges import DISCOVERED, Range, Scheme
from dataclasses import dataclass
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
# minimum distance to both neighbors for the Half scheme
_HALF_CRITERIA = 0.9
#
# minimum window widths (in bins)
_MIN_WIDTH_LEFT = 2
_MIN_WIDTH_SYMMETRIC = 4
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
class RangeWindow:
    """
    The result of a range determination.

    Attributes
    ----------
    min : float
        The lower edge (left boundary of the first bin).
    max : float
        The upper edge (right boundary of the last bin).
    first : int
        The first bin of the window.
    last : int
        The last bin of the window (inclusive).
    counts : float
        The raw counts.
    net : float
        The net counts.
    background : float
        The total background.
    left_background : float
        The background from the left flank (or the shifted window for the Left
        schemes).
    right_background : float
        The background from the right flank.
    background_variance : float
        The variance of the background.
    """
    min: float
    max: float
    first: int = 0
    last: int = -1
    counts: float = 0.0
    net: float = 0.0
    background: float = 0.0
    left_background: float = 0.0
    right_background: float = 0.0
    background_variance: float = 0.0
    #
    #
    @property
    def is_empty(self):
        return not self.min < self.max
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def assign_scheme(left_dist, right_dist, criteria):
    """
    Get scheme from neighbor distances.

    Parameters
    ----------
    left_dist : float
        The distance to the left neighbor (or histogram start).
    right_dist : float
        The distance to the right neighbor (or histogram end).
    criteria : float
        The minimum left distance for the Left scheme.

    Returns
    -------
    scheme : Scheme
        The background subtraction scheme.
    """
    #
    #
    if left_dist >= criteria:
        return Scheme.LEFT
    elif left_dist >= _HALF_CRITERIA and right_dist >= _HALF_CRITERIA:
        return Scheme.HALF
    else:
        return Scheme.QUARTER
#
#
#
#
def assign_schemes(ranges, hist, criteria):
    """
    Assign schemes to all ranges of a working set.

    Parameters
    ----------
    ranges : list of Range
        The working set. All ranges must have a position.
    hist : CoarseHistogram
        The coarse histogram providing start and end for the boundary ranges.
    criteria : float
        The minimum left distance for the Left scheme.

    Returns
    -------
    ranges : list of Range
        New ranges, sorted by position, with resolved scheme assignments.
    """
    #
    #
    ranges = sorted(ranges, key = lambda r: r.position)
    distances = neighbor_distances(
        [r.position for r in ranges], hist.start, hist.end
    )
    #
    #
    result = []
    for r, (left_dist, right_dist) in zip(ranges, distances):
        scheme = r.scheme.resolve(assign_scheme(left_dist, right_dist, criteria))
        logger.debug(
            f"Range \"{r.name}\" at {r.position:.3f}: neighbor distances "
            f"{left_dist:.3f}/{right_dist:.3f}, scheme \"{scheme}\" "
            f"({scheme.source.value})."
        )
        result.append(dataclasses.replace(r, scheme = scheme))
    return result
#
#
#
#
def determine_range(hist, position, scheme, **kwargs):
    """
    Determine integration window of a range.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram.
    position : float
        The peak position.
    scheme : Scheme
        The background subtraction scheme.

    Keyword Arguments
    -----------------
    ranging_width_factor : float
        The width of the Left schemes (and of all schemes in fixed-width mode)
        in units of the FW1%M.
    min_width_factor : float
        The minimum width of Half/Quarter windows in units of the FW1%M.
    left_range_delta : float
        The distance of the background window of the Left schemes.
    use_fixed_ranging_width : bool
        Whether to skip the iterative expansion.

    Returns
    -------
    window : RangeWindow
        The integration window and statistics. If the position lies outside
        the histogram, an empty window at *position* is returned.

    Raises
    ------
    IndexError
        If the window (including its background) exceeds the histogram.
    """
    #
    #
    # get optional keyword arguments
    ranging_width_factor = kwargs.get(
        'ranging_width_factor', DEFAULT_PARAMETERS['ranging_width_factor'])
    min_width_factor = kwargs.get(
        'min_width_factor', DEFAULT_PARAMETERS['min_width_factor'])
    left_range_delta = kwargs.get(
        'left_range_delta', DEFAULT_PARAMETERS['left_range_delta'])
    use_fixed = kwargs.get(
        'use_fixed_ranging_width',
        DEFAULT_PARAMETERS['use_fixed_ranging_width'])
    scheme = Scheme(scheme)
    #
    #
    values = hist.values
    start_index = hist.get_index(position)
    if start_index < 0 or start_index >= len(values):
        logger.warning(
            f"Peak position {position:.3f} lies outside the histogram."
        )
        return RangeWindow(position, position)
    #
    #
    # initial window width
    fw = hist.max_peak_fw1pm
    bw = hist.bin_width
    is_left = scheme in (Scheme.LEFT, Scheme.LEFT_TAIL)
    if is_left:
        width = int(fw * ranging_width_factor / bw + 0.5)
        width = max(width, _MIN_WIDTH_LEFT)
    else:
        factor = ranging_width_factor if use_fixed else min_width_factor
        width = 4 * int(fw * factor / bw / 4 * hist.width_scale(position) + 0.5)
        width = max(width, _MIN_WIDTH_SYMMETRIC)
    left  = start_index - width // 2 + 1
    right = start_index + width // 2
    #
    #
    # Left schemes: single optimization, background from shifted window
    if is_left:
        _, raw, shift = net_max(values, scheme, left, right)
        left  += shift
        right += shift
        delta = int(left_range_delta / bw + 0.5)
        if left - delta < 0:
            delta = left
        bgd = left_background(values, left, right, delta)
        return RangeWindow(
            min = hist.get_pos(left), max = hist.get_pos(right + 1),
            first = left, last = right,
            counts = raw, net = raw - bgd, background = bgd,
            left_background = bgd, right_background = 0.0,
            background_variance = bgd * background_variance_factor(scheme)
        )
    #
    #
    # Half/Quarter: expand and re-center while net counts increase
    expand = 1 if scheme == Scheme.HALF else 2
    net, raw, shift = net_max(values, scheme, left, right)
    left  += shift
    right += shift
    while not use_fixed:
        new_net, new_raw, shift = net_max(
            values, scheme, left - expand, right + expand
        )
        if not new_net > net:
            break
        net, raw = new_net, new_raw
        left  = left - expand + shift
        right = right + expand + shift
    #
    #
    if scheme == Scheme.HALF:
        bgd_left  = half_background_left(values, left, right)
        bgd_right = half_background_right(values, left, right)
    else:
        bgd_left  = quarter_background_left(values, left, right)
        bgd_right = quarter_background_right(values, left, right)
    bgd = bgd_left + bgd_right
    return RangeWindow(
        min = hist.get_pos(left), max = hist.get_pos(right + 1),
        first = left, last = right,
        counts = raw, net = raw - bgd, background = bgd,
        left_background = bgd_left, right_background = bgd_right,
        background_variance = bgd * background_variance_factor(scheme)
    )
#
#
#
#
def discovered_ranges(peaks, ranges, bin_width):
    """
    Create placeholders for discovered peaks.

    Parameters
    ----------
    peaks : list of tuple
        The ``(position, intensity)`` of the discovered peaks.
    ranges : list of Range
        The defined ranges.
    bin_width : float
        The coarse bin width used for the (preliminary) placeholder width.

    Returns
    -------
    placeholders : list of Range
        One placeholder named ``"Discovered"`` for every peak which is not
        covered by a defined range.
    """
    #
    #
    placeholders = []
    for pos, _ in peaks:
        if any(r.min <= pos <= r.max for r in ranges):
            continue
        placeholders.append(
            Range(DISCOVERED, pos, pos + bin_width, position = pos)
        )
    return placeholders
#
#
#
#
def neighbor_distances(positions, start, end):
    """
    Get distances to nearest neighbors.

    Parameters
    ----------
    positions : list of float
        The (sorted) peak positions.
    start : float
        The start of the histogram (left neighbor of the first position).
    end : float
        The end of the histogram (right neighbor of the last position).

    Returns
    -------
    distances : list of tuple
        The ``(left, right)`` distances for every position.
    """
    #
    #
    n = len(positions)
    distances = []
    for i, pos in enumerate(positions):
        left  = pos - (positions[i-1] if i > 0 else start)
        right = (positions[i+1] if i < n - 1 else end) - pos
        distances.append((left, right))
    return distances
#
#
#
#
def resolve_overlaps(ranges):
    """
    Resolve overlapping ranges.

    Parameters
    ----------
    ranges : list of Range
        The evaluated ranges.

    Returns
    -------
    ranges : list of Range
        The ranges without overlaps, sorted by their lower edge.

    Raises
    ------
    OverlapError
        If two ranges with different names (neither being a placeholder for a
        discovered peak) overlap.
    """
    #
    #
    ranges = sorted(ranges, key = lambda r: r.min)
    removed = set()
    for i in range(len(ranges)):
        for j in range(i + 1, len(ranges)):
            if i in removed:
                break
            if j in removed or not ranges[i].overlaps(ranges[j]):
                continue
            a, b = ranges[i], ranges[j]
            if a.name == b.name:
                drop = i if a.net < b.net else j
            elif a.is_discovered:
                drop = i
            elif b.is_discovered:
                drop = j
            else:
                raise OverlapError(a, b)
            logger.debug(
                f"Dropping range \"{ranges[drop].name}\" at "
                f"{ranges[drop].min:.3f}-{ranges[drop].max:.3f} due to overlap."
            )
            removed.add(drop)
    #
    #
    return [r for k, r in enumerate(ranges) if k not in removed]
#
#
#
#
def score_ranges(hist, ranges, peaks = (), **kwargs):
    """
    Evaluate all ranges of a working set.

    The peak position of every range is set to the most intense bin within its
    current window. Placeholders are added for discovered peaks not covered by
    any range, schemes are assigned, windows are determined, and overlaps are
    resolved.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram.
    ranges : list of Range
        The working set. The ranges are not modified.
    peaks : list of tuple
        The ``(position, intensity)`` of discovered peaks. Defaults to no
        peaks.

    Keyword Arguments
    -----------------
    left_range_criteria : float
        The minimum left neighbor distance for the Left scheme.
    \\*\\*kwargs
        Passed through to :func:`determine_range`.

    Returns
    -------
    ranges : list of Range
        The evaluated ranges without overlaps, sorted by lower edge.

    Raises
    ------
    IndexError
        If a window exceeds the histogram.
    OverlapError
        If an overlap cannot be resolved.
    """
    #
    #
    criteria = kwargs.get(
        'left_range_criteria', DEFAULT_PARAMETERS['left_range_criteria'])
    #
    #
    working = [
        dataclasses.replace(r, position = hist.find_local_max(r.min, r.max))
        for r in ranges
    ]
    working += discovered_ranges(peaks, working, hist.bin_width)
    working = assign_schemes(working, hist, criteria)
    #
    #
    evaluated = []
    for r in working:
        window = determine_range(hist, r.position, r.scheme.value, **kwargs)
        if window.is_empty:
            # keep edges, no counts
            evaluated.append(dataclasses.replace(
                r, counts = 0.0, net = 0.0, background = 0.0,
                background_variance = 0.0, tail = 0.0,
                left_background = 0.0, right_background = 0.0
            ))
            continue
        evaluated.append(dataclasses.replace(
            r, min = window.min, max = window.max,
            counts = window.counts, net = window.net,
            background = window.background,
            background_variance = window.background_variance,
            tail = 0.0,
            left_background = window.left_background,
            right_background = window.right_background
        ))
        logger.debug(
            f"Range \"{r.name}\" ({r.scheme}): {window.min:.3f}-"
            f"{window.max:.3f}, counts {window.counts:.0f}, net "
            f"{window.net:.1f}, background {window.background:.1f}."
        )
    #
    #
    return resolve_overlaps(evaluated)
