"""
The APRange workflow module
===========================

This module orchestrates a complete ranging pass:

1. coarsening of the raw histogram (:mod:`aprange.ranging.histogram`),
2. peak discovery (:mod:`aprange.ranging.peaks`, re-ranging only),
3. scheme assignment, range determination, and overlap resolution
   (:mod:`aprange.ranging.scoreboard`),
4. tail estimation (:mod:`aprange.ranging.tail`),
5. ionic and decomposed compositions (:mod:`aprange.analysis.composition`).

A pass never modifies the ranges passed in. It works on a copy of the range set
and returns the new ranges as part of a :class:`PassResult` only if the pass
succeeds. Failures are reported by the status of the result:

- ``ok``: the pass succeeded;
- ``invalid``: a validation failure, e.g. an unresolvable overlap;
- ``failed``: a violated precondition, e.g. a bin window exceeding the
  histogram;
- ``cancelled``: the pass has been cancelled between two stages.

The multi-hit analysis runs separately on the finalized ranges of a successful
pass (see :func:`analyze_multihits`).


List of classes
---------------

* :class:`MultiHitResult`: The result of a multi-hit analysis.
* :class:`PassResult`: The result of a ranging pass.
* :class:`PassStatus`: The status of a pass.


List of functions
-----------------

* :func:`analyze_multihits`: Run the multi-hit analysis on a pass result.
* :func:`rerange`: Re-range a spectrum including peak discovery.
* :func:`run_pass`: Run a complete ranging pass.
* :func:`update`: Update the statistics of an existing range set.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'MultiHitResult',
    'PassResult',
    'PassStatus',
    'analyze_multihits',
    'rerange',
    'run_pass',
    'update'
]
#
#
#
#
# import modules
import aprange.analysis.multihit as multihit
import logging
#
# import some special functions/modules
from aprange.analysis.composition import decomposed_composition, \
                                         ionic_composition
from aprange.errors import EmptyHistogramError, EmptyRangeSetError, \
                           PreconditionError, ValidationError
from aprange.io.config import get_parameters
from aprange.ranging.histogram import coarsen
from aprange.ranging.peaks import find_all_peaks
from aprange.ranging.scoreboard import score_ranges
from aprange.ranging.tail import estimate_tails
from dataclasses import dataclass
from enum import Enum
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
# public classes
#
################################################################################
class PassStatus(Enum):
    """The status of a pass."""
    OK        = "ok"
    INVALID   = "invalid"
    FAILED    = "failed"
    CANCELLED = "cancelled"
#
#
#
#
@dataclass(frozen = True)
class PassResult:
    """
    The result of a ranging pass.

    Attributes
    ----------
    status : PassStatus
        The status of the pass.
    message : str
        The description of a failure (empty on success).
    ranges : tuple of Range
        The new range set (empty unless the pass succeeded).
    histogram : CoarseHistogram
        The coarse histogram.
    peaks : tuple
        The ``(position, intensity)`` of all discovered peaks.
    ionic : CompositionTable
        The ionic composition.
    decomposed : CompositionTable
        The elemental composition.
    notes : tuple of TailResult
        The outcome of all tail estimations.
    max_peak_name : str
        The name of the range containing the dominant peak.
    """
    status: PassStatus
    message: str = ""
    ranges: tuple = ()
    histogram: object = None
    peaks: tuple = ()
    ionic: object = None
    decomposed: object = None
    notes: tuple = ()
    max_peak_name: str = ""
    #
    #
    @property
    def ok(self):
        """Getter for whether the pass succeeded."""
        return self.status is PassStatus.OK
#
#
#
#
@dataclass(frozen = True)
class MultiHitResult:
    """
    The result of a multi-hit analysis.

    Attributes
    ----------
    status : PassStatus
        The status of the analysis.
    message : str
        The description of a failure (empty on success).
    model : MultiHitModel
        The finished multi-hit model (``None`` unless successful).
    """
    status: PassStatus
    message: str = ""
    model: object = None
    #
    #
    @property
    def ok(self):
        """Getter for whether the analysis succeeded."""
        return self.status is PassStatus.OK
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def analyze_multihits(result, events, **kwargs):
    """
    Run the multi-hit analysis on a pass result.

    Parameters
    ----------
    result : PassResult
        The result of a successful ranging pass.
    events : numpy.ndarray or iterable
        The event array, or an iterable of chunks.

    Keyword Arguments
    -----------------
    chunk_size : int
        The number of events per chunk if an event array is passed.
    \\*\\*kwargs
        Any of the
        :ref:`ranging parameters<aprange.io.config:Ranging parameters>`.

    Returns
    -------
    result : MultiHitResult
        The result of the analysis.
    """
    #
    #
    if not result.ok:
        return MultiHitResult(
            PassStatus.INVALID, "No successful ranging pass available."
        )
    chunk_kwargs = {}
    if 'chunk_size' in kwargs:
        chunk_kwargs['chunk_size'] = kwargs.pop('chunk_size')
    params = get_parameters(**kwargs)
    #
    #
    try:
        model = multihit.analyze_multihits(
            result.histogram, result.ranges, events, **chunk_kwargs, **params
        )
    except ValidationError as e:
        logger.warning(f"Multi-hit analysis invalid: {e}")
        return MultiHitResult(PassStatus.INVALID, str(e))
    except PreconditionError as e:
        logger.error(f"Multi-hit analysis failed: {e}")
        return MultiHitResult(PassStatus.FAILED, str(e))
    #
    #
    return MultiHitResult(PassStatus.OK, model = model)
#
#
#
#
def rerange(histogram, ranges, should_cancel = None, **kwargs):
    """
    Re-range a spectrum including peak discovery.

    Parameters
    ----------
    histogram : tuple
        The raw histogram ``(start, bin_width, values)``.
    ranges : iterable of Range
        The starting range set, which must not be empty.
    should_cancel : callable
        Optional callable polled between stages; the pass is cancelled if it
        returns ``True``.

    Keyword Arguments
    -----------------
    \\*\\*kwargs
        Any of the
        :ref:`ranging parameters<aprange.io.config:Ranging parameters>`.

    Returns
    -------
    result : PassResult
        The result of the pass.
    """
    #
    #
    return run_pass(
        histogram, ranges, discover = True, should_cancel = should_cancel,
        **kwargs
    )
#
#
#
#
def run_pass(histogram, ranges, discover = False, should_cancel = None,
             **kwargs):
    """
    Run a complete ranging pass.

    Parameters
    ----------
    histogram : tuple
        The raw histogram ``(start, bin_width, values)``, or ``None``.
    ranges : iterable of Range
        The current range set. The ranges are not modified.
    discover : bool
        Whether to discover new peaks. Requires a non-empty range set.
    should_cancel : callable
        Optional callable polled between stages; the pass is cancelled if it
        returns ``True``.

    Keyword Arguments
    -----------------
    \\*\\*kwargs
        Any of the
        :ref:`ranging parameters<aprange.io.config:Ranging parameters>`.

    Returns
    -------
    result : PassResult
        The result of the pass.

    Raises
    ------
    KeyError
        If an unknown ranging parameter is passed.
    """
    #
    #
    params = get_parameters(**kwargs)
    snapshot = [r.copy() for r in ranges]
    #
    #
    def cancelled(stage):
        if should_cancel is not None and should_cancel():
            logger.info(f"Ranging pass cancelled before {stage}.")
            return True
        return False
    #
    #
    start = timer()
    try:
        # coarsen histogram
        if histogram is None:
            raise EmptyHistogramError("No histogram present.")
        hist = coarsen(*histogram)
        if hist.is_empty:
            raise EmptyHistogramError("Histogram is empty.")
        if discover and not snapshot:
            raise EmptyRangeSetError("No starting ranges present.")
        logger.info(
            f"Maximum peak at {hist.max_peak_position:.3f} Da with FW1%M "
            f"{hist.max_peak_fw1pm:.3f} Da (MRP {hist.max_peak_mrp:.1f})."
        )
        #
        # discover peaks
        if cancelled("peak discovery"):
            return PassResult(PassStatus.CANCELLED, histogram = hist)
        peaks = find_all_peaks(hist, **params) if discover else []
        #
        # evaluate ranges
        if cancelled("range evaluation"):
            return PassResult(PassStatus.CANCELLED, histogram = hist)
        scored = score_ranges(hist, snapshot, peaks, **params)
        #
        # estimate tails
        if cancelled("tail estimation"):
            return PassResult(PassStatus.CANCELLED, histogram = hist)
        finalized, notes = estimate_tails(hist, scored, **params)
        #
        # compositions
        if cancelled("composition"):
            return PassResult(PassStatus.CANCELLED, histogram = hist)
        ionic = ionic_composition(finalized)
        decomposed = decomposed_composition(finalized)
    except ValidationError as e:
        logger.warning(f"Ranging pass invalid: {e}")
        return PassResult(PassStatus.INVALID, str(e))
    except (IndexError, PreconditionError) as e:
        logger.error(f"Ranging pass failed: {e}")
        return PassResult(PassStatus.FAILED, str(e))
    #
    #
    logger.info(
        f"Ranging pass with {len(finalized)} ranges finished "
        f"({timer() - start:.3f} seconds)."
    )
    return PassResult(
        PassStatus.OK,
        ranges        = tuple(finalized),
        histogram     = hist,
        peaks         = tuple(peaks),
        ionic         = ionic,
        decomposed    = decomposed,
        notes         = tuple(notes),
        max_peak_name = hist.max_peak_name(finalized)
    )
#
#
#
#
def update(histogram, ranges, should_cancel = None, **kwargs):
    """
    Update the statistics of an existing range set (without peak discovery).

    See :func:`run_pass` for a description of the parameters.
    """
    return run_pass(
        histogram, ranges, discover = False, should_cancel = should_cancel,
        **kwargs
    )
