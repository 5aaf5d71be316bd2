"""
The APRange multi-hit module
============================

This module analyzes the correlations of ions detected on the same pulse
(*multi-hits*) or on closely consecutive pulses (*pseudo-multis*) as a function
of their spatial separation.


Pulse groups
------------

The ion event stream (see :mod:`aprange.io.events`) is processed strictly in
record order. All consecutive ions sharing the same (corrected) pulse number
form one *pulse group*. A group of one ion is a *single*, a group of more ions a
true *multi*. Every ion pair of a multi is recorded with a pulse delta
:math:`dp = 0`, with the earlier ion first. Two consecutive singles which are
:math:`dp \\leq dp_\\textnormal{max}` pulses apart are recorded as a
*pseudo-multi* pair with the lower range index first. Such pairs are mainly
used to quantify detector dead-time effects.

The grouping is implemented as an explicit accumulator (:class:`PulseFold`),
which folds the complete pulse groups of every chunk with a Numba kernel and
carries the open group across chunks. Its states refer to the last closed
group:

- ``IDLE``: no group closed yet;
- ``SAW_SINGLE``: a single which did not form a pseudo-multi pair;
- ``SAW_PSEUDO_PAIR``: a single which formed a pseudo-multi pair with the
  preceding single;
- ``SAW_MULTI``: a true multi.

The last group of the stream is closed like every other group.


Range indices
-------------

Only ranges marked for multi-hit use (``multi_use``) are *considered*
individually. With :math:`N` considered ranges, all tables use the index layout

- ``0 ... N-1``: the considered ranges,
- ``N``: "Other", i.e. all other defined ranges (including discovered ones),
- ``N+1``: "Unranged", i.e. all ions outside of any range,
- ``N+2``: "Total".

Ranges are named ``"<position>-<name>"`` with the position formatted to one
decimal.


Pair classification
-------------------

A pair is *correlated* if its Euclidean separation does not exceed the
critical separation, and *uncorrelated* otherwise. The separation is
accumulated into histograms with a resolution of 0.2 (nm or mm) and 1000 bins;
larger separations are clamped to the last bin. The histograms are resolved by
range, pulse delta, and pair type (``all``, ``not-same-same``, ``same-same``).


List of classes
---------------

* :class:`MultiHitModel`: Accumulated multi-hit statistics.
* :class:`PulseFold`: Pulse grouping state machine.
* :class:`PulseState`: State of the pulse grouping.
* :class:`SeparationSeries`: One separation distance histogram.


List of functions
-----------------

* :func:`analyze_multihits`: Analyze multi-hit correlations of an event stream.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'MultiHitModel',
    'PulseFold',
    'PulseState',
    'SeparationSeries',
    'analyze_multihits'
]
#
#
#
#
# import modules
import logging
import numba
import numpy as np
#
# import some special functions/modules
from aprange.errors import PreconditionError
from aprange.io.config import DEFAULT_PARAMETERS, SEPARATION_PLOT_MODES
from aprange.io.events import check_fields, iter_chunks
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
# private module-level variables
#
################################################################################
# resolution of separation distance histograms
_DIST_RES = 0.2
#
# number of bins of separation distance histograms
_N_DIST_BINS = 1000
#
# number of bins of pulse delta histogram
_N_DP_BINS = 1000
#
# maximum resolved multiplicity (higher multiplicities are accumulated)
_HREG_MAX = 5
#
# multiplicity histogram columns
_CONSIDERED = 0
_ALL = 1
#
# names of multiplicities and pair types
_HREG_NAMES = ("singles", "doubles", "triples", "quads", "quints")
_PAIR_TYPES = ("all", "not-same-same", "same-same")
#
# width of table columns in summary
_W = 13
#
# pulse grouping state codes (order of PulseState members)
_IDLE, _SAW_SINGLE, _SAW_PSEUDO_PAIR, _SAW_MULTI = range(4)
#
# layout of the grouping state carried across chunks
_C_STATE        = 0
_C_LAST_RANGE   = 1
_C_LAST_PULSE   = 2
_C_EVENT_PULSES = 3
_C_PULSE_FIRST  = 4
_C_PULSE_LAST   = 5
_C_IGNORED      = 6
_N_CARRY        = 7
#
#
#
#
################################################################################
#
# public classes
#
################################################################################
class PulseState(Enum):
    """State of the pulse grouping, referring to the last closed group."""
    IDLE            = "idle"
    SAW_SINGLE      = "saw single"
    SAW_PSEUDO_PAIR = "saw pseudo pair"
    SAW_MULTI       = "saw multi"
#
#
#
#
@dataclass(frozen = True)
class SeparationSeries:
    """
    One separation distance histogram.

    Attributes
    ----------
    legend : str
        The legend, i.e. range name, pulse delta, and pair type.
    distances : ndarray, shape (n,)
        The lower bin edges of the separation distances.
    counts : ndarray, shape (n,)
        The counts per bin.
    """
    legend: str
    distances: np.ndarray
    counts: np.ndarray
#
#
#
#
class PulseFold:
    """
    Pulse grouping accumulator.

    The fold consumes the event stream chunk by chunk as arrays of range
    indices, corrected pulse numbers, and coordinates. Complete pulse groups
    are folded into the pair and multiplicity tables by a Numba kernel. The
    last group of a chunk may continue in the next chunk; it is kept open
    together with the pulse grouping state until the next call of
    :meth:`push` or :meth:`finish`.

    Parameters
    ----------
    n : int
        The number of considered ranges.

    Keyword Arguments
    -----------------
    separation_criteria : float
        The critical separation of correlated pairs.
    pseudo_multi_max_dp : int
        The maximum pulse delta of pseudo-multis.
    separation_plots : str
        The pairs included in the separation distance histograms (``"all"``,
        ``"selected"``, or ``"selected_and_others"``).
    """
    def __init__(self, n, **kwargs):
        # get optional keyword arguments
        self._crit_sep = float(kwargs.get(
            'separation_criteria', DEFAULT_PARAMETERS['separation_criteria']))
        dp_max = int(kwargs.get(
            'pseudo_multi_max_dp', DEFAULT_PARAMETERS['pseudo_multi_max_dp']))
        self._plot_mode = SEPARATION_PLOT_MODES.index(kwargs.get(
            'separation_plots', DEFAULT_PARAMETERS['separation_plots']))
        #
        #
        self._n = n
        shape = (n + 3, n + 3, dp_max + 1)
        self.dp_multis     = np.zeros(shape, dtype = np.int64)
        self.dp_cor_multis = np.zeros(shape, dtype = np.int64)
        self.dp_unc_multis = np.zeros(shape, dtype = np.int64)
        self.dp_distance_correlations = np.zeros(
            (n + 3, dp_max + 1, len(_PAIR_TYPES), _N_DIST_BINS),
            dtype = np.int64
        )
        self.dp_histogram = np.zeros(_N_DP_BINS, dtype = np.int64)
        self.hreg         = np.zeros((_HREG_MAX, 2), dtype = np.int64)
        self.singles      = np.zeros(n + 3, dtype = np.int64)
        #
        # grouping state carried across chunks
        self._carry    = np.zeros(_N_CARRY, dtype = np.int64)
        self._last_xyz = np.zeros(3)
        #
        # open pulse group
        self._ranges = np.empty(0, dtype = np.int64)
        self._pulses = np.empty(0, dtype = np.int64)
        self._coords = np.empty((0, 3))
    #
    #
    @property
    def event_pulses(self):
        """Getter for the number of closed pulse groups."""
        return int(self._carry[_C_EVENT_PULSES])
    #
    @property
    def group_size(self):
        """Getter for the number of ions in the open group."""
        return len(self._pulses)
    #
    @property
    def pulse_span(self):
        """
        Getter for the first and the last pulse number of all closed groups
        (``None`` if no group has been closed yet).
        """
        if self.event_pulses == 0:
            return None
        return int(self._carry[_C_PULSE_FIRST]), int(self._carry[_C_PULSE_LAST])
    #
    @property
    def state(self):
        """Getter for the current state."""
        return list(PulseState)[self._carry[_C_STATE]]
    #
    #
    def finish(self):
        """Close the last open group."""
        if len(self._pulses) > 0:
            self._fold(self._ranges, self._pulses, self._coords, True)
    #
    #
    def push(self, ranges, pulses, coords):
        """
        Push the next ions.

        Parameters
        ----------
        ranges : ndarray, shape (n,)
            The range indices of the *n* ions in record order.
        pulses : ndarray, shape (n,)
            The corrected pulse numbers.
        coords : ndarray, shape (n, 3)
            The coordinates used for the pair separations.
        """
        #
        #
        ranges = np.asarray(ranges, dtype = np.int64)
        pulses = np.asarray(pulses, dtype = np.int64)
        coords = np.asarray(coords, dtype = np.float64).reshape(-1, 3)
        if len(self._pulses) > 0:
            ranges = np.concatenate((self._ranges, ranges))
            pulses = np.concatenate((self._pulses, pulses))
            coords = np.concatenate((self._coords, coords))
        self._fold(ranges, pulses, coords, False)
    #
    #
    def _fold(self, ranges, pulses, coords, final):
        ignored = self._carry[_C_IGNORED]
        consumed = _fold_ions(
            ranges, pulses, coords, final, self._carry, self._last_xyz,
            self._crit_sep, self._plot_mode, self._n, self.dp_multis,
            self.dp_cor_multis, self.dp_unc_multis,
            self.dp_distance_correlations, self.dp_histogram, self.hreg,
            self.singles
        )
        if self._carry[_C_IGNORED] > ignored:
            logger.debug(
                f"Ignored {self._carry[_C_IGNORED] - ignored} single(s) out "
                f"of pulse order."
            )
        #
        # keep open group
        self._ranges = ranges[consumed:].copy()
        self._pulses = pulses[consumed:].copy()
        self._coords = coords[consumed:].copy()
#
#
#
#
class MultiHitModel:
    """
    Accumulated multi-hit statistics.

    The model is built for one pass over an event stream. Chunks are added with
    :meth:`process_chunk`; afterwards, :meth:`finish` closes the last pulse
    group, computes the totals, and renders all tables read-only.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram used for the mass-to-range lookup.
    ranges : list of Range
        All finalized ranges. Ranges with ``multi_use`` set are considered
        individually.

    Keyword Arguments
    -----------------
    separation_criteria : float
        The critical separation of correlated pairs.
    pseudo_multi_max_dp : int
        The maximum pulse delta of pseudo-multis.
    use_detector_separations : bool
        Whether to use detector instead of reconstructed coordinates.
    separation_plots : str
        The pairs included in the separation distance histograms (``"all"``,
        ``"selected"``, or ``"selected_and_others"``).
    key_range : str
        The name of the range used for the ToF and voltage statistics. Defaults
        to the first considered range.
    """
    def __init__(self, hist, ranges, **kwargs):
        # get optional keyword arguments
        self._crit_sep = kwargs.get(
            'separation_criteria', DEFAULT_PARAMETERS['separation_criteria'])
        self._dp_max = int(kwargs.get(
            'pseudo_multi_max_dp', DEFAULT_PARAMETERS['pseudo_multi_max_dp']))
        self._use_detector = kwargs.get(
            'use_detector_separations',
            DEFAULT_PARAMETERS['use_detector_separations'])
        plot_mode = kwargs.get(
            'separation_plots', DEFAULT_PARAMETERS['separation_plots'])
        key_range = kwargs.get('key_range', DEFAULT_PARAMETERS['key_range'])
        #
        #
        ranges = list(ranges)
        self._considered = [r for r in ranges if r.multi_use]
        self._n = n = len(self._considered)
        self._n_total = len(ranges)
        self._names = tuple(
            [_range_name(r) for r in self._considered] +
            ["Other", "Unranged", "Total"]
        )
        self._key = self._get_key_index(key_range)
        #
        #
        # mass-to-range lookup
        self._start = float(hist.start)
        self._bin_width = float(hist.bin_width) if not hist.is_empty else 1.0
        self._lookup = _build_lookup(
            hist, self._considered,
            [r for r in ranges if not r.multi_use], n
        )
        #
        #
        # pulse grouping and count tables
        self._fold = PulseFold(
            n, separation_criteria = self._crit_sep,
            pseudo_multi_max_dp = self._dp_max, separation_plots = plot_mode
        )
        self._dp_multis     = self._fold.dp_multis
        self._dp_cor_multis = self._fold.dp_cor_multis
        self._dp_unc_multis = self._fold.dp_unc_multis
        self._dp_distance_correlations = self._fold.dp_distance_correlations
        self._dp_histogram  = self._fold.dp_histogram
        self._hreg          = self._fold.hreg
        self._singles       = self._fold.singles
        self._total_ion_counts = np.zeros(n + 3, dtype = np.int64)
        #
        # key range statistics (count, sum, sum of squares)
        self._tof_stats     = np.zeros(3)
        self._voltage_stats = np.zeros(3)
        #
        #
        self._finished = False
    #
    #
    @property
    def critical_separation(self):
        """Getter for the critical separation."""
        return self._crit_sep
    #
    @property
    def detection_rate(self):
        """Getter for the average number of ions per pulse."""
        span = self._fold.pulse_span
        if span is None or span[0] == span[1]:
            return np.nan
        return float(self._total_ion_counts[self._n + 2]) / (span[1] - span[0])
    #
    @property
    def dp_cor_multis(self):
        """Getter for the correlated pair counts."""
        return self._dp_cor_multis
    #
    @property
    def dp_distance_correlations(self):
        """Getter for the separation distance histograms."""
        return self._dp_distance_correlations
    #
    @property
    def dp_histogram(self):
        """
        Getter for the pulse delta histogram. The first bin holds the total
        number of ions in true multis.
        """
        return self._dp_histogram
    #
    @property
    def dp_max(self):
        """Getter for the maximum pulse delta of pseudo-multis."""
        return self._dp_max
    #
    @property
    def dp_multis(self):
        """Getter for the pair counts."""
        return self._dp_multis
    #
    @property
    def dp_unc_multis(self):
        """Getter for the uncorrelated pair counts."""
        return self._dp_unc_multis
    #
    @property
    def event_pulses(self):
        """Getter for the number of pulse groups."""
        return self._fold.event_pulses
    #
    @property
    def hreg(self):
        """
        Getter for the multiplicity histogram. Column 0 counts considered ions,
        column 1 all ions.
        """
        return self._hreg
    #
    @property
    def is_finished(self):
        """Getter for whether the model has been finished."""
        return self._finished
    #
    @property
    def key_index(self):
        """Getter for the index of the key range (``-1`` if none)."""
        return self._key
    #
    @property
    def n_considered(self):
        """Getter for the number of considered ranges."""
        return self._n
    #
    @property
    def names(self):
        """Getter for the names of all table indices."""
        return self._names
    #
    @property
    def singles(self):
        """Getter for the number of singles per range."""
        return self._singles
    #
    @property
    def state(self):
        """Getter for the state of the pulse grouping."""
        return self._fold.state
    #
    @property
    def tof_statistics(self):
        """Getter for mean and standard deviation of the key range ToF."""
        return _mean_std(self._tof_stats)
    #
    @property
    def total_ion_counts(self):
        """Getter for the number of ions per range."""
        return self._total_ion_counts
    #
    @property
    def voltage_statistics(self):
        """Getter for mean and standard deviation of the key range voltage."""
        return _mean_std(self._voltage_stats)
    #
    #
    def considered_total(self, table, dp):
        """
        Get the number of pairs with both ions in considered ranges.

        Parameters
        ----------
        table : ndarray, shape (N+3, N+3, dp_max+1)
            The finished pair count table.
        dp : int
            The pulse delta.

        Returns
        -------
        total : int
            The number of considered pairs.
        """
        #
        #
        n = self._n
        other    = table[n, n + 2, dp] + table[n + 2, n, dp] - table[n, n, dp]
        unranged = table[n + 1, n + 2, dp] + table[n + 2, n + 1, dp] - \
                   table[n + 1, n + 1, dp]
        correction = table[n, n + 1, dp] + table[n + 1, n, dp]
        return int(table[n + 2, n + 2, dp] - other - unranged + correction)
    #
    #
    def finish(self):
        """
        Close the last pulse group and compute all totals.

        Raises
        ------
        PreconditionError
            If the model has already been finished.
        """
        #
        #
        if self._finished:
            raise PreconditionError("Multi-hit model already finished.")
        self._fold.finish()
        #
        #
        n = self._n
        for t in (self._dp_multis, self._dp_cor_multis, self._dp_unc_multis):
            t[:n + 2, n + 2, :] = t[:n + 2, :n + 2, :].sum(axis = 1)
            t[n + 2, :n + 2, :] = t[:n + 2, :n + 2, :].sum(axis = 0)
            t[n + 2, n + 2, :]  = t[:n + 2, n + 2, :].sum(axis = 0)
        self._singles[n + 2]          = self._singles[:n + 2].sum()
        self._total_ion_counts[n + 2] = self._total_ion_counts[:n + 2].sum()
        #
        #
        for a in (self._dp_multis, self._dp_cor_multis, self._dp_unc_multis,
                  self._dp_distance_correlations, self._dp_histogram,
                  self._hreg, self._singles, self._total_ion_counts):
            a.setflags(write = False)
        self._finished = True
    #
    #
    def not_same_same_total(self, table, dp):
        """Get the number of considered pairs of different ranges."""
        return self.considered_total(table, dp) - \
               self.same_same_total(table, dp)
    #
    #
    def process_chunk(self, chunk):
        """
        Process the next chunk of the event stream.

        Parameters
        ----------
        chunk : numpy.ndarray or dict
            The chunk (see :mod:`aprange.io.events`).

        Raises
        ------
        MissingFieldsError
            If the chunk lacks any required field.
        PreconditionError
            If the model has already been finished.
        """
        #
        #
        if self._finished:
            raise PreconditionError("Multi-hit model already finished.")
        check_fields(chunk)
        #
        #
        masses = np.array(chunk["mass"], dtype = np.float64).reshape(-1)
        n_ions = len(masses)
        if n_ions == 0:
            return
        pulses = np.asarray(chunk["pulse"], dtype = np.int64).reshape(-1) + \
                 np.asarray(chunk["pulse_delta"], dtype = np.int64).reshape(-1)
        ranges = _map_ranges(
            masses, self._lookup, self._start, self._bin_width, self._n + 1
        )
        if self._use_detector:
            coords = np.zeros((n_ions, 3))
            coords[:, :2] = \
                np.asarray(chunk["detector"], dtype = np.float64).reshape(-1, 2)
        else:
            coords = \
                np.asarray(chunk["position"], dtype = np.float64).reshape(-1, 3)
        #
        #
        self._total_ion_counts += np.bincount(ranges, minlength = self._n + 3)
        if self._key >= 0:
            is_key = ranges == self._key
            _add_stats(self._tof_stats, chunk["tof"], is_key)
            _add_stats(self._voltage_stats, chunk["voltage"], is_key)
        #
        #
        self._fold.push(ranges, pulses, coords)
    #
    #
    def same_same_ratio(self, table):
        """
        Get the same-same ratio of same-pulse multis versus adjacent-pulse
        pseudo-multis.

        The ratio :math:`(SS_0 / SS'_0) / (SS_1 / SS'_1)` compares the fraction
        of same-same pairs at :math:`dp = 0` to the one at :math:`dp = 1`.

        Parameters
        ----------
        table : ndarray, shape (N+3, N+3, dp_max+1)
            The finished pair count table.

        Returns
        -------
        ratio : float
            The same-same ratio, or ``nan`` if undefined.
        """
        #
        #
        if self._dp_max < 1:
            return np.nan
        ss0  = self.same_same_total(table, 0)
        ssp0 = self.not_same_same_total(table, 0)
        ss1  = self.same_same_total(table, 1)
        ssp1 = self.not_same_same_total(table, 1)
        if ssp0 == 0 or ss1 == 0:
            return np.nan
        return ss0 / ssp0 * ssp1 / ss1
    #
    #
    def same_same_total(self, table, dp):
        """Get the number of considered pairs of identical ranges."""
        return int(sum(table[i, i, dp] for i in range(self._n)))
    #
    #
    def separation_series(self):
        """
        Get all non-empty separation distance histograms.

        Returns
        -------
        series : list of SeparationSeries
            The histograms, ordered by range, pulse delta, and pair type.
        """
        #
        #
        distances = np.arange(_N_DIST_BINS) * _DIST_RES
        series = []
        for r, name in enumerate(self._names):
            for dp in range(self._dp_max + 1):
                for t, pair_type in enumerate(_PAIR_TYPES):
                    counts = self._dp_distance_correlations[r, dp, t]
                    if not counts.any():
                        continue
                    series.append(SeparationSeries(
                        f"{name} dp={dp} {pair_type}", distances, counts.copy()
                    ))
        #
        #
        return series
    #
    #
    def summary(self):
        """
        Get a human-readable summary of all statistics.

        Returns
        -------
        summary : str
            The multi-line summary.
        """
        #
        #
        n = self._n
        dp_range = f"dp=1...{self._dp_max}"
        text = (
            "Statistics are tracked for various groups of ions:\n"
            "  Considered:   Specific ranges to include in summary table.\n"
            "  Key Range:    Range used for the average ToF and voltage.\n"
            "  Other:        All other defined ranges (including "
            "Discovered).\n"
            "  Unranged:     All ions between any defined ranges.\n"
            "  Correlated:   Multi-hit ions with separations not exceeding the "
            "critical value.\n"
            "  Uncorrelated: Multi-hit ions with separations exceeding the "
            "critical value.\n"
            "  Pseudo-multi: Consecutive single-ion events, tracked for pulse "
            "deltas (dp)\n"
            "                up to a maximum value.\n\n"
        )
        text += self._table_string(
            "Uncorrelated Multis Table All: dpMultis[First Ion,Second Ion,"
            "dp=0]", self._dp_unc_multis[:, :, 0]
        )
        text += self._table_string(
            "Correlated Multis Table All: dpMultis[First Ion,Second Ion,dp=0]",
            self._dp_cor_multis[:, :, 0]
        )
        #
        #
        # ranges
        text += f"Total Defined Ranges:      {self._n_total:5,d}\n"
        if self._key >= 0:
            key = self._considered[self._key]
            text += f"Key Range:                 {self._names[self._key]:>7}: " \
                    f"{key.min:7.3f} - {key.max:7.3f}\n"
        else:
            text += "Key Range:                    None\n"
        text += f"Considered Ranges:         {n:5,d}\n"
        for i, r in enumerate(self._considered):
            text += f"{'':23}{i} {self._names[i]:>7}: " \
                    f"{r.min:7.3f} - {r.max:7.3f}\n"
        text += f"Separation Critical Value:   {self._crit_sep:.1f}\n"
        text += f"Pseudo-Multi Max dp:           {self._dp_max:d}\n\n"
        #
        #
        # totals
        text += f"Total Event Pulses:    {self.event_pulses:17,d}\n"
        text += f"Total Ions:            " \
                f"{int(self._total_ion_counts[n + 2]):17,d}\n"
        text += f"Total Multi Ions:      {int(self._dp_histogram[0]):17,d}\n"
        text += f"Total Multis Table:    " \
                f"{int(self._dp_multis[n + 2, n + 2, 0]):17,d}\n"
        text += self._multiplicity_string() + "\n"
        #
        #
        # pair totals
        text += "Multis dp=0:\n"
        text += self._pair_totals_string(range(0, 1), "Uncorr")
        text += f"Pseudo-Doubles {dp_range}:\n"
        text += self._pair_totals_string(range(1, self._dp_max + 1), "UnCorr")
        #
        #
        # rates and key range statistics
        tof_mean, tof_std = self.tof_statistics
        u_mean, u_std = self.voltage_statistics
        text += f"DR:          {self.detection_rate:.3%}\n"
        text += f"ToF:       {tof_mean:,.0f} ± {tof_std:,.0f} ns\n"
        text += f"Voltage: {u_mean:,.0f} ± {u_std:,.0f} V\n\n"
        #
        #
        # same-same ratios
        text += "S=Same, S'=Not Same, 0: dp=0 or same pulse, 1: dp=1 or " \
                "adjacent pulses\n"
        text += self._same_same_string(self._dp_cor_multis, "Corr")
        text += "Correlated same-same/not-same ratio for same-pulse multis " \
                "vs. pseudo-multis\n"
        text += "(dead-time affected same-pulse ratio vs. ratio without " \
                "dead-time effect)\n\n"
        text += self._same_same_string(self._dp_unc_multis, "Uncorr")
        text += "Uncorrelated same-same/not-same ratio for same-pulse multis " \
                "vs. pseudo-multis\n"
        text += "(mostly unaffected by dead time, governed mainly by Poisson " \
                "statistics --> 100%)\n\n"
        #
        #
        # pseudo-multi tables summed over all pulse deltas
        dps = slice(1, self._dp_max + 1)
        text += self._table_string(
            f"Uncorrelated Pseudo-Multis Table All: dpMultis[First Ion,"
            f"Second Ion,{dp_range}]", self._dp_unc_multis[:, :, dps].sum(2)
        )
        text += self._table_string(
            f"Correlated Pseudo-Multis Table All: dpMultis[First Ion,"
            f"Second Ion,{dp_range}]", self._dp_cor_multis[:, :, dps].sum(2)
        )
        #
        #
        return text
    #
    #
    def _get_key_index(self, key_range):
        if not self._considered:
            return -1
        if key_range is None:
            return 0
        for i, r in enumerate(self._considered):
            if key_range == self._names[i] or key_range == r.name:
                return i
        logger.warning(
            f"Key range \"{key_range}\" is not a considered range. Using "
            f"\"{self._names[0]}\"."
        )
        return 0
    #
    #
    def _multiplicity_string(self):
        n = self._n
        hreg = self._hreg
        weighted = [int(hreg[i, _ALL]) * (i + 1) for i in range(_HREG_MAX - 1)]
        higher = int(self._dp_histogram[0]) - sum(weighted[1:])
        total = int(hreg[0, _ALL] + self._dp_histogram[0])
        norm = total if total > 0 else np.nan
        #
        #
        text = "\nMulti-dp=0 Distribution:   "
        text += "".join(f"{h:>{_W}}" for h in _HREG_NAMES[:-1])
        text += f"{'higher':>{_W}}{'total':>{_W}}"
        text += "\n      All Events:          "
        text += "".join(f"{int(h):{_W},d}" for h in hreg[:, _ALL])
        text += f"{self.event_pulses:{_W},d}"
        text += "\n      All Weighted:        "
        text += "".join(f"{w:{_W},d}" for w in weighted)
        text += f"{higher:{_W},d}{total:{_W},d}"
        text += "\n      All Weighted:        "
        text += "".join(f"{w / norm:{_W}.2%}" for w in weighted)
        text += f"{higher / norm:{_W}.2%}{total / norm:{_W}.0%}"
        text += "\n      Considered Events:   "
        text += "".join(f"{int(h):{_W},d}" for h in hreg[:, _CONSIDERED])
        considered_ions = self._total_ion_counts[n + 2] - \
                          self._total_ion_counts[n + 1] - \
                          self._total_ion_counts[n]
        text += f"{int(considered_ions):{_W},d}\n"
        #
        #
        return text
    #
    #
    def _pair_totals_string(self, dps, uncorrelated_label):
        n = self._n
        all_pairs = sum(int(self._dp_multis[n + 2, n + 2, dp]) for dp in dps)
        considered, correlated, uncorrelated = (
            sum(self.considered_total(t, dp) for dp in dps)
            for t in (self._dp_multis, self._dp_cor_multis,
                      self._dp_unc_multis)
        )
        return (
            f"  All:                     {all_pairs:{_W},d}\n"
            f"  Considered:              {considered:{_W},d}\n"
            f"  Considered & Correlated: {correlated:{_W},d}\n"
            f"  Considered & {uncorrelated_label}:     "
            f"{uncorrelated:{_W},d}\n\n"
        )
    #
    #
    def _same_same_string(self, table, label):
        text = ""
        for tag, dp in (("0", 0), ("1", 1)):
            if dp > self._dp_max:
                ss, ssp = 0, 0
            else:
                ss  = self.same_same_total(table, dp)
                ssp = self.not_same_same_total(table, dp)
            text += f"SS{tag}:  {ss:{_W},d}\n"
            text += f"SS'{tag}: {ssp:{_W},d}\n"
        text += f"{label}: SS0/SS'0 / SS1/SS'1 = " \
                f"{self.same_same_ratio(table):.2%}\n"
        return text
    #
    #
    def _table_string(self, title, table):
        text = f"{title}\n{'':{_W}}"
        text += "".join(f"{name:>{_W}}" for name in self._names) + "\n"
        for i, name in enumerate(self._names):
            text += f"{name:>{_W}}"
            text += "".join(f"{int(c):{_W},d}" for c in table[i]) + "\n"
        return text + "\n"
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def analyze_multihits(hist, ranges, events, **kwargs):
    """
    Analyze multi-hit correlations of an event stream.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram used for the mass-to-range lookup.
    ranges : list of Range
        All finalized ranges.
    events : numpy.ndarray or iterable
        The event array, or an iterable of chunks.

    Keyword Arguments
    -----------------
    chunk_size : int
        The number of events per chunk if an event array is passed.
    \\*\\*kwargs
        Any keyword argument of :class:`MultiHitModel`.

    Returns
    -------
    model : MultiHitModel
        The finished multi-hit model.

    Raises
    ------
    MissingFieldsError
        If any chunk lacks a required field.
    """
    #
    #
    chunk_kwargs = {}
    if 'chunk_size' in kwargs:
        chunk_kwargs['chunk_size'] = kwargs.pop('chunk_size')
    model = MultiHitModel(hist, ranges, **kwargs)
    #
    #
    start = timer()
    for chunk in iter_chunks(events, **chunk_kwargs):
        model.process_chunk(chunk)
    model.finish()
    logger.info(
        f"Processed {int(model.total_ion_counts[-1])} ions in "
        f"{model.event_pulses} pulses ({timer() - start:.3f} seconds)."
    )
    #
    #
    return model
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
def __add_pair(r1, xyz1, r2, xyz2, dp, crit_sep, plot_mode, n, multis,
               cor_multis, unc_multis, dist):
    """
    Record one ion pair.
    """
    #
    #
    sep = np.sqrt(
        (xyz1[0] - xyz2[0])**2 + (xyz1[1] - xyz2[1])**2 +
        (xyz1[2] - xyz2[2])**2
    )
    multis[r1, r2, dp] += 1
    if sep <= crit_sep:
        cor_multis[r1, r2, dp] += 1
    else:
        unc_multis[r1, r2, dp] += 1
    #
    #
    # selection of separation histograms
    if plot_mode == 1 and (r1 >= n or r2 >= n):
        return
    if plot_mode == 2 and (r1 > n or r2 > n):
        return
    #
    # clamp to last bin (NaN fails the comparison)
    x = sep / _DIST_RES
    b = int(x) if x < _N_DIST_BINS - 1 else _N_DIST_BINS - 1
    dist[r1, dp, 0, b] += 1
    dist[r2, dp, 0, b] += 1
    if r1 != r2:
        dist[r1, dp, 1, b] += 1
        dist[r2, dp, 1, b] += 1
    else:
        dist[r1, dp, 2, b] += 1
#
#
#
#
@numba.njit(cache = True)
def __close_group(first, last, ranges, pulses, coords, carry, last_xyz,
                  crit_sep, plot_mode, n, multis, cor_multis, unc_multis, dist,
                  dp_hist, hreg, singles):
    """
    Close the pulse group of the ions *first* to *last* (exclusive).
    """
    #
    #
    pulse = pulses[first]
    if carry[_C_EVENT_PULSES] == 0:
        carry[_C_PULSE_FIRST] = pulse
    carry[_C_EVENT_PULSES] += 1
    carry[_C_PULSE_LAST] = pulse
    size = last - first
    #
    #
    # true multi, all pairs with the earlier ion first
    if size > 1:
        dp_hist[0] += size
        hreg[min(size, _HREG_MAX) - 1, _ALL] += 1
        considered = 0
        for a in range(first, last):
            if ranges[a] < n:
                considered += 1
            for b in range(a + 1, last):
                __add_pair(
                    ranges[a], coords[a], ranges[b], coords[b], 0, crit_sep,
                    plot_mode, n, multis, cor_multis, unc_multis, dist
                )
        if considered > 0:
            hreg[min(considered, _HREG_MAX) - 1, _CONSIDERED] += 1
        carry[_C_STATE] = _SAW_MULTI
        return
    #
    #
    # single
    r = ranges[first]
    singles[r] += 1
    hreg[0, _ALL] += 1
    if r < n:
        hreg[0, _CONSIDERED] += 1
    #
    # pseudo-multi with preceding single (lower range index first)
    state = _SAW_SINGLE
    if carry[_C_STATE] == _SAW_SINGLE or carry[_C_STATE] == _SAW_PSEUDO_PAIR:
        dp = pulse - carry[_C_LAST_PULSE]
        if dp < 1:
            carry[_C_IGNORED] += 1
        else:
            dp_hist[min(dp, _N_DP_BINS - 1)] += 1
            if dp < multis.shape[2]:
                prev = carry[_C_LAST_RANGE]
                if r < prev:
                    __add_pair(
                        r, coords[first], prev, last_xyz, dp, crit_sep,
                        plot_mode, n, multis, cor_multis, unc_multis, dist
                    )
                else:
                    __add_pair(
                        prev, last_xyz, r, coords[first], dp, crit_sep,
                        plot_mode, n, multis, cor_multis, unc_multis, dist
                    )
                state = _SAW_PSEUDO_PAIR
    carry[_C_STATE] = state
    carry[_C_LAST_RANGE] = r
    carry[_C_LAST_PULSE] = pulse
    last_xyz[:] = coords[first]
#
#
#
#
@numba.njit(cache = True)
def __fold_ions(ranges, pulses, coords, final, carry, last_xyz, crit_sep,
                plot_mode, n, multis, cor_multis, unc_multis, dist, dp_hist,
                hreg, singles):
    """
    Fold all complete pulse groups; returns the index of the open group.
    """
    #
    #
    n_ions = len(pulses)
    first = 0
    while first < n_ions:
        last = first + 1
        while last < n_ions and pulses[last] == pulses[first]:
            last += 1
        # last group may continue in next chunk
        if last == n_ions and not final:
            break
        __close_group(
            first, last, ranges, pulses, coords, carry, last_xyz, crit_sep,
            plot_mode, n, multis, cor_multis, unc_multis, dist, dp_hist, hreg,
            singles
        )
        first = last
    #
    #
    return first
#
#
#
#
@numba.njit("i8[:](f8[:], i8[:], f8, f8, i8)", cache = True, parallel = True)
def __map_masses(masses, lookup, start, bin_width, unranged):
    """
    Map masses to range indices.
    """
    #
    #
    indices = np.empty(len(masses), dtype = np.int64)
    n = len(lookup)
    for i in numba.prange(len(masses)):
        x = (masses[i] - start) / bin_width
        # NaN fails both comparisons
        if x >= 0.0 and x < n:
            indices[i] = lookup[int(x)]
        else:
            indices[i] = unranged
    #
    #
    return indices
#
#
#
#
def _add_stats(stats, values, mask):
    """
    Simple function to accumulate count, sum, and sum of squares.
    """
    #
    #
    v = np.asarray(values, dtype = np.float64).reshape(-1)[mask]
    stats[0] += len(v)
    stats[1] += v.sum()
    stats[2] += np.dot(v, v)
#
#
#
#
def _build_lookup(hist, considered, others, n):
    """
    Simple function to build the bin-to-range lookup table.
    """
    #
    #
    lookup = np.full(len(hist), n + 1, dtype = np.int64)
    if hist.is_empty:
        return lookup
    #
    #
    def get_slice(r):
        first = int(np.clip(round((r.min - hist.start) / hist.bin_width),
                            0, len(hist)))
        last = int(np.clip(round((r.max - hist.start) / hist.bin_width),
                           0, len(hist)))
        return slice(first, last)
    #
    #
    for r in others:
        lookup[get_slice(r)] = n
    for i, r in enumerate(considered):
        lookup[get_slice(r)] = i
    #
    #
    return lookup
#
#
#
#
def _fold_ions(ranges, pulses, coords, final, carry, last_xyz, crit_sep,
               plot_mode, n, *tables):
    """
    Simple wrapper for the Numba pulse grouping.
    """
    #
    #
    return __fold_ions(
        np.ascontiguousarray(ranges, dtype = np.int64),
        np.ascontiguousarray(pulses, dtype = np.int64),
        np.ascontiguousarray(coords, dtype = np.float64),
        bool(final), carry, last_xyz, float(crit_sep), int(plot_mode), int(n),
        *tables
    )
#
#
#
#
def _map_ranges(masses, lookup, start, bin_width, unranged):
    """
    Simple wrapper for the Numba mass-to-range mapping.
    """
    #
    #
    return __map_masses(
        np.ascontiguousarray(masses, dtype = np.float64),
        np.ascontiguousarray(lookup, dtype = np.int64),
        float(start), float(bin_width), int(unranged)
    )
#
#
#
#
def _mean_std(stats):
    """
    Simple function to get mean and (population) standard deviation.
    """
    #
    #
    if stats[0] == 0:
        return np.nan, np.nan
    mean = stats[1] / stats[0]
    return mean, np.sqrt(max(stats[2] / stats[0] - mean**2, 0.0))
#
#
#
#
def _range_name(r):
    """
    Simple function to get the table name of a range.
    """
    #
    #
    position = r.position if r.position is not None else r.min
    return f"{position:.1f}-{r.name}"
