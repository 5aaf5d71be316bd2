"""
The APRange composition module
==============================

This module calculates the ionic and the elemental (decomposed) composition
from a set of evaluated ranges.


Grouping
--------

The **ionic** table groups ranges by their name, e.g. all isotopes of one ion.
The **decomposed** table groups by element symbol: every range contributes to
each element of its formula, with counts, net counts, background, and tail
scaled by the multiplicity :math:`c` of the element and the background variance
scaled by :math:`c^2`. Ranges without a (parsable) formula contribute under
their own name.


Detection and uncertainty
-------------------------

A group is considered *not detected* if

.. math::
    N < 2.33 \\sqrt{\\sigma_B^2},

i.e. below the 95% one-sided confidence limit, where :math:`N` are the net
counts and :math:`\\sigma_B^2` the background variance. A group which is not
detected is excluded from the totals; its composition is set to ``-1`` and the
detection threshold :math:`4.65 \\sqrt{\\sigma_B^2} / T` is reported instead,
where :math:`T` are the total net counts of all detected groups.

For detected groups, the composition is :math:`N / T` with the uncertainty

.. math::
    \\sigma = \\frac{\\sqrt{(N + \\sigma_B^2) (N_c - B_c)^2 +
                          (N_c + B_c) (N - \\sigma_B^2)^2}}{T^2},

where :math:`N_c = T - N` and :math:`B_c` is the total background variance
minus the group's own background variance.

Compositions are formatted in percent with the smallest number of decimals
(between one and five) whose resolution does not exceed the uncertainty.


List of classes
---------------

* :class:`CompositionEntry`: One group of a composition table.
* :class:`CompositionTable`: Ordered composition entries plus totals.


List of functions
-----------------

* :func:`decomposed_composition`: Calculate elemental composition.
* :func:`ionic_composition`: Calculate ionic composition.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'CompositionEntry',
    'CompositionTable',
    'decomposed_composition',
    'ionic_composition'
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
from dataclasses import dataclass, field
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
# 95% one-sided confidence limit (not detected)
_NOT_DETECTED_LIMIT = 2.33
#
# detection threshold factor
_DETECTION_THRESHOLD = 4.65
#
# maximum number of decimals of formatted compositions
_MAX_DECIMALS = 5
#
# name of the totals row
_TOTALS_NAME = "Totals:"
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
class CompositionEntry:
    """
    One group of a composition table.

    Attributes
    ----------
    name : str
        The ion name or element symbol.
    counts : float
        The raw counts.
    net : float
        The net counts (including tails).
    background : float
        The background counts.
    background_variance : float
        The background variance (including tail uncertainties).
    tail : float
        The tail counts.
    composition : float
        The composition fraction, or ``-1`` if not detected.
    sigma : float
        The uncertainty of the composition fraction.
    detection_threshold : float
        The detection threshold (fraction) if not detected.
    formula : dict
        The elemental formula of an ionic entry.
    """
    name: str
    counts: float = 0.0
    net: float = 0.0
    background: float = 0.0
    background_variance: float = 0.0
    tail: float = 0.0
    composition: float = 0.0
    sigma: float = 0.0
    detection_threshold: float = 0.0
    formula: dict = field(default_factory = dict)
    #
    #
    @property
    def composition_string(self):
        """Getter for the formatted composition (in percent)."""
        if not self.is_detected:
            return "ND"
        return f"{100.0 * self.composition:.{self.decimals}f}"
    #
    @property
    def decimals(self):
        """Getter for the number of decimals of the formatted values."""
        value = 100.0 * (self.sigma if self.is_detected else
                         self.detection_threshold)
        for d in range(1, _MAX_DECIMALS + 1):
            if 10.0**(-d) <= value:
                return d
        return _MAX_DECIMALS
    #
    @property
    def is_detected(self):
        """Getter for whether the entry is significant."""
        return self.composition >= 0.0
    #
    @property
    def sigma_string(self):
        """
        Getter for the formatted uncertainty, or the detection threshold if
        not detected (in percent).
        """
        if not self.is_detected:
            return f"<{100.0 * self.detection_threshold:.{self.decimals}f}"
        return f"{100.0 * self.sigma:.{self.decimals}f}"
    #
    #
    def add(self, other, factor = 1.0):
        """
        Add the statistics of a range or entry.

        Parameters
        ----------
        other : Range or CompositionEntry
            The range or entry to add.
        factor : float
            The scaling factor (stoichiometric multiplicity). The background
            variance is scaled by its square.
        """
        #
        #
        self.counts              += factor * other.counts
        self.net                 += factor * other.net
        self.background          += factor * other.background
        self.tail                += factor * other.tail
        self.background_variance += factor**2 * other.background_variance
#
#
#
#
class CompositionTable:
    """
    Ordered composition entries plus totals.

    Parameters
    ----------
    entries : list of CompositionEntry
        The evaluated entries.
    totals : CompositionEntry
        The totals over all detected entries.
    """
    def __init__(self, entries, totals):
        self._entries = tuple(entries)
        self._totals  = totals
    #
    #
    def __getitem__(self, name):
        for e in self._entries:
            if e.name == name:
                return e
        raise KeyError(f"No composition entry \"{name}\".")
    #
    def __iter__(self):
        return iter(self._entries)
    #
    def __len__(self):
        return len(self._entries)
    #
    #
    @property
    def entries(self):
        """Getter for the entries."""
        return self._entries
    #
    @property
    def names(self):
        """Getter for the names of all entries."""
        return [e.name for e in self._entries]
    #
    @property
    def totals(self):
        """Getter for the totals."""
        return self._totals
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def decomposed_composition(ranges):
    """
    Calculate elemental composition.

    Parameters
    ----------
    ranges : iterable of Range
        The evaluated ranges.

    Returns
    -------
    table : CompositionTable
        The elemental composition, ordered by first appearance of each
        element.
    """
    #
    #
    groups = {}
    for r in ranges:
        elements = r.elements
        if not elements:
            logger.warning(
                f"No chemical formula for range \"{r.name}\"; excluded from "
                f"elemental composition."
            )
            continue
        for symbol, count in elements.items():
            if symbol not in groups:
                groups[symbol] = CompositionEntry(symbol, formula = {symbol: 1})
            groups[symbol].add(r, float(count))
    #
    #
    return _evaluate(groups.values())
#
#
#
#
def ionic_composition(ranges):
    """
    Calculate ionic composition.

    Parameters
    ----------
    ranges : iterable of Range
        The evaluated ranges.

    Returns
    -------
    table : CompositionTable
        The ionic composition, ordered by first appearance of each name.
    """
    #
    #
    groups = {}
    for r in ranges:
        if r.name not in groups:
            groups[r.name] = CompositionEntry(r.name, formula = r.elements)
        groups[r.name].add(r)
    #
    #
    return _evaluate(groups.values())
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
def _evaluate(entries):
    """
    Simple function to apply the detection test and calculate the composition
    fractions and their uncertainties.
    """
    #
    #
    entries = list(entries)
    detected = [
        e.net >= _NOT_DETECTED_LIMIT * np.sqrt(max(e.background_variance, 0.0))
        for e in entries
    ]
    #
    # totals over detected entries only
    totals = CompositionEntry(_TOTALS_NAME)
    for e, is_detected in zip(entries, detected):
        if is_detected:
            totals.add(e)
    total_net = totals.net
    total_var = totals.background_variance
    #
    #
    for e, is_detected in zip(entries, detected):
        var = max(e.background_variance, 0.0)
        if not is_detected:
            e.composition = -1.0
            e.sigma = 0.0
            e.detection_threshold = \
                _DETECTION_THRESHOLD * np.sqrt(var) / total_net \
                if total_net > 0.0 else np.inf
            logger.debug(f"Entry \"{e.name}\" not detected.")
            continue
        if total_net <= 0.0:
            e.composition = 0.0
            e.sigma = 0.0
            continue
        #
        # composition and propagated uncertainty
        n_c = total_net - e.net
        b_c = total_var - var
        e.composition = e.net / total_net
        e.sigma = np.sqrt(max(
            (e.net + var) * (n_c - b_c)**2 + (n_c + b_c) * (e.net - var)**2,
            0.0
        )) / total_net**2
    #
    #
    totals.composition = sum(e.composition for e in entries if e.is_detected)
    return CompositionTable(entries, totals)
