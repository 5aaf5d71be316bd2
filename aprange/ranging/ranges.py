"""
The APRange range module
========================

This module defines the data model of a *range*, i.e. a contiguous window on
the mass-to-charge axis which is assigned to one ion species, together with the
background subtraction *scheme* used to evaluate it.


Background schemes
------------------

Every range is evaluated with one of the following schemes (see also
:ref:`background schemes<aprange.ranging.rangemath:Background schemes>`):

- ``Left``: background from a window of equal width to the left,
- ``LeftTail``: like ``Left``, plus an exponential tail fit to the right,
- ``Half``: background from half-width flanks on either side,
- ``Quarter``: background from (doubled) quarter-width flanks on either side.

The scheme of a range is stored as a :class:`SchemeAssignment`, which
distinguishes between a scheme which has not been assigned yet, a scheme which
has been set explicitly (and is never changed automatically), and a scheme
which has been computed from the neighbor spacing during the last pass.


Range records
-------------

Ranges are exchanged with external collaborators as plain dictionaries with the
following keys:

.. code-block:: yaml

    name: SiO2
    formula: {Si: 1, O: 2}
    volume: 0.0
    min: 59.95
    max: 60.15
    color: '#ff0000'
    multi_use: false
    scheme: Half
    scheme_source: computed
    position: 60.0
    counts: 1200.0
    net: 1000.0
    background: 200.0
    tail: 0.0

Only ``name``, ``min``, and ``max`` are mandatory.


List of classes
---------------

* :class:`Range`: One ion-type integration window.
* :class:`Scheme`: The background subtraction schemes.
* :class:`SchemeAssignment`: The (tagged) scheme of a range.
* :class:`SchemeSource`: The origin of a scheme assignment.


List of functions
-----------------

* :func:`parse_formula`: Parse ion name into elemental formula.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'DISCOVERED',
    'Range',
    'Scheme',
    'SchemeAssignment',
    'SchemeSource',
    'parse_formula'
]
#
#
#
#
# import modules
import copy
import periodictable
import pyparsing
#
# import some special functions/modules
from dataclasses import dataclass, field
from enum import Enum
#
#
#
#
################################################################################
#
# public module-level variables
#
################################################################################
# name of the synthetic placeholder ranges for discovered peaks
DISCOVERED = "Discovered"
#
#
#
#
################################################################################
#
# public classes
#
################################################################################
class Scheme(Enum):
    """The background subtraction schemes."""
    LEFT      = "Left"
    LEFT_TAIL = "LeftTail"
    HALF      = "Half"
    QUARTER   = "Quarter"
    #
    #
    def __str__(self):
        return self.value
#
#
#
#
class SchemeSource(Enum):
    """The origin of a scheme assignment."""
    UNSET    = "unset"
    OVERRIDE = "override"
    COMPUTED = "computed"
#
#
#
#
@dataclass(frozen = True)
class SchemeAssignment:
    """
    The (tagged) scheme of a range.

    A scheme is either *unset*, set explicitly by an *override* (e.g. from a
    previously saved session or by the user), or *computed* during the last
    ranging pass. Overrides are never replaced automatically.

    Use the class methods :meth:`unset`, :meth:`override`, and :meth:`computed`
    to create new objects.
    """
    source: SchemeSource = SchemeSource.UNSET
    value: Scheme = None
    #
    #
    def __str__(self):
        if self.value is None:
            return "-"
        return str(self.value)
    #
    #
    @classmethod
    def computed(cls, value):
        return cls(SchemeSource.COMPUTED, Scheme(value))
    #
    @classmethod
    def override(cls, value):
        return cls(SchemeSource.OVERRIDE, Scheme(value))
    #
    @classmethod
    def unset(cls):
        return cls()
    #
    #
    @property
    def is_override(self):
        return self.source is SchemeSource.OVERRIDE
    #
    @property
    def is_set(self):
        return self.source is not SchemeSource.UNSET
    #
    #
    def resolve(self, value):
        """
        Get the assignment after a (new) scheme has been computed.

        Parameters
        ----------
        value : Scheme
            The newly computed scheme.

        Returns
        -------
        assignment : SchemeAssignment
            This assignment if it is an override, otherwise a new computed
            assignment with *value*.
        """
        #
        #
        if self.is_override:
            return self
        return SchemeAssignment.computed(value)
    #
    #
    def revert(self, value):
        """
        Replace the scheme value while keeping the source.

        Used if a tail fit is rejected and ``LeftTail`` falls back to ``Left``.
        """
        #
        #
        return SchemeAssignment(self.source, Scheme(value))
#
#
#
#
@dataclass
class Range:
    """
    One ion-type integration window.

    The window covers the half-open interval ``[min, max)``. All count
    attributes refer to the most recent ranging pass.

    Attributes
    ----------
    name : str
        The name of the ion. May be shared by several ranges (e.g. isotopes).
    min : float
        The lower edge of the window.
    max : float
        The upper edge of the window.
    formula : dict
        The mapping of element symbols to their multiplicities. If empty, the
        formula is derived from the name (see :func:`parse_formula`).
    volume : float
        The ionic volume (not used by the analysis).
    color : str
        The display color (not used by the analysis).
    multi_use : bool
        Whether the range participates in the multi-hit analysis.
    scheme : SchemeAssignment
        The background subtraction scheme.
    position : float
        The peak position. ``None`` if not yet determined.
    counts : float
        The raw counts within the window.
    net : float
        The net counts (counts minus background, plus tail).
    background : float
        The background counts.
    background_variance : float
        The variance of the background estimate (including the tail
        uncertainty).
    tail : float
        The estimated tail counts.
    left_background : float
        The background contribution from the left flank.
    right_background : float
        The background contribution from the right flank.
    """
    name: str
    min: float
    max: float
    formula: dict = field(default_factory = dict)
    volume: float = 0.0
    color: str = None
    multi_use: bool = False
    scheme: SchemeAssignment = field(default_factory = SchemeAssignment)
    position: float = None
    counts: float = 0.0
    net: float = 0.0
    background: float = 0.0
    background_variance: float = 0.0
    tail: float = 0.0
    left_background: float = 0.0
    right_background: float = 0.0
    #
    #
    def __post_init__(self):
        if not self.min < self.max:
            raise ValueError(
                f"Invalid range \"{self.name}\": minimum ({self.min}) must be "
                f"smaller than maximum ({self.max})."
            )
    #
    #
    #
    #
    @property
    def elements(self):
        """
        Getter for the elemental formula (explicit or parsed from the name).
        """
        if self.formula:
            return dict(self.formula)
        return parse_formula(self.name)
    #
    @property
    def is_discovered(self):
        """Getter for whether the range is a synthetic placeholder."""
        return self.name == DISCOVERED
    #
    @property
    def width(self):
        """Getter for the width of the window."""
        return self.max - self.min
    #
    #
    #
    #
    def background_line(self, bin_width):
        """
        Get the background level lines for display.

        Parameters
        ----------
        bin_width : float
            The coarse bin width the background was determined with.

        Returns
        -------
        lines : list of tuple
            The ``(x0, x1, y)`` coordinates of the horizontal background level
            (background counts per bin) across the window. Empty if no
            background has been determined.
        """
        #
        #
        n_bins = int(round(self.width / bin_width))
        if n_bins <= 0 or self.background <= 0.0:
            return []
        #
        #
        lines = []
        if self.left_background > 0.0 and self.right_background > 0.0:
            # separate levels from either flank, meeting at the peak position
            mid = self.position if self.position is not None else \
                  0.5 * (self.min + self.max)
            lines.append((self.min, mid, 2.0 * self.left_background / n_bins))
            lines.append((mid, self.max, 2.0 * self.right_background / n_bins))
        else:
            lines.append((self.min, self.max, self.background / n_bins))
        return lines
    #
    #
    def contains(self, pos):
        """Check whether a position lies within ``[min, max)``."""
        return self.min <= pos < self.max
    #
    #
    def copy(self):
        """Return a deep copy."""
        return copy.deepcopy(self)
    #
    #
    def overlaps(self, other):
        """Check whether two windows overlap."""
        return self.min < other.max and other.min < self.max
    #
    #
    def to_record(self):
        """
        Convert range into a plain dictionary.

        Returns
        -------
        record : dict
            The record, as described in
            :ref:`range records<aprange.ranging.ranges:Range records>`.
        """
        #
        #
        return {
            'name':          self.name,
            'formula':       dict(self.formula),
            'volume':        float(self.volume),
            'min':           float(self.min),
            'max':           float(self.max),
            'color':         self.color,
            'multi_use':     bool(self.multi_use),
            'scheme':        None if self.scheme.value is None \
                             else self.scheme.value.value,
            'scheme_source': self.scheme.source.value,
            'position':      None if self.position is None \
                             else float(self.position),
            'counts':        float(self.counts),
            'net':           float(self.net),
            'background':    float(self.background),
            'tail':          float(self.tail)
        }
    #
    #
    @classmethod
    def from_record(cls, record):
        """
        Create range from a plain dictionary.

        A scheme without a ``scheme_source`` (or with source ``"override"``) is
        treated as an override; a computed scheme will be recomputed in the next
        pass.

        Parameters
        ----------
        record : dict
            The record, as described in
            :ref:`range records<aprange.ranging.ranges:Range records>`.

        Returns
        -------
        r : Range
            The range.

        Raises
        ------
        KeyError
            If a mandatory key is missing.
        """
        #
        #
        for key in ('name', 'min', 'max'):
            if key not in record:
                raise KeyError(f"Missing mandatory key '{key}' in range record.")
        #
        #
        scheme = record.get('scheme', None)
        source = record.get('scheme_source', None)
        if scheme is None:
            assignment = SchemeAssignment.unset()
        elif source == SchemeSource.COMPUTED.value:
            assignment = SchemeAssignment.computed(scheme)
        else:
            assignment = SchemeAssignment.override(scheme)
        #
        #
        return cls(
            name      = str(record['name']),
            min       = float(record['min']),
            max       = float(record['max']),
            formula   = dict(record.get('formula', None) or {}),
            volume    = float(record.get('volume', 0.0) or 0.0),
            color     = record.get('color', None),
            multi_use = bool(record.get('multi_use', False)),
            scheme    = assignment,
            position  = record.get('position', None)
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
def parse_formula(name):
    """
    Parse ion name into elemental formula.

    Parameters
    ----------
    name : str
        The ion name, e.g. ``"SiO2"``, ``"Ca(OH)2"``, or ``"Fe2O3+"``. Trailing
        charge symbols are ignored.

    Returns
    -------
    formula : dict
        The mapping of element symbols to multiplicities. Empty if the name is
        not a valid chemical formula (e.g. ``"Discovered"``).
    """
    #
    #
    name = name.strip().rstrip("+").strip()
    if name == "":
        return {}
    try:
        atoms = periodictable.formula(name).atoms
    except (ValueError, pyparsing.ParseException):
        return {}
    #
    #
    return {str(element): int(count) for element, count in atoms.items()}
