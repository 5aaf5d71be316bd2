"""
The APRange error module
========================

This module defines the exceptions raised by the APRange package whenever an
analysis pass cannot be completed.

Two classes of failures are distinguished:

- A :class:`ValidationError` indicates invalid user input, e.g. overlapping
  ranges with different names or missing fields in the ion event stream. The
  pass is aborted and the problem is reported back to the caller.
- A :class:`PreconditionError` (or an :class:`IndexError` raised by the range
  integration routines) indicates a violated internal precondition. The
  results of the affected pass must not be trusted.

Failures which do not corrupt the state of the analysis (a rejected tail fit or
a range which is not detected) are not reported by exceptions at all, but are
recorded in the respective result objects.


List of classes
---------------

* :class:`ValidationError`: Base class for all validation failures.
* :class:`EmptyHistogramError`: No histogram data present.
* :class:`EmptyRangeSetError`: No starting ranges present.
* :class:`InvalidHistogramError`: Malformed histogram.
* :class:`MissingFieldsError`: Required fields missing in event stream.
* :class:`OverlapError`: Unresolvable overlap of two ranges.
* :class:`PreconditionError`: Violated internal precondition.
"""
#
#
#
#
__version__ = '0.1.0'
__all__ = [
    'EmptyHistogramError',
    'EmptyRangeSetError',
    'InvalidHistogramError',
    'MissingFieldsError',
    'OverlapError',
    'PreconditionError',
    'ValidationError'
]
#
#
#
#
################################################################################
#
# public classes
#
################################################################################
class ValidationError(Exception):
    """
    Base class for all validation failures.

    Parameters
    ----------
    message : str
        The human-readable description of the failure.
    context : dict
        Optional additional information, e.g. the names of the offending ranges.
    """
    def __init__(self, message, context = None):
        super().__init__(message)
        self.context = context or {}
#
#
#
#
class EmptyHistogramError(ValidationError):
    """No histogram data present."""
#
#
#
#
class EmptyRangeSetError(ValidationError):
    """No starting ranges present for re-ranging."""
#
#
#
#
class InvalidHistogramError(ValidationError):
    """Malformed histogram, e.g. a non-positive bin width."""
#
#
#
#
class MissingFieldsError(ValidationError):
    """Required fields missing in the ion event stream."""
    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__(
            "Required field(s) missing in ion event stream: " +
            ", ".join(f"\"{f}\"" for f in self.missing) + ".",
            {'missing': self.missing}
        )
#
#
#
#
class OverlapError(ValidationError):
    """Unresolvable overlap of two ranges with different names."""
    def __init__(self, first, second):
        super().__init__(
            f"Ranges \"{first.name}\" ({first.min:.3f}-{first.max:.3f}) and "
            f"\"{second.name}\" ({second.min:.3f}-{second.max:.3f}) overlap.",
            {'ranges': (first.name, second.name)}
        )
#
#
#
#
class PreconditionError(Exception):
    """Violated internal precondition."""
