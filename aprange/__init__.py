"""
The APRange Package: Automatic Ranging of Atom Probe Mass Spectra
=================================================================

The APRange package evaluates one-dimensional mass-to-charge histograms
measured with atom probe instruments. Starting from a raw histogram and a set of
named ranges, it

- coarsens the histogram to a working resolution adapted to the dominant peak,
- discovers statistically significant peaks automatically,
- assigns every range a background subtraction scheme and integration window,
- estimates thermal tails of selected ranges by an exponential fit,
- calculates ionic and elemental compositions including their statistical
  uncertainties, and
- analyzes multi-hit correlations as a function of spatial separation and
  pulse delta.

All numerical routines operate on plain NumPy arrays. Tight loops are compiled
with Numba.


Available subpackages
---------------------

.. toctree::
   :maxdepth: 1

   The APRange ranging subpackage (aprange.ranging)<aprange.ranging>
   The APRange analysis subpackage (aprange.analysis)<aprange.analysis>
   The APRange file input/output subpackage (aprange.io)<aprange.io>


Available modules
-----------------

.. toctree::
   :maxdepth: 1

   The APRange error module (aprange.errors)<aprange.errors>
   The APRange workflow module (aprange.workflow)<aprange.workflow>
"""
__version__ = '0.1.0'
