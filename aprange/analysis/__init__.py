"""
The APRange analysis subpackage
===============================

The `aprange.analysis` subpackage evaluates the finalized ranges of a ranging
pass:

- **Compositions**: ionic and elemental (decomposed) compositions including
  detection limits and statistical uncertainties;
- **Multi-hit correlations**: pair statistics of ions detected on the same
  pulse (or on closely consecutive pulses) as a function of their spatial
  separation.


Available modules
-----------------

.. toctree::
   :maxdepth: 1

   The APRange composition module \
      (aprange.analysis.composition)<aprange.analysis.composition>
   The APRange multi-hit module \
      (aprange.analysis.multihit)<aprange.analysis.multihit>
"""
__version__ = '0.1.0'
__all__ = ['composition', 'multihit']
