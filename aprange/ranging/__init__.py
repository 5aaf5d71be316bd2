"""
The APRange ranging subpackage
==============================

The `aprange.ranging` subpackage contains the numerical core of the automatic
ranging: it coarsens the raw mass-to-charge histogram, discovers significant
peaks, assigns each range a background subtraction scheme and integration
window, and estimates the thermal tails of selected ranges.


Available modules
-----------------

.. toctree::
   :maxdepth: 1

   The APRange histogram module (aprange.ranging.histogram)\
      <aprange.ranging.histogram>
   The APRange peak discovery module (aprange.ranging.peaks)\
      <aprange.ranging.peaks>
   The APRange range integration module (aprange.ranging.rangemath)\
      <aprange.ranging.rangemath>
   The APRange range module (aprange.ranging.ranges)<aprange.ranging.ranges>
   The APRange range scoreboard module (aprange.ranging.scoreboard)\
      <aprange.ranging.scoreboard>
   The APRange tail estimation module (aprange.ranging.tail)\
      <aprange.ranging.tail>
"""
__version__ = '0.1.0'
__all__ = [
    'histogram',
    'peaks',
    'rangemath',
    'ranges',
    'scoreboard',
    'tail'
]
