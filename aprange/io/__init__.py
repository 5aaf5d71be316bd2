"""
The APRange input/output subpackage
===================================

The ``aprange.io`` subpackage connects the numerical core to its surroundings.
It provides the configuration of the ranging parameters, the read contract for
ion event streams, the exchange of range sets via YAML files, and explicit
export schemas for all tabular results.


Available modules
-----------------

The following modules are available in this subpackage:

.. toctree::
   :maxdepth: 1

   The APRange configuration module (aprange.io.config)<aprange.io.config>
   The APRange event stream module (aprange.io.events)<aprange.io.events>
   The APRange export module (aprange.io.export)<aprange.io.export>
   The APRange range file module (aprange.io.rangefile)<aprange.io.rangefile>
"""
__version__ = "0.1.0"
__all__ = ["config", "events", "export", "rangefile"]
