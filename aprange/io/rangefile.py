"""
The APRange range file module
=============================

This module reads and writes range sets in YAML format. Writing a range set
always replaces the complete file; there are no incremental updates.


Example range file
------------------

.. code-block:: yaml

    ranges:
    - name: Al
      min: 26.85
      max: 27.25
      multi_use: true
    - name: AlO
      formula: {Al: 1, O: 1}
      min: 42.8
      max: 43.2
      scheme: LeftTail
      scheme_source: override

Every entry is a range record as described in
:ref:`range records<aprange.ranging.ranges:Range records>`. Only ``name``,
``min``, and ``max`` are mandatory. Written files additionally contain the
computed fields of the last pass and (optionally) the ranging parameters under
the top-level key ``parameters``.


List of functions
-----------------

* :func:`dump_ranges`: Write range set to file.
* :func:`load_ranges`: Read range set from file.
"""
#
#
#
#
__version__ = "0.1.0"
__all__ = [
    "dump_ranges",
    "load_ranges"
]
#
#
#
#
# import modules
import logging
import yaml
#
# import some special functions/modules
from aprange.ranging.ranges import Range
from os.path import expanduser
from pathlib import Path
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
# public functions
#
################################################################################
def dump_ranges(ranges, file, parameters = None):
    """
    Write range set to file.

    Parameters
    ----------
    ranges : iterable of Range
        The ranges to write.
    file : str
        The path of the YAML file. An existing file is replaced.
    parameters : dict
        Optional ranging parameters stored alongside the ranges.
    """
    #
    #
    content = {"ranges": [r.to_record() for r in ranges]}
    if parameters is not None:
        content["parameters"] = dict(parameters)
    #
    #
    file = Path(expanduser(file))
    with open(file, 'w') as f:
        yaml.safe_dump(
            content, f, default_flow_style = False, allow_unicode = True,
            sort_keys = False
        )
    logger.info(
        f"Wrote {len(content['ranges'])} ranges to range file \"{file}\"."
    )
#
#
#
#
def load_ranges(file):
    """
    Read range set from file.

    Parameters
    ----------
    file : str
        The path of the YAML file.

    Returns
    -------
    ranges : list of Range
        The ranges in file order.

    Raises
    ------
    FileNotFoundError
        If the file cannot be found.
    KeyError
        If the top-level key ``ranges`` or a mandatory key of a range record is
        missing.
    """
    #
    #
    file = Path(expanduser(file))
    if not file.is_file():
        raise FileNotFoundError(f"Could not find range file \"{file}\".")
    with open(file) as f:
        content = yaml.safe_load(f) or {}
    #
    #
    if "ranges" not in content:
        raise KeyError(f"Missing key \"ranges\" in range file \"{file}\".")
    ranges = [Range.from_record(record) for record in content["ranges"] or []]
    logger.info(f"Read {len(ranges)} ranges from range file \"{file}\".")
    #
    #
    return ranges
