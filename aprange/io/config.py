"""
The APRange configuration module
================================

This module provides functions to load and access user-specific configuration
settings for the APRange software package, and to assemble the flat set of
ranging parameters used by all analysis functions.

The configuration file is written in TOML format. Its location is managed
automatically using platform-specific directories, and a default configuration
file is created if none is found. The parameters read from the file are
validated, cached, and can be reloaded on demand.


Configuration file location
---------------------------

The configuration file is stored in a platform-specific user directory. For
example:

- Linux: ``~/.config/aprange/config.toml``
- Windows: ``%USERPROFILE%\\AppData\\Local\\aprange\\aprange\\config.toml``

These locations are determined automatically using the |platformdirs| package.


Default configuration structure
-------------------------------

.. code-block:: toml

    [ranging]
    ranging_width_factor    = 1.4
    min_width_factor        = 1.0
    left_range_criteria     = 5.0
    left_range_delta        = 1.0
    use_fixed_ranging_width = false

    [tail]
    considered_tail_range     = 3.0
    tail_estimate_uncertainty = 0.2
    tail_range_maximum        = 2.0

    [discovery]
    sensitivity         = 0.5
    min_bin_pairs       = 6
    min_peak_max_counts = 3

    [multihit]
    separation_criteria      = 8.0
    pseudo_multi_max_dp      = 5
    use_detector_separations = false
    separation_plots         = "selected"


Ranging parameters
------------------

All sections are flattened into one parameter dictionary (see
:func:`load_config` and :func:`get_parameters`):

- ``ranging_width_factor``: Width of Left/LeftTail ranges (and of all ranges in
  fixed-width mode) in units of the FW1%M of the dominant peak.
- ``min_width_factor``: Minimum width of Half/Quarter ranges and of the peak
  discovery window in units of the FW1%M (scaled with the square root of the
  position).
- ``left_range_criteria``: Minimum distance to the left neighbor (in Da) for the
  Left scheme.
- ``left_range_delta``: Distance (in Da) of the background window of the Left
  schemes.
- ``use_fixed_ranging_width``: Whether to skip the iterative expansion of
  Half/Quarter ranges.
- ``considered_tail_range``: Extent (in Da) of the region right of a LeftTail
  range used for the tail fit.
- ``tail_estimate_uncertainty``: Relative uncertainty of the estimated tail.
- ``tail_range_maximum``: Maximum extent (in Da) of an accepted tail.
- ``sensitivity``: Peak discovery sensitivity in ``[0.01, 1.0]``.
- ``min_bin_pairs``: Minimum half-width (in bins) of the discovery window.
- ``min_peak_max_counts``: Minimum intensity of the maximum bin of a discovered
  peak.
- ``separation_criteria``: Critical separation (in nm, or mm for detector
  coordinates) of correlated multi-hit pairs.
- ``pseudo_multi_max_dp``: Maximum pulse delta of pseudo-multis.
- ``use_detector_separations``: Whether to use detector instead of
  reconstructed coordinates.
- ``separation_plots``: Pairs included in the separation distance histograms
  (``"all"``, ``"selected"``, or ``"selected_and_others"``).
- ``key_range``: Name of the range used for the ToF and voltage statistics
  (formatted as ``"<position>-<name>"``, see
  :mod:`aprange.analysis.multihit`). Defaults to the first considered range.


List of functions
-----------------

* :func:`check_parameters`: Validate ranging parameters.
* :func:`get_parameters`: Assemble ranging parameters.
* :func:`load_config`: Load ranging parameters from the configuration file
  (or cache if already loaded).


.. |platformdirs| raw:: html

        <a href="https://platformdirs.readthedocs.io/en/latest/"
        target="_blank">platformdirs</a>
"""
#
#
#
#
__version__ = "0.1.0"
__all__ = [
    "DEFAULT_PARAMETERS",
    "SEPARATION_PLOT_MODES",
    "check_parameters",
    "get_parameters",
    "load_config"
]
#
#
#
#
# import modules
import logging
import tomllib
import warnings
#
# import special functions
from pathlib import Path
from platformdirs import user_config_dir
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
# internal configuration
#
################################################################################
# configuration file name and path
_APP_NAME = "aprange"
_CONFIG_FILENAME = "config.toml"
_CONFIG_DIR = Path(user_config_dir(_APP_NAME))
_CONFIG_PATH = _CONFIG_DIR / _CONFIG_FILENAME
#
#
# default configuration content
_DEFAULT_CONFIG_TEXT = """\
# ranging parameters (positions and distances in Da)
[ranging]
ranging_width_factor    = 1.4
min_width_factor        = 1.0
left_range_criteria     = 5.0
left_range_delta        = 1.0
use_fixed_ranging_width = false

[tail]
considered_tail_range     = 3.0
tail_estimate_uncertainty = 0.2
tail_range_maximum        = 2.0

[discovery]
sensitivity         = 0.5
min_bin_pairs       = 6
min_peak_max_counts = 3

# separations in nm (or mm for detector coordinates)
[multihit]
separation_criteria      = 8.0
pseudo_multi_max_dp      = 5
use_detector_separations = false
separation_plots         = "selected"
"""
#
#
#
#
################################################################################
#
# global configuration variables
#
################################################################################
# default ranging parameters
DEFAULT_PARAMETERS = {
    "ranging_width_factor":      1.4,
    "min_width_factor":          1.0,
    "left_range_criteria":       5.0,
    "left_range_delta":          1.0,
    "use_fixed_ranging_width":   False,
    "considered_tail_range":     3.0,
    "tail_estimate_uncertainty": 0.2,
    "tail_range_maximum":        2.0,
    "sensitivity":               0.5,
    "min_bin_pairs":             6,
    "min_peak_max_counts":       3,
    "separation_criteria":       8.0,
    "pseudo_multi_max_dp":       5,
    "use_detector_separations":  False,
    "separation_plots":          "selected",
    "key_range":                 None
}
#
# valid selections for the separation distance histograms
SEPARATION_PLOT_MODES = ("all", "selected", "selected_and_others")
#
#
#
#
################################################################################
#
# private module-level variables
#
################################################################################
# cached configuration dictionary
_config_cache = None
#
# configuration file sections containing ranging parameters
_PARAMETER_SECTIONS = ("ranging", "tail", "discovery", "multihit")
#
# largest supported pulse delta (size of pulse delta histogram minus one)
_MAX_DP = 999
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def check_parameters(params):
    """
    Validate ranging parameters.

    Invalid values are reset to their defaults with a warning.

    Parameters
    ----------
    params : dict
        The ranging parameters.

    Returns
    -------
    params : dict
        A validated copy of the parameters.

    Raises
    ------
    KeyError
        If an unknown parameter is encountered.
    """
    #
    #
    for key in params:
        if key not in DEFAULT_PARAMETERS:
            raise KeyError(f"Unknown ranging parameter \"{key}\".")
    params = dict(params)
    #
    #
    # sensitivity must be within [0.01, 1.0]
    if not 0.01 <= params["sensitivity"] <= 1.0:
        warnings.warn(
            f"Sensitivity ({params['sensitivity']}) must be within "
            f"[0.01, 1.0]. Resetting to "
            f"{DEFAULT_PARAMETERS['sensitivity']}."
        )
        params["sensitivity"] = DEFAULT_PARAMETERS["sensitivity"]
    #
    # strictly positive parameters
    for key in ("ranging_width_factor", "min_width_factor",
                "separation_criteria", "considered_tail_range",
                "tail_range_maximum"):
        if params[key] <= 0.0:
            warnings.warn(
                f"Parameter \"{key}\" ({params[key]}) must be positive. "
                f"Resetting to {DEFAULT_PARAMETERS[key]}."
            )
            params[key] = DEFAULT_PARAMETERS[key]
    #
    # non-negative parameters
    for key in ("left_range_criteria", "left_range_delta",
                "tail_estimate_uncertainty", "min_peak_max_counts"):
        if params[key] < 0.0:
            warnings.warn(
                f"Parameter \"{key}\" ({params[key]}) must not be negative. "
                f"Resetting to {DEFAULT_PARAMETERS[key]}."
            )
            params[key] = DEFAULT_PARAMETERS[key]
    #
    # integer parameters
    if int(params["min_bin_pairs"]) < 1:
        warnings.warn(
            f"Minimum number of bin pairs ({params['min_bin_pairs']}) must be "
            f"positive. Resetting to {DEFAULT_PARAMETERS['min_bin_pairs']}."
        )
        params["min_bin_pairs"] = DEFAULT_PARAMETERS["min_bin_pairs"]
    params["min_bin_pairs"] = int(params["min_bin_pairs"])
    if not 0 <= int(params["pseudo_multi_max_dp"]) <= _MAX_DP:
        warnings.warn(
            f"Maximum pseudo-multi pulse delta "
            f"({params['pseudo_multi_max_dp']}) must be within [0, {_MAX_DP}]. "
            f"Resetting to {DEFAULT_PARAMETERS['pseudo_multi_max_dp']}."
        )
        params["pseudo_multi_max_dp"] = \
            DEFAULT_PARAMETERS["pseudo_multi_max_dp"]
    params["pseudo_multi_max_dp"] = int(params["pseudo_multi_max_dp"])
    #
    # selection of separation plots
    if params["separation_plots"] not in SEPARATION_PLOT_MODES:
        warnings.warn(
            f"Invalid separation plot mode \"{params['separation_plots']}\". "
            f"Resetting to \"{DEFAULT_PARAMETERS['separation_plots']}\"."
        )
        params["separation_plots"] = DEFAULT_PARAMETERS["separation_plots"]
    #
    #
    return params
#
#
#
#
def get_parameters(config = None, **kwargs):
    """
    Assemble ranging parameters.

    The parameters are assembled from the defaults, the (optional) parameters
    of the configuration file, and explicit keyword arguments, in ascending
    order of precedence.

    Parameters
    ----------
    config : dict
        The ranging parameters from the configuration file, as returned by
        :func:`load_config`. Defaults to ``None``, i.e. no configuration file is
        used.

    Keyword Arguments
    -----------------
    \\*\\*kwargs
        Any of the
        :ref:`ranging parameters<aprange.io.config:Ranging parameters>`.

    Returns
    -------
    params : dict
        The validated ranging parameters.

    Raises
    ------
    KeyError
        If an unknown parameter is encountered.
    """
    #
    #
    params = dict(DEFAULT_PARAMETERS)
    if config is not None:
        params.update(config)
    params.update(kwargs)
    #
    #
    return check_parameters(params)
#
#
#
#
def load_config(force_reload = False):
    """
    Load ranging parameters from the configuration file (or cache if already
    loaded).

    A default configuration file is created if none is present. The parameter
    sections of the file are flattened and validated with
    :func:`check_parameters`; unknown settings are ignored with a warning.

    Parameters
    ----------
    force_reload : bool
        Whether to reload the configuration file from disk.

    Returns
    -------
    params : dict
        The validated ranging parameters, including defaults for all settings
        missing in the file.

    Raises
    ------
    tomllib.TOMLDecodeError
        If the configuration file is not valid TOML.
    """
    #
    #
    # use global configuration cache
    global _config_cache
    #
    #
    if _config_cache is None or force_reload:
        if not _CONFIG_PATH.exists():
            _write_default_config()
        logger.info(f"Loading ranging parameters from \"{_CONFIG_PATH}\".")
        with _CONFIG_PATH.open("rb") as f:
            sections = tomllib.load(f)
        _config_cache = check_parameters(
            dict(DEFAULT_PARAMETERS, **_flatten_sections(sections))
        )
    else:
        logger.debug("Using cached ranging parameters.")
    #
    #
    # return copy so that callers cannot alter the cache
    return dict(_config_cache)
#
#
#
#
################################################################################
#
# private module-level functions
#
################################################################################
def _flatten_sections(sections):
    """
    Simple function to collect the ranging parameters from all parameter
    sections of a configuration dictionary.
    """
    #
    #
    params = {}
    for section in _PARAMETER_SECTIONS:
        for key, value in sections.get(section, {}).items():
            if key not in DEFAULT_PARAMETERS:
                warnings.warn(
                    f"Ignoring unknown setting \"{section}.{key}\" in "
                    f"configuration file."
                )
                continue
            params[key] = value
    #
    #
    return params
#
#
#
#
def _write_default_config():
    """
    Simple function to write the default configuration file.
    """
    #
    #
    logger.info(f"Creating default configuration file at \"{_CONFIG_PATH}\".")
    _CONFIG_DIR.mkdir(parents = True, exist_ok = True)
    _CONFIG_PATH.write_text(_DEFAULT_CONFIG_TEXT, encoding = "utf-8")
