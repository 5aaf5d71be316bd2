"""
The APRange event stream module
===============================

This module documents and checks the read contract for ion event streams
consumed by the multi-hit analysis (see :mod:`aprange.analysis.multihit`).

An event stream is an iterable of *chunks*. Every chunk exposes parallel
per-ion arrays, either as a NumPy structured array or as a mapping of field
names to arrays. Records must be ordered by detection, since the order defines
the adjacency of pulses.


Required fields
---------------

=============== ================ ==============================================
Field           Type             Description
=============== ================ ==============================================
``pulse``       ``uint32``       Absolute pulse number.
``pulse_delta`` ``int16``        Correction added to the pulse number.
``mass``        ``float32``      Mass-to-charge ratio (Da).
``voltage``     ``float32``      Voltage (V).
``tof``         ``float32``      Time of flight (ns).
``position``    ``float32``, 3   Reconstructed position (nm).
``detector``    ``float32``, 2   Detector coordinates (mm).
=============== ================ ==============================================


ePOS files
----------

Event arrays can be created from the common ePOS file format with
:func:`from_epos`. The absolute pulse number is the cumulative sum of the ePOS
pulse increments.


List of functions
-----------------

* :func:`check_fields`: Check a chunk for all required fields.
* :func:`from_epos`: Convert ePOS records to an event array.
* :func:`iter_chunks`: Split an event array into chunks.
* :func:`read_epos`: Read an ePOS file into an event array.
"""
#
#
#
#
__version__ = "0.1.0"
__all__ = [
    "EVENT_DTYPE",
    "REQUIRED_FIELDS",
    "check_fields",
    "from_epos",
    "iter_chunks",
    "read_epos"
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
from aprange.errors import MissingFieldsError
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
# global configuration variables
#
################################################################################
# required fields of every chunk
REQUIRED_FIELDS = (
    "pulse", "pulse_delta", "mass", "voltage", "tof", "position", "detector"
)
#
# event array format
EVENT_DTYPE = np.dtype([
    ("pulse", "<u4"), ("pulse_delta", "<i2"),
    ("mass", "<f4"), ("voltage", "<f4"), ("tof", "<f4"),
    ("position", "<f4", (3,)), ("detector", "<f4", (2,))
])
#
#
#
#
################################################################################
#
# private module-level variables
#
################################################################################
# ePOS file format
_EPOS_FILE_DTYPE = np.dtype([
    ('x', '>f4'), ('y', '>f4'), ('z', '>f4'),
    ('mq', '>f4'), ('tof', '>f4'),
    ('U_base', '>f4'), ('U_pulse', '>f4'),
    ('x_det', '>f4'), ('y_det', '>f4'),
    ('delta_pulse', '>u4'), ('events', '>u4')
])
#
# default number of events per chunk
_CHUNK_SIZE = 1_000_000
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def check_fields(chunk):
    """
    Check a chunk for all required fields.

    Parameters
    ----------
    chunk : numpy.ndarray or dict
        The chunk to check.

    Raises
    ------
    MissingFieldsError
        If any required field is missing.
    """
    #
    #
    if isinstance(chunk, np.ndarray):
        available = chunk.dtype.names or ()
    else:
        available = chunk.keys()
    missing = [f for f in REQUIRED_FIELDS if f not in available]
    if missing:
        raise MissingFieldsError(missing)
#
#
#
#
def from_epos(data):
    """
    Convert ePOS records to an event array.

    Parameters
    ----------
    data : numpy.ndarray
        The structured ePOS records.

    Returns
    -------
    events : numpy.ndarray
        The event array with dtype :data:`EVENT_DTYPE`.
    """
    #
    #
    events = np.empty(len(data), dtype = EVENT_DTYPE)
    events["pulse"]       = np.cumsum(data["delta_pulse"], dtype = np.uint64)
    events["pulse_delta"] = 0
    events["mass"]        = data["mq"]
    events["voltage"]     = data["U_base"] + data["U_pulse"]
    events["tof"]         = data["tof"]
    events["position"]    = np.column_stack((data["x"], data["y"], data["z"]))
    events["detector"]    = np.column_stack((data["x_det"], data["y_det"]))
    #
    #
    return events
#
#
#
#
def iter_chunks(data, chunk_size = _CHUNK_SIZE):
    """
    Split an event array into chunks.

    Parameters
    ----------
    data : numpy.ndarray or iterable
        The event array. Any other iterable is assumed to yield chunks already
        and is passed through.
    chunk_size : int
        The maximum number of events per chunk.

    Yields
    ------
    chunk : numpy.ndarray or dict
        The next chunk.

    Raises
    ------
    ValueError
        If the chunk size is not positive.
    """
    #
    #
    if chunk_size < 1:
        raise ValueError(f"Chunk size ({chunk_size}) must be positive.")
    #
    #
    if not isinstance(data, np.ndarray):
        yield from data
        return
    #
    #
    for i in range(0, len(data), chunk_size):
        yield data[i:i + chunk_size]
#
#
#
#
def read_epos(file):
    """
    Read an ePOS file into an event array.

    Parameters
    ----------
    file : str
        The path of the ePOS file.

    Returns
    -------
    events : numpy.ndarray
        The event array with dtype :data:`EVENT_DTYPE`.

    Raises
    ------
    FileNotFoundError
        If the file cannot be found.
    """
    #
    #
    file = Path(expanduser(file))
    if not file.is_file():
        raise FileNotFoundError(f"Could not find ePOS file \"{file}\".")
    #
    #
    logger.info(f"Loading events from ePOS file \"{file}\".")
    events = from_epos(np.fromfile(file, dtype = _EPOS_FILE_DTYPE))
    logger.info(f"File contains {len(events)} events.")
    #
    #
    return events
