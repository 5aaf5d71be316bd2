"""
The APRange export module
=========================

This module converts the results of a ranging pass into plain tables. Every
table is defined by an explicit *schema*, i.e. an ordered sequence of
``(label, accessor)`` pairs, so that the external column layout is independent
of the internal attribute names.


Tables
------

================================ ==============================================
Table                            Columns
================================ ==============================================
``Parameters``                   Parameter, Value
``RangesTable``                  Multi, Color, Ion, Peak(Da), Min(Da),
                                 Max(Da), Counts, Scheme, TailCounts
``MassHistogram``                MassToChargeRatio(Da), Counts
``IonicComposition``             Ion, Composition, Sigma/DT(95%CL), Counts,
                                 Background, Net, Tail
``DecomposedComposition``        Element, Composition, Sigma/DT(95%CL),
                                 Counts, Background, Net, Tail
``MultihitInformation``          One line of the multi-hit summary per row
``SeparationPlots``              Pairs of separation distance and counts
================================ ==============================================

Compositions and uncertainties are given in percent. The composition tables end
with a totals row, which has no uncertainty (``NA``).


List of functions
-----------------

* :func:`composition_table`: Tabulate a composition table.
* :func:`export_tables`: Write all tables of a pass as CSV files.
* :func:`histogram_table`: Tabulate the coarse histogram.
* :func:`multihit_table`: Tabulate the multi-hit summary.
* :func:`parameter_table`: Tabulate the ranging parameters.
* :func:`range_table`: Tabulate ranges.
* :func:`separation_table`: Tabulate separation distance histograms.
* :func:`tabulate`: Apply a schema to a sequence of items.
* :func:`write_csv`: Write one table as CSV file.
"""
#
#
#
#
__version__ = "0.1.0"
__all__ = [
    "COMPOSITION_SCHEMA",
    "RANGE_SCHEMA",
    "composition_table",
    "export_tables",
    "histogram_table",
    "multihit_table",
    "parameter_table",
    "range_table",
    "separation_table",
    "tabulate",
    "write_csv"
]
#
#
#
#
# import modules
import csv
import logging
#
# import some special functions/modules
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
# range table schema
RANGE_SCHEMA = (
    ("Multi",      lambda r: r.multi_use),
    ("Color",      lambda r: r.color if r.color is not None else ""),
    ("Ion",        lambda r: r.name),
    ("Peak(Da)",   lambda r: "" if r.position is None else f"{r.position:.3f}"),
    ("Min(Da)",    lambda r: f"{r.min:.3f}"),
    ("Max(Da)",    lambda r: f"{r.max:.3f}"),
    ("Counts",     lambda r: f"{r.net:.0f}"),
    ("Scheme",     lambda r: str(r.scheme)),
    ("TailCounts", lambda r: f"{r.tail:.0f}")
)
#
# composition table schema (without key column)
COMPOSITION_SCHEMA = (
    ("Composition",     lambda e: e.composition_string),
    ("Sigma/DT(95%CL)", lambda e: e.sigma_string),
    ("Counts",          lambda e: f"{e.counts:.0f}"),
    ("Background",      lambda e: f"{e.background:.0f}"),
    ("Net",             lambda e: f"{e.net:.0f}"),
    ("Tail",            lambda e: f"{e.tail:.0f}")
)
#
#
#
#
################################################################################
#
# private module-level variables
#
################################################################################
# file names of all tables
_FILE_NAMES = {
    "parameters":  "Parameters.csv",
    "ranges":      "RangesTable.csv",
    "histogram":   "MassHistogram.csv",
    "ionic":       "IonicComposition.csv",
    "decomposed":  "DecomposedComposition.csv",
    "multihit":    "MultihitInformation.csv",
    "separations": "SeparationPlots.csv"
}
#
#
#
#
################################################################################
#
# public functions
#
################################################################################
def composition_table(table, key_label = "Ion"):
    """
    Tabulate a composition table.

    Parameters
    ----------
    table : CompositionTable
        The composition table.
    key_label : str
        The label of the key column, e.g. ``"Ion"`` or ``"Element"``.

    Returns
    -------
    header : list of str
        The column labels.
    rows : list of list
        The rows including the totals row.
    """
    #
    #
    schema = ((key_label, lambda e: e.name),) + COMPOSITION_SCHEMA
    header, rows = tabulate(schema, table)
    #
    # totals have no uncertainty
    totals = table.totals
    rows.append([
        totals.name, f"{100.0 * totals.composition:.1f}", "NA",
        f"{totals.counts:.0f}", f"{totals.background:.0f}",
        f"{totals.net:.0f}", f"{totals.tail:.0f}"
    ])
    #
    #
    return header, rows
#
#
#
#
def export_tables(directory, result, model = None, parameters = None):
    """
    Write all tables of a pass as CSV files.

    Parameters
    ----------
    directory : str
        The output directory (created if necessary).
    result : PassResult
        The result of a successful ranging pass.
    model : MultiHitModel
        Optional multi-hit model.
    parameters : dict
        Optional ranging parameters.

    Returns
    -------
    files : list of pathlib.Path
        The written files.
    """
    #
    #
    directory = Path(expanduser(directory))
    directory.mkdir(parents = True, exist_ok = True)
    #
    #
    tables = {
        "ranges":     range_table(result.ranges),
        "histogram":  histogram_table(result.histogram),
        "ionic":      composition_table(result.ionic, "Ion"),
        "decomposed": composition_table(result.decomposed, "Element")
    }
    if parameters is not None:
        tables["parameters"] = parameter_table(parameters)
    if model is not None:
        tables["multihit"]    = multihit_table(model)
        tables["separations"] = separation_table(model.separation_series())
    #
    #
    files = []
    for key, (header, rows) in tables.items():
        file = directory / _FILE_NAMES[key]
        write_csv(file, header, rows)
        files.append(file)
    logger.info(f"Exported {len(files)} tables to \"{directory}\".")
    #
    #
    return files
#
#
#
#
def histogram_table(hist):
    """
    Tabulate the coarse histogram.

    Parameters
    ----------
    hist : CoarseHistogram
        The coarse histogram.

    Returns
    -------
    header : list of str
        The column labels.
    rows : list of list
        One row per coarse bin.
    """
    #
    #
    return (
        ["MassToChargeRatio(Da)", "Counts"],
        [[f"{x:.6f}", f"{y:.0f}"] for x, y in zip(hist.positions, hist.values)]
    )
#
#
#
#
def multihit_table(model):
    """Tabulate the multi-hit summary (one line per row)."""
    return ["MultihitInformation"], [[l] for l in model.summary().splitlines()]
#
#
#
#
def parameter_table(parameters):
    """Tabulate the ranging parameters."""
    return ["Parameter", "Value"], [[k, v] for k, v in parameters.items()]
#
#
#
#
def range_table(ranges):
    """Tabulate ranges (see :data:`RANGE_SCHEMA`)."""
    return tabulate(RANGE_SCHEMA, ranges)
#
#
#
#
def separation_table(series):
    """
    Tabulate separation distance histograms.

    Every histogram occupies two columns, the separation distance and the
    counts labeled with the legend of the histogram.

    Parameters
    ----------
    series : list of SeparationSeries
        The separation distance histograms.

    Returns
    -------
    header : list of str
        The column labels.
    rows : list of list
        The rows. Histograms of different length are padded with empty cells.
    """
    #
    #
    header = []
    for s in series:
        header += ["Separation Distance (nm or mm)", s.legend]
    n_rows = max((len(s.counts) for s in series), default = 0)
    #
    #
    rows = []
    for i in range(n_rows):
        row = []
        for s in series:
            if i < len(s.counts):
                row += [f"{s.distances[i]:.1f}", int(s.counts[i])]
            else:
                row += ["", ""]
        rows.append(row)
    #
    #
    return header, rows
#
#
#
#
def tabulate(schema, items):
    """
    Apply a schema to a sequence of items.

    Parameters
    ----------
    schema : sequence of tuple
        The ``(label, accessor)`` pairs.
    items : iterable
        The items, one per row.

    Returns
    -------
    header : list of str
        The column labels.
    rows : list of list
        The values of all accessors for every item.
    """
    #
    #
    header = [label for label, _ in schema]
    rows = [[accessor(item) for _, accessor in schema] for item in items]
    return header, rows
#
#
#
#
def write_csv(file, header, rows):
    """
    Write one table as CSV file.

    The file is encoded as UTF-8 with byte order mark for spreadsheet
    compatibility.

    Parameters
    ----------
    file : str
        The path of the CSV file.
    header : list of str
        The column labels.
    rows : list of list
        The rows.
    """
    #
    #
    with open(file, "w", newline = "", encoding = "utf-8-sig") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    logger.debug(f"Wrote {len(rows)} rows to \"{file}\".")
