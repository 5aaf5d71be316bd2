#!/usr/bin/env python3
# -*- coding: utf-8 -*-
#
#
desc = """
Automatically range an atom probe mass spectrum.

This script coarsens a raw mass spectrum, evaluates a given set of ranges
(optionally including the discovery of new peaks), estimates thermal tails, and
calculates the ionic and elemental compositions. If ion event data is provided,
the multi-hit correlations are analyzed as well.

The raw mass spectrum is read from a text or NumPy binary file with two columns
(mass-to-charge ratio and counts). The ranges are read from a YAML range file.
Event data is read from a NumPy binary file (structured array) or an ePOS file.

This script serves as a command line wrapper for the APRange Python package.
"""
#
#
#
#
# import modules
import aprange.io.events as events
import aprange.io.export as export
import aprange.io.rangefile as rangefile
import aprange.workflow as workflow
import argparse
import logging
import matplotlib.pyplot as plt
import numpy as np
import yaml
#
# import individual functions/modules
from aprange.io.config import DEFAULT_PARAMETERS, get_parameters, load_config
from os.path import splitext
from timeit import default_timer as timer
#
#
#
#
# set up logger
logger = logging.getLogger(__name__)
logging.basicConfig(level = logging.INFO)
#
#
#
#
# program's arguments
parser = argparse.ArgumentParser(
    description = desc, add_help = False,
    formatter_class = argparse.RawTextHelpFormatter
)
parser.add_argument(
    "spectrum", type = str,
    help = """\
The raw mass spectrum file (.txt or .npy) with two
columns: mass-to-charge ratio and counts.
"""
)
parser.add_argument(
    "ranges", type = str,
    help = """\
The YAML range file with the starting range set.
"""
)
parser.add_argument(
    "-d", "--debug", action = 'store_true',
    help = """\
Whether to print debug messages.
"""
)
parser.add_argument(
    "-e", "--events", metavar = "<file>", type = str, default = None,
    help = """\
The ion event file (.npy or .epos) for the multi-hit
analysis. Defaults to no multi-hit analysis.
"""
)
parser.add_argument(
    "-h", "--help", action = 'help',
    default = argparse.SUPPRESS,
    help = """\
Show this help message and exit.
"""
)
parser.add_argument(
    "-o", "--output", metavar = "<file>", type = str, default = None,
    help = """\
The YAML file for the new range set. Defaults to no
output.
"""
)
parser.add_argument(
    "-p", "--param", metavar = "<key=value>", nargs = '+', type = str,
    default = [],
    help = """\
Ranging parameters overriding the configuration file,
e.g. 'sensitivity=0.3'. Use '--' to indicate subsequent
positional arguments.\
"""
)
parser.add_argument(
    "-r", "--rerange", action = 'store_true',
    help = """\
Whether to discover new peaks (re-ranging) instead of
only updating the given ranges.
"""
)
parser.add_argument(
    "-x", "--export", metavar = "<dir>", type = str, default = None,
    help = """\
The directory to export all result tables to (CSV).
Defaults to no export.
"""
)
parser.add_argument(
    "--no-config", action = 'store_true',
    help = """\
Whether to ignore the user configuration file and use
the default ranging parameters.
"""
)
parser.add_argument(
    "--plot", action = 'store_true',
    help = """\
Whether to plot the coarse spectrum with all ranges.
"""
)
#
#
#
#
def load_events(file):
    """
    Load ion event data from file.
    """
    #
    #
    if splitext(file)[1].lower() == ".epos":
        return events.read_epos(file)
    logger.info(f"Loading events from NumPy file \"{file}\".")
    return np.load(file)
#
#
#
#
def load_spectrum(file):
    """
    Load raw mass spectrum from file.

    Returns the raw histogram as ``(start, bin_width, values)``.
    """
    #
    #
    if splitext(file)[1].lower() == ".npy":
        data = np.load(file)
    else:
        data = np.loadtxt(file)
    if data.ndim != 2 or data.shape[1] < 2 or len(data) < 2:
        raise ValueError(
            f"Mass spectrum file \"{file}\" must contain at least two rows "
            f"with two columns."
        )
    logger.info(f"Loaded mass spectrum with {len(data)} bins from \"{file}\".")
    #
    #
    return data[0, 0], data[1, 0] - data[0, 0], data[:, 1]
#
#
#
#
def log_composition(table, title):
    """
    Log composition table.
    """
    #
    #
    header, rows = export.composition_table(table, title)
    logger.info(
        f"{title} composition:\n" +
        "\n".join(
            "".join(f"{str(c):>16}" for c in row) for row in [header] + rows
        )
    )
#
#
#
#
def parse_parameters(items):
    """
    Parse command line parameter overrides.
    """
    #
    #
    params = {}
    for item in items:
        key, sep, value = item.partition("=")
        if sep == "" or key not in DEFAULT_PARAMETERS:
            parser.error(f"Invalid ranging parameter \"{item}\".")
        params[key] = yaml.safe_load(value)
    #
    #
    return params
#
#
#
#
def plot_ranges(result):
    """
    Plot coarse mass spectrum with all ranges and background levels.
    """
    #
    #
    hist = result.histogram
    fig, ax = plt.subplots(figsize = (12, 6))
    ax.set_xlabel("mass-to-charge ratio (Da)")
    ax.set_ylabel("Counts")
    ax.step(
        hist.positions, hist.values, where = 'post', label = "spectrum",
        linewidth = 1
    )
    #
    #
    # ranges and background levels
    for r in result.ranges:
        ax.axvspan(
            r.min, r.max, alpha = 0.3,
            color = r.color if r.color is not None else 'tab:orange'
        )
        for x0, x1, y in r.background_line(hist.bin_width):
            ax.plot([x0, x1], [y, y], color = 'black', linewidth = 1)
        first = max(hist.get_index(r.min), 0)
        ax.text(
            r.position if r.position is not None else r.min,
            hist.values[first:hist.get_index(r.max)].max(initial = 1.0),
            "  " + r.name, horizontalalignment = 'center',
            verticalalignment = 'bottom', rotation = 'vertical'
        )
    #
    #
    # discovered peaks
    if result.peaks:
        x, y = zip(*result.peaks)
        ax.plot(x, y, 'v', label = "discovered peaks")
    #
    #
    ax.set_yscale('log')
    ax.set_ylim(bottom = 0.5)
    ax.legend()
    fig.tight_layout()
    plt.show()
#
#
#
#
def main():
    """
    Run the mass ranging command line interface.
    """
    #
    #
    args = parser.parse_args()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    #
    #
    # assemble ranging parameters
    params = get_parameters(
        None if args.no_config else load_config(),
        **parse_parameters(args.param)
    )
    #
    #
    #
    #
    ############################################################################
    ###                                                                      ###
    ###     RANGING                                                          ###
    ###                                                                      ###
    ############################################################################
    start = timer()
    histogram = load_spectrum(args.spectrum)
    ranges = rangefile.load_ranges(args.ranges)
    if args.rerange:
        result = workflow.rerange(histogram, ranges, **params)
    else:
        result = workflow.update(histogram, ranges, **params)
    if not result.ok:
        logger.error(f"Ranging failed ({result.status.value}): "
                     f"{result.message}")
        return 1
    #
    #
    hist = result.histogram
    logger.info(
        f"Coarsen factor {hist.coarsen_factor} (bin width "
        f"{hist.bin_width:.4f} Da); maximum peak \"{result.max_peak_name}\" "
        f"at {hist.max_peak_position:.3f} Da."
    )
    header, rows = export.range_table(result.ranges)
    logger.info(
        "Ranges:\n" +
        "\n".join(
            "".join(f"{str(c):>12}" for c in row) for row in [header] + rows
        )
    )
    for note in result.notes:
        logger.info(str(note))
    log_composition(result.ionic, "Ion")
    log_composition(result.decomposed, "Element")
    #
    #
    #
    #
    ############################################################################
    ###                                                                      ###
    ###     MULTI-HIT ANALYSIS                                               ###
    ###                                                                      ###
    ############################################################################
    model = None
    if args.events is not None:
        mh_result = workflow.analyze_multihits(
            result, load_events(args.events), **params
        )
        if not mh_result.ok:
            logger.error(f"Multi-hit analysis failed "
                         f"({mh_result.status.value}): {mh_result.message}")
            return 1
        model = mh_result.model
        logger.info("Multi-hit summary:\n" + model.summary())
    #
    #
    #
    #
    ############################################################################
    ###                                                                      ###
    ###     OUTPUT                                                           ###
    ###                                                                      ###
    ############################################################################
    if args.output is not None:
        rangefile.dump_ranges(result.ranges, args.output, parameters = params)
    if args.export is not None:
        export.export_tables(args.export, result, model, parameters = params)
    logger.info(f"Finished in {timer() - start:.3f} seconds.")
    #
    #
    if args.plot:
        plot_ranges(result)
    return 0
#
#
#
#
if __name__ == "__main__":
    raise SystemExit(main())
