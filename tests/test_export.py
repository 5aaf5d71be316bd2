"""Tests for the export module."""

import csv

import numpy as np
import pytest

from aprange.analysis.composition import ionic_composition
from aprange.analysis.multihit import SeparationSeries
from aprange.io.export import (
    RANGE_SCHEMA,
    composition_table,
    export_tables,
    histogram_table,
    parameter_table,
    range_table,
    separation_table,
    tabulate,
    write_csv,
)
from aprange.ranging.histogram import CoarseHistogram
from aprange.ranging.ranges import Range, Scheme, SchemeAssignment
from aprange.workflow import analyze_multihits, update


@pytest.fixture
def ranges():
    """Two evaluated ranges."""
    return [
        Range(
            "Al", 26.9, 27.1, multi_use=True, position=27.0, counts=620.0,
            net=600.0, background=20.0, background_variance=20.0,
            scheme=SchemeAssignment.computed(Scheme.LEFT),
        ),
        Range(
            "Mg", 23.9, 24.1, color="#00ff00", position=24.0, counts=410.0,
            net=400.0, background=10.0, background_variance=10.0, tail=5.0,
            scheme=SchemeAssignment.override(Scheme.LEFT_TAIL),
        ),
    ]


def read_csv(file):
    with open(file, newline="", encoding="utf-8-sig") as f:
        return list(csv.reader(f))


class TestTables:
    def test_tabulate(self):
        header, rows = tabulate((("a", len), ("b", str.upper)), ["x", "yz"])
        assert header == ["a", "b"]
        assert rows == [[1, "X"], [2, "YZ"]]

    def test_range_table(self, ranges):
        header, rows = range_table(ranges)
        assert header == [label for label, _ in RANGE_SCHEMA]
        assert header[:3] == ["Multi", "Color", "Ion"]
        assert rows[0] == [
            True, "", "Al", "27.000", "26.900", "27.100", "600", "Left", "0"
        ]
        assert rows[1][1] == "#00ff00"
        assert rows[1][7] == "LeftTail"

    def test_composition_table(self, ranges):
        header, rows = composition_table(ionic_composition(ranges), "Ion")
        assert header[0] == "Ion"
        assert header[1:3] == ["Composition", "Sigma/DT(95%CL)"]
        assert [row[0] for row in rows] == ["Al", "Mg", "Totals:"]
        assert rows[-1][1] == "100.0"
        assert rows[-1][2] == "NA"
        assert rows[-1][5] == "1000"

    def test_histogram_table(self):
        hist = CoarseHistogram(1.0, 0.5, [3.0, 4.0])
        header, rows = histogram_table(hist)
        assert header == ["MassToChargeRatio(Da)", "Counts"]
        assert rows == [["1.000000", "3"], ["1.500000", "4"]]

    def test_parameter_table(self):
        header, rows = parameter_table({"sensitivity": 0.5})
        assert header == ["Parameter", "Value"]
        assert rows == [["sensitivity", 0.5]]

    def test_separation_table(self):
        series = [
            SeparationSeries("A dp=0 all", np.array([0.0, 0.2]),
                             np.array([3, 1])),
            SeparationSeries("B dp=0 all", np.array([0.0]), np.array([2])),
        ]
        header, rows = separation_table(series)
        assert header == [
            "Separation Distance (nm or mm)", "A dp=0 all",
            "Separation Distance (nm or mm)", "B dp=0 all",
        ]
        assert rows == [["0.0", 3, "0.0", 2], ["0.2", 1, "", ""]]

    def test_empty_separation_table(self):
        assert separation_table([]) == ([], [])


class TestWriteCsv:
    def test_write(self, tmp_path):
        file = tmp_path / "table.csv"
        write_csv(file, ["Ion", "Counts"], [["Al", "600"], ["Mg, Si", "400"]])
        assert read_csv(file) == [
            ["Ion", "Counts"], ["Al", "600"], ["Mg, Si", "400"]
        ]

    def test_byte_order_mark(self, tmp_path):
        file = tmp_path / "table.csv"
        write_csv(file, ["Ion"], [])
        assert file.read_bytes().startswith(b"\xef\xbb\xbf")


class TestExportTables:
    def test_pass_tables(self, single_peak_spectrum, seed_range, tmp_path):
        result = update(single_peak_spectrum, [seed_range])
        files = export_tables(
            str(tmp_path / "out"), result, parameters={"sensitivity": 0.5}
        )
        names = sorted(f.name for f in files)
        assert names == [
            "DecomposedComposition.csv", "IonicComposition.csv",
            "MassHistogram.csv", "Parameters.csv", "RangesTable.csv",
        ]
        rows = read_csv(tmp_path / "out" / "RangesTable.csv")
        assert rows[1][2] == "Al"
        assert len(read_csv(tmp_path / "out" / "MassHistogram.csv")) == 4001

    def test_multihit_tables(self, single_peak_spectrum, seed_range,
                             event_factory, tmp_path):
        result = update(single_peak_spectrum, [seed_range])
        events = event_factory([(1, 20.0, (0, 0, 0)), (1, 20.0, (1, 0, 0))])
        model = analyze_multihits(result, events).model
        files = export_tables(str(tmp_path), result, model)
        names = {f.name for f in files}
        assert "MultihitInformation.csv" in names
        assert "SeparationPlots.csv" in names
        rows = read_csv(tmp_path / "SeparationPlots.csv")
        assert rows[0][1] == "20.0-Al dp=0 all"
