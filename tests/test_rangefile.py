"""Tests for the rangefile module."""

import pytest
import yaml

from aprange.io.rangefile import dump_ranges, load_ranges
from aprange.ranging.ranges import Range, Scheme, SchemeAssignment


@pytest.fixture
def ranges():
    """Two ranges, one of them with a scheme override."""
    return [
        Range("Al", 26.85, 27.25, multi_use=True, position=27.0, net=950.0),
        Range(
            "AlO", 42.8, 43.2, formula={"Al": 1, "O": 1},
            scheme=SchemeAssignment.override(Scheme.LEFT_TAIL),
        ),
    ]


class TestRangeFile:
    def test_round_trip(self, ranges, tmp_path):
        file = tmp_path / "ranges.yaml"
        dump_ranges(ranges, str(file))
        loaded = load_ranges(str(file))
        assert [r.name for r in loaded] == ["Al", "AlO"]
        assert loaded[0].multi_use
        assert loaded[0].min == pytest.approx(26.85)
        assert loaded[1].formula == {"Al": 1, "O": 1}
        assert loaded[1].scheme == SchemeAssignment.override(Scheme.LEFT_TAIL)

    def test_parameters_stored(self, ranges, tmp_path):
        file = tmp_path / "ranges.yaml"
        dump_ranges(ranges, str(file), parameters={"sensitivity": 0.3})
        content = yaml.safe_load(file.read_text())
        assert content["parameters"] == {"sensitivity": 0.3}
        assert content["ranges"][0]["net"] == pytest.approx(950.0)

    def test_file_replaced(self, ranges, tmp_path):
        file = tmp_path / "ranges.yaml"
        dump_ranges(ranges, str(file))
        dump_ranges(ranges[:1], str(file))
        assert len(load_ranges(str(file))) == 1

    def test_minimal_file(self, tmp_path):
        file = tmp_path / "ranges.yaml"
        file.write_text("ranges:\n- {name: Fe, min: 55.5, max: 56.5}\n")
        loaded = load_ranges(str(file))
        assert loaded[0].name == "Fe"
        assert not loaded[0].scheme.is_set

    def test_empty_range_list(self, tmp_path):
        file = tmp_path / "ranges.yaml"
        file.write_text("ranges:\n")
        assert load_ranges(str(file)) == []

    def test_missing_ranges_key(self, tmp_path):
        file = tmp_path / "ranges.yaml"
        file.write_text("parameters: {}\n")
        with pytest.raises(KeyError):
            load_ranges(str(file))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_ranges(str(tmp_path / "missing.yaml"))
