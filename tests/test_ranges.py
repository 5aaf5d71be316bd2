"""Tests for the ranges module."""

import pytest

from aprange.ranging.ranges import (
    Range,
    Scheme,
    SchemeAssignment,
    SchemeSource,
    parse_formula,
)


class TestParseFormula:
    def test_single_element(self):
        assert parse_formula("Fe") == {"Fe": 1}

    def test_molecule(self):
        assert parse_formula("H2O") == {"H": 2, "O": 1}
        assert parse_formula("AlO") == {"Al": 1, "O": 1}

    def test_charge_symbols_ignored(self):
        assert parse_formula("Al2O3+") == {"Al": 2, "O": 3}
        assert parse_formula("Fe++") == {"Fe": 1}

    def test_repeated_element(self):
        assert parse_formula("CH3CH2") == {"C": 2, "H": 5}

    def test_parenthesized_group(self):
        assert parse_formula("Ca(OH)2") == {"Ca": 1, "O": 2, "H": 2}

    def test_unknown_symbol(self):
        assert parse_formula("Xx") == {}
        assert parse_formula("AlXx2") == {}

    def test_invalid_name(self):
        assert parse_formula("Discovered") == {}
        assert parse_formula("unknown") == {}
        assert parse_formula("") == {}


class TestSchemeAssignment:
    def test_unset(self):
        a = SchemeAssignment.unset()
        assert not a.is_set
        assert a.value is None
        assert str(a) == "-"

    def test_computed_is_replaced(self):
        a = SchemeAssignment.computed(Scheme.HALF)
        b = a.resolve(Scheme.LEFT)
        assert b.value is Scheme.LEFT
        assert b.source is SchemeSource.COMPUTED

    def test_override_is_kept(self):
        a = SchemeAssignment.override("LeftTail")
        assert a.is_override
        assert a.resolve(Scheme.QUARTER) is a
        assert str(a) == "LeftTail"

    def test_revert_keeps_source(self):
        a = SchemeAssignment.override(Scheme.LEFT_TAIL).revert(Scheme.LEFT)
        assert a.value is Scheme.LEFT
        assert a.is_override

    def test_invalid_scheme(self):
        with pytest.raises(ValueError):
            SchemeAssignment.override("Right")


class TestRange:
    def test_invalid_edges(self):
        with pytest.raises(ValueError):
            Range("Al", 27.0, 27.0)
        with pytest.raises(ValueError):
            Range("Al", 27.5, 27.0)

    def test_elements(self):
        assert Range("AlO", 42.8, 43.2).elements == {"Al": 1, "O": 1}
        explicit = Range("X", 10.0, 11.0, formula={"Si": 1, "O": 2})
        assert explicit.elements == {"Si": 1, "O": 2}

    def test_discovered(self):
        assert Range("Discovered", 10.0, 10.1).is_discovered
        assert not Range("Al", 10.0, 10.1).is_discovered

    def test_contains_is_half_open(self):
        r = Range("Al", 26.0, 28.0)
        assert r.contains(26.0)
        assert r.contains(27.9)
        assert not r.contains(28.0)

    def test_overlaps(self):
        r = Range("Al", 26.0, 28.0)
        assert r.overlaps(Range("Mg", 27.0, 29.0))
        assert not r.overlaps(Range("Mg", 28.0, 29.0))

    def test_copy_is_independent(self):
        r = Range("AlO", 42.8, 43.2, formula={"Al": 1, "O": 1})
        c = r.copy()
        c.formula["O"] = 2
        assert r.formula == {"Al": 1, "O": 1}

    def test_background_line_single_level(self):
        r = Range("Al", 26.0, 27.0, background=20.0, left_background=20.0)
        assert r.background_line(0.1) == [(26.0, 27.0, pytest.approx(2.0))]

    def test_background_line_two_flanks(self):
        r = Range(
            "Al", 26.0, 27.0, position=26.5, background=30.0,
            left_background=10.0, right_background=20.0,
        )
        lines = r.background_line(0.1)
        assert len(lines) == 2
        assert lines[0][:2] == (26.0, 26.5)
        assert lines[0][2] == pytest.approx(2.0)
        assert lines[1][2] == pytest.approx(4.0)

    def test_background_line_without_background(self):
        assert Range("Al", 26.0, 27.0).background_line(0.1) == []


class TestRangeRecords:
    def test_round_trip(self):
        r = Range(
            "AlO", 42.8, 43.2, formula={"Al": 1, "O": 1}, color="#ff0000",
            multi_use=True, scheme=SchemeAssignment.override(Scheme.LEFT_TAIL),
            position=43.0,
        )
        s = Range.from_record(r.to_record())
        assert s.name == "AlO"
        assert s.min == pytest.approx(42.8)
        assert s.max == pytest.approx(43.2)
        assert s.formula == {"Al": 1, "O": 1}
        assert s.color == "#ff0000"
        assert s.multi_use
        assert s.scheme == SchemeAssignment.override(Scheme.LEFT_TAIL)
        assert s.position == pytest.approx(43.0)

    def test_minimal_record(self):
        r = Range.from_record({"name": "Fe", "min": 55.5, "max": 56.5})
        assert r.formula == {}
        assert not r.multi_use
        assert not r.scheme.is_set

    def test_scheme_without_source_is_override(self):
        r = Range.from_record(
            {"name": "Fe", "min": 55.5, "max": 56.5, "scheme": "Quarter"}
        )
        assert r.scheme == SchemeAssignment.override(Scheme.QUARTER)

    def test_computed_scheme(self):
        r = Range.from_record({
            "name": "Fe", "min": 55.5, "max": 56.5, "scheme": "Half",
            "scheme_source": "computed",
        })
        assert r.scheme.source is SchemeSource.COMPUTED

    def test_missing_key(self):
        with pytest.raises(KeyError):
            Range.from_record({"name": "Fe", "min": 55.5})
