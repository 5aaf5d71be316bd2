"""Tests for the events module."""

import numpy as np
import pytest

from aprange.errors import MissingFieldsError
from aprange.io.events import (
    EVENT_DTYPE,
    REQUIRED_FIELDS,
    check_fields,
    from_epos,
    iter_chunks,
    read_epos,
)

EPOS_DTYPE = np.dtype([
    ("x", ">f4"), ("y", ">f4"), ("z", ">f4"),
    ("mq", ">f4"), ("tof", ">f4"),
    ("U_base", ">f4"), ("U_pulse", ">f4"),
    ("x_det", ">f4"), ("y_det", ">f4"),
    ("delta_pulse", ">u4"), ("events", ">u4"),
])


@pytest.fixture
def epos_records():
    """Three ePOS records, the last two from the same pulse."""
    data = np.zeros(3, dtype=EPOS_DTYPE)
    data["x"] = [1.0, 2.0, 3.0]
    data["mq"] = [27.0, 16.0, 43.0]
    data["tof"] = [500.0, 400.0, 600.0]
    data["U_base"] = 4000.0
    data["U_pulse"] = 800.0
    data["x_det"] = [-5.0, 0.0, 5.0]
    data["delta_pulse"] = [10, 2, 0]
    data["events"] = [1, 2, 0]
    return data


class TestCheckFields:
    def test_complete_array(self):
        check_fields(np.zeros(2, dtype=EVENT_DTYPE))

    def test_complete_mapping(self):
        check_fields({f: [] for f in REQUIRED_FIELDS})

    def test_missing_fields(self):
        chunk = {f: [] for f in REQUIRED_FIELDS if f not in ("tof", "voltage")}
        with pytest.raises(MissingFieldsError) as excinfo:
            check_fields(chunk)
        assert set(excinfo.value.missing) == {"tof", "voltage"}
        assert "tof" in str(excinfo.value)

    def test_unstructured_array(self):
        with pytest.raises(MissingFieldsError):
            check_fields(np.zeros(3))


class TestIterChunks:
    def test_split(self):
        chunks = list(iter_chunks(np.zeros(10, dtype=EVENT_DTYPE), chunk_size=4))
        assert [len(c) for c in chunks] == [4, 4, 2]

    def test_chunk_iterable_passed_through(self):
        chunks = [{"mass": [1.0]}, {"mass": [2.0]}]
        assert list(iter_chunks(iter(chunks))) == chunks

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            list(iter_chunks(np.zeros(3, dtype=EVENT_DTYPE), chunk_size=0))


class TestEpos:
    def test_from_epos(self, epos_records):
        events = from_epos(epos_records)
        assert events.dtype == EVENT_DTYPE
        assert list(events["pulse"]) == [10, 12, 12]
        assert list(events["pulse_delta"]) == [0, 0, 0]
        assert events["voltage"] == pytest.approx([4800.0] * 3)
        assert events["mass"] == pytest.approx([27.0, 16.0, 43.0])
        assert events["position"][:, 0] == pytest.approx([1.0, 2.0, 3.0])
        assert events["detector"][:, 0] == pytest.approx([-5.0, 0.0, 5.0])

    def test_read_epos(self, epos_records, tmp_path):
        file = tmp_path / "test.epos"
        epos_records.tofile(file)
        events = read_epos(str(file))
        assert len(events) == 3
        assert list(events["pulse"]) == [10, 12, 12]
        assert events["tof"] == pytest.approx([500.0, 400.0, 600.0])

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_epos(str(tmp_path / "missing.epos"))
