"""
Tests for the degrib output reader.
"""

import pytest
import numpy as np
import tempfile
import shutil
import os
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent))

from duneflux.degrib_reader import (
    assemble_degrib_collection,
    format_degrib_series,
    parse_degrib_time,
    read_degrib,
    read_raw_records,
)
from duneflux.logging_utils import (
    DataFormatError,
    DataProcessingError,
    TimeDisagreementWarning,
    TimeFormatError,
)

HEADER = "parameter,unit,reftime,validtime,value\n"


class TestDegribReader:
    """Test reading degrib files from disk"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, name, rows):
        path = os.path.join(self.temp_dir, name)
        with open(path, 'w') as f:
            f.write(HEADER)
            for row in rows:
                f.write(row + "\n")
        return path

    def test_read_raw_records(self):
        """Test raw record parsing"""
        path = self._write("a.csv", [
            "10U, [m/s], 201501010000, 201501010000, 3.5",
            "",
            "2T,[K],201501010000,201501010000,NA",
        ])

        records = read_raw_records(path)

        assert len(records) == 2
        assert records[0].parameter == "10U"
        assert records[0].unit == "[m/s]"
        assert records[0].value == 3.5
        assert records[0].valid_time == np.datetime64("2015-01-01T00:00")
        assert np.isnan(records[1].value)

    def test_wrong_field_count(self):
        """Test that malformed rows raise DataFormatError"""
        path = self._write("bad.csv", ["10U,[m/s],201501010000,3.5"])

        with pytest.raises(DataFormatError) as exc_info:
            read_raw_records(path)
        assert exc_info.value.context['line'] == 2

    def test_bad_time_carries_location(self):
        """Test that time errors report the file and line"""
        path = self._write("bad_time.csv", ["10U,[m/s],2015-01-01,201501010000,3.5"])

        with pytest.raises(TimeFormatError) as exc_info:
            read_raw_records(path)
        assert exc_info.value.context['file'] == path

    def test_read_degrib_splits_parameters(self):
        """Test one column per parameter, outer joined on valid time"""
        path = self._write("multi.csv", [
            "10U,[m/s],201501010000,201501010000,3.0",
            "10U,[m/s],201501010300,201501010300,4.0",
            "2T,[K],201501010000,201501010000,270.0",
        ])

        series = read_degrib(path)

        assert series.parameter_names == ["10U", "2T"]
        assert series.units == ["[m/s]", "[K]"]
        assert len(series) == 2
        np.testing.assert_array_equal(series["10U"].values, [3.0, 4.0])
        assert series["2T"].values[0] == 270.0
        assert np.isnan(series["2T"].values[1])
        assert "reftime_10U" not in series
        assert series.anomalies == []

    def test_encounter_order_of_parameters(self):
        """Test that metadata follows the order parameters first appear"""
        path = self._write("order.csv", [
            "SP,[Pa],201501010000,201501010000,101000",
            "10U,[m/s],201501010000,201501010000,3.0",
        ])

        assert read_degrib(path).parameter_names == ["SP", "10U"]

    def test_time_disagreement(self):
        """Test that reftime/validtime disagreement is kept and reported"""
        path = self._write("forecast.csv", [
            "10U,[m/s],201501010000,201501010000,3.0",
            "10U,[m/s],201501010000,201501010300,4.0",
            "2T,[K],201501010000,201501010000,270.0",
        ])

        with pytest.warns(TimeDisagreementWarning):
            series = read_degrib(path)

        assert "reftime_10U" in series
        assert "reftime_2T" not in series
        assert len(series.anomalies) == 1
        assert series.anomalies[0].parameter == "10U"
        assert series.anomalies[0].count == 1
        assert series["reftime_10U"].values[1] == np.datetime64("2015-01-01T00:00")
        np.testing.assert_array_equal(series["10U"].values, [3.0, 4.0])
        assert series["2T"].values[0] == 270.0
        assert np.isnan(series["2T"].values[1])

    def test_time_disagreement_second_parameter(self):
        """Test that a reftime column from a later parameter is padded with NaT"""
        path = self._write("forecast.csv", [
            "2T,[K],201501010000,201501010000,270.0",
            "2T,[K],201501010300,201501010300,271.0",
            "10U,[m/s],201501010000,201501010300,4.0",
        ])

        with pytest.warns(TimeDisagreementWarning):
            series = read_degrib(path)

        assert series.parameter_names == ["2T", "10U"]
        assert series["reftime_10U"].dtype.kind == "M"
        assert np.isnat(series["reftime_10U"].values[0])
        assert series["reftime_10U"].values[1] == np.datetime64("2015-01-01T00:00")
        np.testing.assert_array_equal(series["2T"].values, [270.0, 271.0])
        assert np.isnan(series["10U"].values[0])

    def test_reftime_column_across_files(self):
        """Test merging a file with a reftime column and a file without one"""
        forecast = self._write("forecast.csv", [
            "10U,[m/s],201501010000,201501010300,4.0",
        ])
        analysis = self._write("analysis.csv", [
            "10U,[m/s],201501010600,201501010600,5.0",
        ])

        with pytest.warns(TimeDisagreementWarning):
            series = assemble_degrib_collection([forecast, analysis])

        assert len(series) == 2
        assert len(series.anomalies) == 1
        np.testing.assert_array_equal(series["10U"].values, [4.0, 5.0])
        assert series["reftime_10U"].values[0] == np.datetime64("2015-01-01T00:00")
        assert np.isnat(series["reftime_10U"].values[1])

    def test_duplicate_valid_times_keep_first(self):
        """Test that repeated valid times within a parameter keep the first row"""
        path = self._write("dupes.csv", [
            "10U,[m/s],201501010000,201501010000,3.0",
            "10U,[m/s],201501010000,201501010000,9.0",
        ])

        series = read_degrib(path)

        assert len(series) == 1
        assert series["10U"].values[0] == 3.0

    def test_empty_file(self):
        """Test that a file without records is rejected"""
        path = self._write("empty.csv", [])

        with pytest.raises(DataProcessingError):
            read_degrib(path)

    def test_assemble_collection(self):
        """Test merging several files with concatenated metadata"""
        first = self._write("2014.csv", [
            "10U,[m/s],201412311800,201412311800,3.0",
            "10V,[m/s],201412311800,201412311800,1.0",
        ])
        second = self._write("2015.csv", [
            "10U,[m/s],201501010000,201501010000,4.0",
        ])

        series = assemble_degrib_collection([first, second])

        assert series.parameter_names == ["10U", "10V", "10U"]
        assert len(series) == 2
        np.testing.assert_array_equal(series["10U"].values, [3.0, 4.0])
        assert np.isnan(series["10V"].values[1])

    def test_assemble_empty_collection(self):
        """Test that an empty collection is rejected"""
        with pytest.raises(DataProcessingError):
            assemble_degrib_collection([])


def test_parse_degrib_time():
    """Test YYYYMMDDHHMM parsing"""
    assert parse_degrib_time("201501011230") == np.datetime64("2015-01-01T12:30")
    assert parse_degrib_time(201501011230) == np.datetime64("2015-01-01T12:30")
    assert parse_degrib_time("201501011230.0") == np.datetime64("2015-01-01T12:30")


@pytest.mark.parametrize("value", ["2015-01-01", "20150101", "201513011230", "20150101123x", ""])
def test_parse_degrib_time_invalid(value):
    """Test that malformed times raise TimeFormatError"""
    with pytest.raises(TimeFormatError):
        parse_degrib_time(value)


def test_format_degrib_series_requires_records():
    """Test that a parameter without records is rejected"""
    with pytest.raises(DataProcessingError):
        format_degrib_series([], "10U")
