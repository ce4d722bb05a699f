"""
Tests for the metadata-carrying TimeSeries and its merge semantics.
"""

import pytest
import numpy as np
import xarray as xr
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent))

from duneflux.logging_utils import DataProcessingError, TimeDisagreementWarning
from duneflux.time_series import Parameter, TimeSeries, merge_series, merge_series_collection
from duneflux.time_utils import calendar_factor, format_time_index, get_time_range_info


def _times(*stamps):
    return np.array(stamps, dtype="datetime64[ns]")


def _series(stamps, name, values, unit="[m/s]"):
    return TimeSeries.from_columns(_times(*stamps), {name: values}, [Parameter(name, unit)])


def test_from_columns_basic():
    """Test building a series from columns"""
    series = _series(["2015-01-01T00:00", "2015-01-01T06:00"], "10U", [1.0, 2.0])

    assert len(series) == 2
    assert series.columns == ["10U"]
    assert series.parameter_names == ["10U"]
    assert series.units == ["[m/s]"]
    assert series.unit_of("10U") == "[m/s]"
    assert "10U" in series


def test_unsorted_input_is_sorted():
    """Test that timestamps are stored in ascending order"""
    series = _series(["2015-01-01T06:00", "2015-01-01T00:00"], "10U", [2.0, 1.0])

    assert np.all(np.diff(series.times) > np.timedelta64(0, "ns"))
    np.testing.assert_array_equal(series["10U"].values, [1.0, 2.0])


def test_duplicate_timestamps_rejected():
    """Test that duplicate timestamps are not allowed"""
    with pytest.raises(DataProcessingError):
        _series(["2015-01-01T00:00", "2015-01-01T00:00"], "10U", [1.0, 2.0])


def test_missing_time_dimension_rejected():
    """Test that data without a time dimension is rejected"""
    with pytest.raises(DataProcessingError):
        TimeSeries(data=xr.Dataset({'x': ('row', [1.0])}))


def test_merge_is_outer_join():
    """Test that a merge keeps the union of timestamps"""
    left = _series(["2015-01-01T00:00", "2015-01-01T03:00"], "SP", [101000.0, 101100.0], "[Pa]")
    right = _series(["2015-01-01T03:00", "2015-01-01T06:00"], "2T", [280.0, 281.0], "[K]")

    merged = left.merge(right)

    assert len(merged) == 3
    np.testing.assert_array_equal(merged.times, _times("2015-01-01T00:00", "2015-01-01T03:00", "2015-01-01T06:00"))
    assert np.isnan(merged["SP"].values[2])
    assert np.isnan(merged["2T"].values[0])
    assert merged["2T"].values[1] == 280.0


def test_merge_concatenates_metadata():
    """Test that parameter metadata grows left then right"""
    left = _series(["2015-01-01T00:00"], "SP", [101000.0], "[Pa]")
    right = _series(["2015-01-01T00:00"], "2T", [280.0], "[K]")

    merged = merge_series(left, right)

    assert merged.parameters == [Parameter("SP", "[Pa]"), Parameter("2T", "[K]")]
    assert len(merged.parameters) == len(left.parameters) + len(right.parameters)


def test_merge_does_not_mutate_inputs():
    """Test that merge returns new objects"""
    left = _series(["2015-01-01T00:00"], "SP", [101000.0], "[Pa]")
    right = _series(["2015-01-01T06:00"], "2T", [280.0], "[K]")

    merge_series(left, right)

    assert left.columns == ["SP"]
    assert len(left) == 1
    assert len(left.parameters) == 1


def test_merge_same_column_keeps_left_values():
    """Test that shared columns are combined with the left series winning"""
    left = _series(["2015-01-01T00:00", "2015-01-01T06:00"], "10U", [1.0, 2.0])
    right = _series(["2015-01-01T06:00", "2015-01-01T12:00"], "10U", [9.0, 3.0])

    merged = merge_series(left, right)

    np.testing.assert_array_equal(merged["10U"].values, [1.0, 2.0, 3.0])
    # duplicates are kept in the metadata
    assert merged.parameter_names == ["10U", "10U"]


@pytest.mark.parametrize("datetime_on_left", [True, False])
def test_merge_pads_datetime_columns_with_nat(datetime_on_left):
    """Test that a datetime column missing on one side is padded with NaT"""
    forecast = TimeSeries.from_columns(
        _times("2015-01-01T03:00"),
        {"10U": [4.0], "reftime_10U": _times("2015-01-01T00:00")},
        [Parameter("10U", "[m/s]")]
    )
    analysis = _series(["2015-01-01T06:00"], "2T", [280.0], "[K]")

    if datetime_on_left:
        merged = merge_series(forecast, analysis)
    else:
        merged = merge_series(analysis, forecast)

    assert merged["reftime_10U"].dtype.kind == "M"
    assert merged["reftime_10U"].values[0] == np.datetime64("2015-01-01T00:00")
    assert np.isnat(merged["reftime_10U"].values[1])
    assert np.isnan(merged["2T"].values[0])
    assert np.isnan(merged["10U"].values[1])


def test_merge_carries_anomalies():
    """Test that recorded time anomalies travel through merges"""
    left = _series(["2015-01-01T00:00"], "SP", [101000.0], "[Pa]")
    left.anomalies.append(TimeDisagreementWarning("SP", 1))
    right = _series(["2015-01-01T06:00"], "2T", [280.0], "[K]")

    merged = merge_series(left, right)

    assert len(merged.anomalies) == 1
    assert merged.anomalies[0].parameter == "SP"


def test_merge_collection():
    """Test merging a collection in order"""
    collection = [
        _series(["2015-01-01T00:00"], "A", [1.0]),
        _series(["2015-01-01T06:00"], "B", [2.0]),
        _series(["2015-01-01T12:00"], "C", [3.0]),
    ]

    merged = merge_series_collection(collection)

    assert merged.parameter_names == ["A", "B", "C"]
    assert len(merged) == 3

    with pytest.raises(DataProcessingError):
        merge_series_collection([])


def test_with_columns_derivation():
    """Test adding derived columns"""
    series = _series(["2015-01-01T00:00", "2015-01-01T06:00"], "10U", [1.0, 2.0])

    derived = series.with_columns({'double': series["10U"].values * 2, 'const': 5.0},
                                  units={'double': 'm/s'})

    np.testing.assert_array_equal(derived["double"].values, [2.0, 4.0])
    np.testing.assert_array_equal(derived["const"].values, [5.0, 5.0])
    assert derived.unit_of("double") == 'm/s'
    # derivation does not add metadata entries
    assert derived.parameters == series.parameters
    assert "double" not in series


def test_with_columns_shape_mismatch():
    """Test that misaligned derived columns are rejected"""
    series = _series(["2015-01-01T00:00", "2015-01-01T06:00"], "10U", [1.0, 2.0])

    with pytest.raises(DataProcessingError):
        series.with_columns({'bad': [1.0, 2.0, 3.0]})


def test_numeric_date_columns():
    """Test numeric year/month/day/hour columns"""
    series = _series(["2014-12-31T18:00", "2015-02-01T06:00"], "10U", [1.0, 2.0])

    dated = series.with_numeric_date()

    np.testing.assert_array_equal(dated["year"].values, [2014.0, 2015.0])
    np.testing.assert_array_equal(dated["month"].values, [12.0, 2.0])
    np.testing.assert_array_equal(dated["day"].values, [31.0, 1.0])
    np.testing.assert_array_equal(dated["hour"].values, [18.0, 6.0])


def test_index_strings_round_seconds():
    """Test that the index is formatted with seconds rounded to one decimal"""
    series = _series(["2015-01-01T06:00:12.34", "2015-01-01T06:01:00"], "10U", [1.0, 2.0])

    strings = series.index_strings()

    assert strings[0] == "2015-01-01 06:00:12.3"
    assert strings[1] == "2015-01-01 06:01:00.0"


def test_format_time_index_rounds_not_truncates():
    """Test rounding of sub-second values"""
    strings = format_time_index(_times("2015-01-01T00:00:05.96"))

    assert strings[0] == "2015-01-01 00:00:06.0"


def test_calendar_factor_and_time_range():
    """Test calendar factors and time range diagnostics"""
    times = _times("2015-03-01T00:00", "2015-03-01T06:00", "2015-03-01T12:00")

    np.testing.assert_array_equal(calendar_factor(times, "month"), [3.0, 3.0, 3.0])
    with pytest.raises(ValueError):
        calendar_factor(times, "fortnight")

    series = TimeSeries.from_columns(times, {'x': [1.0, 2.0, 3.0]})
    info = get_time_range_info(series.data)
    assert info['count'] == 3
    assert info['resolution'] == 'daily'
