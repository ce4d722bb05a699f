"""
Degrib Output Reader

Reads the flat comma-separated files produced by degrib (a GRIB slicer) and
turns them into metadata-carrying TimeSeries. Degrib output needs some
housecleaning before it can be used: one file holds several parameters as
long-format rows, times are packed as YYYYMMDDHHMM numbers, and the
reference and valid times occasionally disagree.

File layout (header line skipped):
    parameter, unit, reference_time, valid_time, value
"""

import csv
import logging
import warnings
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import List, NamedTuple, Sequence, Union

import numpy as np
import xarray as xr

from .logging_utils import (
    DataFormatError,
    DataProcessingError,
    TimeDisagreementWarning,
    TimeFormatError,
)
from .time_series import Parameter, TimeSeries, merge_series, merge_series_collection
from .time_utils import TIME_DIM

logger = logging.getLogger(__name__)

DEGRIB_TIME_FORMAT = "%Y%m%d%H%M"
DEGRIB_FIELDS = ("parameter", "unit", "reference_time", "valid_time", "value")
MISSING_VALUE_TOKENS = {"", "na", "nan", "null", "none"}
REFTIME_PREFIX = "reftime_"


class RawRecord(NamedTuple):
    """One row of a degrib file."""
    parameter: str
    unit: str
    reference_time: np.datetime64
    valid_time: np.datetime64
    value: float


def parse_degrib_time(value: Union[str, int, float]) -> np.datetime64:
    """
    Parse a degrib YYYYMMDDHHMM timestamp as UTC.

    Values that were read as numbers (e.g. ``201501010600.0``) are accepted.

    Args:
        value: Timestamp string or number

    Returns:
        np.datetime64: Minute-resolution UTC timestamp

    Raises:
        TimeFormatError: If the value is not a valid YYYYMMDDHHMM time
    """
    text = str(value).strip()
    if text.endswith(".0"):
        text = text[:-2]

    if len(text) != 12 or not text.isdigit():
        raise TimeFormatError(f"Unparseable degrib time '{value}'", {'expected': 'YYYYMMDDHHMM'})

    try:
        parsed = datetime.strptime(text, DEGRIB_TIME_FORMAT)
    except ValueError as e:
        raise TimeFormatError(f"Unparseable degrib time '{value}': {e}",
                              {'expected': 'YYYYMMDDHHMM'}) from e

    return np.datetime64(parsed, "m")


def _parse_value(text: str) -> float:
    if text.strip().lower() in MISSING_VALUE_TOKENS:
        return np.nan
    return float(text)


def read_raw_records(filename: Union[str, Path]) -> List[RawRecord]:
    """
    Read every row of a degrib file.

    Args:
        filename: Path of the degrib output

    Returns:
        List of RawRecord in file order

    Raises:
        DataFormatError: On rows with the wrong number of fields or a bad value
        TimeFormatError: On unparseable timestamps
    """
    records = []
    with open(filename, "r", newline="") as f:
        reader = csv.reader(f)
        next(reader, None)  # header

        for line_number, row in enumerate(reader, start=2):
            if not row or all(not cell.strip() for cell in row):
                continue

            if len(row) != len(DEGRIB_FIELDS):
                raise DataFormatError(
                    f"Expected {len(DEGRIB_FIELDS)} fields, found {len(row)}",
                    {'file': str(filename), 'line': line_number}
                )

            parameter, unit, reftime, validtime, value = (cell.strip() for cell in row)
            try:
                parsed_value = _parse_value(value)
            except ValueError as e:
                raise DataFormatError(f"Non-numeric value '{value}'",
                                      {'file': str(filename), 'line': line_number}) from e

            try:
                record = RawRecord(parameter, unit,
                                   parse_degrib_time(reftime),
                                   parse_degrib_time(validtime),
                                   parsed_value)
            except TimeFormatError as e:
                e.context.update({'file': str(filename), 'line': line_number})
                raise
            records.append(record)

    return records


def format_degrib_series(records: Sequence[RawRecord], label: str) -> TimeSeries:
    """
    Convert the records of one parameter into a TimeSeries indexed by valid time.

    If any record's reference time differs from its valid time, the reference
    times are kept as an auxiliary ``reftime_<label>`` column and a
    TimeDisagreementWarning is issued and recorded on the series. Otherwise
    the reference time is dropped.

    Args:
        records: Records that all belong to one parameter
        label: Parameter name, used as the value column name

    Returns:
        TimeSeries: Single-parameter series
    """
    if not records:
        raise DataProcessingError(f"No records for parameter '{label}'")

    valid_times = np.array([r.valid_time for r in records], dtype="datetime64[ns]")
    ref_times = np.array([r.reference_time for r in records], dtype="datetime64[ns]")
    values = np.array([r.value for r in records], dtype=float)

    order = np.argsort(valid_times, kind="stable")
    valid_times, ref_times, values = valid_times[order], ref_times[order], values[order]

    # first occurrence wins for repeated valid times
    unique_times, first_index = np.unique(valid_times, return_index=True)
    n_duplicates = len(valid_times) - len(unique_times)
    if n_duplicates:
        logger.warning(f"Dropped {n_duplicates} records of '{label}' with repeated valid times")

    data_vars = {label: (TIME_DIM, values[first_index], {'units': records[0].unit})}
    anomalies = []

    n_disagreement = int(np.sum(ref_times != valid_times))
    if n_disagreement > 0:
        anomaly = TimeDisagreementWarning(label, n_disagreement)
        warnings.warn(anomaly, stacklevel=2)
        logger.warning(str(anomaly))
        anomalies.append(anomaly)
        data_vars[f"{REFTIME_PREFIX}{label}"] = (TIME_DIM, ref_times[first_index])

    data = xr.Dataset(data_vars, coords={TIME_DIM: unique_times})
    return TimeSeries(data=data,
                      parameters=[Parameter(label, records[0].unit)],
                      anomalies=anomalies)


def series_from_records(records: Sequence[RawRecord], source: Union[str, Path] = "") -> TimeSeries:
    """
    Split raw records by parameter and outer-join them on valid time.

    Parameters are split out in the order they are first encountered, so the
    parameter metadata follows encounter order too.

    Args:
        records: Rows of one degrib file
        source: File the records came from, for messages

    Returns:
        TimeSeries: One column per parameter (plus any reftime auxiliaries)
    """
    if not records:
        raise DataProcessingError("No records found in degrib file", {'file': str(source)})

    by_parameter = OrderedDict()
    for record in records:
        by_parameter.setdefault(record.parameter, []).append(record)

    series = [format_degrib_series(subset, label) for label, subset in by_parameter.items()]
    merged = merge_series_collection(series)

    logger.debug(f"Read {len(records)} records for {len(by_parameter)} parameters from {source}")
    return merged


def read_degrib(filename: Union[str, Path]) -> TimeSeries:
    """
    Read one degrib file into a multi-column TimeSeries.

    Args:
        filename: Path of the degrib output

    Returns:
        TimeSeries: One column per parameter (plus any reftime auxiliaries)
    """
    return series_from_records(read_raw_records(filename), filename)


def assemble_degrib_collection(collection: Sequence[Union[str, Path]]) -> TimeSeries:
    """
    Read and merge a collection of degrib files in the order supplied.

    The parameter metadata grows by concatenation: file order, then
    parameter order within each file.

    Args:
        collection: Paths of degrib files

    Returns:
        TimeSeries: Merged series
    """
    if not collection:
        raise DataProcessingError("Empty degrib collection")

    degrib_collection = None
    for filename in collection:
        series = read_degrib(filename)
        if degrib_collection is None:
            degrib_collection = series
        else:
            degrib_collection = merge_series(degrib_collection, series)
        logger.info(f"Completed read of file: {filename}")

    return degrib_collection
