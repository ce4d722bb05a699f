"""
Time Coordinate Utilities

Provides standardized time handling across the duneflux pipeline: calendar
factors for periodic summaries, numeric date columns, index formatting and
time range diagnostics. All timestamps are UTC and stored as naive
``datetime64`` values on a ``time`` dimension.
"""

import numpy as np
import xarray as xr
from typing import Union
import logging

TIME_DIM = "time"
CALENDAR_PERIODS = ("year", "month", "day", "hour")


def ensure_monotonic_time(dataset: xr.Dataset) -> xr.Dataset:
    """
    Ensure time coordinate is monotonically increasing.

    Merging series from different files can result in unsorted time
    coordinates. This function sorts the dataset by time.

    Args:
        dataset: Dataset potentially with unsorted time

    Returns:
        xr.Dataset: Dataset with sorted time coordinate
    """
    if TIME_DIM not in dataset.coords and TIME_DIM not in dataset.dims:
        return dataset

    time_values = dataset[TIME_DIM].values

    if len(time_values) > 1:
        is_monotonic = np.all(time_values[1:] >= time_values[:-1])

        if not is_monotonic:
            logging.debug("Time coordinate not monotonic, sorting dataset")
            return dataset.sortby(TIME_DIM)

    return dataset


def calendar_factor(times: Union[xr.DataArray, np.ndarray], period: str = "year") -> np.ndarray:
    """
    Extract a numeric calendar factor from timestamps.

    Args:
        times: datetime64 values or a time DataArray
        period: One of 'year', 'month', 'day', 'hour'

    Returns:
        np.ndarray: Float array with one factor level per timestamp

    Example:
        >>> times = np.array(['2015-03-01T06:00'], dtype='datetime64[m]')
        >>> calendar_factor(times, 'month')
        array([3.])
    """
    if period not in CALENDAR_PERIODS:
        raise ValueError(f"Unknown calendar period '{period}', expected one of {CALENDAR_PERIODS}")

    if not isinstance(times, xr.DataArray):
        times = xr.DataArray(np.asarray(times, dtype="datetime64[ns]"), dims=TIME_DIM)

    return getattr(times.dt, period).values.astype(float)


def add_numeric_date(dataset: xr.Dataset) -> xr.Dataset:
    """
    Add numeric year, month, day and hour columns to a time-indexed dataset.

    This makes monthly and yearly analyses easier since the factors can be
    passed straight to the period summaries.

    Args:
        dataset: Dataset with a time coordinate

    Returns:
        xr.Dataset: Copy of the dataset with the four extra variables
    """
    time_coord = dataset[TIME_DIM]
    return dataset.assign({
        period: (TIME_DIM, calendar_factor(time_coord, period))
        for period in CALENDAR_PERIODS
    })


def format_time_index(times: Union[xr.DataArray, np.ndarray]) -> np.ndarray:
    """
    Format timestamps as 'YYYY-MM-DD HH:MM:SS.S' strings.

    Seconds are rounded (not truncated) to one decimal place, so sub-second
    sonic records print and re-parse consistently.

    Args:
        times: datetime64 values or a time DataArray

    Returns:
        np.ndarray: Array of formatted strings
    """
    values = np.asarray(times, dtype="datetime64[ns]")
    minutes = values.astype("datetime64[m]")
    seconds = (values - minutes) / np.timedelta64(1, "s")
    seconds = np.round(seconds, 1)

    formatted = [
        f"{np.datetime_as_string(m, unit='m').replace('T', ' ')}:{s:04.1f}"
        for m, s in zip(minutes, seconds)
    ]
    return np.array(formatted, dtype=object)


def get_time_range_info(dataset: xr.Dataset) -> dict:
    """
    Extract time range information from dataset for logging/validation.

    Args:
        dataset: Dataset with time coordinate

    Returns:
        dict: Time range information including start, end, count, resolution
    """
    if TIME_DIM not in dataset.coords and TIME_DIM not in dataset.dims:
        return {'has_time': False}

    time_values = dataset[TIME_DIM].values

    if len(time_values) == 0:
        return {'has_time': True, 'count': 0, 'resolution': 'empty'}

    if len(time_values) > 1:
        median_diff = np.median(np.diff(time_values))

        if median_diff < np.timedelta64(1, 'm'):
            resolution = 'sub_minute'
        elif median_diff < np.timedelta64(2, 'h'):
            resolution = 'hourly'
        elif median_diff < np.timedelta64(2, 'D'):
            resolution = 'daily'
        elif median_diff < np.timedelta64(40, 'D'):
            resolution = 'monthly'
        else:
            resolution = 'yearly'
    else:
        resolution = 'single_timestep'

    return {
        'has_time': True,
        'start': str(time_values[0]),
        'end': str(time_values[-1]),
        'count': len(time_values),
        'resolution': resolution,
        'dtype': str(time_values.dtype)
    }
