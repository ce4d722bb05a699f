"""
Atmospheric Science Calculations for duneflux

This module provides the atmospheric quantities needed by the sediment flux
models: air density from the ideal gas law, and gap filling for forecast
series whose variables are reported at different intervals.

Scientific Context:
Forecast extracts often carry pressure every 3 hours but temperature only
every 6 hours. After merging, the temperature column has regular gaps that
must be interpolated before air density (and with it the threshold friction
velocity and flux) can be computed for every record.
"""

import logging
import warnings
from typing import Union

import numpy as np
import xarray as xr
from scipy.interpolate import interp1d

from .time_utils import TIME_DIM
from .units_constants import PhysicalConstants

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray, xr.DataArray]


def interpolate_gaps(values: ArrayLike) -> Union[np.ndarray, xr.DataArray]:
    """
    Linearly interpolate interior gaps in a series.

    When given a time-indexed DataArray the interpolation is weighted by the
    time coordinate, otherwise by position. Missing values before the first
    known value stay missing. A single missing value at the very end is
    filled by repeating the last known value; longer trailing gaps stay
    missing. The output always has the same length as the input.

    Args:
        values: 1-D array or time-indexed DataArray with NaN gaps

    Returns:
        Same type as the input (DataArray keeps its coordinates)

    Example:
        >>> interpolate_gaps(np.array([270.0, np.nan, 274.0, np.nan]))
        array([270., 272., 274., 274.])
    """
    is_dataarray = isinstance(values, xr.DataArray)

    y = np.asarray(values, dtype=float).ravel()
    if is_dataarray and TIME_DIM in values.dims:
        x = values[TIME_DIM].values.astype("datetime64[ns]").astype("int64").astype(float)
    else:
        x = np.arange(len(y), dtype=float)

    filled = y.copy()
    known = ~np.isnan(y)

    if np.count_nonzero(known) >= 2:
        interpolator = interp1d(x[known], y[known], kind="linear",
                                bounds_error=False, fill_value=np.nan)
        interior = ~known & (x > x[known][0]) & (x < x[known][-1])
        filled[interior] = interpolator(x[interior])

    # one trailing step is carried forward
    if len(filled) >= 2 and np.isnan(filled[-1]) and not np.isnan(filled[-2]):
        filled[-1] = filled[-2]

    n_filled = int(np.count_nonzero(np.isnan(y) & ~np.isnan(filled)))
    if n_filled:
        logger.debug(f"Interpolated {n_filled} missing values")

    if is_dataarray:
        return values.copy(data=filled.reshape(values.shape))
    return filled


def calc_air_density(pressure: ArrayLike,
                     kelvin_temp: ArrayLike,
                     interpolate: bool = False) -> np.ndarray:
    """
    Air density from pressure and temperature (ideal gas law for dry air).

    rho = P / (R_air * T), R_air = 287.058 J/(kg K)

    Args:
        pressure: Air pressure (Pa)
        kelvin_temp: Air temperature (K)
        interpolate: Linearly interpolate temperature gaps first (see
            ``interpolate_gaps``). Needed when temperature is reported less
            often than pressure.

    Returns:
        np.ndarray: Air density (kg/m^3). Missing inputs give missing output.

    Warns:
        UserWarning: If any temperature is below 200 K, which suggests the
            input was given in Celsius
    """
    temperature = np.asarray(kelvin_temp, dtype=float)
    if np.any(temperature < PhysicalConstants.KELVIN_PLAUSIBILITY_LIMIT):
        message = "calc_air_density possibly received temperature in C, not K"
        logger.warning(message)
        warnings.warn(message, UserWarning, stacklevel=2)

    if interpolate:
        temperature = np.asarray(interpolate_gaps(kelvin_temp), dtype=float)

    pressure = np.asarray(pressure, dtype=float)

    return pressure / (PhysicalConstants.GAS_CONSTANT_DRY_AIR * temperature)
