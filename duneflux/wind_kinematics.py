"""
Wind Kinematics for duneflux

Converts wind components to direction, speed and elevation angle, computes
mean wind direction and applies the logarithmic wind profile (law of the
wall) to move between wind speed and friction velocity.

Wind direction is always the azimuth the wind is COMING FROM, in degrees
clockwise from north, within [0, 360).

Component conventions:
- ``sonic`` (sonic anemometer, e.g. RM Young 81000): u positive for wind from
  the east, v positive for wind from the north.
- ``climate`` (most reanalysis / forecast data): u positive for wind from the
  west, v positive for wind from the south.
In both, w is positive for wind coming from below.
"""

import logging
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Tuple, Union

import numpy as np

from .logging_utils import UnknownConventionError
from .time_series import TimeSeries
from .units_constants import PhysicalConstants, normalize_azimuth, radians_to_degrees, degrees_to_radians

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


class WindConvention(str, Enum):
    SONIC = "sonic"
    CLIMATE = "climate"


class WindScalars(NamedTuple):
    """Scalar wind description: direction (deg from), speed, elevation angle (deg)."""
    direction: np.ndarray
    speed: np.ndarray
    elevation: np.ndarray


def _sonic_azimuth(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    return 90.0 - radians_to_degrees(np.arctan2(v, u))


def _climate_azimuth(u: np.ndarray, v: np.ndarray) -> np.ndarray:
    return radians_to_degrees(np.arctan2(-u, -v))


def _sonic_components(direction: np.ndarray, speed: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    az = degrees_to_radians(direction)
    return speed * np.sin(az), speed * np.cos(az)


def _climate_components(direction: np.ndarray, speed: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    az = degrees_to_radians(direction)
    return -speed * np.sin(az), -speed * np.cos(az)


# Convention -> (azimuth from components, components from azimuth)
CONVENTIONS: Dict[WindConvention, Tuple[Callable, Callable]] = {
    WindConvention.SONIC: (_sonic_azimuth, _sonic_components),
    WindConvention.CLIMATE: (_climate_azimuth, _climate_components),
}


def resolve_convention(convention: Union[str, WindConvention]) -> WindConvention:
    """
    Look up a wind component convention by name.

    Raises:
        UnknownConventionError: If no conversion is registered for the name
    """
    try:
        resolved = WindConvention(convention)
    except ValueError:
        resolved = None

    if resolved is None or resolved not in CONVENTIONS:
        raise UnknownConventionError(
            f"Undefined convention for wind components: '{convention}'",
            {'available': [c.value for c in CONVENTIONS]}
        )
    return resolved


def uvw_to_scalar(u: ArrayLike,
                  v: ArrayLike,
                  w: Optional[ArrayLike] = None,
                  convention: Union[str, WindConvention] = WindConvention.CLIMATE) -> WindScalars:
    """
    Convert u, v (and optionally w) wind components to direction, speed and elevation.

    If w is not given, or is zero everywhere, the speed is the 2D horizontal
    speed and the elevation angle is 0. Otherwise the speed is the 3D
    magnitude and the elevation angle is atan(w / horizontal speed), positive
    when the wind comes from below.

    Args:
        u: East-west component (sign depends on convention)
        v: North-south component (sign depends on convention)
        w: Optional vertical component
        convention: 'sonic' or 'climate'

    Returns:
        WindScalars: direction (deg, [0, 360)), speed, elevation (deg)

    Raises:
        UnknownConventionError: For an unregistered convention

    Example:
        >>> uvw_to_scalar(1.0, 1.0, convention='climate').direction
        array([225.])
    """
    azimuth_function, _ = CONVENTIONS[resolve_convention(convention)]

    u = np.atleast_1d(np.asarray(u, dtype=float))
    v = np.atleast_1d(np.asarray(v, dtype=float))

    direction = normalize_azimuth(azimuth_function(u, v))
    horizontal = np.sqrt(u ** 2 + v ** 2)

    if w is None:
        w = np.zeros_like(horizontal)
    w = np.broadcast_to(np.asarray(w, dtype=float), horizontal.shape)

    if np.any(w != 0.0):
        speed = np.sqrt(u ** 2 + v ** 2 + w ** 2)
        with np.errstate(divide="ignore", invalid="ignore"):
            elevation = radians_to_degrees(np.arctan(w / horizontal))
    else:
        speed = horizontal
        elevation = np.zeros_like(horizontal)

    return WindScalars(direction=direction, speed=speed, elevation=elevation)


def scalar_to_uv(direction: ArrayLike,
                 speed: ArrayLike,
                 convention: Union[str, WindConvention] = WindConvention.CLIMATE) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert direction (deg, coming from) and horizontal speed back to u, v components.

    Inverse of the horizontal part of ``uvw_to_scalar``.

    Returns:
        Tuple of (u, v) arrays in the requested convention
    """
    _, component_function = CONVENTIONS[resolve_convention(convention)]
    return component_function(np.asarray(direction, dtype=float), np.asarray(speed, dtype=float))


def calc_mean_wind_dir(u: ArrayLike,
                       v: ArrayLike,
                       convention: Union[str, WindConvention] = WindConvention.CLIMATE) -> float:
    """
    Mean wind direction from component vectors.

    The u and v components are averaged first (ignoring missing values) and
    the averaged pair is converted to a direction. Averaging the angles
    themselves would break across the 0/360 wrap.

    Returns:
        float: Mean direction in degrees, NaN if all components are missing
    """
    u = np.asarray(u, dtype=float)
    v = np.asarray(v, dtype=float)

    if np.all(np.isnan(u)) or np.all(np.isnan(v)):
        return float("nan")

    mean_u = np.nanmean(u)
    mean_v = np.nanmean(v)
    return float(uvw_to_scalar(mean_u, mean_v, 0.0, convention).direction[0])


def calc_u_star_simple(wspd: ArrayLike, anemo_elev: ArrayLike, z0: ArrayLike) -> ArrayLike:
    """
    Friction velocity from a single anemometer height and a roughness length.

    u* is better estimated from a wind profile than from one measurement;
    this is the single-height log-law estimate.

    Args:
        wspd: Wind speed (m/s)
        anemo_elev: Anemometer elevation above the surface (m)
        z0: Aerodynamic roughness length (m)

    Returns:
        Friction velocity u* (m/s)
    """
    wspd = np.asarray(wspd, dtype=float)
    anemo_elev = np.asarray(anemo_elev, dtype=float)
    z0 = np.asarray(z0, dtype=float)

    return wspd / ((1.0 / PhysicalConstants.VON_KARMAN) * np.log(anemo_elev / z0))


def calc_wspd(u_star: ArrayLike, elev: ArrayLike, z0: ArrayLike) -> ArrayLike:
    """
    Wind speed at an elevation from friction velocity (law of the wall).

    Args:
        u_star: Friction velocity (m/s)
        elev: Elevation of the returned wind speed (m)
        z0: Aerodynamic roughness length (m)

    Returns:
        Wind speed (m/s)
    """
    u_star = np.asarray(u_star, dtype=float)
    elev = np.asarray(elev, dtype=float)
    z0 = np.asarray(z0, dtype=float)

    return (u_star / PhysicalConstants.VON_KARMAN) * np.log(elev / z0)


def add_wind_scalars(series: TimeSeries,
                     u_col: str,
                     v_col: str,
                     w_col: Optional[str] = None,
                     convention: Union[str, WindConvention] = WindConvention.CLIMATE,
                     prefix: str = "") -> TimeSeries:
    """
    Derive wind direction, speed and elevation columns on a TimeSeries.

    Adds ``<prefix>wdir``, ``<prefix>wspd`` and ``<prefix>alt`` columns.

    Args:
        series: Input series holding the component columns
        u_col: Name of the u column
        v_col: Name of the v column
        w_col: Optional name of the w column
        convention: 'sonic' or 'climate'
        prefix: Optional prefix for the new column names

    Returns:
        TimeSeries: New series with the three derived columns
    """
    w = series[w_col].values if w_col else None
    scalars = uvw_to_scalar(series[u_col].values, series[v_col].values, w, convention)

    speed_unit = series.unit_of(u_col) or "m/s"
    logger.debug(f"Derived wind scalars from '{u_col}', '{v_col}' with {resolve_convention(convention).value} convention")

    return series.with_columns(
        {
            f"{prefix}wdir": scalars.direction,
            f"{prefix}wspd": scalars.speed,
            f"{prefix}alt": scalars.elevation,
        },
        units={f"{prefix}wdir": "degrees", f"{prefix}wspd": speed_unit, f"{prefix}alt": "degrees"}
    )
