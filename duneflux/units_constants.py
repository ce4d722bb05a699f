"""
Physical Constants and Unit Conversions for duneflux

This module provides physical constants and unit conversion utilities used
throughout the dune flux processing system. Values are the ones used by the
aeolian transport literature the flux models come from, which is why gravity
is 9.81 rather than the CODATA standard value.

References:
- Shao, Y., Lu, H., 2000, A simple expression for wind erosion threshold
  friction velocity, Journal of Geophysical Research 105, 22,437-22,443.
- Namikas, S., Sherman, D.J., 1997, Predicting aeolian sand transport:
  revisiting the White model, Earth Surface Processes and Landforms, 22, 601-604.
"""

import numpy as np
from typing import Union


# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

class PhysicalConstants:
    """
    Collection of physical constants used in wind and sediment transport modeling.
    """

    # Earth and atmospheric constants
    GRAVITY = 9.81  # m s⁻² (value used by the flux and threshold models)
    STANDARD_TEMPERATURE = 273.15  # K (0°C)
    GAS_CONSTANT_DRY_AIR = 287.058  # J kg⁻¹ K⁻¹
    VON_KARMAN = 0.41  # dimensionless

    # Temperatures below this are suspected to be Celsius, not Kelvin
    KELVIN_PLAUSIBILITY_LIMIT = 200.0  # K

    # Sediment constants
    BULK_DENSITY_SAND = 1500.0  # kg m⁻³, in-place aeolian sediment incl. porosity
    QUARTZ_PARTICLE_DENSITY = 2650.0  # kg m⁻³

    # Shao and Lu (2000) empirical constants
    SHAO_LU_A = 0.0123  # dimensionless
    SHAO_LU_GAMMA = 0.0003  # kg s⁻²

    # Corrected White (1979) coefficient
    WHITE_COEFFICIENT = 2.61


# =============================================================================
# UNIT CONVERSION FUNCTIONS
# =============================================================================

def temperature_celsius_to_kelvin(temperature_celsius: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert temperature from Celsius to Kelvin.

    Args:
        temperature_celsius: Temperature in Celsius

    Returns:
        Temperature in Kelvin
    """
    return np.asarray(temperature_celsius) + PhysicalConstants.STANDARD_TEMPERATURE


def pressure_hpa_to_pa(pressure_hpa: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert pressure from hectopascals to Pascals.

    Args:
        pressure_hpa: Pressure in hectopascals (hPa)

    Returns:
        Pressure in Pascals
    """
    return np.asarray(pressure_hpa) * 100.0


def pressure_kpa_to_pa(pressure_kpa: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """Convert pressure from kilopascals to Pascals."""
    return np.asarray(pressure_kpa) * 1000.0


def degrees_to_radians(degrees: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert degrees to radians.

    Args:
        degrees: Angle in degrees

    Returns:
        Angle in radians
    """
    return np.asarray(degrees) * np.pi / 180.0


def radians_to_degrees(radians: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Convert radians to degrees.

    Args:
        radians: Angle in radians

    Returns:
        Angle in degrees
    """
    return np.asarray(radians) * 180.0 / np.pi


def normalize_azimuth(azimuth_degrees: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Wrap azimuths into [0, 360).

    NaN values pass through unchanged.

    Args:
        azimuth_degrees: Azimuth in degrees, any range

    Returns:
        Azimuth in degrees within [0, 360)
    """
    az = np.mod(np.asarray(azimuth_degrees, dtype=float), 360.0)
    # np.mod can round tiny negative angles up to exactly 360.0
    return np.where(az >= 360.0, az - 360.0, az)


# =============================================================================
# METADATA-DRIVEN CONVERSIONS
# =============================================================================

_KELVIN_UNITS = {'k', 'kelvin', '[k]'}
_CELSIUS_UNITS = {'c', 'degc', 'celsius', '°c', '[c]'}
_PASCAL_UNITS = {'pa', 'pascal', '[pa]'}
_HPA_UNITS = {'hpa', 'mb', 'mbar', 'millibar', '[hpa]'}
_KPA_UNITS = {'kpa', '[kpa]'}


def to_kelvin(values: Union[float, np.ndarray], unit: str) -> Union[float, np.ndarray]:
    """
    Convert a temperature series to Kelvin using its recorded unit label.

    Args:
        values: Temperature values
        unit: Unit label carried in the series metadata

    Returns:
        Temperature in Kelvin

    Raises:
        ValueError: If the unit label is not a known temperature unit
    """
    unit_key = unit.strip().lower()
    if unit_key in _KELVIN_UNITS:
        return np.asarray(values, dtype=float)
    if unit_key in _CELSIUS_UNITS:
        return temperature_celsius_to_kelvin(values)
    raise ValueError(f"Unsupported temperature unit: {unit}")


def to_pascal(values: Union[float, np.ndarray], unit: str) -> Union[float, np.ndarray]:
    """
    Convert a pressure series to Pascals using its recorded unit label.

    Args:
        values: Pressure values
        unit: Unit label carried in the series metadata

    Returns:
        Pressure in Pascals

    Raises:
        ValueError: If the unit label is not a known pressure unit
    """
    unit_key = unit.strip().lower()
    if unit_key in _PASCAL_UNITS:
        return np.asarray(values, dtype=float)
    if unit_key in _HPA_UNITS:
        return pressure_hpa_to_pa(values)
    if unit_key in _KPA_UNITS:
        return pressure_kpa_to_pa(values)
    raise ValueError(f"Unsupported pressure unit: {unit}")
