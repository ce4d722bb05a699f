"""
Dune Mobility Indices

Classical style indices relating sediment flux to surface soil moisture.
Nearly all classical aridity indices are proxies of soil moisture, itself a
proxy for vegetation growth. Using modeled soil moisture directly avoids much
of the trouble with aridity metrics at the expense of comparability. The
index is only meaningful at the yearly timescale.
"""

import logging
from typing import Callable, Dict, Union

import numpy as np

from .logging_utils import UnknownMethodError

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]


def _vanilla(flux: np.ndarray, soil_moisture: np.ndarray) -> np.ndarray:
    # higher values: more mobility; lower values: more vegetation growth
    return flux / soil_moisture


def _vanilla_anomaly(flux: np.ndarray, soil_moisture: np.ndarray) -> np.ndarray:
    ratio = _vanilla(flux, soil_moisture)
    # plain mean: missing years make every anomaly missing
    return ratio - np.mean(ratio)


MOBILITY_MODIFICATIONS: Dict[str, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    'vanilla': _vanilla,
    'vanilla_anomaly': _vanilla_anomaly,
}


def calc_mobility_index(flux: ArrayLike,
                        soil_moisture: ArrayLike,
                        modification: str = "vanilla") -> np.ndarray:
    """
    Mobility index from yearly resultant flux and soil moisture.

    Args:
        flux: Resultant sediment flux per year
        soil_moisture: Soil moisture metric per year
        modification: 'vanilla' for the plain flux / soil moisture ratio, or
            'vanilla_anomaly' for the ratio minus its series mean

    Returns:
        np.ndarray: One index value per year

    Raises:
        UnknownMethodError: For an unknown modification
    """
    try:
        index_function = MOBILITY_MODIFICATIONS[modification]
    except KeyError:
        raise UnknownMethodError(
            f"Undefined mobility index modification: '{modification}'",
            {'available': sorted(MOBILITY_MODIFICATIONS)}
        ) from None

    flux = np.asarray(flux, dtype=float)
    soil_moisture = np.asarray(soil_moisture, dtype=float)

    with np.errstate(divide="ignore", invalid="ignore"):
        mob_index = index_function(flux, soil_moisture)

    logger.debug(f"Computed {modification} mobility index for {mob_index.size} periods")
    return mob_index
