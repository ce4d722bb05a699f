"""
Periodic Summaries for duneflux

Reduces a table of columns into one row per calendar period (year, month or
any caller-supplied numeric factor). Yearly and monthly summaries are the
natural time series technique for weather-driven transport given the strong
seasonality of the inputs.

Summary types:
    mean        <col>_mean for every numeric column
    quantiles   <col>_q0.1, <col>_q0.25, <col>_q0.5, <col>_q0.75, <col>_q0.9
    sum         <col>_sum for every numeric column
    resultant   az and mag of the flux vector resultant

Missing data policy:
- mean, quantiles and sum exclude missing values. A period with no valid
  values gives NaN, not 0.
- resultant propagates missing values (see ``sediment_flux.calc_resultant``).
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import xarray as xr

from .logging_utils import ConfigurationError, DataProcessingError, UnknownMethodError
from .sediment_flux import calc_resultant
from .time_series import TimeSeries
from .time_utils import TIME_DIM, calendar_factor

logger = logging.getLogger(__name__)

QUANTILE_PROBABILITIES = (0.1, 0.25, 0.5, 0.75, 0.9)


class SummaryType(str, Enum):
    MEAN = "mean"
    QUANTILES = "quantiles"
    SUM = "sum"
    RESULTANT = "resultant"


@dataclass
class Summary:
    """
    Per-period statistics table.

    Attributes:
        period_name: Name of the period factor ('year', 'month', ...)
        data: Dataset of statistic columns along the ``period_name`` dimension
    """

    period_name: str
    data: xr.Dataset

    @property
    def periods(self) -> np.ndarray:
        return self.data[self.period_name].values

    @property
    def columns(self) -> List[str]:
        return list(self.data.data_vars)

    def __getitem__(self, name: str) -> np.ndarray:
        return self.data[name].values

    def __len__(self) -> int:
        return self.data.sizes[self.period_name]

    def to_records(self) -> List[Dict[str, Any]]:
        """One dict per period, period value first."""
        records = []
        for i, period in enumerate(self.periods):
            record = {self.period_name: float(period)}
            for name in self.columns:
                record[name] = float(self.data[name].values[i])
            records.append(record)
        return records


def _all_missing(values: np.ndarray) -> bool:
    return values.size == 0 or bool(np.all(np.isnan(values)))


def _nan_mean(values: np.ndarray) -> float:
    if _all_missing(values):
        return np.nan
    return float(np.nanmean(values))


def _nan_sum(values: np.ndarray) -> float:
    if _all_missing(values):
        return np.nan
    return float(np.nansum(values))


def _nan_quantile(values: np.ndarray, probability: float) -> float:
    if _all_missing(values):
        return np.nan
    return float(np.nanquantile(values, probability))


# Summary type -> [(column suffix, reducer)]
COLUMN_REDUCERS: Dict[SummaryType, List[Tuple[str, Callable[[np.ndarray], float]]]] = {
    SummaryType.MEAN: [("mean", _nan_mean)],
    SummaryType.SUM: [("sum", _nan_sum)],
    SummaryType.QUANTILES: [(f"q{p}", partial(_nan_quantile, probability=p))
                            for p in QUANTILE_PROBABILITIES],
}


def resolve_summary_type(summary_type: Union[str, SummaryType]) -> SummaryType:
    try:
        return SummaryType(summary_type)
    except ValueError:
        raise UnknownMethodError(
            f"Undefined summary type: '{summary_type}'",
            {'available': [s.value for s in SummaryType]}
        ) from None


def _as_columns(data: Union[TimeSeries, xr.Dataset, Mapping[str, Sequence]]) -> "OrderedDict[str, np.ndarray]":
    if isinstance(data, TimeSeries):
        data = data.data
    if isinstance(data, xr.Dataset):
        return OrderedDict((name, data[name].values) for name in data.data_vars)
    return OrderedDict((name, np.asarray(values)) for name, values in data.items())


def _is_numeric(values: np.ndarray) -> bool:
    return np.issubdtype(values.dtype, np.number)


def summarize(data: Union[TimeSeries, xr.Dataset, Mapping[str, Sequence]],
              factor: Sequence,
              summary_type: Union[str, SummaryType],
              flux_col: Optional[str] = None,
              record_duration_col: Optional[str] = None,
              wind_azimuth_col: Optional[str] = None,
              factor_name: str = "period") -> Summary:
    """
    Summarize columns by the distinct levels of a numeric factor.

    Args:
        data: TimeSeries, Dataset or mapping of column name -> values
        factor: One numeric level per row (e.g. the year of each record).
            Rows with a missing factor are ignored.
        summary_type: 'mean', 'quantiles', 'sum' or 'resultant'
        flux_col: Flux column (resultant only)
        record_duration_col: Record duration column in seconds (resultant only)
        wind_azimuth_col: Wind azimuth column (resultant only)
        factor_name: Name of the period dimension in the result

    Returns:
        Summary: One row per distinct level in ascending order

    Raises:
        UnknownMethodError: For an unknown summary type
        ConfigurationError: If a resultant column binding is missing
        DataProcessingError: If the factor length does not match the data

    Example:
        >>> summarize({'flux': [1.0, 3.0, 5.0]}, [2015, 2015, 2016], 'mean').to_records()
        [{'period': 2015.0, 'flux_mean': 2.0}, {'period': 2016.0, 'flux_mean': 5.0}]
    """
    summary_type = resolve_summary_type(summary_type)
    columns = _as_columns(data)

    factor = np.asarray(factor, dtype=float)
    for name, values in columns.items():
        if values.shape != factor.shape:
            raise DataProcessingError(
                f"Column '{name}' has {values.shape[0] if values.ndim else 0} rows "
                f"but the factor has {factor.size}",
                {'summary_type': summary_type.value}
            )

    levels = np.unique(factor[~np.isnan(factor)])
    masks = [factor == level for level in levels]
    results: "OrderedDict[str, np.ndarray]" = OrderedDict()

    if summary_type is SummaryType.RESULTANT:
        bindings = {'flux_col': flux_col,
                    'record_duration_col': record_duration_col,
                    'wind_azimuth_col': wind_azimuth_col}
        for binding, name in bindings.items():
            if not name:
                raise ConfigurationError(f"Resultant summary requires '{binding}'")
            if name not in columns:
                raise ConfigurationError(f"Column '{name}' bound to '{binding}' not in data",
                                         {'columns': list(columns)})

        resultants = [calc_resultant(columns[flux_col][mask],
                                     columns[record_duration_col][mask],
                                     columns[wind_azimuth_col][mask])
                      for mask in masks]
        results['az'] = np.array([r.azimuth for r in resultants], dtype=float)
        results['mag'] = np.array([r.magnitude for r in resultants], dtype=float)
    else:
        for name, values in columns.items():
            if not _is_numeric(values):
                logger.debug(f"Skipping non-numeric column '{name}'")
                continue
            values = values.astype(float)
            for suffix, reducer in COLUMN_REDUCERS[summary_type]:
                results[f"{name}_{suffix}"] = np.array([reducer(values[mask]) for mask in masks], dtype=float)

    summary_data = xr.Dataset(
        {name: (factor_name, values) for name, values in results.items()},
        coords={factor_name: levels}
    )

    logger.debug(f"Computed {summary_type.value} summary over {len(levels)} {factor_name} levels")
    return Summary(period_name=factor_name, data=summary_data)


def _period_summary(period: str,
                    data: Union[TimeSeries, xr.Dataset],
                    summary_type: Union[str, SummaryType],
                    factor: Optional[Sequence],
                    **bindings) -> Summary:
    if factor is None:
        source = data.data if isinstance(data, TimeSeries) else data
        if not isinstance(source, xr.Dataset) or TIME_DIM not in source.coords:
            raise DataProcessingError(f"A {period} factor is needed for data without a time index")
        factor = calendar_factor(source[TIME_DIM], period)
    return summarize(data, factor, summary_type, factor_name=period, **bindings)


def summarize_yearly(data: Union[TimeSeries, xr.Dataset, Mapping[str, Sequence]],
                     summary_type: Union[str, SummaryType],
                     years: Optional[Sequence] = None,
                     flux_col: Optional[str] = None,
                     record_duration_col: Optional[str] = None,
                     wind_azimuth_col: Optional[str] = None) -> Summary:
    """
    Yearly summary. The years come from the time index unless given.

    See ``summarize`` for the summary types and missing data policy.
    """
    return _period_summary("year", data, summary_type, years,
                           flux_col=flux_col,
                           record_duration_col=record_duration_col,
                           wind_azimuth_col=wind_azimuth_col)


def summarize_monthly(data: Union[TimeSeries, xr.Dataset, Mapping[str, Sequence]],
                      summary_type: Union[str, SummaryType],
                      months: Optional[Sequence] = None,
                      flux_col: Optional[str] = None,
                      record_duration_col: Optional[str] = None,
                      wind_azimuth_col: Optional[str] = None) -> Summary:
    """Monthly summary (months 1-12 pooled across years)."""
    return _period_summary("month", data, summary_type, months,
                           flux_col=flux_col,
                           record_duration_col=record_duration_col,
                           wind_azimuth_col=wind_azimuth_col)
