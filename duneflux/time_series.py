"""
Metadata-Carrying Time Series

The TimeSeries type pairs a time-indexed ``xarray.Dataset`` with the ordered
list of (parameter, unit) pairs describing where its columns came from.
Parsing creates one per raw parameter; merging and derivation return new
TimeSeries objects and never modify their inputs.

Merge semantics:
- The timestamp set of a merge is the union of both inputs (outer join).
- A column that is undefined at a timestamp only present in the other input
  is missing there (NaN, or NaT for reference-time columns). Nothing is
  dropped or interpolated.
- The parameter list grows by concatenation, left then right.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Union

import numpy as np
import xarray as xr

from .logging_utils import DataProcessingError, TimeDisagreementWarning
from .time_utils import TIME_DIM, add_numeric_date, ensure_monotonic_time, format_time_index

logger = logging.getLogger(__name__)


class Parameter(NamedTuple):
    """Provenance of a merged column: parameter name and its unit label."""
    name: str
    unit: str


@dataclass
class TimeSeries:
    """
    Time-indexed table of columns plus ordered parameter metadata.

    Attributes:
        data: Dataset with a single strictly increasing ``time`` dimension
        parameters: Ordered (name, unit) pairs, one per merged parameter
        anomalies: Time disagreements recorded while parsing the inputs
    """

    data: xr.Dataset
    parameters: List[Parameter] = field(default_factory=list)
    anomalies: List[TimeDisagreementWarning] = field(default_factory=list)

    def __post_init__(self):
        if TIME_DIM not in self.data.dims:
            raise DataProcessingError(
                "TimeSeries data must have a 'time' dimension",
                {'dims': list(self.data.dims)}
            )

        self.data = ensure_monotonic_time(self.data)

        time_values = self.data[TIME_DIM].values
        if len(time_values) > 1 and np.any(time_values[1:] == time_values[:-1]):
            raise DataProcessingError("TimeSeries timestamps must be unique")

        self.parameters = [Parameter(*p) for p in self.parameters]

    @classmethod
    def from_columns(cls,
                     times: Sequence,
                     columns: Mapping[str, Sequence],
                     parameters: Optional[Sequence[Parameter]] = None) -> "TimeSeries":
        """
        Build a TimeSeries from a time vector and a mapping of column arrays.

        Args:
            times: Timestamps (anything numpy can convert to datetime64)
            columns: Column name -> values, each the same length as ``times``
            parameters: Optional (name, unit) metadata

        Returns:
            TimeSeries: New series
        """
        time_index = np.asarray(times, dtype="datetime64[ns]")
        data = xr.Dataset(
            {name: (TIME_DIM, np.asarray(values)) for name, values in columns.items()},
            coords={TIME_DIM: time_index}
        )
        return cls(data=data, parameters=list(parameters or []))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def times(self) -> np.ndarray:
        return self.data[TIME_DIM].values

    @property
    def columns(self) -> List[str]:
        return list(self.data.data_vars)

    @property
    def parameter_names(self) -> List[str]:
        return [p.name for p in self.parameters]

    @property
    def units(self) -> List[str]:
        return [p.unit for p in self.parameters]

    def column(self, name: str) -> xr.DataArray:
        """Return one column as a time-indexed DataArray."""
        if name not in self.data.data_vars:
            raise KeyError(f"Column '{name}' not in series (columns: {self.columns})")
        return self.data[name]

    def __getitem__(self, name: str) -> xr.DataArray:
        return self.column(name)

    def __contains__(self, name: str) -> bool:
        return name in self.data.data_vars

    def __len__(self) -> int:
        return self.data.sizes[TIME_DIM]

    def unit_of(self, name: str) -> Optional[str]:
        """
        Unit label for a column.

        Looks at the most recently merged parameter of that name first, then
        at the ``units`` attribute that derivation steps attach.
        """
        for parameter in reversed(self.parameters):
            if parameter.name == name:
                return parameter.unit
        if name in self.data.data_vars:
            return self.data[name].attrs.get('units')
        return None

    # ------------------------------------------------------------------
    # Transformations (all return new objects)
    # ------------------------------------------------------------------

    def merge(self, other: "TimeSeries") -> "TimeSeries":
        return merge_series(self, other)

    def with_columns(self,
                     columns: Mapping[str, Union[np.ndarray, xr.DataArray, Sequence]],
                     units: Optional[Dict[str, str]] = None) -> "TimeSeries":
        """
        Derive new columns, returning a new TimeSeries.

        Args:
            columns: Column name -> values aligned with this series' time index
            units: Optional column name -> unit label, stored as variable attrs

        Returns:
            TimeSeries: New series sharing this series' metadata
        """
        units = units or {}
        new_vars = {}
        for name, values in columns.items():
            if isinstance(values, xr.DataArray) and TIME_DIM in values.dims:
                aligned = values.reset_coords(drop=True)
                if TIME_DIM in aligned.coords:
                    aligned = aligned.reindex({TIME_DIM: self.times})
                array = aligned.variable
            else:
                array = np.asarray(values)
                if array.ndim == 0:
                    array = np.full(len(self), array.item())
                if array.shape != (len(self),):
                    raise DataProcessingError(
                        f"Derived column '{name}' has shape {array.shape}, "
                        f"expected ({len(self)},)"
                    )
                array = (TIME_DIM, array)
            new_vars[name] = array

        data = self.data.assign(new_vars)
        for name, unit in units.items():
            data[name].attrs['units'] = unit

        return TimeSeries(data=data,
                          parameters=list(self.parameters),
                          anomalies=list(self.anomalies))

    def with_numeric_date(self) -> "TimeSeries":
        """Copy of the series with numeric year/month/day/hour columns."""
        return TimeSeries(data=add_numeric_date(self.data),
                          parameters=list(self.parameters),
                          anomalies=list(self.anomalies))

    def index_strings(self) -> np.ndarray:
        """Time index as 'YYYY-MM-DD HH:MM:SS.S' strings."""
        return format_time_index(self.times)

    def __repr__(self) -> str:
        return (f"TimeSeries(n_times={len(self)}, columns={self.columns}, "
                f"parameters={[tuple(p) for p in self.parameters]})")


def _count_conflicts(left: xr.DataArray, right: xr.DataArray) -> int:
    """Count shared timestamps where both columns are defined but differ."""
    a, b = xr.align(left, right, join="inner")
    if a.size == 0:
        return 0
    conflict = a.notnull() & b.notnull() & (a != b)
    return int(conflict.sum())


def merge_series(left: TimeSeries, right: TimeSeries) -> TimeSeries:
    """
    Outer-join two series on time.

    Columns present in only one input are NaN at timestamps contributed by
    the other. Columns with the same name are combined into one column:
    where both are defined, the left value is kept and the disagreement is
    logged.

    Args:
        left: First series (its values win on conflicts)
        right: Second series

    Returns:
        TimeSeries: Union of both inputs with concatenated metadata
    """
    for name in left.columns:
        if name in right.data.data_vars:
            n_conflicts = _count_conflicts(left.data[name], right.data[name])
            if n_conflicts:
                logger.warning(
                    f"Column '{name}' has {n_conflicts} conflicting values at shared "
                    f"timestamps, keeping values from the first series"
                )

    # outer alignment pads datetime columns with NaT and numeric ones with NaN
    a, b = xr.align(left.data, right.data, join="outer")
    merged = a.copy()
    for name in b.data_vars:
        if name in a.data_vars:
            merged[name] = a[name].fillna(b[name])
        else:
            merged[name] = b[name]
    merged = ensure_monotonic_time(merged)

    return TimeSeries(data=merged,
                      parameters=list(left.parameters) + list(right.parameters),
                      anomalies=list(left.anomalies) + list(right.anomalies))


def merge_series_collection(collection: Sequence[TimeSeries]) -> TimeSeries:
    """
    Merge series in the order supplied.

    Args:
        collection: Non-empty sequence of series

    Returns:
        TimeSeries: Left-to-right merge of the collection
    """
    if not collection:
        raise DataProcessingError("Cannot merge an empty collection of series")

    merged = collection[0]
    for series in collection[1:]:
        merged = merge_series(merged, series)
    return merged
