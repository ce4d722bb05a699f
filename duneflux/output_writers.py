"""
Output Writers for duneflux

Writes enriched time series to NetCDF and periodic summaries to CSV.

The parameter metadata of a series travels in the NetCDF global attributes
as two parallel comma-separated lists, so a written series can be read back
with its provenance intact.
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
import xarray as xr

from .statistics_utils import Summary
from .time_series import Parameter, TimeSeries
from .time_utils import get_time_range_info

PARAMETER_NAMES_ATTR = 'parameter_names'
PARAMETER_UNITS_ATTR = 'parameter_units'


class DuneFluxWriter:
    """
    Write pipeline outputs below one output directory.

    Args:
        output_dir: Directory for output files (created if missing)
        compression: zlib-compress NetCDF variables
    """

    def __init__(self, output_dir: str, compression: bool = True):
        self.output_dir = output_dir
        self.compression = compression
        self.logger = logging.getLogger(self.__class__.__name__)
        self.created_files: List[str] = []

        os.makedirs(output_dir, exist_ok=True)

    def write_series_netcdf(self, series: TimeSeries, filename: str = "duneflux_series.nc") -> str:
        """
        Write a TimeSeries to NetCDF.

        Args:
            series: Series to write
            filename: File name within the output directory

        Returns:
            str: Path of the written file
        """
        output_path = os.path.join(self.output_dir, filename)

        dataset = series.data.copy()
        dataset.attrs.update(self._global_attributes(series))

        encoding = {}
        if self.compression:
            for name in dataset.data_vars:
                if np.issubdtype(dataset[name].dtype, np.floating):
                    encoding[name] = {'zlib': True, 'complevel': 4}

        dataset.to_netcdf(output_path, engine="netcdf4", encoding=encoding)

        self.created_files.append(output_path)
        self.logger.info(f"Wrote series with {len(series)} time steps: {output_path}")
        return output_path

    def write_summary_csv(self, summary: Summary, filename: str) -> str:
        """
        Write a Summary as CSV, one row per period.

        Args:
            summary: Summary to write
            filename: File name within the output directory

        Returns:
            str: Path of the written file
        """
        output_path = os.path.join(self.output_dir, filename)

        with open(output_path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow([summary.period_name] + summary.columns)
            for record in summary.to_records():
                writer.writerow([_format_number(record[summary.period_name])] +
                                [_format_number(record[name]) for name in summary.columns])

        self.created_files.append(output_path)
        self.logger.info(f"Wrote {len(summary)} {summary.period_name} rows: {output_path}")
        return output_path

    def write_mobility_csv(self,
                           periods: Sequence[float],
                           mobility_index: Sequence[float],
                           period_name: str = "year",
                           filename: str = "mobility_index.csv") -> str:
        """Write a mobility index series as CSV."""
        output_path = os.path.join(self.output_dir, filename)

        with open(output_path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow([period_name, 'mobility_index'])
            for period, value in zip(periods, mobility_index):
                writer.writerow([_format_number(period), _format_number(value)])

        self.created_files.append(output_path)
        self.logger.info(f"Wrote mobility index: {output_path}")
        return output_path

    def create_file_manifest(self, created_files: Optional[List[str]] = None) -> str:
        """
        Create manifest file listing all created files.

        Args:
            created_files: Files to list (defaults to everything this writer created)

        Returns:
            str: Path to manifest file
        """
        created_files = self.created_files if created_files is None else created_files
        manifest_file = os.path.join(self.output_dir, "file_manifest.txt")

        with open(manifest_file, 'w') as f:
            f.write("# duneflux Output File Manifest\n")
            f.write(f"# Created: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} UTC\n")
            f.write(f"# Total files: {len(created_files)}\n\n")

            for filepath in sorted(created_files):
                f.write(f"{filepath}\n")

        self.logger.info(f"Created file manifest: {manifest_file}")
        return manifest_file

    def _global_attributes(self, series: TimeSeries) -> dict:
        time_info = get_time_range_info(series.data)
        return {
            'title': "duneflux processed time series",
            'history': f"Created on {datetime.now().strftime('%Y-%m-%d %H:%M:%S')} UTC",
            'conventions': "CF-1.6",
            PARAMETER_NAMES_ATTR: ",".join(series.parameter_names),
            PARAMETER_UNITS_ATTR: ",".join(series.units),
            'time_anomalies': len(series.anomalies),
            'time_resolution': time_info.get('resolution', 'unknown')
        }


def read_series_netcdf(path: Union[str, Path]) -> TimeSeries:
    """
    Read a series written by ``DuneFluxWriter.write_series_netcdf``.

    Recorded time anomalies are not restored, only their count is kept in
    the file attributes.
    """
    with xr.open_dataset(path, engine="netcdf4") as dataset:
        data = dataset.load()

    names = _split_attr(data.attrs.get(PARAMETER_NAMES_ATTR, ""))
    units = _split_attr(data.attrs.get(PARAMETER_UNITS_ATTR, ""))
    data.attrs = {}

    return TimeSeries(data=data, parameters=[Parameter(n, u) for n, u in zip(names, units)])


def _split_attr(value: str) -> List[str]:
    return value.split(",") if value else []


def _format_number(value: float) -> str:
    if np.isnan(value):
        return "NA"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))
