"""
Data Validation and Quality Control for duneflux

Checks run on a merged and derived series before it is written: regular
record spacing, physically plausible values and the share of missing
values per column. Every check returns a plain result dictionary with a
``status`` of 'pass', 'warning' or 'fail' and human-readable ``messages``,
so results can be logged and dumped to a JSON report unchanged.
"""

import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, List, Optional, Tuple

import numpy as np

from .time_series import TimeSeries

logger = logging.getLogger(__name__)

STATUS_ORDER = ('pass', 'warning', 'fail')

# Plausible ranges for the quantities the pipeline handles
DEFAULT_PHYSICAL_RANGES = {
    'temperature_kelvin': (173.0, 333.0),  # K
    'pressure_pa': (50000.0, 110000.0),  # Pa
    'wind_speed': (0.0, 100.0),  # m/s
    'wind_direction': (0.0, 360.0),  # degrees
    'air_density': (0.5, 1.6),  # kg/m³
    'friction_velocity': (0.0, 5.0),  # m/s
    'sediment_flux': (0.0, 10.0),  # kg/s per crosswind meter
    'soil_moisture': (0.0, 1.0)  # m³/m³
}


def _new_result(test_name: str, **fields) -> Dict[str, Any]:
    result = {'test_name': test_name, 'status': 'pass', 'messages': []}
    result.update(fields)
    return result


def _flag(result: Dict[str, Any], status: str, message: str) -> None:
    """Record a problem, keeping the most severe status seen."""
    if STATUS_ORDER.index(status) > STATUS_ORDER.index(result['status']):
        result['status'] = status
    result['messages'].append(message)


def worst_status(results: List[Dict[str, Any]]) -> str:
    return max((r['status'] for r in results), key=STATUS_ORDER.index, default='pass')


def check_temporal_continuity(time_coordinates: np.ndarray,
                              max_gap_tolerance: float = 2.0) -> Dict[str, Any]:
    """
    Find steps much longer than the typical record spacing.

    A gap is any step longer than ``max_gap_tolerance`` times the median
    step. A dropped forecast cycle in a degrib extract shows up here.

    Args:
        time_coordinates: datetime64 timestamps in ascending order
        max_gap_tolerance: Largest acceptable step as a multiple of the median step

    Returns:
        Result dict with 'time_gaps_detected' and 'largest_gap_seconds'
    """
    times = np.asarray(time_coordinates, dtype="datetime64[ns]")
    result = _new_result(
        'temporal_continuity',
        time_range=[str(times.min()), str(times.max())] if times.size else [],
        num_time_steps=int(times.size),
        time_gaps_detected=[],
        largest_gap_seconds=0.0
    )

    if times.size > 1:
        steps = np.diff(times) / np.timedelta64(1, 's')
        typical_step = float(np.median(steps))
        is_gap = steps > typical_step * max_gap_tolerance

        result['time_gaps_detected'] = [
            {'location': str(times[i]), 'gap_seconds': float(steps[i]), 'expected_seconds': typical_step}
            for i in np.flatnonzero(is_gap)
        ]
        if np.any(is_gap):
            result['largest_gap_seconds'] = float(steps[is_gap].max())
            _flag(result, 'warning',
                  f"{int(is_gap.sum())} gaps longer than {max_gap_tolerance:g}x the "
                  f"{typical_step:.0f} s median step, largest {result['largest_gap_seconds']:.0f} s")

    if result['status'] == 'pass':
        result['messages'].append(f"No gaps in {result['num_time_steps']} time steps")

    return result


def validate_physical_ranges(data: np.ndarray,
                             variable_type: str,
                             custom_ranges: Optional[Dict[str, Tuple[float, float]]] = None) -> Dict[str, Any]:
    """
    Count values outside the plausible range of a physical quantity.

    Missing values are ignored. Any value out of range fails the check;
    a variable type without a known range gives a warning.

    Args:
        data: Values to check
        variable_type: Key of ``DEFAULT_PHYSICAL_RANGES`` (or of ``custom_ranges``)
        custom_ranges: Replacement range table

    Returns:
        Result dict with 'expected_range', 'num_below_min' and 'num_above_max'
    """
    values = np.asarray(data, dtype=float)
    ranges = custom_ranges or DEFAULT_PHYSICAL_RANGES
    valid = values[~np.isnan(values)]

    result = _new_result(
        'physical_ranges',
        variable_type=variable_type,
        data_range=[float(valid.min()), float(valid.max())] if valid.size else [None, None],
        expected_range=None,
        num_below_min=0,
        num_above_max=0,
        total_points=int(values.size)
    )

    if variable_type not in ranges:
        _flag(result, 'warning', f"No physical range known for '{variable_type}'")
        return result

    low, high = ranges[variable_type]
    result['expected_range'] = [low, high]
    result['num_below_min'] = int(np.sum(valid < low))
    result['num_above_max'] = int(np.sum(valid > high))

    if result['num_below_min']:
        _flag(result, 'fail', f"{result['num_below_min']} {variable_type} values below {low}")
    if result['num_above_max']:
        _flag(result, 'fail', f"{result['num_above_max']} {variable_type} values above {high}")
    if result['status'] == 'pass':
        result['messages'].append(f"All {variable_type} values within [{low}, {high}]")

    return result


def check_missing_fraction(data: np.ndarray, tolerance: float = 0.05) -> Dict[str, Any]:
    """Warn when the share of missing values exceeds ``tolerance``."""
    values = np.asarray(data, dtype=float)
    num_missing = int(np.isnan(values).sum())
    fraction = num_missing / values.size if values.size else 1.0

    result = _new_result('missing_fraction',
                         num_missing=num_missing,
                         total_points=int(values.size),
                         missing_fraction=float(fraction),
                         tolerance=tolerance)

    if fraction > tolerance:
        _flag(result, 'warning', f"{fraction:.1%} of values missing, tolerance {tolerance:.1%}")
    else:
        result['messages'].append(f"{fraction:.1%} of values missing")

    return result


def generate_qa_report(series_info: Dict[str, Any],
                       validation_results: List[Dict[str, Any]],
                       output_path: str) -> None:
    """
    Write validation results and a status count to a JSON report.

    Args:
        series_info: Description of the validated series
        validation_results: Result dicts of the individual checks
        output_path: Report file
    """
    counts = Counter(result['status'] for result in validation_results)
    qa_report = {
        'qa_report_metadata': {
            'creation_date': datetime.now().isoformat(),
            'report_type': 'data_quality_assessment'
        },
        'series_summary': series_info,
        'validation_summary': {
            'total_tests': len(validation_results),
            'tests_passed': counts['pass'],
            'tests_warning': counts['warning'],
            'tests_failed': counts['fail']
        },
        'detailed_results': validation_results
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(qa_report, indent=2, default=str))

    logger.info(f"QA report generated: {output_path}")


class QualityAssurance:
    """
    Quality checks over a TimeSeries.

    Args:
        config: Optional 'missing_data_tolerance' and 'max_gap_tolerance'
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.missing_data_tolerance = config.get('missing_data_tolerance', 0.05)
        self.max_gap_tolerance = config.get('max_gap_tolerance', 2.0)

    def run_qa_suite(self,
                     series: TimeSeries,
                     variable_types: Dict[str, str],
                     output_dir: Optional[str] = None) -> Dict[str, Any]:
        """
        Check record spacing, then range and missing share of each typed column.

        Args:
            series: Series to check
            variable_types: Column name -> physical variable type. Columns the
                series does not have are skipped.
            output_dir: Write ``qa_report.json`` here when given

        Returns:
            Dict with the overall 'status', 'num_tests', the individual
            'validation_results' and, if written, 'qa_report_path'
        """
        results = [check_temporal_continuity(series.times, self.max_gap_tolerance)]

        for column, variable_type in variable_types.items():
            if column not in series:
                continue
            values = series[column].values
            for result in (validate_physical_ranges(values, variable_type),
                           check_missing_fraction(values, self.missing_data_tolerance)):
                result['variable'] = column
                results.append(result)

        qa_results = {
            'status': worst_status(results),
            'num_tests': len(results),
            'validation_results': results
        }

        if output_dir:
            report_path = Path(output_dir) / 'qa_report.json'
            generate_qa_report({'columns': series.columns,
                                'parameters': [list(p) for p in series.parameters],
                                'num_time_steps': len(series)},
                               results, str(report_path))
            qa_results['qa_report_path'] = str(report_path)

        return qa_results
