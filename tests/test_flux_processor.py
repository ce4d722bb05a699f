"""
Integration tests for the flux processing pipeline.
"""

import pytest
import numpy as np
import tempfile
import shutil
import os
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent))

from duneflux.flux_processor import DuneFluxProcessor, add_flux_columns, add_record_duration
from duneflux.logging_utils import DataProcessingError
from duneflux.time_series import Parameter, TimeSeries

HEADER = "parameter,unit,reftime,validtime,value\n"
VALID_TIMES = ["201412310000", "201412310600", "201412311200", "201412311800",
               "201501010000", "201501010600", "201501011200", "201501011800"]


def write_degrib(path, rows):
    with open(path, 'w') as f:
        f.write(HEADER)
        for parameter, unit, time, value in rows:
            f.write(f"{parameter},{unit},{time},{time},{value}\n")
    return path


class TestDuneFluxProcessor:
    """Run the pipeline on two small degrib extracts"""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.output_dir = os.path.join(self.temp_dir, "out")

        # easterly wind every 6 hours
        wind_rows = []
        for time in VALID_TIMES:
            wind_rows.append(("10U", "[m/s]", time, -8.0))
            wind_rows.append(("10V", "[m/s]", time, 0.0))
        self.wind_file = write_degrib(os.path.join(self.temp_dir, "wind.csv"), wind_rows)

        # temperature only every 12 hours
        surface_rows = []
        for time in VALID_TIMES:
            surface_rows.append(("SP", "[Pa]", time, 101325.0))
            if time[8:10] in ("00", "12"):
                surface_rows.append(("2T", "[K]", time, 288.15))
            surface_rows.append(("SWVL1", "[m3/m3]", time, 0.2))
        self.surface_file = write_degrib(os.path.join(self.temp_dir, "surface.csv"), surface_rows)

        self.processor = DuneFluxProcessor(cli_args={
            'processing': {'output_directory': self.output_dir, 'log_level': 'WARNING'}
        })

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_load_series(self):
        """Test that files are merged with metadata in file then encounter order"""
        series = self.processor.load_series([self.wind_file, self.surface_file])

        assert len(series) == 8
        assert series.parameter_names == ['10U', '10V', 'SP', '2T', 'SWVL1']
        assert np.sum(np.isnan(series['2T'].values)) == 4

        stats = self.processor.processing_logger.get_processing_summary()['processing_stats']
        assert stats['files_parsed'] == 2
        # raw rows, not merged time steps
        assert stats['records_read'] == 16 + 20

    def test_derive_quantities(self):
        """Test that wind, duration and flux columns are derived without gaps"""
        series = self.processor.derive_quantities(
            self.processor.load_series([self.wind_file, self.surface_file])
        )

        for column in ['wdir', 'wspd', 'record_duration', 'u_star', 'air_density', 'u_star_t', 'flux']:
            assert column in series

        np.testing.assert_allclose(series['wdir'].values, 90.0)
        np.testing.assert_allclose(series['record_duration'].values, 6 * 3600.0)
        # temperature gaps are interpolated before air density
        assert not np.any(np.isnan(series['air_density'].values))
        assert np.all(series['flux'].values > 0)
        assert series.unit_of('flux') == 'kg/s/m'

    def test_process(self):
        """Test the full pipeline from files to outputs"""
        result = self.processor.process([self.wind_file, self.surface_file])

        resultant = result.summaries['resultant']
        np.testing.assert_array_equal(resultant.periods, [2014.0, 2015.0])
        np.testing.assert_allclose(resultant['az'], [270.0, 270.0])
        assert np.all(resultant['mag'] > 0)

        assert set(result.summaries) == {'mean', 'sum', 'resultant'}
        np.testing.assert_allclose(result.summaries['mean']['SP_mean'], [101325.0, 101325.0])

        assert len(result.mobility_index) == 2
        np.testing.assert_allclose(result.mobility_index, resultant['mag'] / 0.2)

        assert result.qa_results['status'] in ('pass', 'warning')
        for output_file in result.output_files:
            assert Path(output_file).exists()
        assert os.path.exists(os.path.join(self.output_dir, "summary_year_resultant.csv"))
        assert os.path.exists(os.path.join(self.output_dir, "mobility_index.csv"))
        assert os.path.exists(os.path.join(self.output_dir, "qa_report.json"))

    def test_monthly_process_skips_mobility(self):
        """Test that monthly summaries do not produce a mobility index"""
        processor = DuneFluxProcessor(cli_args={
            'processing': {'output_directory': self.output_dir, 'log_level': 'WARNING'},
            'summary': {'period': 'month'}
        })

        result = processor.process([self.wind_file, self.surface_file])

        np.testing.assert_array_equal(result.summaries['resultant'].periods, [1.0, 12.0])
        assert result.mobility_index is None

    def test_missing_wind_column(self):
        """Test that a missing wind component is reported as a processing error"""
        with pytest.raises(DataProcessingError):
            self.processor.derive_quantities(self.processor.load_series([self.surface_file]))

    def test_no_input_files(self):
        with pytest.raises(DataProcessingError):
            self.processor.load_series([])


def test_add_record_duration():
    """Test record durations, with the last record repeating the previous step"""
    times = np.array(["2015-01-01T00:00", "2015-01-01T03:00", "2015-01-01T09:00"], dtype="datetime64[ns]")
    series = TimeSeries.from_columns(times, {'x': [1.0, 2.0, 3.0]})

    result = add_record_duration(series)

    np.testing.assert_allclose(result['record_duration'].values, [10800.0, 21600.0, 21600.0])
    assert result.unit_of('record_duration') == 's'


def test_add_flux_columns_converts_units():
    """Test that pressure and temperature units come from the metadata"""
    times = np.array(["2015-01-01T00:00", "2015-01-01T06:00"], dtype="datetime64[ns]")
    celsius = TimeSeries.from_columns(
        times,
        {'P': [1013.25, 1013.25], 'T': [15.0, 15.0], 'wspd': [2.0, 12.0]},
        parameters=[Parameter('P', 'hPa'), Parameter('T', '[C]')]
    )

    result = add_flux_columns(celsius, 'P', 'T')

    np.testing.assert_allclose(result['air_density'].values, 1.225, rtol=1e-3)
    # light wind is below threshold
    assert result['flux'].values[0] == 0.0
    assert result['flux'].values[1] > 0.0
