"""
Dune Flux Processing Pipeline

Strings the duneflux building blocks together: degrib files are read and
merged into one series, wind scalars, friction velocity, air density,
threshold friction velocity and sediment flux are derived, the result is
summarized by calendar period and, for yearly summaries, a mobility index is
computed from the resultant flux and soil moisture.

Scientific Context:
Forecast and reanalysis surface fields give wind components at a fixed
height. The single-height log law turns the wind speed into a friction
velocity, the Shao and Lu expression gives the threshold friction velocity
for the local grain size and air density, and the corrected White model
gives the potential sand flux. Summing flux vectors over a year gives the
net (resultant) transport that drives dune migration.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .atmospheric_science import calc_air_density
from .config_manager import DuneFluxConfig
from .degrib_reader import read_raw_records, series_from_records
from .logging_utils import DataProcessingError, ProcessingLogger, error_context, setup_duneflux_logging
from .mobility_indices import calc_mobility_index
from .output_writers import DuneFluxWriter
from .sediment_flux import calc_flux, calc_u_star_t
from .statistics_utils import Summary, SummaryType, summarize_monthly, summarize_yearly
from .time_series import TimeSeries, merge_series
from .time_utils import calendar_factor
from .units_constants import to_kelvin, to_pascal
from .validation import QualityAssurance
from .wind_kinematics import add_wind_scalars, calc_u_star_simple

logger = logging.getLogger(__name__)

FLUX_UNITS = {
    'corrected_white': 'kg/s/m',
    'corrected_white_bulk': 'm3/s/m'
}

# Derived column -> physical variable type used by the QA range checks
DERIVED_VARIABLE_TYPES = {
    'wspd': 'wind_speed',
    'wdir': 'wind_direction',
    'u_star': 'friction_velocity',
    'u_star_t': 'friction_velocity',
    'air_density': 'air_density',
    'flux': 'sediment_flux'
}


@dataclass
class FluxProcessingResult:
    """
    Container for pipeline results.

    Attributes:
        series: Merged series with every derived column
        summaries: Summary type name -> Summary
        mobility_index: Mobility index per year, if computed
        qa_results: Output of the quality assurance suite
        output_files: Files written by the run
    """
    series: TimeSeries
    summaries: Dict[str, Summary] = field(default_factory=dict)
    mobility_index: Optional[np.ndarray] = None
    qa_results: Dict[str, Any] = field(default_factory=dict)
    output_files: List[str] = field(default_factory=list)


def add_record_duration(series: TimeSeries, column: str = "record_duration") -> TimeSeries:
    """
    Add the duration of each record in seconds.

    A record lasts until the next timestamp. The last record is given the
    duration of the step before it. A single-record series has no duration.
    """
    times = series.times
    if len(times) < 2:
        durations = np.full(len(times), np.nan)
    else:
        steps = np.diff(times) / np.timedelta64(1, 's')
        durations = np.append(steps, steps[-1])

    return series.with_columns({column: durations}, units={column: 's'})


def add_flux_columns(series: TimeSeries,
                     pressure_col: str,
                     temperature_col: str,
                     wspd_col: str = "wspd",
                     anemometer_height: float = 10.0,
                     roughness_length: float = 0.001,
                     grain_diameter: float = 0.00025,
                     particle_density: float = 2650.0,
                     threshold_method: str = "shao_lu",
                     flux_method: str = "corrected_white",
                     force_threshold: bool = True,
                     interpolate_temperature: bool = False) -> TimeSeries:
    """
    Derive u_star, air_density, u_star_t and flux columns.

    Pressure and temperature are converted to Pa and K using the unit labels
    recorded in the series metadata.

    Args:
        series: Series holding pressure, temperature and wind speed columns
        pressure_col: Pressure column
        temperature_col: Air temperature column
        wspd_col: Wind speed column (m/s) at ``anemometer_height``
        anemometer_height: Height of the wind speed (m)
        roughness_length: Aerodynamic roughness length z0 (m)
        grain_diameter: Median grain diameter (m)
        particle_density: Grain density (kg/m^3)
        threshold_method: Registered threshold method
        flux_method: Registered flux method
        force_threshold: Force flux to 0 below threshold
        interpolate_temperature: Fill temperature gaps before computing air density

    Returns:
        TimeSeries: New series with the four derived columns
    """
    for name in (pressure_col, temperature_col, wspd_col):
        if name not in series:
            raise DataProcessingError(f"Column '{name}' needed for flux calculation is missing",
                                      {'columns': series.columns})

    pressure = to_pascal(series[pressure_col].values, series.unit_of(pressure_col) or 'Pa')
    temperature = series[temperature_col].copy(
        data=to_kelvin(series[temperature_col].values, series.unit_of(temperature_col) or 'K')
    )

    air_density = calc_air_density(pressure, temperature, interpolate=interpolate_temperature)
    u_star = calc_u_star_simple(series[wspd_col].values, anemometer_height, roughness_length)
    u_star_t = calc_u_star_t(threshold_method,
                             d=grain_diameter,
                             particle_density=particle_density,
                             air_density=air_density)
    flux = calc_flux(flux_method,
                     u_star=u_star,
                     u_star_t=u_star_t,
                     air_density=air_density,
                     force_threshold=force_threshold)

    return series.with_columns(
        {'u_star': u_star, 'air_density': air_density, 'u_star_t': u_star_t, 'flux': flux},
        units={'u_star': 'm/s', 'air_density': 'kg/m3', 'u_star_t': 'm/s',
               'flux': FLUX_UNITS.get(flux_method, 'unknown')}
    )


class DuneFluxProcessor:
    """
    Run the full degrib-to-summary pipeline.

    Args:
        config_file: Optional YAML/JSON configuration file
        cli_args: Optional nested dict of overrides (highest precedence)
        config: Ready-made configuration, used instead of the two above
    """

    def __init__(self,
                 config_file: Optional[str] = None,
                 cli_args: Optional[Dict] = None,
                 config: Optional[DuneFluxConfig] = None):
        self.config = config or DuneFluxConfig(config_file, cli_args)

        processing = self.config.get_processing_config()
        self.processing_logger = ProcessingLogger(
            setup_duneflux_logging(processing['log_level'], processing.get('log_file'))
        )

    def load_series(self, input_files: Sequence[str]) -> TimeSeries:
        """
        Read and merge degrib files in the order given.

        Returns:
            TimeSeries: Merged series with metadata in file then encounter order
        """
        if not input_files:
            raise DataProcessingError("No input files given")

        merged = None
        for input_file in input_files:
            with error_context("reading degrib file", self.processing_logger, input_file=str(input_file)):
                records = read_raw_records(input_file)
                series = series_from_records(records, input_file)

            self.processing_logger.log_file_parsed(str(input_file), len(records), series.parameter_names)
            self.processing_logger.log_time_anomalies(series.anomalies)
            merged = series if merged is None else merge_series(merged, series)

        return merged

    def derive_quantities(self, series: TimeSeries) -> TimeSeries:
        """Add wind scalars, record durations and the flux columns."""
        ingestion = self.config.get_ingestion_config()
        wind = self.config.get_wind_config()
        sediment = self.config.get_sediment_config()
        atmosphere = self.config.get_atmosphere_config()

        with error_context("deriving wind scalars", self.processing_logger):
            for name in (ingestion['u_col'], ingestion['v_col']):
                if name not in series:
                    raise DataProcessingError(f"Wind component column '{name}' not found",
                                              {'columns': series.columns})
            series = add_wind_scalars(series, ingestion['u_col'], ingestion['v_col'],
                                      convention=wind['convention'])
            series = add_record_duration(series)

        with error_context("deriving sediment flux", self.processing_logger,
                           flux_method=sediment['flux_method']):
            series = add_flux_columns(
                series,
                pressure_col=ingestion['pressure_col'],
                temperature_col=ingestion['temperature_col'],
                anemometer_height=wind['anemometer_height'],
                roughness_length=wind['roughness_length'],
                grain_diameter=sediment['grain_diameter'],
                particle_density=sediment['particle_density'],
                threshold_method=sediment['threshold_method'],
                flux_method=sediment['flux_method'],
                force_threshold=sediment.get('force_threshold', True),
                interpolate_temperature=atmosphere.get('interpolate_temperature', False)
            )

        return series

    def summarize_series(self, series: TimeSeries) -> Dict[str, Summary]:
        """Compute every configured summary type over the configured period."""
        summary_config = self.config.get_summary_config()
        summarize_period = summarize_yearly if summary_config['period'] == 'year' else summarize_monthly

        summaries = {}
        for summary_type in summary_config.get('types', []):
            with error_context("summarizing series", self.processing_logger, summary_type=summary_type):
                if summary_type != SummaryType.RESULTANT.value:
                    summaries[summary_type] = summarize_period(series, summary_type)
                    continue

                resultant = summarize_period(series, summary_type,
                                             flux_col='flux',
                                             record_duration_col='record_duration',
                                             wind_azimuth_col='wdir')
                summaries[summary_type] = resultant

            missing = np.isnan(resultant['az'])
            if np.any(missing):
                self.processing_logger.log_processing_warning(
                    "Resultant is missing for periods with gaps in flux, duration or azimuth",
                    {'periods': resultant.periods[missing].tolist()}
                )

        return summaries

    def compute_mobility(self, series: TimeSeries, summaries: Dict[str, Summary]) -> Optional[np.ndarray]:
        """
        Yearly mobility index from the resultant magnitude and mean soil moisture.

        Returns None (and logs why) when the index cannot be computed.
        """
        mobility = self.config.get_mobility_config()
        soil_moisture_col = self.config.get('ingestion.soil_moisture_col')

        if not mobility.get('enabled', True):
            return None
        if self.config.get('summary.period') != 'year':
            logger.info("Mobility index is only computed for yearly summaries")
            return None
        if SummaryType.RESULTANT.value not in summaries:
            logger.info("Mobility index needs a resultant summary, skipping")
            return None
        if not soil_moisture_col or soil_moisture_col not in series:
            logger.info(f"Soil moisture column '{soil_moisture_col}' not found, skipping mobility index")
            return None

        with error_context("computing mobility index", self.processing_logger,
                           modification=mobility['modification']):
            soil_moisture = summarize_yearly({soil_moisture_col: series[soil_moisture_col].values},
                                             SummaryType.MEAN,
                                             years=calendar_factor(series.times, 'year'))
            return calc_mobility_index(summaries[SummaryType.RESULTANT.value]['mag'],
                                       soil_moisture[f"{soil_moisture_col}_mean"],
                                       mobility['modification'])

    def run_quality_checks(self, series: TimeSeries, output_dir: Optional[str] = None) -> Dict[str, Any]:
        ingestion = self.config.get_ingestion_config()
        qa = QualityAssurance({'missing_data_tolerance': ingestion['missing_data_tolerance']})

        qa_results = qa.run_qa_suite(series, DERIVED_VARIABLE_TYPES, output_dir)
        self.processing_logger.log_qa_results(qa_results)
        return qa_results

    def write_outputs(self, result: FluxProcessingResult, output_dir: str) -> List[str]:
        processing = self.config.get_processing_config()
        writer = DuneFluxWriter(output_dir)
        period = self.config.get('summary.period')

        with error_context("writing outputs", self.processing_logger, output_dir=output_dir):
            if processing.get('write_netcdf', True):
                writer.write_series_netcdf(result.series)

            if processing.get('write_csv', True):
                for summary_type, summary in result.summaries.items():
                    writer.write_summary_csv(summary, f"summary_{period}_{summary_type}.csv")

                if result.mobility_index is not None:
                    writer.write_mobility_csv(result.summaries[SummaryType.RESULTANT.value].periods,
                                              result.mobility_index, period_name=period)

            writer.create_file_manifest()

        return list(writer.created_files)

    def process(self, input_files: Sequence[str], output_dir: Optional[str] = None) -> FluxProcessingResult:
        """
        Run the pipeline on a collection of degrib files.

        Args:
            input_files: Degrib files, merged in this order
            output_dir: Output directory override

        Returns:
            FluxProcessingResult: Series, summaries, mobility index, QA and written files
        """
        output_dir = output_dir or self.config.get('processing.output_directory')

        self.processing_logger.log_processing_start("flux", {
            'input_files': len(input_files),
            'output_directory': output_dir,
            'wind_convention': self.config.get('wind.convention'),
            'flux_method': self.config.get('sediment.flux_method'),
            'summary_period': self.config.get('summary.period')
        })

        series = self.derive_quantities(self.load_series(input_files))
        result = FluxProcessingResult(series=series)
        result.summaries = self.summarize_series(series)
        result.mobility_index = self.compute_mobility(series, result.summaries)
        result.qa_results = self.run_quality_checks(series, output_dir)
        result.output_files = self.write_outputs(result, output_dir)

        self.processing_logger.log_processing_complete({
            'time_steps': len(series),
            'parameters': len(series.parameters),
            'output_files': len(result.output_files)
        })
        return result
