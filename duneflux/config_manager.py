"""
Unified Configuration System for duneflux

This module provides centralized configuration management with clear hierarchy:
1. Built-in defaults (lowest priority)
2. Configuration files (YAML/JSON)
3. Environment variables
4. Command-line arguments (highest priority)
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from .logging_utils import ConfigurationError
from .mobility_indices import MOBILITY_MODIFICATIONS
from .sediment_flux import FLUX_METHODS, THRESHOLD_METHODS
from .statistics_utils import SummaryType
from .wind_kinematics import WindConvention

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
VALID_SUMMARY_PERIODS = ['year', 'month']

# Environment variable -> (section, key)
ENV_MAPPINGS = {
    'DUNEFLUX_OUTPUT_DIR': ('processing', 'output_directory'),
    'DUNEFLUX_LOG_LEVEL': ('processing', 'log_level'),
    'DUNEFLUX_WIND_CONVENTION': ('wind', 'convention'),
    'DUNEFLUX_SUMMARY_PERIOD': ('summary', 'period'),
    'DUNEFLUX_GRAIN_DIAMETER': ('sediment', 'grain_diameter'),
}


def _coerce_env_value(value: str) -> Any:
    """Environment values arrive as strings: 'true'/'false', ints and floats are converted."""
    if value.lower() in ('true', 'false'):
        return value.lower() == 'true'
    for number_type in (int, float):
        try:
            return number_type(value)
        except ValueError:
            continue
    return value


def _environment_overrides() -> Dict[str, Dict[str, Any]]:
    overrides: Dict[str, Dict[str, Any]] = {}
    for env_var, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            overrides.setdefault(section, {})[key] = _coerce_env_value(value)
    return overrides


def _read_config_file(config_file: str) -> Dict[str, Any]:
    path = Path(config_file)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in ('.yaml', '.yml', '.json'):
        raise ConfigurationError(f"Unsupported config file format: {suffix}")

    with open(path) as f:
        try:
            loaded = json.load(f) if suffix == '.json' else yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not parse configuration file {path}: {e}") from e

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Configuration file {path} must hold a mapping of sections")
    return loaded


def _deep_merge(base: Dict, override: Dict) -> None:
    """Merge ``override`` into ``base`` in place, section by section."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class DuneFluxConfig:
    """
    Unified configuration system for duneflux processing.

    Sections:
        processing: output directory, logging and which outputs to write
        ingestion: degrib parameter names bound to physical quantities
        wind: component convention, anemometer height and roughness length
        sediment: grain properties and the threshold / flux models
        atmosphere: air density options
        summary: calendar period and summary types
        mobility: mobility index options
    """

    def __init__(self, config_file: Optional[str] = None, cli_args: Optional[Dict] = None):
        """
        Args:
            config_file: YAML (.yaml/.yml) or JSON file
            cli_args: Nested dict of command-line overrides

        Raises:
            ConfigurationError: For a missing or unreadable file, or invalid values
        """
        self.config_file = config_file
        self.cli_args = cli_args or {}

        layers = [_read_config_file(config_file) if config_file else {},
                  _environment_overrides(),
                  self.cli_args]

        self._config = self._get_default_config()
        for layer in layers:
            _deep_merge(self._config, layer)

        self._validate_configuration()

    @staticmethod
    def _get_default_config() -> Dict[str, Any]:
        """Built-in default configuration"""
        return {
            'processing': {
                'output_directory': "./duneflux_output/",
                'log_level': 'INFO',
                'log_file': None,
                'write_netcdf': True,
                'write_csv': True
            },
            'ingestion': {
                # degrib parameter names of ECMWF surface fields
                'u_col': '10U',
                'v_col': '10V',
                'pressure_col': 'SP',
                'temperature_col': '2T',
                'soil_moisture_col': 'SWVL1',
                'missing_data_tolerance': 0.05
            },
            'wind': {
                'convention': 'climate',
                'anemometer_height': 10.0,  # m
                'roughness_length': 0.001  # m
            },
            'sediment': {
                'grain_diameter': 0.00025,  # m, medium sand
                'particle_density': 2650.0,  # kg m-3, quartz
                'threshold_method': 'shao_lu',
                'flux_method': 'corrected_white',
                'force_threshold': True
            },
            'atmosphere': {
                'interpolate_temperature': True
            },
            'summary': {
                'period': 'year',
                'types': ['mean', 'sum', 'resultant']
            },
            'mobility': {
                'enabled': True,
                'modification': 'vanilla'
            }
        }

    def _validate_configuration(self):
        """Validate final configuration"""
        required_sections = ['processing', 'ingestion', 'wind', 'sediment', 'atmosphere', 'summary', 'mobility']

        for section in required_sections:
            if not isinstance(self._config.get(section), dict):
                raise ConfigurationError(f"Required configuration section missing: {section}")

        self._validate_processing_config()
        self._validate_ingestion_config()
        self._validate_wind_config()
        self._validate_sediment_config()
        self._validate_summary_config()
        self._validate_mobility_config()

    def _validate_processing_config(self):
        """Validate processing section configuration"""
        processing = self._config['processing']

        log_level = str(processing.get('log_level', 'INFO')).upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"log_level must be one of: {VALID_LOG_LEVELS}")
        processing['log_level'] = log_level

        for param in ['write_netcdf', 'write_csv']:
            if param in processing and not isinstance(processing[param], bool):
                raise ConfigurationError(f"Processing parameter '{param}' must be boolean")

    def _validate_ingestion_config(self):
        """Validate ingestion section configuration"""
        ingestion = self._config['ingestion']

        for param in ['u_col', 'v_col', 'pressure_col', 'temperature_col']:
            if not ingestion.get(param):
                raise ConfigurationError(f"Ingestion parameter '{param}' must name a degrib parameter")

        tolerance = ingestion.get('missing_data_tolerance', 0.05)
        if not (0 <= tolerance <= 1):
            raise ConfigurationError("missing_data_tolerance must be between 0 and 1")

    def _validate_wind_config(self):
        """Validate wind section configuration"""
        wind = self._config['wind']

        valid_conventions = [c.value for c in WindConvention]
        if wind.get('convention') not in valid_conventions:
            raise ConfigurationError(f"Wind convention must be one of: {valid_conventions}")

        for param in ['anemometer_height', 'roughness_length']:
            if not self._is_positive(wind.get(param)):
                raise ConfigurationError(f"Wind parameter '{param}' must be positive")

        if wind['roughness_length'] >= wind['anemometer_height']:
            raise ConfigurationError("roughness_length must be smaller than anemometer_height")

    def _validate_sediment_config(self):
        """Validate sediment section configuration"""
        sediment = self._config['sediment']

        for param in ['grain_diameter', 'particle_density']:
            if not self._is_positive(sediment.get(param)):
                raise ConfigurationError(f"Sediment parameter '{param}' must be positive")

        if sediment.get('threshold_method') not in THRESHOLD_METHODS:
            raise ConfigurationError(f"threshold_method must be one of: {sorted(THRESHOLD_METHODS)}")

        if sediment.get('flux_method') not in FLUX_METHODS:
            raise ConfigurationError(f"flux_method must be one of: {sorted(FLUX_METHODS)}")

        if not isinstance(sediment.get('force_threshold', True), bool):
            raise ConfigurationError("force_threshold must be boolean")

    def _validate_summary_config(self):
        """Validate summary section configuration"""
        summary = self._config['summary']

        if summary.get('period') not in VALID_SUMMARY_PERIODS:
            raise ConfigurationError(f"Summary period must be one of: {VALID_SUMMARY_PERIODS}")

        valid_types = [s.value for s in SummaryType]
        for summary_type in summary.get('types', []):
            if summary_type not in valid_types:
                raise ConfigurationError(f"Summary type '{summary_type}' must be one of: {valid_types}")

    def _validate_mobility_config(self):
        """Validate mobility section configuration"""
        mobility = self._config['mobility']

        if mobility.get('modification') not in MOBILITY_MODIFICATIONS:
            raise ConfigurationError(f"Mobility modification must be one of: {sorted(MOBILITY_MODIFICATIONS)}")

    @staticmethod
    def _is_positive(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0

    # Public interface methods
    def get(self, path: str, default: Any = None) -> Any:
        """
        Look up a value by dot path, e.g. ``config.get('sediment.flux_method')``.

        Returns ``default`` when any part of the path is missing.
        """
        current = self._config
        for key in path.split('.'):
            if not isinstance(current, dict) or key not in current:
                return default
            current = current[key]
        return current

    def get_processing_config(self) -> Dict[str, Any]:
        """Get processing-specific configuration"""
        return self._config['processing']

    def get_ingestion_config(self) -> Dict[str, Any]:
        return self._config['ingestion']

    def get_wind_config(self) -> Dict[str, Any]:
        return self._config['wind']

    def get_sediment_config(self) -> Dict[str, Any]:
        return self._config['sediment']

    def get_atmosphere_config(self) -> Dict[str, Any]:
        return self._config['atmosphere']

    def get_summary_config(self) -> Dict[str, Any]:
        return self._config['summary']

    def get_mobility_config(self) -> Dict[str, Any]:
        return self._config['mobility']

    def to_dict(self) -> Dict[str, Any]:
        """Return complete configuration as dictionary"""
        return self._config.copy()

    def save_config(self, output_path: str):
        """
        Write the resolved configuration as YAML (.yaml/.yml) or JSON (.json).

        Raises:
            ConfigurationError: For any other file extension
        """
        output_path = Path(output_path)
        suffix = output_path.suffix.lower()
        if suffix not in ('.yaml', '.yml', '.json'):
            raise ConfigurationError(f"Unsupported output format: {suffix}")

        with open(output_path, 'w') as f:
            if suffix == '.json':
                json.dump(self._config, f, indent=2)
            else:
                yaml.safe_dump(self._config, f, default_flow_style=False, indent=2, sort_keys=False)

    @classmethod
    def create_template_config(cls, output_path: str) -> str:
        """
        Write a commented YAML template holding every default.

        Args:
            output_path: Path of the template to create

        Returns:
            Path of the written template as a string
        """
        header = """# duneflux - Configuration Template
# All available options with their defaults.
#
# Environment variables override file settings:
#   DUNEFLUX_OUTPUT_DIR, DUNEFLUX_LOG_LEVEL, DUNEFLUX_WIND_CONVENTION,
#   DUNEFLUX_SUMMARY_PERIOD, DUNEFLUX_GRAIN_DIAMETER

"""
        section_comments = {
            'processing:': '# Processing configuration - output directory, logging and output formats',
            'ingestion:': '# Degrib parameter names for each physical input',
            'wind:': '# Wind component convention and log-law profile parameters (m)',
            'sediment:': '# Grain properties (m, kg m-3) and threshold / flux models',
            'atmosphere:': '# Air density options',
            'summary:': '# Periodic summaries (year or month)',
            'mobility:': '# Mobility index (flux / soil moisture)',
        }

        yaml_content = yaml.dump(cls._get_default_config(), default_flow_style=False,
                                 indent=2, sort_keys=False)

        commented_lines = []
        for line in yaml_content.split('\n'):
            if line in section_comments:
                if commented_lines:
                    commented_lines.append('')
                commented_lines.append(section_comments[line])
            commented_lines.append(line)

        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, 'w') as f:
            f.write(header + '\n'.join(commented_lines))

        return str(output_file)
