"""
Error Handling and Logging Infrastructure for duneflux

Logging setup for the ``duneflux`` logger, a run tracker that counts what the
pipeline has read and what went wrong, and the exception and warning types
raised by the ingestion, wind and flux modules.
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
BANNER = "=" * 60


def _make_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def setup_duneflux_logging(log_level: str = "INFO",
                           log_file: Optional[str] = None,
                           console_output: bool = True) -> logging.Logger:
    """
    Configure the ``duneflux`` package logger.

    Existing handlers are replaced, so calling this again (e.g. once per
    processor) does not duplicate output. Module loggers created with
    ``logging.getLogger(__name__)`` propagate to it.

    Args:
        log_level: Console level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        log_file: Optional log file, which always records DEBUG and above
        console_output: Log to stdout

    Returns:
        The configured ``duneflux`` logger
    """
    level = getattr(logging, log_level.upper())
    logger = logging.getLogger('duneflux')

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if console_output:
        logger.addHandler(_make_handler(logging.StreamHandler(sys.stdout), level))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_make_handler(logging.FileHandler(log_path), logging.DEBUG))
        level = logging.DEBUG

    logger.setLevel(level)
    return logger


class ProcessingLogger:
    """
    Tracks one pipeline run.

    Counts degrib files parsed, raw records read, reference/valid time
    anomalies, warnings and errors, and logs the start and end of the run
    with those counts.

    Args:
        logger: Logger to write to (defaults to a freshly configured
            ``duneflux`` logger)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or setup_duneflux_logging()
        self.processing_start_time = None
        self.current_workflow = None
        self.processing_stats = dict.fromkeys(
            ['files_parsed', 'records_read', 'time_anomalies', 'errors_encountered', 'warnings_issued'], 0
        )

    def _log_mapping(self, level: int, title: str, mapping: Optional[Dict]) -> None:
        if not mapping:
            return
        self.logger.log(level, title)
        for key, value in mapping.items():
            self.logger.log(level, f"  {key}: {value}")

    def log_processing_start(self, workflow_type: str, parameters: Dict[str, Any]) -> None:
        """Start the run clock and log the run parameters."""
        self.processing_start_time = datetime.now()
        self.current_workflow = workflow_type

        self.logger.info(BANNER)
        self.logger.info(f"duneflux {workflow_type} run started at {self.processing_start_time.isoformat()}")
        self._log_mapping(logging.INFO, "Run parameters:", parameters)
        self.logger.info(BANNER)

    def log_file_parsed(self, input_file: str, num_records: int, parameters: List[str]) -> None:
        """
        Record a parsed degrib file.

        Args:
            input_file: Path of the file
            num_records: Raw records read from it
            parameters: Parameter names found, in encounter order
        """
        self.processing_stats['files_parsed'] += 1
        self.processing_stats['records_read'] += num_records

        self.logger.info(f"Completed read of file: {Path(input_file).name} ({num_records} records)")
        self.logger.debug(f"  Parameters: {', '.join(parameters)}")

    def log_time_anomalies(self, anomalies: List["TimeDisagreementWarning"]) -> None:
        """Log the reference/valid time disagreements recorded while parsing."""
        self.processing_stats['time_anomalies'] += len(anomalies)
        for anomaly in anomalies:
            self.logger.warning(str(anomaly))

    def log_processing_error(self, error_type: str, error_details: str, context: Optional[Dict] = None) -> None:
        self.processing_stats['errors_encountered'] += 1
        self.logger.error(f"Processing error ({error_type}): {error_details}")
        self._log_mapping(logging.ERROR, "Error context:", context)

    def log_processing_warning(self, warning_message: str, context: Optional[Dict] = None) -> None:
        self.processing_stats['warnings_issued'] += 1
        self.logger.warning(f"Processing warning: {warning_message}")
        self._log_mapping(logging.WARNING, "Warning context:", context)

    def log_qa_results(self, qa_results: Dict[str, Any]) -> None:
        """
        Log the outcome of a quality assurance suite.

        Every check that did not pass is logged (and counted) as a warning.
        """
        results = qa_results.get('validation_results', [])
        self.logger.info(f"Quality checks: {qa_results.get('status', 'unknown')} ({len(results)} checks)")

        for result in results:
            if result['status'] != 'pass':
                self.log_processing_warning(
                    "; ".join(result['messages']),
                    {'test': result['test_name'], 'variable': result.get('variable', 'all')}
                )

    def log_processing_complete(self, summary_stats: Optional[Dict] = None) -> None:
        """Log the run duration, counters and any extra statistics."""
        self.logger.info(BANNER)
        if self.processing_start_time:
            elapsed = datetime.now() - self.processing_start_time
            self.logger.info(f"duneflux {self.current_workflow} run completed in {elapsed}")
        else:
            self.logger.info("duneflux run completed")

        self._log_mapping(logging.INFO, "Processing statistics:", self.processing_stats)
        self._log_mapping(logging.INFO, "Outputs:", summary_stats)
        self.logger.info(BANNER)

    def get_processing_summary(self) -> Dict[str, Any]:
        """Snapshot of the run so far."""
        summary = {
            'workflow_type': self.current_workflow,
            'start_time': self.processing_start_time.isoformat() if self.processing_start_time else None,
            'current_time': datetime.now().isoformat(),
            'processing_stats': dict(self.processing_stats)
        }

        if self.processing_start_time:
            summary['elapsed_time'] = str(datetime.now() - self.processing_start_time)

        return summary


class DuneFluxError(Exception):
    """
    Base class for duneflux errors.

    Args:
        message: Error message
        context: Extra information (file, line, available methods, ...)
    """

    def __init__(self, message: str, context: Optional[Dict] = None):
        super().__init__(message)
        self.context = context or {}
        self.timestamp = datetime.now()

    def get_full_error_info(self) -> Dict[str, Any]:
        return {
            'error_type': type(self).__name__,
            'message': str(self),
            'timestamp': self.timestamp.isoformat(),
            'context': self.context
        }


class ConfigurationError(DuneFluxError):
    """Invalid configuration or column bindings"""


class TimeFormatError(DuneFluxError):
    """Timestamp that does not match the YYYYMMDDHHMM degrib format"""


class DataFormatError(DuneFluxError):
    """Malformed row in a raw input file"""


class UnknownConventionError(DuneFluxError):
    """Wind component convention that has no registered conversion"""


class UnknownMethodError(DuneFluxError):
    """Threshold, flux, summary or mobility method that is not registered"""


class DataProcessingError(DuneFluxError):
    """Error while reading, merging or deriving data"""


class ValidationError(DuneFluxError):
    """Error in data validation"""


class TimeDisagreementWarning(UserWarning):
    """
    Reference time and valid time disagree for some records of a parameter.

    Non-fatal: the parser keeps the reference time as an auxiliary column and
    records one of these per affected parameter.
    """

    def __init__(self, parameter: str, count: int):
        super().__init__(
            f"disagreement between reftime and validtime in {count} records "
            f"of parameter '{parameter}'"
        )
        self.parameter = parameter
        self.count = count


@contextmanager
def error_context(operation_name: str, logger: Optional[ProcessingLogger] = None, **context_info):
    """
    Wrap a pipeline step so failures are logged and carry context.

    duneflux errors are re-raised with the operation context added. Any
    other exception is re-raised as a ConfigurationError when the operation
    name mentions "config", otherwise as a DataProcessingError.

    Args:
        operation_name: Name of the step
        logger: Optional ProcessingLogger that counts and logs the failure
        **context_info: Added to the error context

    Example:
        with error_context("reading degrib file", logger, input_file=path):
            read_degrib(path)
    """
    start_time = datetime.now()
    if logger:
        logger.logger.debug(f"Starting operation: {operation_name}")

    try:
        yield
    except Exception as e:
        context = {'operation': operation_name,
                   'duration': str(datetime.now() - start_time),
                   **context_info}

        if logger:
            logger.log_processing_error(type(e).__name__, str(e), context)

        if isinstance(e, DuneFluxError):
            e.context.update(context)
            raise

        error_class = ConfigurationError if "config" in operation_name.lower() else DataProcessingError
        raise error_class(str(e), context) from e

    if logger:
        logger.logger.debug(f"Completed operation: {operation_name} ({datetime.now() - start_time})")
