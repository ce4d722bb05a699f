"""
Tests for logging and error handling infrastructure.
"""

import pytest
import logging
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent))

from duneflux.logging_utils import (
    ConfigurationError,
    DataProcessingError,
    DuneFluxError,
    ProcessingLogger,
    TimeDisagreementWarning,
    UnknownMethodError,
    error_context,
)


@pytest.fixture
def processing_logger():
    return ProcessingLogger(logging.getLogger('duneflux.test'))


def test_error_context_wraps_config_errors():
    """Test that foreign errors in config operations become configuration errors"""
    with pytest.raises(ConfigurationError) as exc_info:
        with error_context("loading config file", config_file="missing.yaml"):
            raise KeyError("processing")

    assert exc_info.value.context['operation'] == "loading config file"
    assert exc_info.value.context['config_file'] == "missing.yaml"


def test_error_context_wraps_processing_errors(processing_logger):
    """Test that foreign errors elsewhere become processing errors and are counted"""
    with pytest.raises(DataProcessingError):
        with error_context("reading degrib file", processing_logger):
            raise ValueError("bad row")

    assert processing_logger.processing_stats['errors_encountered'] == 1


def test_error_context_keeps_duneflux_errors():
    """Test that duneflux errors pass through with added context"""
    with pytest.raises(UnknownMethodError) as exc_info:
        with error_context("computing flux", method="lettau"):
            raise UnknownMethodError("Undefined flux calculation method", {'available': ['corrected_white']})

    assert exc_info.value.context['available'] == ['corrected_white']
    assert exc_info.value.context['method'] == "lettau"


def test_error_info():
    """Test the error information dictionary"""
    error = DuneFluxError("something failed", {'file': 'a.txt'})

    info = error.get_full_error_info()

    assert info['error_type'] == 'DuneFluxError'
    assert info['message'] == "something failed"
    assert info['context'] == {'file': 'a.txt'}


def test_processing_logger_stats(processing_logger):
    """Test processing statistics"""
    processing_logger.log_processing_start("flux", {'input_files': 2})
    processing_logger.log_file_parsed("a.txt", 40, ['10U', '10V'])
    processing_logger.log_file_parsed("b.txt", 20, ['SP'])
    processing_logger.log_time_anomalies([TimeDisagreementWarning('2T', 3)])
    processing_logger.log_processing_warning("gap in resultant")

    summary = processing_logger.get_processing_summary()

    assert summary['workflow_type'] == "flux"
    assert summary['processing_stats']['files_parsed'] == 2
    assert summary['processing_stats']['records_read'] == 60
    assert summary['processing_stats']['time_anomalies'] == 1
    assert summary['processing_stats']['warnings_issued'] == 1
    assert 'elapsed_time' in summary


def test_time_disagreement_warning():
    """Test the time anomaly record"""
    anomaly = TimeDisagreementWarning('2T', 3)

    assert isinstance(anomaly, UserWarning)
    assert anomaly.parameter == '2T'
    assert anomaly.count == 3
    assert "3 records" in str(anomaly)
