"""
Tests for the duneflux command-line interface.
"""

import pytest
from pathlib import Path

import sys
sys.path.append(str(Path(__file__).parent.parent))

from duneflux.duneflux_cli import create_parser, main


def test_parser_process_arguments():
    """Test parsing of the process command"""
    args = create_parser().parse_args(['process', 'a.csv', 'b.csv', '--period', 'month', '-o', 'out'])

    assert args.command == 'process'
    assert args.input_files == ['a.csv', 'b.csv']
    assert args.period == 'month'
    assert args.output_dir == 'out'


def test_no_command():
    """Test that running without a command prints help and fails"""
    assert main([]) == 1


def test_list_methods(capsys):
    """Test listing of registered methods"""
    assert main(['list-methods']) == 0

    output = capsys.readouterr().out
    assert 'climate' in output
    assert 'shao_lu' in output
    assert 'corrected_white' in output
    assert 'resultant' in output
    assert 'vanilla_anomaly' in output


def test_create_config(tmp_path):
    """Test writing a configuration template"""
    output_path = tmp_path / "duneflux.yaml"

    assert main(['create-config', str(output_path)]) == 0
    assert output_path.exists()


def test_create_config_with_bad_environment(tmp_path, monkeypatch):
    """Test that an invalid environment override does not block the template"""
    monkeypatch.setenv('DUNEFLUX_SUMMARY_PERIOD', 'fortnight')
    output_path = tmp_path / "duneflux.yaml"

    assert main(['create-config', str(output_path)]) == 0
    assert 'period: year' in output_path.read_text()


def test_process_missing_input(tmp_path):
    """Test that missing input files fail without processing"""
    assert main(['process', str(tmp_path / "missing.csv"), '-o', str(tmp_path / "out")]) == 1
    assert not (tmp_path / "out").exists()


def test_process_malformed_input(tmp_path):
    """Test that processing errors give a failing exit code"""
    bad_file = tmp_path / "bad.csv"
    bad_file.write_text("parameter,unit,reftime,validtime,value\n10U,[m/s],201501010000,3.5\n")

    assert main(['process', str(bad_file), '-o', str(tmp_path / "out"), '--log-level', 'ERROR']) == 1
