#!/usr/bin/env python3
"""
duneflux Command-Line Interface

Processes degrib extracts into wind, flux and periodic summary outputs.

Usage examples:
    # Yearly summaries of a set of degrib files
    duneflux process wind_2014.csv wind_2015.csv --output-dir ./out

    # Monthly summaries with a configuration file
    duneflux process *.csv --config duneflux.yaml --period month

    # List conventions, models and summary types
    duneflux list-methods

    # Write a configuration template
    duneflux create-config duneflux.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config_manager import DuneFluxConfig
from .flux_processor import DuneFluxProcessor
from .logging_utils import DuneFluxError
from .mobility_indices import MOBILITY_MODIFICATIONS
from .sediment_flux import FLUX_METHODS, THRESHOLD_METHODS
from .statistics_utils import SummaryType
from .wind_kinematics import CONVENTIONS


def create_parser():
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog='duneflux',
        description="Aeolian sediment flux processing of degrib time series",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic processing
  %(prog)s process wind_2014.csv wind_2015.csv --output-dir ./out

  # Monthly summaries, verbose logging
  %(prog)s process *.csv --period month --log-level DEBUG

  # List supported methods
  %(prog)s list-methods
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    process_parser = subparsers.add_parser(
        'process',
        help='Read degrib files, derive flux and write summaries'
    )
    process_parser.add_argument(
        'input_files',
        nargs='+',
        help='Degrib output files, merged in the order given'
    )
    process_parser.add_argument(
        '--config', '-c',
        help='YAML or JSON configuration file'
    )
    process_parser.add_argument(
        '--output-dir', '-o',
        help='Output directory (default: from configuration)'
    )
    process_parser.add_argument(
        '--period',
        choices=['year', 'month'],
        help='Summary period (default: from configuration)'
    )
    process_parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (default: from configuration)'
    )

    subparsers.add_parser(
        'list-methods',
        help='List wind conventions, threshold and flux models, summary types'
    )

    config_parser = subparsers.add_parser(
        'create-config',
        help='Write a configuration template with every default'
    )
    config_parser.add_argument(
        'output_path',
        help='Path of the YAML template to create'
    )

    return parser


def _cli_overrides(args) -> dict:
    overrides = {}
    if args.output_dir:
        overrides.setdefault('processing', {})['output_directory'] = args.output_dir
    if args.log_level:
        overrides.setdefault('processing', {})['log_level'] = args.log_level
    if args.period:
        overrides.setdefault('summary', {})['period'] = args.period
    return overrides


def process_files(args):
    """Run the flux pipeline on the given degrib files."""
    logger = logging.getLogger(__name__)

    missing = [f for f in args.input_files if not Path(f).exists()]
    if missing:
        logger.error(f"Input files do not exist: {', '.join(missing)}")
        return 1

    try:
        processor = DuneFluxProcessor(config_file=args.config, cli_args=_cli_overrides(args))
        result = processor.process(args.input_files)
    except DuneFluxError as e:
        logger.error(f"duneflux processing failed: {e}")
        for key, value in e.context.items():
            logger.error(f"  {key}: {value}")
        return 1

    logger.info("duneflux processing completed successfully!")
    for output_file in result.output_files:
        logger.info(f"Output file: {output_file}")
    return 0


def list_methods():
    """List the registered conventions, models and summary types."""
    print("Wind Component Conventions:")
    print("=" * 30)
    for convention in CONVENTIONS:
        print(f"  {convention.value}")

    print("\nThreshold Friction Velocity Methods:")
    print("=" * 38)
    for name in sorted(THRESHOLD_METHODS):
        print(f"  {name}")

    print("\nSediment Flux Methods:")
    print("=" * 24)
    for name in sorted(FLUX_METHODS):
        print(f"  {name}")

    print("\nSummary Types:")
    print("=" * 16)
    for summary_type in SummaryType:
        print(f"  {summary_type.value}")

    print("\nMobility Index Modifications:")
    print("=" * 31)
    for name in MOBILITY_MODIFICATIONS:
        print(f"  {name}")

    return 0


def create_config(args):
    """Write a configuration template."""
    output_file = DuneFluxConfig.create_template_config(args.output_path)
    print(f"Configuration template written: {output_file}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'process':
        return process_files(args)
    elif args.command == 'list-methods':
        return list_methods()
    elif args.command == 'create-config':
        return create_config(args)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
