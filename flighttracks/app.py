"""
flighttracks command line application.

Main entry point for batch runs. Subcommands:
- scrape: resolve flight legs, fetch tracks, filter and write CSV
- concat: merge all result CSV files of a directory into one

Usage:
    python -m flighttracks.app scrape --config config.yml
    python -m flighttracks.app concat --results-dir results
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, List

import requests

from flighttracks.config import ConfigError, MODE_AGGREGATE, config, load_run_config
from flighttracks.export import concatenate_results
from flighttracks.ingestion import Fr24ApiError, TrackPipeline

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Log progress to standard output."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stdout,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='flighttracks',
        description='Export airborne FR24 flight track positions to CSV.',
    )
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    scrape = subparsers.add_parser('scrape', help='Fetch and export flight tracks')
    scrape.add_argument(
        '--config',
        default='config.yml',
        help='Path to the YAML run configuration (default: config.yml)',
    )
    scrape.add_argument(
        '--aggregate',
        action='store_true',
        help='Write one file for all aircraft regardless of the configured mode',
    )

    concat = subparsers.add_parser('concat', help='Concatenate result CSV files')
    concat.add_argument(
        '--results-dir',
        default='results',
        help='Directory holding the result files (default: results)',
    )
    return parser


def run_scrape(config_path: str, force_aggregate: bool = False) -> List[Path]:
    """Load the run configuration and execute the pipeline."""
    run_config = load_run_config(config_path)
    if force_aggregate and run_config.mode != MODE_AGGREGATE:
        run_config = replace(run_config, mode=MODE_AGGREGATE)

    # Token lookup fails here, before any request is made
    pipeline = TrackPipeline.from_config(run_config.production)
    return pipeline.run(run_config)


def run_concat(results_dir: str) -> Path:
    path = Path(results_dir)
    if not path.is_dir():
        raise ConfigError(f'Results directory not found: {path}')
    _, output_path = concatenate_results(path)
    return output_path


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug or config.debug)

    try:
        if args.command == 'scrape':
            written = run_scrape(args.config, args.aggregate)
            for path in written:
                logger.info(f'Result file: {path}')
        else:
            run_concat(args.results_dir)
    except ConfigError as e:
        logger.error(f'Configuration error: {e}')
        return 1
    except Fr24ApiError as e:
        logger.error(f'FR24 API error: {e}')
        return 1
    except requests.RequestException as e:
        logger.error(f'Request failed: {e}')
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
