"""
CSV export for filtered positions.

Handles:
- Sorting positions by timestamp across flights and aircraft
- Writing per-aircraft and aggregate result files
- Result filename generation
- Concatenating previously written result files into one

Usage:
    from flighttracks.export import write_positions_csv

    write_positions_csv('results/out.csv', positions)
"""

import csv
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional, List, Iterable, Tuple, Union

from flighttracks.models import FilteredPosition, POSITION_COLUMNS, AGGREGATE_COLUMNS

logger = logging.getLogger(__name__)

CONCATENATED_FILENAME = 'concatenated_results.csv'


def sort_positions(positions: Iterable[FilteredPosition]) -> List[FilteredPosition]:
    """
    Sort positions by timestamp ascending.

    Timestamps share one ISO-8601 UTC format, so string order is time
    order. The sort is stable for equal timestamps.
    """
    return sorted(positions, key=lambda p: p.timestamp or '')


def write_positions_csv(
    path: Union[str, Path],
    positions: Iterable[FilteredPosition],
    include_aircraft: bool = False,
) -> Path:
    """
    Write positions to a CSV file, sorted by timestamp.

    The aggregate variant prepends an 'aircraft' column.
    Returns the written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = sort_positions(positions)
    header = AGGREGATE_COLUMNS if include_aircraft else POSITION_COLUMNS

    with path.open('w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for position in rows:
            writer.writerow(position.to_row(include_aircraft))

    logger.info(f'CSV data written to: {path} ({len(rows)} positions)')
    return path


def result_filename(
    day_from: date,
    day_to: date,
    aircraft: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Build a result filename.

    result_<run timestamp>_<aircraft>_<from>_<to>.csv, with 'all_aircrafts'
    in place of the registration for aggregate runs.
    """
    stamp = (now or datetime.now()).strftime('%Y%m%d_%H%M%S')
    label = aircraft or 'all_aircrafts'
    return f'result_{stamp}_{label}_{day_from.isoformat()}_{day_to.isoformat()}.csv'


def concatenate_results(
    results_dir: Union[str, Path],
    output_name: str = CONCATENATED_FILENAME,
) -> Tuple[int, Path]:
    """
    Concatenate all CSV files in a directory into one file.

    Files are read in name order; the header is kept only from the
    first file. The output file itself is never an input.

    Returns (files merged, output path).
    """
    results_dir = Path(results_dir)
    output_path = results_dir / output_name

    csv_files = sorted(
        p for p in results_dir.glob('*.csv')
        if p.name != output_name
    )

    with output_path.open('w', newline='', encoding='utf-8') as out:
        writer = csv.writer(out)
        for idx, csv_file in enumerate(csv_files):
            with csv_file.open('r', newline='', encoding='utf-8') as f:
                reader = csv.reader(f)
                for line_no, row in enumerate(reader):
                    if idx == 0 or line_no > 0:
                        writer.writerow(row)
            logger.debug(f'Appended {csv_file.name}')

    logger.info(f'Concatenated {len(csv_files)} files into {output_path}')
    return len(csv_files), output_path
