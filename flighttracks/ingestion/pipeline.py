"""
Track pipeline - orchestrates data flow from FR24 to CSV.

Pipeline stages:
1. Resolve: look up the flight legs (fr24_id) of an aircraft in a day window
2. Fetch: pull the track of each leg, one at a time
3. Filter: keep only airborne points (altitude/speed heuristic)
4. Write: sort all kept points by timestamp and export to CSV

Everything runs sequentially; the only waits are the client's rate
limit sleep and the courtesy pause between track fetches.
"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional, List, Tuple, Callable, Iterable, Dict, Any, Union

from flighttracks.config import (
    AppConfig,
    ConfigError,
    RunConfig,
    MODE_AGGREGATE,
    config as app_config,
    parse_day,
)
from flighttracks.export import result_filename, sort_positions, write_positions_csv
from flighttracks.ingestion.fr24_client import (
    Fr24Client,
    TrackPoint,
    FLIGHT_SUMMARY_PATH,
    FLIGHT_TRACKS_PATH,
)
from flighttracks.models import FilteredPosition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterThresholds:
    """
    Airborne heuristic.

    A point is kept when altitude >= min_altitude_ft and
    ground speed >= min_speed_kt. Raise either to keep only
    clearly airborne samples.
    """
    min_altitude_ft: float = 32
    min_speed_kt: float = 10

    @classmethod
    def from_config(cls, cfg: Optional[AppConfig] = None) -> 'FilterThresholds':
        cfg = cfg or app_config
        return cls(
            min_altitude_ft=cfg.filter.min_altitude_ft,
            min_speed_kt=cfg.filter.min_speed_kt,
        )

    def is_airborne(self, point: TrackPoint) -> bool:
        if not point.has_telemetry():
            return False
        return (
            point.altitude >= self.min_altitude_ft and
            point.ground_speed >= self.min_speed_kt
        )


def day_window(day_from: Union[str, date], day_to: Union[str, date]) -> Tuple[str, str]:
    """
    Convert a calendar day range into UTC ISO-8601 bounds.

    Start of day_from (00:00:00Z) through end of day_to (23:59:59Z).
    """
    start = parse_day(day_from)
    end = parse_day(day_to)
    if start > end:
        raise ConfigError(f'day_from {start} is after day_to {end}')
    return f'{start.isoformat()}T00:00:00Z', f'{end.isoformat()}T23:59:59Z'


def unique_flight_ids(summary: Dict[str, Any]) -> List[str]:
    """
    Extract distinct fr24_id values from a flight summary response.

    Null or missing ids are dropped. First-seen order is kept.
    """
    seen = set()
    flight_ids = []
    for record in summary.get('data') or []:
        fid = record.get('fr24_id')
        if fid is None or fid in seen:
            continue
        seen.add(fid)
        flight_ids.append(fid)
    return flight_ids


def filter_track_points(
    tracks: Iterable[Dict[str, Any]],
    thresholds: FilterThresholds,
    aircraft: Optional[str] = None,
) -> List[FilteredPosition]:
    """
    Keep airborne track points and map them to output positions.

    Pure function: the same input always yields the same output.
    """
    positions = []
    for raw in tracks:
        point = TrackPoint.from_dict(raw)
        if not thresholds.is_airborne(point):
            continue
        positions.append(FilteredPosition(
            latitude=point.latitude,
            longitude=point.longitude,
            timestamp=point.timestamp,  # already UTC ISO-8601
            altitude=point.altitude,
            speed=point.ground_speed,
            direction=point.track,
            aircraft=aircraft,
        ))
    return positions


class TrackPipeline:
    """
    Manages one batch run.

    Coordinates flight resolution, track fetching, filtering and export.
    """

    def __init__(
        self,
        client: Fr24Client,
        thresholds: Optional[FilterThresholds] = None,
        flight_pause_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the pipeline.

        Args:
            client: FR24 API client
            thresholds: Airborne heuristic (from config if None)
            flight_pause_seconds: Pause between track fetches (from config if None)
            sleep: Sleep function, replaceable in tests
        """
        self.client = client
        self.thresholds = thresholds or FilterThresholds.from_config()
        if flight_pause_seconds is None:
            flight_pause_seconds = app_config.rate_limit.flight_pause_seconds
        self.flight_pause_seconds = flight_pause_seconds
        self._sleep = sleep

        # State tracking
        self._flights_fetched: int = 0
        self._points_kept: int = 0
        self._points_dropped: int = 0

    @classmethod
    def from_config(
        cls,
        production: bool,
        cfg: Optional[AppConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> 'TrackPipeline':
        """Create pipeline and client from application configuration."""
        cfg = cfg or app_config
        return cls(
            client=Fr24Client.from_config(production, cfg, sleep=sleep),
            thresholds=FilterThresholds.from_config(cfg),
            flight_pause_seconds=cfg.rate_limit.flight_pause_seconds,
            sleep=sleep,
        )

    def resolve_flight_ids(
        self,
        aircraft: str,
        day_from: Union[str, date],
        day_to: Union[str, date],
    ) -> List[str]:
        """Find the distinct flight legs of an aircraft within the day window."""
        window_from, window_to = day_window(day_from, day_to)
        summary = self.client.get(FLIGHT_SUMMARY_PATH, {
            'registrations': aircraft,
            'flight_datetime_from': window_from,
            'flight_datetime_to': window_to,
        })
        return unique_flight_ids(summary)

    def fetch_points(self, flight_id: str, aircraft: Optional[str] = None) -> List[FilteredPosition]:
        """Fetch the track of one flight leg and keep its airborne points."""
        response = self.client.get(FLIGHT_TRACKS_PATH, {'flight_id': flight_id})

        # The endpoint wraps the single flight in a one-element array
        flight = response[0] if response else {}
        tracks = flight.get('tracks') or []

        positions = filter_track_points(tracks, self.thresholds, aircraft)

        self._flights_fetched += 1
        self._points_kept += len(positions)
        self._points_dropped += len(tracks) - len(positions)
        logger.debug(f'Flight {flight_id}: kept {len(positions)} of {len(tracks)} points')

        return positions

    def collect_points(
        self,
        flight_ids: List[str],
        aircraft: Optional[str] = None,
    ) -> List[FilteredPosition]:
        """
        Fetch and filter every flight leg, sorted by timestamp.

        Pauses between successive fetches to stay clear of rate limits.
        """
        all_points: List[FilteredPosition] = []
        total = len(flight_ids)

        for index, fid in enumerate(flight_ids):
            if index > 0 and self.flight_pause_seconds > 0:
                self._sleep(self.flight_pause_seconds)

            label = f'{aircraft}, ' if aircraft else ''
            logger.info(f'Getting positions for {label}flight_id {fid} [{index + 1}/{total}]')
            all_points.extend(self.fetch_points(fid, aircraft))

        return sort_positions(all_points)

    def scrape_aircraft(
        self,
        aircraft: str,
        day_from: date,
        day_to: date,
    ) -> List[FilteredPosition]:
        """Resolve and fetch all airborne positions of one aircraft."""
        logger.info(f'Finding flight legs for {aircraft} on dates {day_from} to {day_to}')
        flight_ids = self.resolve_flight_ids(aircraft, day_from, day_to)
        logger.info(f'Found {len(flight_ids)} flight_ids for {aircraft}')

        return self.collect_points(flight_ids, aircraft)

    def run(self, run_config: RunConfig) -> List[Path]:
        """
        Execute a batch run.

        Per-aircraft mode writes one file per aircraft; aggregate mode
        writes a single file with an aircraft column.

        Returns the written file paths.
        """
        logger.info(
            f'Starting {run_config.mode} run for {len(run_config.aircrafts)} aircraft '
            f'({run_config.day_from} to {run_config.day_to})'
        )
        written: List[Path] = []
        aggregate: List[FilteredPosition] = []

        for aircraft in run_config.aircrafts:
            logger.info(f'=== Processing aircraft {aircraft} ===')
            positions = self.scrape_aircraft(aircraft, run_config.day_from, run_config.day_to)

            if run_config.mode == MODE_AGGREGATE:
                aggregate.extend(positions)
                continue

            path = run_config.results_dir / result_filename(
                run_config.day_from, run_config.day_to, aircraft
            )
            logger.info(f'Writing {len(positions)} positions to {path}')
            written.append(write_positions_csv(path, positions))

        if run_config.mode == MODE_AGGREGATE:
            path = run_config.results_dir / result_filename(run_config.day_from, run_config.day_to)
            logger.info(f'Writing {len(aggregate)} positions to {path}')
            written.append(write_positions_csv(path, aggregate, include_aircraft=True))

        logger.info(f'Run finished: {self.stats}')
        return written

    @property
    def stats(self) -> dict:
        """Get run statistics."""
        return {
            'requests': self.client.request_count,
            'rate_limited': self.client.rate_limited_count,
            'flights_fetched': self._flights_fetched,
            'points_kept': self._points_kept,
            'points_dropped': self._points_dropped,
        }
