"""
Configuration management for flighttracks.

Two layers:
- Environment settings (API tokens, endpoint, thresholds, pacing) loaded
  from environment variables and an optional .env file.
- Run settings (which aircraft, which days, which output mode) loaded
  from a YAML file.

Everything is centralized here so the pipeline never reads the
environment directly.
"""

import os
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Optional, List, Union

import yaml
from dotenv import load_dotenv

load_dotenv()


MODE_PER_AIRCRAFT = 'per_aircraft'
MODE_AGGREGATE = 'aggregate'
RUN_MODES = (MODE_PER_AIRCRAFT, MODE_AGGREGATE)


class ConfigError(ValueError):
    """Raised when configuration is missing or malformed."""


def _parse_optional_int(value: Optional[str]) -> Optional[int]:
    """Parse an int setting where 'unlimited' (or empty) means no limit."""
    if value is None or value.strip().lower() in ('', 'none', 'unlimited'):
        return None
    return int(value)


def _parse_bool(value: Union[bool, str], name: str) -> bool:
    """Accept a YAML bool or the strings true/false, nothing else."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ConfigError(f'{name} must be true or false, got {value!r}')


def parse_day(value: Union[str, date]) -> date:
    """
    Parse a calendar day from config.

    YAML already turns bare 2025-08-25 into a date, quoted values stay
    strings, so both are accepted.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), '%Y-%m-%d').date()
    except ValueError:
        raise ConfigError(f'Invalid date {value!r}, expected YYYY-MM-DD')


@dataclass(frozen=True)
class Fr24Config:
    """Flightradar24 API configuration."""
    api_token: Optional[str] = os.getenv('FR24_API_TOKEN') or None
    test_api_token: Optional[str] = os.getenv('FR24_TEST_API_TOKEN') or None
    base_url: str = os.getenv('FR24_BASE_URL', 'https://fr24api.flightradar24.com')
    accept_version: str = 'v1'
    timeout_seconds: float = float(os.getenv('FR24_TIMEOUT_SECONDS', '30'))

    def token_for(self, production: bool) -> str:
        """Pick the bearer token for the run mode, failing loudly if unset."""
        token = self.api_token if production else self.test_api_token
        if not token:
            name = 'FR24_API_TOKEN' if production else 'FR24_TEST_API_TOKEN'
            raise ConfigError(f'{name} is not set (environment or .env)')
        return token


@dataclass(frozen=True)
class RateLimitConfig:
    """Request pacing and rate limit recovery."""
    retry_sleep_seconds: float = float(os.getenv('FR24_RATE_LIMIT_SLEEP_SECONDS', '20'))
    max_retries: Optional[int] = _parse_optional_int(os.getenv('FR24_MAX_RATE_LIMIT_RETRIES', '10'))

    # Courtesy pause between track fetches of one aircraft
    flight_pause_seconds: float = float(os.getenv('FR24_FLIGHT_PAUSE_SECONDS', '10'))


@dataclass(frozen=True)
class FilterConfig:
    """Airborne heuristic: points below either threshold are ground/taxi."""
    min_altitude_ft: float = float(os.getenv('FR24_MIN_ALTITUDE_FT', '32'))
    min_speed_kt: float = float(os.getenv('FR24_MIN_SPEED_KT', '10'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    fr24: Fr24Config
    rate_limit: RateLimitConfig
    filter: FilterConfig
    debug: bool


@dataclass(frozen=True)
class RunConfig:
    """One batch run: aircraft registrations over a day window."""
    aircrafts: List[str]
    day_from: date
    day_to: date
    production: bool = False
    mode: str = MODE_PER_AIRCRAFT
    results_dir: Path = field(default_factory=lambda: Path('results'))

    def __post_init__(self):
        if not self.aircrafts:
            raise ConfigError('No aircrafts configured')
        if self.day_from > self.day_to:
            raise ConfigError(f'day_from {self.day_from} is after day_to {self.day_to}')
        if self.mode not in RUN_MODES:
            raise ConfigError(f'Unknown mode {self.mode!r}, expected one of {RUN_MODES}')

    @classmethod
    def from_dict(cls, raw: dict) -> 'RunConfig':
        """Build and validate a run config from parsed YAML."""
        if not isinstance(raw, dict):
            raise ConfigError('Run configuration must be a mapping')

        missing = [key for key in ('aircrafts', 'day_from', 'day_to') if key not in raw]
        if missing:
            raise ConfigError(f'Run configuration is missing: {", ".join(missing)}')

        aircrafts = raw['aircrafts']
        if isinstance(aircrafts, str):
            aircrafts = aircrafts.split()
        elif not isinstance(aircrafts, list):
            raise ConfigError('No aircrafts configured')

        return cls(
            aircrafts=[str(a).strip() for a in aircrafts if str(a).strip()],
            day_from=parse_day(raw['day_from']),
            day_to=parse_day(raw['day_to']),
            production=_parse_bool(raw.get('production', False), 'production'),
            mode=raw.get('mode', MODE_PER_AIRCRAFT),
            results_dir=Path(raw.get('results_dir', 'results')),
        )


def load_run_config(path: Union[str, Path]) -> RunConfig:
    """Load a YAML run configuration file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f'Run configuration not found: {path}')

    with path.open('r', encoding='utf-8') as fh:
        try:
            raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f'Invalid YAML in {path}: {e}')

    return RunConfig.from_dict(raw)


def load_config() -> AppConfig:
    """Load all environment configuration."""
    return AppConfig(
        fr24=Fr24Config(),
        rate_limit=RateLimitConfig(),
        filter=FilterConfig(),
        debug=os.getenv('FLIGHTTRACKS_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
