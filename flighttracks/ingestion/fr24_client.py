"""
Flightradar24 API client.

Handles communication with the FR24 REST API, including:
- Bearer token authentication
- JSON GET requests against the flight summary and track endpoints
- Rate limit recovery (fixed sleep, bounded retries)
- Error reporting with status code and response body

Flight track point format (one entry of "tracks"):
    lat        - WGS84 latitude
    lon        - WGS84 longitude
    alt        - Altitude (feet), may be null
    gspeed     - Ground speed (knots), may be null
    track      - Track angle (degrees, 0=north)
    timestamp  - UTC ISO-8601 string
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Any, Callable, Dict

import requests

from flighttracks.config import AppConfig, config as app_config

logger = logging.getLogger(__name__)

FLIGHT_SUMMARY_PATH = '/api/flight-summary/light'
FLIGHT_TRACKS_PATH = '/api/flight-tracks'


class Fr24ApiError(Exception):
    """Non-success response from the FR24 API."""

    def __init__(self, status_code: int, reason: str, body: str):
        self.status_code = status_code
        self.reason = reason
        self.body = body
        super().__init__(f'{status_code} {reason}: {body}')


class RateLimitExhausted(Fr24ApiError):
    """Still rate limited after the configured number of retries."""

    def __init__(self, status_code: int, reason: str, body: str, attempts: int):
        self.attempts = attempts
        super().__init__(status_code, reason, body)


@dataclass
class RateLimited:
    """Outcome of a single attempt that hit the API rate limit."""
    status_code: int
    reason: str
    body: str


@dataclass
class TrackPoint:
    """
    Parsed track sample from the flight-tracks endpoint.

    Altitude and ground speed stay None when the source reports null;
    the airborne filter relies on that.
    """
    latitude: Optional[float]
    longitude: Optional[float]
    timestamp: Optional[str]
    altitude: Optional[float]
    ground_speed: Optional[float]
    track: Optional[float]

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'TrackPoint':
        return cls(
            latitude=raw.get('lat'),
            longitude=raw.get('lon'),
            timestamp=raw.get('timestamp'),
            altitude=raw.get('alt'),
            ground_speed=raw.get('gspeed'),
            track=raw.get('track'),
        )

    def has_telemetry(self) -> bool:
        """Check if both altitude and ground speed were reported."""
        return self.altitude is not None and self.ground_speed is not None


def is_rate_limited(status_code: int, body: str) -> bool:
    """FR24 signals throttling with 429, occasionally only in the body text."""
    return status_code == 429 or 'too many requests' in (body or '').lower()


class Fr24Client:
    """
    Client for the Flightradar24 API.

    Handles:
    - GET requests with bearer auth and JSON parsing
    - Rate limiting (sleep and retry on 429)
    - Injectable session and sleep for testing
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = 'https://fr24api.flightradar24.com',
        accept_version: str = 'v1',
        timeout: float = 30,
        retry_sleep_seconds: float = 20,
        max_retries: Optional[int] = 10,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retry_sleep_seconds = retry_sleep_seconds
        self.max_retries = max_retries
        self._sleep = sleep

        self.session = session or requests.Session()
        self.headers = {
            'Accept': 'application/json',
            'Accept-Version': accept_version,
            'Authorization': f'Bearer {api_token}',
        }

        self.request_count: int = 0
        self.rate_limited_count: int = 0

        if max_retries is None:
            logger.warning('FR24 client retries rate limited requests without limit')

    @classmethod
    def from_config(
        cls,
        production: bool,
        cfg: Optional[AppConfig] = None,
        **kwargs,
    ) -> 'Fr24Client':
        """Create client from application configuration."""
        cfg = cfg or app_config
        client = cls(
            api_token=cfg.fr24.token_for(production),
            base_url=cfg.fr24.base_url,
            accept_version=cfg.fr24.accept_version,
            timeout=cfg.fr24.timeout_seconds,
            retry_sleep_seconds=cfg.rate_limit.retry_sleep_seconds,
            max_retries=cfg.rate_limit.max_retries,
            **kwargs,
        )
        logger.info(f'FR24 client initialized ({"production" if production else "test"} token)')
        return client

    def _attempt(self, url: str, params: Dict[str, str]) -> Any:
        """
        Issue one GET request.

        Returns parsed JSON, or a RateLimited outcome when throttled.

        Raises:
            Fr24ApiError on any other non-2xx response
            requests.RequestException on network errors
        """
        try:
            response = self.session.get(
                url,
                params=params or None,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f'FR24 API timeout: {url}')
            raise
        except requests.exceptions.RequestException as e:
            logger.error(f'FR24 request failed: {e}')
            raise
        finally:
            self.request_count += 1

        if 200 <= response.status_code < 300:
            return response.json()

        body = response.text
        if is_rate_limited(response.status_code, body):
            return RateLimited(response.status_code, response.reason, body)

        logger.error(f'FR24 API error: {response.status_code} {response.reason}')
        raise Fr24ApiError(response.status_code, response.reason, body)

    def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """
        Fetch a JSON resource.

        Args:
            path: Endpoint path relative to the base URL
            params: Query parameters, URL-encoded when non-empty

        Returns:
            Parsed JSON body (object or array, depending on the endpoint)

        Raises:
            Fr24ApiError on non-2xx responses
            RateLimitExhausted when throttling outlasts max_retries
        """
        params = params or {}
        url = f'{self.base_url}/{path.lstrip("/")}'
        logger.info(f'Calling GET {path} with {params}')

        retries = 0
        while True:
            outcome = self._attempt(url, params)
            if not isinstance(outcome, RateLimited):
                return outcome

            self.rate_limited_count += 1
            if self.max_retries is not None and retries >= self.max_retries:
                logger.error(f'FR24 rate limit persisted after {retries} retries: {path}')
                raise RateLimitExhausted(
                    outcome.status_code, outcome.reason, outcome.body, retries + 1
                )

            retries += 1
            logger.warning(
                f'Rate limited, sleeping {self.retry_sleep_seconds:g} seconds and retrying '
                f'({retries}/{self.max_retries if self.max_retries is not None else "unlimited"})'
            )
            self._sleep(self.retry_sleep_seconds)
