import json

import pytest

from flighttracks.ingestion.fr24_client import Fr24Client


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, reason='OK', text=None):
        self.status_code = status_code
        self.reason = reason
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        return self._payload


class FakeSession:
    """Replays queued responses and records every call."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def queue(self, response):
        self.responses.append(response)

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        return self.responses.pop(0)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def client(session, sleeper):
    return Fr24Client(
        api_token='secret-token',
        base_url='https://fr24.example.com',
        session=session,
        sleep=sleeper,
    )


def track(alt, gspeed, timestamp='2025-08-25T10:00:00Z', lat=50.0, lon=8.5, heading=270):
    return {
        'lat': lat,
        'lon': lon,
        'alt': alt,
        'gspeed': gspeed,
        'track': heading,
        'timestamp': timestamp,
    }
