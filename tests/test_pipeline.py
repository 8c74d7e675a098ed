import itertools
from datetime import date

import pytest

from flighttracks.config import ConfigError, RunConfig, MODE_AGGREGATE
from flighttracks.ingestion.pipeline import (
    FilterThresholds,
    TrackPipeline,
    day_window,
    filter_track_points,
    unique_flight_ids,
)
from flighttracks.models import FilteredPosition

from conftest import FakeResponse, track

THRESHOLDS = FilterThresholds(min_altitude_ft=32, min_speed_kt=10)


@pytest.fixture
def pipeline(client, sleeper):
    return TrackPipeline(client, thresholds=THRESHOLDS, flight_pause_seconds=10, sleep=sleeper)


def test_day_window_covers_whole_days():
    assert day_window('2025-08-25', '2025-08-31') == ('2025-08-25T00:00:00Z', '2025-08-31T23:59:59Z')
    assert day_window(date(2025, 1, 1), date(2025, 1, 1)) == ('2025-01-01T00:00:00Z', '2025-01-01T23:59:59Z')


@pytest.mark.parametrize('day_from, day_to', [
    ('2025-13-01', '2025-08-31'),
    ('yesterday', '2025-08-31'),
    ('2025-09-01', '2025-08-31'),
])
def test_day_window_rejects_bad_dates(day_from, day_to):
    with pytest.raises(ConfigError):
        day_window(day_from, day_to)


def test_unique_flight_ids_drops_duplicates_and_nulls():
    summary = {'data': [{'fr24_id': 'abc'}, {'fr24_id': 'abc'}, {'fr24_id': None}]}

    assert unique_flight_ids(summary) == ['abc']


def test_unique_flight_ids_handles_missing_data_and_ids():
    assert unique_flight_ids({}) == []
    assert unique_flight_ids({'data': None}) == []
    assert unique_flight_ids({'data': [{'callsign': 'DLH1'}, {'fr24_id': 'x'}, {'fr24_id': 'y'}, {'fr24_id': 'x'}]}) == ['x', 'y']


@pytest.mark.parametrize('alt, gspeed', [
    combo for combo in itertools.product([None, 0, 31, 32, 35000], [None, 0, 9, 10, 450])
    if None in combo
])
def test_points_without_telemetry_are_excluded(alt, gspeed):
    assert filter_track_points([track(alt, gspeed)], THRESHOLDS) == []


def test_point_below_altitude_threshold_is_excluded():
    assert filter_track_points([track(31, 50)], THRESHOLDS) == []


def test_point_below_speed_threshold_is_excluded():
    assert filter_track_points([track(5000, 9.9)], THRESHOLDS) == []


def test_point_on_threshold_boundary_is_included():
    positions = filter_track_points([track(32, 10)], THRESHOLDS)

    assert positions == [FilteredPosition(
        latitude=50.0,
        longitude=8.5,
        timestamp='2025-08-25T10:00:00Z',
        altitude=32,
        speed=10,
        direction=270,
    )]


@pytest.mark.parametrize('alt, gspeed', list(itertools.product([0, 31, 32, 33, 38000], [0, 9, 10, 11, 480])))
def test_filter_matches_thresholds(alt, gspeed):
    kept = filter_track_points([track(alt, gspeed)], THRESHOLDS)

    if alt >= 32 and gspeed >= 10:
        assert len(kept) == 1
        assert kept[0].altitude == alt
        assert kept[0].speed == gspeed
    else:
        assert kept == []


def test_thresholds_are_tunable():
    strict = FilterThresholds(min_altitude_ft=1000, min_speed_kt=100)
    points = [track(500, 150), track(1000, 100), track(2000, 99)]

    assert [p.altitude for p in filter_track_points(points, strict)] == [1000]


def test_filter_is_idempotent():
    points = [track(31, 50), track(32, 10), track(None, 200), track(5000, 300, '2025-08-25T09:00:00Z')]

    assert filter_track_points(points, THRESHOLDS) == filter_track_points(points, THRESHOLDS)


def test_filter_tags_aircraft():
    positions = filter_track_points([track(1000, 200)], THRESHOLDS, aircraft='D-AIEP')

    assert positions[0].aircraft == 'D-AIEP'


def test_resolve_flight_ids_queries_summary_window(pipeline, session):
    session.queue(FakeResponse(200, {'data': [{'fr24_id': 'abc'}, {'fr24_id': 'abc'}, {'fr24_id': None}]}))

    flight_ids = pipeline.resolve_flight_ids('D-AIEP', '2025-08-25', '2025-08-31')

    assert flight_ids == ['abc']
    call = session.calls[0]
    assert call['url'].endswith('/api/flight-summary/light')
    assert call['params'] == {
        'registrations': 'D-AIEP',
        'flight_datetime_from': '2025-08-25T00:00:00Z',
        'flight_datetime_to': '2025-08-31T23:59:59Z',
    }


def test_malformed_date_fails_before_any_request(pipeline, session):
    with pytest.raises(ConfigError):
        pipeline.resolve_flight_ids('D-AIEP', '25/08/2025', '2025-08-31')

    assert session.calls == []


def test_fetch_points_takes_first_element(pipeline, session):
    session.queue(FakeResponse(200, [{
        'fr24_id': 'abc',
        'tracks': [track(0, 5), track(3000, 180), track(None, 180)],
    }]))

    positions = pipeline.fetch_points('abc')

    assert [p.altitude for p in positions] == [3000]
    assert session.calls[0]['params'] == {'flight_id': 'abc'}
    assert pipeline.stats['points_kept'] == 1
    assert pipeline.stats['points_dropped'] == 2


@pytest.mark.parametrize('payload', [[], [{'fr24_id': 'abc'}], [{'fr24_id': 'abc', 'tracks': None}]])
def test_fetch_points_tolerates_empty_tracks(pipeline, session, payload):
    session.queue(FakeResponse(200, payload))

    assert pipeline.fetch_points('abc') == []


def test_collect_points_pauses_between_fetches_and_sorts(pipeline, session, sleeper):
    session.queue(FakeResponse(200, [{'tracks': [
        track(1000, 200, '2025-08-25T12:00:00Z'),
        track(1000, 200, '2025-08-25T12:05:00Z'),
    ]}]))
    session.queue(FakeResponse(200, [{'tracks': [
        track(1000, 200, '2025-08-25T08:00:00Z'),
    ]}]))
    session.queue(FakeResponse(200, [{'tracks': [
        track(1000, 200, '2025-08-25T12:01:00Z'),
    ]}]))

    positions = pipeline.collect_points(['a', 'b', 'c'])

    timestamps = [p.timestamp for p in positions]
    assert timestamps == sorted(timestamps)
    assert all(x <= y for x, y in zip(timestamps, timestamps[1:]))
    assert timestamps[0] == '2025-08-25T08:00:00Z'
    assert sleeper.calls == [10, 10]


def test_collect_points_single_flight_has_no_pause(pipeline, session, sleeper):
    session.queue(FakeResponse(200, [{'tracks': [track(1000, 200)]}]))

    pipeline.collect_points(['a'])

    assert sleeper.calls == []


def _queue_aircraft(session, flight_ids, timestamps):
    session.queue(FakeResponse(200, {'data': [{'fr24_id': fid} for fid in flight_ids]}))
    for ts in timestamps:
        session.queue(FakeResponse(200, [{'tracks': [track(2000, 250, ts), track(0, 0, ts)]}]))


def test_run_per_aircraft_writes_one_file_each(pipeline, session, tmp_path):
    _queue_aircraft(session, ['a1'], ['2025-08-25T10:00:00Z'])
    _queue_aircraft(session, ['b1', 'b2'], ['2025-08-25T11:00:00Z', '2025-08-25T09:00:00Z'])
    run_config = RunConfig(
        aircrafts=['D-AIEP', 'D-AIJF'],
        day_from=date(2025, 8, 25),
        day_to=date(2025, 8, 31),
        results_dir=tmp_path,
    )

    written = pipeline.run(run_config)

    assert len(written) == 2
    assert '_D-AIEP_2025-08-25_2025-08-31.csv' in written[0].name
    assert '_D-AIJF_2025-08-25_2025-08-31.csv' in written[1].name
    lines = written[1].read_text().splitlines()
    assert lines[0] == 'latitude,longitude,timestamp,altitude,speed,direction'
    assert [line.split(',')[2] for line in lines[1:]] == ['2025-08-25T09:00:00Z', '2025-08-25T11:00:00Z']


def test_run_aggregate_writes_single_sorted_file(pipeline, session, tmp_path):
    _queue_aircraft(session, ['a1'], ['2025-08-25T10:00:00Z'])
    _queue_aircraft(session, ['b1'], ['2025-08-25T07:00:00Z'])
    run_config = RunConfig(
        aircrafts=['D-AIEP', 'D-AIJF'],
        day_from=date(2025, 8, 25),
        day_to=date(2025, 8, 25),
        mode=MODE_AGGREGATE,
        results_dir=tmp_path,
    )

    written = pipeline.run(run_config)

    assert len(written) == 1
    assert '_all_aircrafts_' in written[0].name
    lines = written[0].read_text().splitlines()
    assert lines[0] == 'aircraft,latitude,longitude,timestamp,altitude,speed,direction'
    assert [line.split(',')[0] for line in lines[1:]] == ['D-AIJF', 'D-AIEP']
    assert pipeline.stats['flights_fetched'] == 2
    assert pipeline.stats['requests'] == 4


def test_run_stops_on_api_error(pipeline, session, tmp_path):
    from flighttracks.ingestion.fr24_client import Fr24ApiError

    session.queue(FakeResponse(500, None, reason='Internal Server Error', text='boom'))
    run_config = RunConfig(aircrafts=['D-AIEP'], day_from=date(2025, 8, 25), day_to=date(2025, 8, 25), results_dir=tmp_path)

    with pytest.raises(Fr24ApiError):
        pipeline.run(run_config)
    assert list(tmp_path.iterdir()) == []
