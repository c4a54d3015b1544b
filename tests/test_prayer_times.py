"""Tests for the prayer times API client and its seasonal fallback."""

import asyncio
from datetime import date

import aiohttp
import pytest

import config
from prayer_times import (
    FetchError,
    extract_timings,
    fetch_prayer_times,
    get_fallback_prayer_times,
    get_prayer_times,
    season_for_month,
    validate_api_date,
)

TIMINGS = {
    'Fajr': '05:17 (+03)', 'Sunrise': '06:35', 'Dhuhr': '12:05', 'Asr': '15:15',
    'Sunset': '17:44', 'Maghrib': '17:45', 'Isha': '19:15', 'Midnight': '23:55',
}


def api_body(timings=TIMINGS, gregorian='15-07-2025'):
    return {
        'code': 200,
        'status': 'OK',
        'data': {'timings': timings, 'date': {'readable': '15 Jul 2025', 'gregorian': {'date': gregorian}}},
    }


class FakeResponse:
    def __init__(self, status=200, body=None):
        self.status = status
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def text(self):
        return str(self._body)


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def fetch(session, target_date=date(2025, 7, 15)):
    return asyncio.run(fetch_prayer_times('Jeddah', 'Saudi Arabia', 4, target_date, session=session))


def test_fetch_parses_five_prayers():
    session = FakeSession([FakeResponse(body=api_body())])

    timings = fetch(session)

    assert timings == {'Fajr': '05:17', 'Dhuhr': '12:05', 'Asr': '15:15', 'Maghrib': '17:45', 'Isha': '19:15'}
    url, params = session.requests[0]
    assert url == f"{config.API_URL}/15-07-2025"
    assert params == {'city': 'Jeddah', 'country': 'Saudi Arabia', 'method': 4}


def test_fetch_rejects_error_status():
    session = FakeSession([FakeResponse(status=500, body='Internal Server Error')])

    with pytest.raises(FetchError, match='status 500'):
        fetch(session)


def test_fetch_wraps_transport_errors():
    session = FakeSession([aiohttp.ClientConnectionError('connection reset')])

    with pytest.raises(FetchError):
        fetch(session)


def test_fetch_wraps_invalid_json():
    session = FakeSession([FakeResponse(body=ValueError('Expecting value'))])

    with pytest.raises(FetchError):
        fetch(session)


def test_fetch_requires_every_prayer():
    timings = {k: v for k, v in TIMINGS.items() if k != 'Isha'}
    session = FakeSession([FakeResponse(body=api_body(timings))])

    with pytest.raises(FetchError, match='Isha'):
        fetch(session)


def test_fetch_accepts_one_day_date_difference():
    session = FakeSession([FakeResponse(body=api_body(gregorian='14-07-2025'))])

    assert fetch(session)['Dhuhr'] == '12:05'


def test_fetch_rejects_wrong_date():
    session = FakeSession([FakeResponse(body=api_body(gregorian='01-07-2025'))])

    with pytest.raises(FetchError, match='too far off'):
        fetch(session)


def test_extract_timings_requires_data():
    with pytest.raises(FetchError):
        extract_timings({'code': 400, 'data': 'Invalid date'})


def test_fallback_for_july():
    assert get_fallback_prayer_times(7) == {
        'Fajr': '04:15', 'Dhuhr': '12:15', 'Asr': '15:30', 'Maghrib': '18:45', 'Isha': '20:15',
    }


@pytest.mark.parametrize('month, season', [
    (1, 'winter'), (2, 'winter'), (3, 'spring'), (5, 'spring'), (6, 'summer'),
    (8, 'summer'), (9, 'autumn'), (11, 'autumn'), (12, 'winter'),
])
def test_season_buckets(month, season):
    assert season_for_month(month) == season


def test_fallback_rejects_invalid_month():
    with pytest.raises(ValueError):
        get_fallback_prayer_times(13)


def test_get_prayer_times_falls_back_when_api_fails(monkeypatch):
    monkeypatch.setattr(config, 'LATITUDE', None)
    monkeypatch.setattr(config, 'LONGITUDE', None)
    session = FakeSession([aiohttp.ClientConnectionError('offline')])

    timings = asyncio.run(get_prayer_times(date(2025, 7, 15), session=session))

    assert timings == get_fallback_prayer_times(7)


def test_get_prayer_times_tries_coordinates_before_fallback(monkeypatch):
    monkeypatch.setattr(config, 'LATITUDE', '21.5433')
    monkeypatch.setattr(config, 'LONGITUDE', '39.1728')
    session = FakeSession([
        FakeResponse(status=404, body='Not found'),
        FakeResponse(body=api_body()),
    ])

    timings = asyncio.run(get_prayer_times(date(2025, 7, 15), session=session))

    assert timings['Fajr'] == '05:17'
    url, params = session.requests[1]
    assert url == f"{config.COORDINATES_API_URL}/15-07-2025"
    assert params['latitude'] == '21.5433'


@pytest.mark.parametrize('date_info', [
    {'gregorian': '15-07-2025'},
    '15-07-2025',
])
def test_validate_api_date_rejects_malformed_date_block(date_info):
    with pytest.raises(FetchError):
        validate_api_date({'data': {'date': date_info}}, date(2025, 7, 15))


def test_get_prayer_times_falls_back_on_malformed_date_block(monkeypatch):
    monkeypatch.setattr(config, 'LATITUDE', None)
    monkeypatch.setattr(config, 'LONGITUDE', None)
    body = api_body()
    body['data']['date'] = {'gregorian': '15-07-2025'}
    session = FakeSession([FakeResponse(body=body)])

    timings = asyncio.run(get_prayer_times(date(2025, 7, 15), session=session))

    assert timings == get_fallback_prayer_times(7)
