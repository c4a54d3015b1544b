"""
Prayer time lookup for the configured city.

Times come from the Aladhan API (city endpoint first, then the coordinates
endpoint when coordinates are configured) and fall back to a static seasonal
table for Jeddah when every API attempt fails.
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum

import aiohttp

import config

logger = logging.getLogger(__name__)


class PrayerName(str, Enum):
    FAJR = 'Fajr'
    DHUHR = 'Dhuhr'
    ASR = 'Asr'
    MAGHRIB = 'Maghrib'
    ISHA = 'Isha'


PRAYER_NAMES = list(PrayerName)


class PrayerBotError(Exception):
    """Base class for errors raised by the prayer bot."""


class FetchError(PrayerBotError):
    """The prayer times provider could not deliver a usable schedule."""


# Approximate prayer times for Jeddah throughout the year
SEASONAL_FALLBACK_TIMES = {
    'spring': {'Fajr': '04:45', 'Dhuhr': '12:20', 'Asr': '15:45', 'Maghrib': '18:30', 'Isha': '20:00'},
    'summer': {'Fajr': '04:15', 'Dhuhr': '12:15', 'Asr': '15:30', 'Maghrib': '18:45', 'Isha': '20:15'},
    'autumn': {'Fajr': '04:50', 'Dhuhr': '11:55', 'Asr': '15:10', 'Maghrib': '18:05', 'Isha': '19:30'},
    'winter': {'Fajr': '05:30', 'Dhuhr': '12:10', 'Asr': '15:15', 'Maghrib': '17:45', 'Isha': '19:15'},
}


def season_for_month(month):
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    if 3 <= month <= 5:
        return 'spring'
    if 6 <= month <= 8:
        return 'summer'
    if 9 <= month <= 11:
        return 'autumn'
    return 'winter'


def get_fallback_prayer_times(month):
    """Return the built-in prayer times for the season containing `month`."""
    return dict(SEASONAL_FALLBACK_TIMES[season_for_month(month)])


def today_local():
    return datetime.now(config.TZ).date()


def _clean_time(value):
    # The API may append a timezone marker, e.g. "05:17 (+03)"
    return str(value).strip().split(' ')[0]


def _payload(data):
    if not isinstance(data, dict) or not isinstance(data.get('data'), dict):
        raise FetchError(f"Unexpected response body: {str(data)[:200]}")
    return data['data']


def extract_timings(data):
    """Pull the five prayer times out of an Aladhan response body."""
    timings = _payload(data).get('timings')
    if not isinstance(timings, dict) or not timings:
        raise FetchError("Response is missing timings data")

    missing = [prayer.value for prayer in PRAYER_NAMES if not timings.get(prayer.value)]
    if missing:
        raise FetchError(f"Response is missing required prayers: {', '.join(missing)}")

    return {prayer.value: _clean_time(timings[prayer.value]) for prayer in PRAYER_NAMES}


def validate_api_date(data, requested_date):
    """Check the date echoed by the API; tolerate a one day difference."""
    date_info = _payload(data).get('date')
    gregorian = date_info.get('gregorian') if isinstance(date_info, dict) else date_info
    gregorian_date = gregorian.get('date') if isinstance(gregorian, dict) else gregorian
    if not gregorian_date:
        logger.warning("API response missing date information")
        return
    if not isinstance(date_info, dict) or not isinstance(gregorian, dict):
        raise FetchError(f"Unexpected date information in response: {str(date_info)[:200]}")

    try:
        api_date = datetime.strptime(str(gregorian_date), '%d-%m-%Y').date()
    except ValueError as e:
        raise FetchError(f"Could not parse API gregorian date '{gregorian_date}'") from e

    date_diff = abs((api_date - requested_date).days)
    if date_diff == 0:
        return
    if date_diff <= 1:
        logger.warning(f"Accepting API response with 1-day difference: {api_date} vs {requested_date}")
        return
    raise FetchError(f"API date too far off: requested {requested_date}, got {api_date}")


async def _request_timings(session, url, params, target_date, label):
    logger.info(f"🔄 Trying {label} API for {target_date}")
    timeout = aiohttp.ClientTimeout(total=config.API_TIMEOUT)
    try:
        async with session.get(url, params=params, timeout=timeout) as response:
            if response.status != 200:
                response_text = await response.text()
                raise FetchError(
                    f"{label} API failed with status {response.status}, response: {response_text[:200]}"
                )
            data = await response.json()
    except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
        raise FetchError(f"{label} API request failed: {e}") from e

    validate_api_date(data, target_date)
    timings = extract_timings(data)
    logger.info(f"✅ {label} API success for {target_date}: {timings}")
    return timings


async def _with_session(session, fetch):
    if session is not None:
        return await fetch(session)
    async with aiohttp.ClientSession() as own_session:
        return await fetch(own_session)


async def fetch_prayer_times(city, country, method, target_date=None, session=None):
    """Fetch the five prayer times for a city from the Aladhan API.

    Raises FetchError on transport failures, non-200 responses and
    responses that do not carry all five prayers.
    """
    if target_date is None:
        target_date = today_local()
    url = f"{config.API_URL}/{target_date.strftime('%d-%m-%Y')}"
    params = {'city': city, 'country': country, 'method': method}
    return await _with_session(
        session, lambda s: _request_timings(s, url, params, target_date, 'City')
    )


async def fetch_prayer_times_by_coordinates(latitude, longitude, method, target_date=None, session=None):
    """Same contract as fetch_prayer_times, against the coordinates endpoint."""
    if target_date is None:
        target_date = today_local()
    url = f"{config.COORDINATES_API_URL}/{target_date.strftime('%d-%m-%Y')}"
    params = {'latitude': latitude, 'longitude': longitude, 'method': method}
    return await _with_session(
        session, lambda s: _request_timings(s, url, params, target_date, 'Coordinates')
    )


async def get_prayer_times(target_date=None, session=None):
    """Fetch prayer times with API attempts and the seasonal fallback.

    Always returns a complete schedule.
    """
    if target_date is None:
        target_date = today_local()

    try:
        return await fetch_prayer_times(
            config.CITY, config.COUNTRY, config.METHOD, target_date, session=session
        )
    except FetchError as e:
        logger.error(f"❌ City API error for {target_date}: {e}")

    if config.LATITUDE and config.LONGITUDE:
        try:
            return await fetch_prayer_times_by_coordinates(
                config.LATITUDE, config.LONGITUDE, config.METHOD, target_date, session=session
            )
        except FetchError as e:
            logger.error(f"❌ Coordinates API error for {target_date}: {e}")

    fallback = get_fallback_prayer_times(target_date.month)
    logger.warning(f"All APIs failed for {target_date}, using fallback prayer times: {fallback}")
    return fallback
