"""Tests for the health and status web endpoints."""

import asyncio
from datetime import datetime
from types import SimpleNamespace

import pytz
from aiohttp.test_utils import TestClient, TestServer

import config
from main import build_status, create_web_app
from prayer_times import PrayerName
from reminders import REMINDER_OFFSETS, ArmedTimer, SchedulerState

TZ = pytz.timezone('Asia/Riyadh')


def reminders_stub():
    fire_at = TZ.localize(datetime(2025, 7, 15, 12, 0))
    timer = ArmedTimer('prayer_1_Dhuhr_-5', PrayerName.DHUHR, REMINDER_OFFSETS[0], fire_at, 'job-1')
    return SimpleNamespace(
        state=SchedulerState.ARMED,
        last_refresh=TZ.localize(datetime(2025, 7, 15, 0, 1)),
        prayer_times={'Dhuhr': '12:05'},
        armed_timers=lambda: [timer],
    )


def test_build_status_reports_schedule_and_reminders():
    status = build_status(reminders_stub())

    assert status['city'] == config.CITY
    assert status['state'] == 'armed'
    assert status['last_refresh'] == '2025-07-15T00:01:00+03:00'
    assert status['prayer_times'] == {'Dhuhr': '12:05'}
    assert status['reminders'] == [
        {'message': "Dhuhr prayer in 5 minutes", 'fire_at': '2025-07-15T12:00:00+03:00'},
    ]


def test_build_status_before_first_refresh():
    idle = SimpleNamespace(state=SchedulerState.IDLE, last_refresh=None, prayer_times={}, armed_timers=lambda: [])

    status = build_status(idle)

    assert status['last_refresh'] is None
    assert status['reminders'] == []


def test_web_endpoints():
    async def scenario():
        client = TestClient(TestServer(create_web_app(reminders_stub())))
        await client.start_server()
        try:
            root = await client.get('/')
            status = await client.get('/status')
            return await root.text(), await status.json()
        finally:
            await client.close()

    text, body = asyncio.run(scenario())

    assert text == "Bot is running!"
    assert body['reminders'][0]['message'] == "Dhuhr prayer in 5 minutes"
