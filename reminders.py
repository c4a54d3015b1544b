"""
Prayer reminder scheduling.

Every prayer gets three one-shot reminders: five minutes before, at the
prayer time and ten minutes after. A refresh validates the new schedule
first and only then swaps the whole set of armed timers, so a bad schedule
never leaves the day without reminders.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

import config
from prayer_times import PRAYER_NAMES, PrayerBotError, PrayerName, get_prayer_times

logger = logging.getLogger(__name__)


class ScheduleError(PrayerBotError):
    """A prayer schedule is incomplete or carries an unparseable time."""


class SchedulerState(Enum):
    IDLE = 'idle'
    SCHEDULING = 'scheduling'
    ARMED = 'armed'
    REFRESHING = 'refreshing'


@dataclass(frozen=True)
class ReminderOffset:
    minutes: int
    template: str
    is_at_prayer_time: bool = False


REMINDER_OFFSETS = (
    ReminderOffset(-5, "{prayer} prayer in 5 minutes"),
    ReminderOffset(0, "{prayer} prayer time now", is_at_prayer_time=True),
    ReminderOffset(10, "{prayer} prayer was 10 minutes ago"),
)


def render_message(prayer, offset):
    return offset.template.format(prayer=PrayerName(prayer).value)


@dataclass
class ArmedTimer:
    timer_id: str
    prayer: PrayerName
    offset: ReminderOffset
    fire_at: datetime
    handle: object

    @property
    def message(self):
        return render_message(self.prayer, self.offset)


def parse_prayer_time(value):
    """Parse an "HH:MM" string into a time of day."""
    if not isinstance(value, str):
        raise ScheduleError(f"Invalid time value: {value!r}")
    parts = value.strip().split(':')
    if len(parts) != 2 or not all(part.isascii() and part.isdigit() for part in parts):
        raise ScheduleError(f"Invalid time format: {value!r}")
    try:
        hour, minute = map(int, parts)
    except ValueError as e:
        raise ScheduleError(f"Invalid time format: {value!r}") from e
    if hour > 23 or minute > 59:
        raise ScheduleError(f"Time out of range: {value!r}")
    return time(hour=hour, minute=minute)


def parse_schedule(prayer_times):
    """Validate a {prayer name: "HH:MM"} mapping.

    Keys are matched case-insensitively. Returns {PrayerName: time} or raises
    ScheduleError without side effects.
    """
    if not prayer_times:
        raise ScheduleError("Prayer schedule is empty")
    by_name = {str(getattr(key, 'value', key)).lower(): value for key, value in prayer_times.items()}

    parsed = {}
    for prayer in PRAYER_NAMES:
        if prayer.value.lower() not in by_name:
            raise ScheduleError(f"Prayer schedule is missing {prayer.value}")
        try:
            parsed[prayer] = parse_prayer_time(by_name[prayer.value.lower()])
        except ScheduleError as e:
            raise ScheduleError(f"{prayer.value}: {e}") from e
    return parsed


def prayer_instant(prayer_time, now, tz):
    """Absolute instant of `prayer_time` today in `tz`, or tomorrow if already passed."""
    today = now.astimezone(tz).date()
    instant = tz.localize(datetime.combine(today, prayer_time))
    if instant < now:
        instant = tz.localize(datetime.combine(today + timedelta(days=1), prayer_time))
    return instant


class SchedulerTimers:
    """One-shot timers backed by APScheduler date jobs."""

    def __init__(self, scheduler, tz=None):
        self.scheduler = scheduler
        self.tz = tz or config.TZ

    def schedule(self, run_at, callback, *args, name=None):
        job = self.scheduler.add_job(
            callback,
            trigger=DateTrigger(run_date=run_at, timezone=self.tz),
            args=list(args),
            name=name,
            misfire_grace_time=300,
        )
        return job.id

    def cancel(self, job_id):
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            # Already fired or already cancelled
            pass


class ReminderScheduler:
    """Owns today's prayer schedule and the reminders armed for it.

    `timers` provides schedule(run_at, callback, *args, name=None) -> handle and
    an idempotent cancel(handle). `notify(prayer, message, is_at_prayer_time)`
    may be a plain function or a coroutine function; it is never awaited here.
    """

    def __init__(self, timers, notify, source=None, clock=None, tz=None):
        self.tz = tz or config.TZ
        self._timers = timers
        self._notify = notify
        self._source = source or get_prayer_times
        self._clock = clock or (lambda: datetime.now(self.tz))
        self._armed = {}
        self._generation = 0
        self._pending_notifications = set()
        self._refresh_lock = asyncio.Lock()
        self.prayer_times = {}
        self.state = SchedulerState.IDLE
        self.last_refresh = None

    def armed_timers(self):
        return sorted(self._armed.values(), key=lambda timer: (timer.fire_at, timer.timer_id))

    def next_reminder(self, now=None):
        now = now or self._clock()
        for timer in self.armed_timers():
            if timer.fire_at > now:
                return timer
        return None

    def _cancel_armed(self):
        for timer in self._armed.values():
            self._timers.cancel(timer.handle)
        self._armed.clear()

    def cancel_all(self):
        self._cancel_armed()
        self.state = SchedulerState.IDLE
        logger.info("All prayer reminders cancelled")

    def refresh(self, prayer_times, now=None):
        """Replace all armed reminders with ones derived from `prayer_times`.

        Raises ScheduleError before cancelling anything if the schedule is
        malformed. Returns the newly armed timers ordered by fire time.
        """
        parsed = parse_schedule(prayer_times)
        now = now or self._clock()

        self._cancel_armed()
        self._generation += 1

        for prayer in PRAYER_NAMES:
            instant = prayer_instant(parsed[prayer], now, self.tz)
            for offset in REMINDER_OFFSETS:
                fire_at = self.tz.normalize(instant + timedelta(minutes=offset.minutes))
                if fire_at <= now:
                    logger.info(f"Skipping {prayer.value} reminder at {fire_at:%H:%M} ({offset.minutes:+d} min), already passed")
                    continue

                timer_id = f"prayer_{self._generation}_{prayer.value}_{offset.minutes}"
                handle = self._timers.schedule(fire_at, self._fire, timer_id, name=timer_id)
                self._armed[timer_id] = ArmedTimer(timer_id, prayer, offset, fire_at, handle)
                logger.info(f"🕒 {prayer.value} reminder: {render_message(prayer, offset)} at {fire_at:%Y-%m-%d %H:%M}")

        self.prayer_times = {prayer.value: parsed[prayer].strftime('%H:%M') for prayer in PRAYER_NAMES}
        self.last_refresh = now
        self.state = SchedulerState.ARMED
        logger.info(f"Total reminders scheduled: {len(self._armed)}")
        return self.armed_timers()

    async def trigger_daily_refresh(self):
        """Fetch today's prayer times and re-arm all reminders.

        While the fetch is in flight `state` reads REFRESHING when reminders
        are already armed and SCHEDULING otherwise. Returns False if the
        fetched schedule was rejected; the previous reminders and state then
        stay as they were.
        """
        async with self._refresh_lock:
            previous_state = self.state
            self.state = SchedulerState.REFRESHING if self._armed else SchedulerState.SCHEDULING
            today = self._clock().astimezone(self.tz).date()
            logger.info(f"🔄 Refreshing prayer times for {today}")
            try:
                prayer_times = await self._source(today)
                self.refresh(prayer_times, self._clock())
            except ScheduleError as e:
                self.state = previous_state
                logger.error(f"Rejected prayer schedule for {today}, keeping previous reminders: {e}")
                return False
            except BaseException:
                self.state = previous_state
                raise
            return True

    async def _fire(self, timer_id):
        timer = self._armed.pop(timer_id, None)
        if timer is None:
            logger.debug(f"Ignoring stale reminder {timer_id}")
            return

        logger.info(f"🔔 {timer.message}")
        try:
            result = self._notify(timer.prayer, timer.message, timer.offset.is_at_prayer_time)
        except Exception:
            logger.exception(f"Error delivering reminder {timer_id}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending_notifications.add(task)
            task.add_done_callback(self._notification_done)

    def _notification_done(self, task):
        self._pending_notifications.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error delivering reminder: {error}", exc_info=error)
