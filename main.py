import asyncio
import logging

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

import config
from notifier import DiscordNotifier
from reminders import ReminderScheduler, SchedulerTimers
from user_side import PrayerBot

# Setup detailed logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Reduce noise from third-party libraries
logging.getLogger('discord').setLevel(logging.WARNING)
logging.getLogger('apscheduler').setLevel(logging.WARNING)
logging.getLogger('aiohttp.access').setLevel(logging.WARNING)


def build_status(reminders):
    return {
        'city': config.CITY,
        'country': config.COUNTRY,
        'timezone': config.TIMEZONE_NAME,
        'state': reminders.state.value,
        'last_refresh': reminders.last_refresh.isoformat() if reminders.last_refresh else None,
        'prayer_times': reminders.prayer_times,
        'reminders': [
            {'message': timer.message, 'fire_at': timer.fire_at.isoformat()}
            for timer in reminders.armed_timers()
        ],
    }


async def handle(request):
    return web.Response(text="Bot is running!")


async def status(request):
    return web.json_response(build_status(request.app['reminders']))


def create_web_app(reminders):
    app = web.Application()
    app['reminders'] = reminders
    app.router.add_get("/", handle)
    app.router.add_get("/status", status)
    return app


def log_status_message(reminders):
    """Log status message without sending to Discord"""
    logger.info("=" * 50)
    logger.info(f"📊 BOT STATUS REPORT - {config.CITY}, {config.COUNTRY}")
    logger.info("=" * 50)

    logger.info("🕌 Prayer times:")
    for prayer, time in reminders.prayer_times.items():
        logger.info(f"   {prayer}: {time}")

    timers = reminders.armed_timers()
    if timers:
        logger.info("📅 Scheduled reminders:")
        for timer in timers:
            logger.info(f"   {timer.message} - {timer.fire_at:%m/%d} at {timer.fire_at:%H:%M}")
    else:
        logger.info("📅 No reminders scheduled")
    logger.info("=" * 50)


async def heartbeat(reminders):
    while True:
        next_timer = reminders.next_reminder()
        upcoming = f" | next: {next_timer.message} at {next_timer.fire_at:%H:%M}" if next_timer else ""
        logger.info(f"💓 Bot running | {len(reminders.armed_timers())} reminders scheduled{upcoming}")
        await asyncio.sleep(300)


async def combined_main():
    if not config.DISCORD_TOKEN:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set")

    scheduler = AsyncIOScheduler(timezone=config.TZ)

    async def daily_refresh():
        logger.info("Updating prayer times for new day...")
        await reminders.trigger_daily_refresh()
        log_status_message(reminders)

    bot = PrayerBot(on_first_ready=daily_refresh)
    notifier = DiscordNotifier(bot, config.PRAYER_SOUND_PATH, config.REMINDER_CHANNEL_ID)
    reminders = ReminderScheduler(SchedulerTimers(scheduler, config.TZ), notifier)
    bot.reminders = reminders

    runner = web.AppRunner(create_web_app(reminders))
    heartbeat_task = None
    try:
        logger.info("🚀 Starting prayer reminder bot...")
        await runner.setup()
        site = web.TCPSite(runner, '0.0.0.0', config.PORT)
        await site.start()
        logger.info(f"🌐 Web server started on port {config.PORT}")

        scheduler.start()
        scheduler.add_job(
            daily_refresh,
            trigger=CronTrigger(hour=config.REFRESH_HOUR, minute=config.REFRESH_MINUTE, timezone=config.TZ),
            id='daily-refresh',
            name='daily-refresh',
            replace_existing=True,
            misfire_grace_time=300,
        )
        logger.info(f"🗓️ Daily prayer time updates scheduled at {config.REFRESH_HOUR:02d}:{config.REFRESH_MINUTE:02d} {config.TIMEZONE_NAME}")

        heartbeat_task = asyncio.create_task(heartbeat(reminders))
        logger.info("💓 Heartbeat started")

        async with bot:
            await bot.start(config.DISCORD_TOKEN)
    finally:
        logger.info("🛑 Shutting down...")
        reminders.cancel_all()
        if heartbeat_task:
            heartbeat_task.cancel()
        if scheduler.running:
            scheduler.shutdown(wait=False)
        await runner.cleanup()


if __name__ == "__main__":
    logger.info("🎬 Starting prayer reminder bot application...")
    try:
        asyncio.run(combined_main())
    except KeyboardInterrupt:
        logger.info("👋 Application stopped by user")
