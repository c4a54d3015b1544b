"""
This module implements the Discord command surface of the prayer reminder bot.
Users can view today's prayer times, force a refresh and read the help text.
Reminder delivery itself lives in notifier.py.
"""

import logging

import discord
from discord.ext import commands

import config
from prayer_times import PRAYER_NAMES

logger = logging.getLogger(__name__)

HELP_MESSAGE = f"""
**🕌 Islamic Prayer Reminder Bot Commands:**
`!prayertimes` - Show today's prayer times for {config.CITY}
`!refreshprayertimes` - Manually update prayer times
`!prayerhelp` - Show this help message

**Reminders:**
- 5 minutes before prayer
- At prayer time
- 10 minutes after prayer

The bot automatically joins voice channels with users to play reminders.
"""


def format_prayer_times(prayer_times, city, country, timezone_name):
    if not prayer_times:
        return "⚠️ Prayer times are not loaded yet. Try `!refreshprayertimes`."

    lines = [f"🕌 Today's Prayer Times for {city}, {country}:"]
    for prayer in PRAYER_NAMES:
        if prayer.value in prayer_times:
            lines.append(f"**{prayer.value}**: {prayer_times[prayer.value]}")
    lines.append("")
    lines.append(f"⏰ Timezone: {timezone_name}")
    return "\n".join(lines)


class PrayerCommands(commands.Cog):
    def __init__(self, bot, reminders):
        self.bot = bot
        self.reminders = reminders

    @commands.command(name='prayertimes')
    async def prayer_times(self, ctx):
        logger.info(f"Processing !prayertimes command from {ctx.author}")
        await ctx.send(format_prayer_times(
            self.reminders.prayer_times, config.CITY, config.COUNTRY, config.TIMEZONE_NAME
        ))

    @commands.command(name='refreshprayertimes')
    async def refresh_prayer_times(self, ctx):
        logger.info(f"Processing !refreshprayertimes command from {ctx.author}")
        if await self.reminders.trigger_daily_refresh():
            await ctx.send(f"🔄 Prayer times updated for {config.CITY}!")
        else:
            await ctx.send("⚠️ Could not update prayer times, keeping the current reminders.")

    @commands.command(name='prayerhelp')
    async def prayer_help(self, ctx):
        await ctx.send(HELP_MESSAGE)

    @commands.Cog.listener()
    async def on_command_error(self, ctx, error):
        if isinstance(error, commands.CommandNotFound):
            return
        logger.error(f"Error in command {ctx.command}: {error}", exc_info=error)


class PrayerBot(commands.Bot):
    """Discord client that registers the prayer commands and runs a hook once ready."""

    def __init__(self, reminders=None, on_first_ready=None):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.voice_states = True
        super().__init__(command_prefix='!', intents=intents, help_command=None)
        self.reminders = reminders
        self._on_first_ready = on_first_ready
        self._ready_once = False

    async def setup_hook(self):
        await self.add_cog(PrayerCommands(self, self.reminders))

    async def on_ready(self):
        logger.info(f"Logged in as {self.user}!")
        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.listening, name='Prayer Reminders')
        )
        if self._ready_once:
            return
        self._ready_once = True
        if self._on_first_ready:
            await self._on_first_ready()
        logger.info("Bot is ready and prayer times are scheduled!")
