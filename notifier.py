import asyncio
import logging

from voice import active_voice_channels, play_reminder_in_channel

logger = logging.getLogger(__name__)


def reminder_text_channels(bot, channel_id=None):
    """The configured reminder channel, or the first writable text channel of each guild."""
    if channel_id:
        channel = bot.get_channel(channel_id)
        return [channel] if channel else []

    channels = []
    for guild in bot.guilds:
        for channel in guild.text_channels:
            if channel.permissions_for(guild.me).send_messages:
                channels.append(channel)
                break
    return channels


class DiscordNotifier:
    """Delivers prayer reminders to Discord text and voice channels."""

    def __init__(self, bot, sound_path, channel_id=None):
        self.bot = bot
        self.sound_path = sound_path
        self.channel_id = channel_id

    async def __call__(self, prayer, message, is_at_prayer_time):
        text = f"🕌 {message}"
        deliveries = [channel.send(text) for channel in reminder_text_channels(self.bot, self.channel_id)]
        if is_at_prayer_time:
            by_guild = {}
            for channel in active_voice_channels(self.bot.guilds):
                by_guild.setdefault(channel.guild.id, []).append(channel)
            deliveries.extend(self._play_in_turn(channels) for channels in by_guild.values())

        if not deliveries:
            logger.warning(f"No channels available for reminder: {message}")
            return

        results = await asyncio.gather(*deliveries, return_exceptions=True)
        failures = [result for result in results if isinstance(result, Exception)]
        for failure in failures:
            logger.error(f"Error delivering {prayer.value} reminder: {failure}")
        logger.info(f"✅ Delivered {prayer.value} reminder to {len(results) - len(failures)}/{len(results)} destinations")

    async def _play_in_turn(self, channels):
        # A guild has a single voice connection, so its channels are visited one by one
        for channel in channels:
            try:
                await play_reminder_in_channel(channel, self.sound_path)
            except Exception as e:
                logger.error(f"Error playing reminder in {channel.name}: {e}", exc_info=e)

