import asyncio
import logging
import os

import discord

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 30


def active_voice_channels(guilds):
    """Voice channels that currently hold at least one non-bot member."""
    channels = []
    for guild in guilds:
        for channel in guild.voice_channels:
            if any(not member.bot for member in channel.members):
                channels.append(channel)
    return channels


async def play_reminder_in_channel(channel, sound_path):
    """Join `channel`, play the reminder sound once and leave."""
    if not os.path.exists(sound_path):
        logger.warning(f"Reminder sound {sound_path} not found, skipping voice channel {channel.name}")
        return

    voice_client = None
    try:
        voice_client = channel.guild.voice_client
        if voice_client and voice_client.channel.id != channel.id:
            await voice_client.move_to(channel)
        elif not voice_client:
            voice_client = await channel.connect(timeout=CONNECT_TIMEOUT)

        logger.info(f"🔊 Playing reminder in {channel.guild.name}/{channel.name}")
        voice_client.play(discord.FFmpegPCMAudio(sound_path))
        while voice_client.is_playing():
            await asyncio.sleep(0.5)
        # Leave after the sound finishes playing
        await asyncio.sleep(1)
    except (discord.DiscordException, asyncio.TimeoutError) as e:
        logger.error(f"Failed to play reminder in voice channel {channel.name}: {e}")
    finally:
        if voice_client and voice_client.is_connected():
            await voice_client.disconnect()
