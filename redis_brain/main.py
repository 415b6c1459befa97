"""
main.py
Runs a Discord bot whose state is persisted by the Redis brain.
"""

import os
import sys
import asyncio
import logging
import signal
from typing import Any, Callable

import discord
from discord.ext import commands
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("RedisBrainBot")

BRAIN_EXTENSION = "redis_brain.app.commands.brain.brain"

# Intents
intents = discord.Intents.none()
intents.guilds = True
intents.messages = True

bot = commands.Bot(command_prefix="!", intents=intents)


@bot.event
async def on_ready() -> None:
    logger.info(f"Bot ready as {bot.user}")


def handle_shutdown(loop: asyncio.AbstractEventLoop) -> Callable[[], asyncio.Task[Any]]:
    async def shutdown() -> None:
        logger.info("Shutting down gracefully...")
        # Bot.close() unloads extensions, which closes the brain
        await bot.close()
        for handler in logging.root.handlers:
            handler.flush()
    return lambda *args: asyncio.ensure_future(shutdown(), loop=loop)


async def main() -> None:
    token = os.getenv("DISCORD_TOKEN")
    if not token:
        logger.error("DISCORD_TOKEN environment variable not set.")
        sys.exit(1)
    await bot.load_extension(BRAIN_EXTENSION)
    logger.info(f"Loaded extension: {BRAIN_EXTENSION}")
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_shutdown(loop))
        except NotImplementedError:
            # Windows compatibility
            pass
    try:
        await bot.start(token)
    except discord.DiscordException as e:
        logger.error(f"Bot exited with error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    asyncio.run(main())
