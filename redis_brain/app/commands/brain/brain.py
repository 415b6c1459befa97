"""Discord extension that gives the bot a Redis-backed brain."""

from typing import Any, Optional

import discord
from discord.ext import commands

from redis_brain.app.brain import Brain
from redis_brain.app.lifecycle import BrainLifecycle
from redis_brain.domain.logger import get_logger

logger = get_logger("BrainCog")


class BrainCog(commands.Cog):
    """Installs the brain on `bot.brain` and ties it to the bot's lifecycle."""

    def __init__(self, bot: commands.Bot, **lifecycle_options: Any):
        self.bot = bot
        self.lifecycle = BrainLifecycle(bot, **lifecycle_options)

    @property
    def brain(self) -> Optional[Brain]:
        return self.lifecycle.brain

    async def cog_load(self) -> None:
        brain = await self.lifecycle.start()
        if brain.degraded:
            logger.warning("Brain started without Redis, state will not persist")
        else:
            logger.info(f"Brain ready with prefix '{brain.prefix}'")

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        await self.lifecycle.on_running()

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """Keep the user directory current, the way chat adapters do."""
        if self.brain is None or message.author.bot:
            return
        self.brain.user_for_id(
            str(message.author.id),
            {"name": message.author.name, "room": str(message.channel.id)},
        )

    async def cog_unload(self) -> None:
        logger.info("Closing brain")
        await self.lifecycle.shutdown()


async def setup(bot: commands.Bot):
    """Load the Brain cog."""
    await bot.add_cog(BrainCog(bot))
