"""Tests for the discord extension wiring the brain into a bot."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from redis_brain.app.brain import BrainState
from redis_brain.app.commands.brain.brain import BrainCog, setup
from tests.conftest import settle


@pytest.fixture
def bot() -> MagicMock:
    bot = MagicMock()
    bot.brain = None
    bot.add_cog = AsyncMock()
    return bot


@pytest.fixture
def cog(bot, descriptor, redis_factory) -> BrainCog:
    return BrainCog(bot, descriptor=descriptor, redis_factory=redis_factory)


def make_message(author_id: int, name: str, channel_id: int, is_bot: bool = False) -> MagicMock:
    message = MagicMock()
    message.author.id = author_id
    message.author.name = name
    message.author.bot = is_bot
    message.channel.id = channel_id
    return message


@pytest.mark.asyncio
async def test_cog_load_installs_brain(cog: BrainCog, bot: MagicMock) -> None:
    await cog.cog_load()

    assert bot.brain is cog.brain
    assert cog.brain.state == BrainState.READY
    await cog.cog_unload()

@pytest.mark.asyncio
async def test_on_ready_retires_previous_brain(bot: MagicMock, descriptor, redis_factory) -> None:
    old_brain = MagicMock()
    bot.brain = old_brain
    cog = BrainCog(bot, descriptor=descriptor, redis_factory=redis_factory)
    await cog.cog_load()

    await cog.on_ready()
    await cog.on_ready()

    old_brain.close.assert_called_once_with()
    await cog.cog_unload()

@pytest.mark.asyncio
async def test_on_message_tracks_author(cog: BrainCog, raw_redis) -> None:
    await cog.cog_load()

    await cog.on_message(make_message(1001, "ada", 55))
    await settle(cog.brain)

    user = cog.brain.user_for_id("1001")
    assert user.name == "ada"
    assert user.room == "55"
    assert await raw_redis.hget("hubot:users", "1001") is not None
    await cog.cog_unload()

@pytest.mark.asyncio
async def test_on_message_ignores_bots(cog: BrainCog) -> None:
    await cog.cog_load()

    await cog.on_message(make_message(2002, "helper", 55, is_bot=True))

    assert cog.brain.users() == {}
    await cog.cog_unload()

@pytest.mark.asyncio
async def test_on_message_before_load(cog: BrainCog) -> None:
    await cog.on_message(make_message(1, "early", 1))

    assert cog.brain is None

@pytest.mark.asyncio
async def test_cog_unload_closes_brain(cog: BrainCog) -> None:
    await cog.cog_load()
    brain = cog.brain

    await cog.cog_unload()

    assert brain.state == BrainState.CLOSED

@pytest.mark.asyncio
async def test_setup_adds_cog(bot: MagicMock) -> None:
    await setup(bot)

    bot.add_cog.assert_awaited_once()
    assert isinstance(bot.add_cog.await_args.args[0], BrainCog)
