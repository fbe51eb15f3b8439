from __future__ import annotations

import asyncio
import unittest
from types import SimpleNamespace

from config.defaults import BOOKMARK_EMOJI
from config.defaults import DELETE_EMOJI
from config.settings import default_bookmark_settings
from copies.models import ChannelKind
from misc.errors import TransientExternalFailure
from reactions.normalizer import EventKind
from reactions.normalizer import Surface

try:
    from misc.events_runtime import reaction_event_from_payload
    from misc.events_runtime import register_runtime_events
    from misc.events_runtime import stop_maintenance
    from misc.runtime_deps import RuntimeBootDeps
    from misc.runtime_deps import RuntimeDeps
except ModuleNotFoundError:
    register_runtime_events = None

BOT_ID = 900


def _payload(*, emoji=BOOKMARK_EMOJI, user_id=1, guild_id=10, channel_id=20, message_id=30, emoji_id=None):
    return SimpleNamespace(
        emoji=SimpleNamespace(name=emoji, id=emoji_id),
        user_id=user_id,
        guild_id=guild_id,
        channel_id=channel_id,
        message_id=message_id,
    )


class _ChannelKinds:
    def __init__(self, kind=ChannelKind.DM, fail=False):
        self.kind = kind
        self.fail = fail
        self.calls = 0

    async def fetch_channel_kind(self, channel_id):
        self.calls += 1
        if self.fail:
            raise TransientExternalFailure("fetch_channel", "down")
        return self.kind


class _RecordingDispatcher:
    def __init__(self):
        self.events = []

    def submit(self, event):
        self.events.append(event)


class _FakeBot:
    def __init__(self):
        self.user = SimpleNamespace(id=BOT_ID)
        self.handlers = {}

    def event(self, coro):
        self.handlers[coro.__name__] = coro
        return coro


@unittest.skipIf(register_runtime_events is None, "discord.py not installed")
class ReactionPayloadTests(unittest.IsolatedAsyncioTestCase):
    async def test_guild_payload_is_origin_without_lookup(self):
        kinds = _ChannelKinds()
        event = await reaction_event_from_payload(_payload(), EventKind.ADD, message_store=kinds)
        self.assertEqual(event.surface, Surface.ORIGIN)
        self.assertEqual(event.emoji, BOOKMARK_EMOJI)
        self.assertEqual(event.guild_id, 10)
        self.assertEqual(kinds.calls, 0)

    async def test_dm_payload_resolves_to_private(self):
        event = await reaction_event_from_payload(
            _payload(emoji=DELETE_EMOJI, guild_id=None),
            EventKind.ADD,
            message_store=_ChannelKinds(ChannelKind.DM),
        )
        self.assertEqual(event.surface, Surface.PRIVATE)
        self.assertIsNone(event.guild_id)

    async def test_unresolvable_channel_drops_event(self):
        event = await reaction_event_from_payload(
            _payload(guild_id=None),
            EventKind.ADD,
            message_store=_ChannelKinds(fail=True),
        )
        self.assertIsNone(event)


@unittest.skipIf(register_runtime_events is None, "discord.py not installed")
class RuntimeEventsTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.bot = _FakeBot()
        self.dispatcher = _RecordingDispatcher()
        self.kinds = _ChannelKinds()
        register_runtime_events(
            self.bot,
            deps=RuntimeDeps(
                dispatcher=self.dispatcher,
                message_store=self.kinds,
                settings=default_bookmark_settings(),
                linkage_mode="stored",
                ledger_backend="memory",
            ),
            boot=RuntimeBootDeps(maintenance_enabled=False, maintenance_loop_func=None),
        )

    async def test_registers_reaction_handlers(self):
        self.assertEqual(
            set(self.bot.handlers),
            {"on_ready", "on_raw_reaction_add", "on_raw_reaction_remove"},
        )

    async def test_add_and_remove_feed_the_dispatcher(self):
        await self.bot.handlers["on_raw_reaction_add"](_payload())
        await self.bot.handlers["on_raw_reaction_remove"](_payload())
        self.assertEqual([e.kind for e in self.dispatcher.events], [EventKind.ADD, EventKind.REMOVE])

    async def test_irrelevant_reactions_skip_channel_lookup(self):
        await self.bot.handlers["on_raw_reaction_add"](_payload(emoji="\U0001F44D", guild_id=None))
        await self.bot.handlers["on_raw_reaction_add"](_payload(user_id=BOT_ID, guild_id=None))
        await self.bot.handlers["on_raw_reaction_add"](_payload(emoji_id=1234, guild_id=None))
        self.assertEqual(self.dispatcher.events, [])
        self.assertEqual(self.kinds.calls, 0)


@unittest.skipIf(register_runtime_events is None, "discord.py not installed")
class MaintenanceLifecycleTests(unittest.IsolatedAsyncioTestCase):
    async def test_ready_starts_and_stop_cancels_loop(self):
        started = asyncio.Event()

        async def loop():
            started.set()
            await asyncio.sleep(3600)

        bot = _FakeBot()
        register_runtime_events(
            bot,
            deps=RuntimeDeps(
                dispatcher=_RecordingDispatcher(),
                message_store=_ChannelKinds(),
                settings=default_bookmark_settings(),
                linkage_mode="stored",
                ledger_backend="memory",
            ),
            boot=RuntimeBootDeps(maintenance_enabled=True, maintenance_loop_func=loop),
        )
        await bot.handlers["on_ready"]()
        await asyncio.wait_for(started.wait(), timeout=1)
        task = bot._maintenance_task

        self.assertTrue(stop_maintenance(bot))
        with self.assertRaises(asyncio.CancelledError):
            await task
        self.assertTrue(task.cancelled())
        self.assertFalse(stop_maintenance(bot))

    async def test_stop_without_task_is_a_noop(self):
        self.assertFalse(stop_maintenance(_FakeBot()))


if __name__ == "__main__":
    unittest.main()
