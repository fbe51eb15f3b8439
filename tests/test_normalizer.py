from __future__ import annotations

import unittest

from config.defaults import BOOKMARK_EMOJI
from config.defaults import DELETE_EMOJI
from copies.models import ChannelKind
from reactions.normalizer import EventKind
from reactions.normalizer import Intent
from reactions.normalizer import ReactionEvent
from reactions.normalizer import Surface
from reactions.normalizer import classify_reaction
from reactions.normalizer import surface_from_channel

BOT_ID = 900


def _event(kind=EventKind.ADD, emoji=BOOKMARK_EMOJI, surface=Surface.ORIGIN, actor_id=1, guild_id=10):
    return ReactionEvent(
        kind=kind,
        actor_id=actor_id,
        emoji=emoji,
        channel_id=20,
        message_id=30,
        guild_id=guild_id,
        surface=surface,
    )


def _classify(event):
    return classify_reaction(event, bot_user_id=BOT_ID, bookmark_emoji=BOOKMARK_EMOJI, delete_emoji=DELETE_EMOJI)


class ClassifyReactionTests(unittest.TestCase):
    def test_bookmark_add_in_origin(self):
        self.assertEqual(_classify(_event()), Intent.ADD_IN_ORIGIN)

    def test_bookmark_remove_in_origin(self):
        self.assertEqual(_classify(_event(kind=EventKind.REMOVE)), Intent.REMOVE_IN_ORIGIN)

    def test_delete_add_on_private_copy(self):
        event = _event(emoji=DELETE_EMOJI, surface=Surface.PRIVATE, guild_id=None)
        self.assertEqual(_classify(event), Intent.REMOVE_VIA_COPY)

    def test_delete_removal_on_private_copy_is_ignored(self):
        event = _event(kind=EventKind.REMOVE, emoji=DELETE_EMOJI, surface=Surface.PRIVATE, guild_id=None)
        self.assertEqual(_classify(event), Intent.IGNORE)

    def test_bot_reactions_are_ignored(self):
        self.assertEqual(_classify(_event(actor_id=BOT_ID)), Intent.IGNORE)
        event = _event(actor_id=BOT_ID, emoji=DELETE_EMOJI, surface=Surface.PRIVATE, guild_id=None)
        self.assertEqual(_classify(event), Intent.IGNORE)

    def test_other_emoji_is_ignored(self):
        self.assertEqual(_classify(_event(emoji="\U0001F44D")), Intent.IGNORE)

    def test_glyph_on_wrong_surface_is_ignored(self):
        self.assertEqual(_classify(_event(emoji=DELETE_EMOJI)), Intent.IGNORE)
        self.assertEqual(_classify(_event(surface=Surface.PRIVATE, guild_id=None)), Intent.IGNORE)

    def test_unknown_surface_is_ignored(self):
        self.assertEqual(_classify(_event(surface=Surface.UNKNOWN, guild_id=None)), Intent.IGNORE)

    def test_missing_bot_identity_still_classifies(self):
        intent = classify_reaction(
            _event(),
            bot_user_id=None,
            bookmark_emoji=BOOKMARK_EMOJI,
            delete_emoji=DELETE_EMOJI,
        )
        self.assertEqual(intent, Intent.ADD_IN_ORIGIN)


class SurfaceFromChannelTests(unittest.TestCase):
    def test_guild_id_means_origin(self):
        self.assertEqual(surface_from_channel(10), Surface.ORIGIN)

    def test_dm_channel_means_private(self):
        self.assertEqual(surface_from_channel(None, ChannelKind.DM), Surface.PRIVATE)

    def test_unresolved_channel_is_unknown(self):
        self.assertEqual(surface_from_channel(None), Surface.UNKNOWN)
        self.assertEqual(surface_from_channel(None, ChannelKind.OTHER), Surface.UNKNOWN)
        self.assertEqual(surface_from_channel(None, ChannelKind.GUILD), Surface.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
