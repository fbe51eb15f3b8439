from __future__ import annotations

import unittest
from dataclasses import replace

from config.settings import default_bookmark_settings
from copies.links import extract_source_link
from copies.models import AttachmentRef
from copies.models import SourceMessage
from copies.render import EMBED_DESCRIPTION_MAX
from copies.render import render_copy

LINK = "https://discord.com/channels/1/2/3"


def _message(content="hello", attachments=None):
    return SourceMessage(
        guild_id=1,
        channel_id=2,
        message_id=3,
        author_id=4,
        author_name="Author",
        author_avatar_url="https://cdn.example/avatar.png",
        content=content,
        created_at_iso="2026-01-01T00:00:00+00:00",
        attachments=list(attachments or []),
    )


def _files():
    return [
        AttachmentRef(filename="notes.txt", url="https://cdn.example/notes.txt", content_type="text/plain"),
        AttachmentRef(filename="pic.png", url="https://cdn.example/pic.png", content_type="image/png"),
        AttachmentRef(filename="data.csv", url="https://cdn.example/data.csv", content_type="text/csv"),
    ]


class RenderCopyTests(unittest.TestCase):
    def test_basic_fields(self):
        rendered = render_copy(_message(), "Test Guild", LINK, default_bookmark_settings())
        self.assertEqual(rendered.title, "Bookmark from Test Guild")
        self.assertEqual(rendered.description, "hello")
        self.assertEqual(rendered.author_name, "Author")
        self.assertEqual(rendered.colour, 0x3498DB)
        self.assertIn("❌", rendered.footer_text)
        self.assertEqual(rendered.fields[0].name, "Source")
        self.assertIsNone(rendered.image_url)

    def test_source_link_is_recoverable_from_rendered_embed(self):
        rendered = render_copy(_message(attachments=_files()), "G", LINK, default_bookmark_settings())
        self.assertEqual(extract_source_link(rendered.to_dict()).message_id, 3)
        self.assertEqual(extract_source_link(rendered).message_id, 3)

    def test_first_image_becomes_preview(self):
        rendered = render_copy(_message(attachments=_files()), "G", LINK, default_bookmark_settings())
        self.assertEqual(rendered.image_url, "https://cdn.example/pic.png")
        self.assertEqual(rendered.to_dict()["image"], {"url": "https://cdn.example/pic.png"})
        self.assertEqual(len(rendered.attachment_urls), 3)

    def test_sequential_numbering_skips_no_labels(self):
        rendered = render_copy(_message(attachments=_files()), "G", LINK, default_bookmark_settings())
        names = [f.name for f in rendered.fields[1:]]
        self.assertEqual(names, ["Attachment 1", "Attachment 2"])
        self.assertIn("data.csv", rendered.fields[2].value)

    def test_positional_numbering_keeps_original_positions(self):
        settings = replace(default_bookmark_settings(), attachment_numbering="positional")
        rendered = render_copy(_message(attachments=_files()), "G", LINK, settings)
        names = [f.name for f in rendered.fields[1:]]
        self.assertEqual(names, ["Attachment 1", "Attachment 3"])

    def test_long_content_is_clipped(self):
        rendered = render_copy(_message(content="x" * 5000), "G", LINK, default_bookmark_settings())
        self.assertEqual(len(rendered.description), EMBED_DESCRIPTION_MAX)
        self.assertTrue(rendered.description.endswith("..."))

    def test_empty_content_omits_description(self):
        rendered = render_copy(_message(content=""), "G", LINK, default_bookmark_settings())
        self.assertNotIn("description", rendered.to_dict())


if __name__ == "__main__":
    unittest.main()
