from __future__ import annotations

import discord
from discord.ext import commands
from copies.links import decode_message_link
from misc.commands.command_deps import CommandDeps
from misc.errors import MalformedInput


def parse_message_ref(token: str, *, guild_id: int) -> tuple[int, int]:
    """Accept a message link or a bare message id; returns (guild_id, message_id)."""
    text = str(token or "").strip().strip("<>")
    if not text:
        raise MalformedInput("message link or id required")
    if text.isdigit():
        return int(guild_id), int(text)
    link = decode_message_link(text)
    return link.guild_id, link.message_id


def format_top_lines(rows: list) -> list[str]:
    lines = []
    for rank, row in enumerate(rows, start=1):
        noun = "bookmark" if int(row.count) == 1 else "bookmarks"
        lines.append(f"{rank}. **{int(row.count)}** {noun} · [jump]({row.message_link}) by <@{row.message_author_id}>")
    return lines


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
) -> None:
    @bot.command(name="bookmarks")
    @commands.guild_only()
    async def cmd_bookmarks(ctx: commands.Context, limit: int = 0):
        lim = int(limit or deps.top_default_limit)
        lim = max(1, min(lim, int(deps.top_max_limit)))
        rows = await deps.ledger.top_messages(int(ctx.guild.id), lim)
        if not rows:
            await ctx.send("Nothing has been bookmarked in this server yet.")
            return

        embed = discord.Embed(
            title=f"Most bookmarked in {ctx.guild.name}",
            description="\n".join(format_top_lines(rows))[:4000],
            colour=int(deps.settings.embed_colour),
        )
        await ctx.send(embed=embed)

    @bot.command(name="bookmarkcount")
    async def cmd_bookmarkcount(ctx: commands.Context, *, ref: str = ""):
        guild_id = int(getattr(ctx.guild, "id", 0) or 0)
        try:
            target_guild_id, message_id = parse_message_ref(ref, guild_id=guild_id)
        except MalformedInput as e:
            await ctx.send(f"Could not read that message reference: {e.message}")
            return
        if not target_guild_id:
            await ctx.send("Use a full message link outside a server.")
            return

        row = await deps.ledger.aggregate(target_guild_id, message_id)
        count = int(row.count) if row is not None else 0
        noun = "user has" if count == 1 else "users have"
        await ctx.send(f"{count} {noun} bookmarked that message.")
