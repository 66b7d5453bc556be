"""Custom command management and triggering."""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence, Tuple

import discord
from discord.ext import commands

from .config import Settings
from .embeds import REMOVED_COLOR, build_change_embed, build_error_embed, build_list_embed, page_count
from .engine import resolve_template
from .errors import PermissionDenied, TemplateError
from .models import CustomCommand, ResolvedMessage
from .snapshot import build_snapshot
from .store import CommandStore, CommandStoreError
from .utils import can_manage, truncate
from .web import AiohttpTransport, HttpTransport

logger = logging.getLogger("ccbot.commands")

EMPTY_RESPONSE = "(Empty response)"
MESSAGE_LIMIT = 2000
GENERIC_FAILURE = "Something went wrong while running this command."


def parse_invocation(content: str, prefix: str) -> Optional[Tuple[str, List[str]]]:
    """Split ``content`` into a lowercased trigger name and its arguments."""
    if not prefix or not content.startswith(prefix):
        return None
    tokens = content[len(prefix) :].split()
    if not tokens:
        return None
    return tokens[0].lower(), tokens[1:]


class CustomCommandsCog(commands.Cog):
    """Stores guild-authored commands and answers them when triggered."""

    def __init__(
        self,
        bot: commands.Bot,
        *,
        store: CommandStore,
        settings: Settings,
        transport: Optional[HttpTransport] = None,
    ):
        self.bot = bot
        self.store = store
        self.settings = settings
        self.transport = transport or AiohttpTransport(timeout=settings.webrequest_timeout)
        self._started = time.monotonic()

    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def prefix_for(self, guild_id: Optional[int]) -> str:
        return self.store.prefix_for(guild_id, self.settings.prefix)

    #
    # Triggering
    #
    async def handle_message(self, message: discord.Message) -> bool:
        """Run the custom command ``message`` names, if any. Returns True when one ran."""
        if message.author.bot or message.guild is None:
            return False
        parsed = parse_invocation(message.content or "", self.prefix_for(message.guild.id))
        if parsed is None:
            return False
        name, args = parsed
        if self.bot.get_command(name) is not None:
            return False
        command = self.store.find(message.guild.id, name)
        if command is None:
            return False
        await self.trigger(message, command, args)
        return True

    async def trigger(self, message: discord.Message, command: CustomCommand, args: Sequence[str]) -> None:
        logger.info(
            "Triggering custom command %s (%s) for %s in guild %s",
            command.name,
            command.id,
            message.author.id,
            message.guild.id if message.guild else "dm",
        )
        result = await self._resolve(message, command.response, args, label=command.name)
        if result is not None:
            await self.deliver(message.channel, result)

    async def _resolve(
        self,
        message: discord.Message,
        template: str,
        args: Sequence[str],
        *,
        label: str,
    ) -> Optional[ResolvedMessage]:
        try:
            snapshot = build_snapshot(message, args, uptime_seconds=self.uptime_seconds())
            return await resolve_template(
                template,
                snapshot,
                http=self.transport,
                max_steps=self.settings.max_steps,
                webrequests_enabled=self.settings.webrequests_enabled,
            )
        except PermissionDenied as exc:
            logger.info("Custom command %s denied for %s: %s", label, message.author.id, exc)
            await message.reply(exc.user_message, mention_author=False)
        except TemplateError as exc:
            logger.warning("Custom command %s failed for %s: %s", label, message.author.id, exc)
            await self._send_error(message.channel, exc.user_message)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected failure running custom command %s", label)
            await self._send_error(message.channel, GENERIC_FAILURE)
        return None

    async def _send_error(self, channel: discord.abc.Messageable, text: str) -> None:
        try:
            await channel.send(embed=build_error_embed(text))
        except discord.HTTPException as exc:
            logger.warning("Failed to send custom command error embed: %s", exc)

    async def deliver(self, channel: discord.abc.Messageable, result: ResolvedMessage) -> None:
        """Send the primary message with its stickers, then each follow-up in order."""
        content = EMPTY_RESPONSE if result.is_empty else result.text
        payload = {"content": truncate(content, MESSAGE_LIMIT) if content.strip() else None}
        if result.stickers:
            payload["stickers"] = [discord.Object(id=sticker.id) for sticker in result.stickers]
        allowed = discord.AllowedMentions(everyone=False, roles=False, users=True)
        try:
            await channel.send(allowed_mentions=allowed, **payload)
            for followup in result.deliverable_followups:
                await channel.send(truncate(followup, MESSAGE_LIMIT), allowed_mentions=allowed)
        except discord.HTTPException as exc:
            logger.warning("Failed to deliver custom command output: %s", exc)

    #
    # Command guards
    #
    async def _ensure_guild(self, ctx: commands.Context) -> bool:
        if ctx.guild is None:
            await ctx.reply("These commands can only be used within a server.", mention_author=False)
            return False
        return True

    async def _ensure_manager(self, ctx: commands.Context) -> bool:
        if not await self._ensure_guild(ctx):
            return False
        if not can_manage(ctx.author):
            await ctx.reply("You lack permission to run this command.", mention_author=False)
            return False
        return True

    def _usage(self, ctx: commands.Context, text: str) -> str:
        prefix = self.prefix_for(ctx.guild.id if ctx.guild else None)
        return f"Usage: `{prefix}{text}`"

    #
    # Commands
    #
    async def list_command(self, ctx: commands.Context, page: int = 1) -> None:
        if not await self._ensure_guild(ctx):
            return
        available = self.store.list_commands(ctx.guild.id)
        if not available:
            await ctx.reply(
                f"No custom commands yet. Add one with `{self.prefix_for(ctx.guild.id)}custom add <name> <response>`.",
                mention_author=False,
            )
            return
        if page > page_count(len(available)):
            logger.debug("Listing page %s clamped for guild %s", page, ctx.guild.id)
        await ctx.reply(embed=build_list_embed(available, page), mention_author=False)

    async def add_command(self, ctx: commands.Context, name: str = "", *, response: str = "") -> None:
        if not await self._ensure_manager(ctx):
            return
        if not name.strip() or not response.strip():
            await ctx.reply(self._usage(ctx, "custom add <name> <response>"), mention_author=False)
            return
        if self.bot.get_command(name.strip().lower()) is not None:
            await ctx.reply(f"`{name}` is a built-in command and cannot be overridden.", mention_author=False)
            return
        existing = self.store.find(ctx.guild.id, name)
        if existing is not None:
            await ctx.reply(
                f"A custom command with the name **'{existing.name}'** already exists. (ID: {existing.id})",
                mention_author=False,
            )
            return
        try:
            command = await self.store.add(ctx.guild.id, name, response, created_by=ctx.author.id)
        except CommandStoreError as exc:
            await ctx.reply(str(exc), mention_author=False)
            return
        await ctx.reply(embed=build_change_embed("Custom Command Added", command, "added"), mention_author=False)

    async def edit_command(self, ctx: commands.Context, identifier: str = "", *, response: str = "") -> None:
        if not await self._ensure_manager(ctx):
            return
        if not identifier.strip() or not response.strip():
            await ctx.reply(self._usage(ctx, "custom edit <name|id> <new response>"), mention_author=False)
            return
        try:
            command = await self.store.edit(ctx.guild.id, identifier, response)
        except CommandStoreError:
            await ctx.reply(f"Couldn't find a command with ID or name **'{identifier}'**", mention_author=False)
            return
        await ctx.reply(embed=build_change_embed("Custom Command Edited", command, "edited"), mention_author=False)

    async def remove_command(self, ctx: commands.Context, identifier: str = "") -> None:
        if not await self._ensure_manager(ctx):
            return
        if not identifier.strip():
            await ctx.reply(self._usage(ctx, "custom remove <name|id>"), mention_author=False)
            return
        try:
            command = await self.store.remove(ctx.guild.id, identifier)
        except CommandStoreError:
            await ctx.reply(f"Couldn't find a command with ID or name **'{identifier}'**", mention_author=False)
            return
        await ctx.reply(
            embed=build_change_embed("Custom Command Removed", command, "removed", color=REMOVED_COLOR),
            mention_author=False,
        )

    async def run_command(self, ctx: commands.Context, *, template: str = "") -> None:
        """Resolve an ad-hoc template in place so authors can try it before saving."""
        if not await self._ensure_manager(ctx):
            return
        if not template.strip():
            await ctx.reply(self._usage(ctx, "custom run <template>"), mention_author=False)
            return
        result = await self._resolve(ctx.message, template, (), label="<dry run>")
        if result is not None:
            await self.deliver(ctx.channel, result)

    async def prefix_command(self, ctx: commands.Context, new_prefix: str = "") -> None:
        if not await self._ensure_guild(ctx):
            return
        cleaned = new_prefix.strip()
        if not cleaned:
            await ctx.reply(f"The prefix for this server is `{self.prefix_for(ctx.guild.id)}`.", mention_author=False)
            return
        if not await self._ensure_manager(ctx):
            return
        try:
            await self.store.set_prefix(ctx.guild.id, cleaned)
        except CommandStoreError as exc:
            await ctx.reply(str(exc), mention_author=False)
            return
        await ctx.reply(f"Prefix updated to `{cleaned}`.", mention_author=False)


async def add_custom_commands_cog(
    bot: commands.Bot,
    *,
    store: CommandStore,
    settings: Settings,
    transport: Optional[HttpTransport] = None,
) -> CustomCommandsCog:
    cog = CustomCommandsCog(bot, store=store, settings=settings, transport=transport)
    await bot.add_cog(cog)
    logger.info("Custom commands enabled (store %s, prefix %s)", store.path, settings.prefix)
    return cog


__all__ = ["CustomCommandsCog", "EMPTY_RESPONSE", "add_custom_commands_cog", "parse_invocation"]
