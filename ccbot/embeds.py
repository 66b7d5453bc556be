"""Embeds shown by the custom command cog."""

from __future__ import annotations

import math
from typing import Sequence

import discord

from .models import CustomCommand
from .utils import truncate, utc_now

COMMANDS_PER_PAGE = 10
FIELD_VALUE_LIMIT = 1024
FIELD_NAME_LIMIT = 256
LIST_COLOR = 0xF542DD
ADDED_COLOR = 0x00FF00
REMOVED_COLOR = 0xFF0000


def defang_links(text: str) -> str:
    """Break ``https://`` so listing previews do not unfurl."""
    return text.replace("https://", "htt-ps://")


def page_count(total: int, per_page: int = COMMANDS_PER_PAGE) -> int:
    return max(1, math.ceil(total / per_page))


def build_error_embed(message: str) -> discord.Embed:
    return discord.Embed(
        title="Error Triggering Custom Command",
        description=(
            "I encountered an error while trying to execute this command.\n\n"
            f"Error:\n```{truncate(message, 3900)}```"
        ),
        color=discord.Color.dark_red(),
        timestamp=utc_now(),
    )


def build_list_embed(commands: Sequence[CustomCommand], page: int) -> discord.Embed:
    """Render one page of the guild's commands; ``page`` is 1-based and clamped."""
    total_pages = page_count(len(commands))
    page = min(max(1, page), total_pages)
    start = (page - 1) * COMMANDS_PER_PAGE
    shown = commands[start : start + COMMANDS_PER_PAGE]
    embed = discord.Embed(
        title="Custom Commands",
        description=(
            "Custom commands are commands that you can add to the bot.\n"
            f"{len(commands)} commands found."
        ),
        color=LIST_COLOR,
        timestamp=utc_now(),
    )
    for command in shown:
        suffix = f" ({command.id})"
        embed.add_field(
            name=command.name[: FIELD_NAME_LIMIT - len(suffix)] + suffix,
            value=truncate(defang_links(command.response), FIELD_VALUE_LIMIT) or "-",
            inline=True,
        )
    embed.set_footer(text=f"Page {page} • {total_pages} pages available")
    return embed


def build_change_embed(title: str, command: CustomCommand, verb: str, *, color: int = ADDED_COLOR) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=truncate(
            f"Command **'{command.name}'** with response **'{command.response}'** has been {verb}. (ID: {command.id})",
            4096,
        ),
        color=color,
        timestamp=utc_now(),
    )


__all__ = [
    "COMMANDS_PER_PAGE",
    "REMOVED_COLOR",
    "build_change_embed",
    "build_error_embed",
    "build_list_embed",
    "defang_links",
    "page_count",
]
