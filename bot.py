import logging
import os
from typing import Optional

import discord
from discord.ext import commands
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("CCBOT_LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("ccbot")

from ccbot.commands import CustomCommandsCog, add_custom_commands_cog  # noqa: E402
from ccbot.config import load_settings  # noqa: E402
from ccbot.store import CommandStore  # noqa: E402

SETTINGS = load_settings()
STORE = CommandStore(SETTINGS.store_file)

intents = discord.Intents.default()
intents.message_content = True
intents.members = True


async def resolve_prefix(bot: commands.Bot, message: discord.Message) -> str:
    guild_id = message.guild.id if message.guild else None
    return STORE.prefix_for(guild_id, SETTINGS.prefix)


class CustomCommandBot(commands.Bot):
    async def setup_hook(self) -> None:
        await setup_bot_extensions()


bot = CustomCommandBot(command_prefix=resolve_prefix, intents=intents)
CUSTOM_COG: Optional[CustomCommandsCog] = None


async def setup_bot_extensions() -> None:
    global CUSTOM_COG
    CUSTOM_COG = await add_custom_commands_cog(bot, store=STORE, settings=SETTINGS)


@bot.event
async def on_ready():
    logger.info("Logged in as %s (%s) in %s guild(s)", bot.user, getattr(bot.user, "id", None), len(bot.guilds))


@bot.event
async def on_message(message: discord.Message):
    if message.author.bot:
        return None

    ctx = await bot.get_context(message)
    if ctx.command:
        logger.debug(
            "Invoking command %s by %s in channel %s",
            ctx.command.qualified_name,
            message.author.id,
            getattr(message.channel, "id", None),
        )
        await bot.invoke(ctx)
        return None

    if CUSTOM_COG is not None:
        await CUSTOM_COG.handle_message(message)
    return None


@bot.event
async def on_command_error(ctx: commands.Context, error: commands.CommandError) -> None:
    if isinstance(error, commands.BadArgument):
        await ctx.reply(f"Invalid argument: {error}", mention_author=False)
        return
    if isinstance(error, commands.CommandNotFound):
        return
    logger.error("Command %s failed", getattr(ctx.command, "qualified_name", None), exc_info=error)


@bot.group(name="custom", invoke_without_command=True)
async def custom_group_command(ctx: commands.Context, page: int = 1) -> None:
    """List this server's custom commands."""
    if CUSTOM_COG:
        await CUSTOM_COG.list_command(ctx, page)


@custom_group_command.command(name="list")
async def custom_list_command(ctx: commands.Context, page: int = 1) -> None:
    """List this server's custom commands."""
    if CUSTOM_COG:
        await CUSTOM_COG.list_command(ctx, page)


@custom_group_command.command(name="add")
async def custom_add_command(ctx: commands.Context, name: str = "", *, response: str = "") -> None:
    """Add a custom command (Manage Server only)."""
    if CUSTOM_COG:
        await CUSTOM_COG.add_command(ctx, name, response=response)


@custom_group_command.command(name="edit")
async def custom_edit_command(ctx: commands.Context, identifier: str = "", *, response: str = "") -> None:
    """Replace a custom command's response (Manage Server only)."""
    if CUSTOM_COG:
        await CUSTOM_COG.edit_command(ctx, identifier, response=response)


@custom_group_command.command(name="remove", aliases=["delete"])
async def custom_remove_command(ctx: commands.Context, identifier: str = "") -> None:
    """Remove a custom command by name or id (Manage Server only)."""
    if CUSTOM_COG:
        await CUSTOM_COG.remove_command(ctx, identifier)


@custom_group_command.command(name="run")
async def custom_run_command(ctx: commands.Context, *, template: str = "") -> None:
    """Resolve a template without saving it (Manage Server only)."""
    if CUSTOM_COG:
        await CUSTOM_COG.run_command(ctx, template=template)


@bot.command(name="prefix")
async def prefix_command(ctx: commands.Context, new_prefix: str = "") -> None:
    """Show or change this server's command prefix."""
    if CUSTOM_COG:
        await CUSTOM_COG.prefix_command(ctx, new_prefix)


def main():
    bot.run(SETTINGS.token)


if __name__ == "__main__":
    main()
