import asyncio
import logging
import os
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands
from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=os.getenv("GARAGEBOT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("garagebot")

from garagebot.catalog import VehicleCatalog
from garagebot.garage import GarageManager
from garagebot.interactions import InteractionContextAdapter
from garagebot.settings import load_settings
from garagebot.state import CredentialStore, MemoryStore
from garagebot.web import start_callback_server
from garagebot.wot_api import WargamingClient

SETTINGS = load_settings()

intents = discord.Intents.default()
intents.message_content = True
intents.members = True


class GarageBot(commands.Bot):
    def __init__(self) -> None:
        super().__init__(command_prefix=SETTINGS.command_prefix, intents=intents, help_command=None)
        self.wot_client = WargamingClient(
            SETTINGS.application_id,
            api_base=SETTINGS.api_base,
            timeout=SETTINGS.api_timeout,
        )
        self.catalog = VehicleCatalog()
        self.garage = GarageManager(
            bot=self,
            client=self.wot_client,
            store=CredentialStore(MemoryStore()),
            catalog=self.catalog,
            callback_url=SETTINGS.callback_url,
            bot_name=SETTINGS.bot_name,
            command_prefix=SETTINGS.command_prefix,
        )
        self.web_runner = None
        self._catalog_task: Optional[asyncio.Task] = None

    async def setup_hook(self) -> None:
        await self.wot_client.start()
        self.web_runner = await start_callback_server(
            self.garage,
            host=SETTINGS.host,
            port=SETTINGS.port,
            app_link=SETTINGS.app_link,
        )
        self._catalog_task = asyncio.create_task(self.catalog.load(self.wot_client))
        self._catalog_task.add_done_callback(_log_task_failure)
        try:
            await self.tree.sync()
        except discord.HTTPException as exc:
            logger.warning("Failed to sync application commands: %s", exc)

    async def close(self) -> None:
        if self.web_runner is not None:
            await self.web_runner.cleanup()
            self.web_runner = None
        await self.wot_client.close()
        await super().close()


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task failed", exc_info=exc)


bot = GarageBot()
bot.garage.register_commands()


@bot.event
async def on_ready():
    logger.info("Logged in as %s (id=%s)", bot.user, bot.user.id if bot.user else "unknown")
    logger.info("%s callback base: %s", SETTINGS.bot_name, SETTINGS.callback_url)
    if not bot.catalog.is_loaded:
        logger.info("Vehicle catalog not loaded yet; draws will answer with a loading notice.")


@bot.event
async def on_command_error(ctx: commands.Context, error: commands.CommandError):
    if isinstance(error, commands.CommandNotFound):
        return
    if isinstance(error, commands.NoPrivateMessage):
        await ctx.reply("This command only works in a server channel.", mention_author=False)
        return
    if isinstance(error, commands.UserInputError):
        await ctx.reply(f":warning: {error}", mention_author=False)
        return
    original = getattr(error, "original", error)
    logger.error(
        "Command %s failed for user %s",
        getattr(ctx.command, "qualified_name", "unknown"),
        getattr(ctx.author, "id", "unknown"),
        exc_info=(type(original), original, original.__traceback__),
    )
    try:
        await ctx.reply(":warning: Something went wrong while handling that command.", mention_author=False)
    except discord.HTTPException as exc:
        logger.warning("Failed to report command error: %s", exc)


@bot.tree.error
async def on_app_command_error(interaction: discord.Interaction, error: app_commands.AppCommandError):
    original = getattr(error, "original", error)
    logger.error(
        "Slash command %s failed for user %s",
        getattr(interaction.command, "qualified_name", "unknown"),
        getattr(interaction.user, "id", "unknown"),
        exc_info=(type(original), original, original.__traceback__),
    )
    message = ":warning: Something went wrong while handling that command."
    try:
        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
    except discord.HTTPException as exc:
        logger.warning("Failed to report slash command error: %s", exc)


@bot.tree.command(name="start", description="Link your Wargaming account.")
@app_commands.describe(token="Optional access token to verify directly.")
async def slash_start(interaction: discord.Interaction, token: Optional[str] = None) -> None:
    await interaction.response.defer(ephemeral=True, thinking=True)
    ctx = InteractionContextAdapter(interaction, ephemeral=True)
    await bot.garage.command_start(ctx, token or "")


@bot.tree.command(name="randomtank", description="Draw a random vehicle from your garage.")
@app_commands.describe(tier="Vehicle tier (1-10).", nation="Nation, for example ussr or germany.")
async def slash_random_tank(
    interaction: discord.Interaction,
    tier: Optional[app_commands.Range[int, 1, 10]] = None,
    nation: Optional[str] = None,
) -> None:
    await interaction.response.defer(thinking=True)
    ctx = InteractionContextAdapter(interaction)
    args = " ".join(str(value) for value in (tier, nation) if value is not None)
    await bot.garage.command_random_tank(ctx, args)


@bot.tree.command(name="randomtankall", description="Draw a vehicle for every linked member at one random tier.")
@app_commands.guild_only()
async def slash_random_tank_all(interaction: discord.Interaction) -> None:
    await interaction.response.defer(thinking=True)
    ctx = InteractionContextAdapter(interaction)
    await bot.garage.command_random_tank_all(ctx)


def main():
    bot.run(SETTINGS.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
