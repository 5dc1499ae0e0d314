"""Garage commands: account linking and random vehicle draws."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Optional

import discord
from discord.ext import commands

from .catalog import VehicleCatalog
from .draw import (
    NATIONS,
    DrawFilterError,
    describe_filter,
    draw_tier,
    draw_vehicle,
    eligible_vehicles,
    nation_label,
    parse_draw_filter,
)
from .models import CatalogVehicle, DrawFilter, PlayerInfo, UserCredential
from .state import CredentialStore
from .utils import format_tier, redact_token, utc_now
from .wot_api import WargamingAPIError, WargamingClient

logger = logging.getLogger("garagebot.garage")

DRAW_EMBED_COLOR = 0xE67E22
LOGIN_EMBED_COLOR = 0x2ECC71
HELP_EMBED_COLOR = 0x5865F2

VEHICLE_TYPE_LABELS: Dict[str, str] = {
    "lightTank": "Light tank",
    "mediumTank": "Medium tank",
    "heavyTank": "Heavy tank",
    "AT-SPG": "Tank destroyer",
    "SPG": "SPG",
}

UPSTREAM_WARNING = ":warning: Couldn't get data from Wargaming right now. Please try again later."
CATALOG_LOADING = ":hourglass: The vehicle catalog is still loading. Try again in a moment."


@dataclass
class DrawReply:
    content: str
    embed: Optional[discord.Embed] = None


class GarageManager:
    """Encapsulates credentials, the vehicle catalog, and the garage command handlers."""

    def __init__(
        self,
        *,
        bot: commands.Bot,
        client: WargamingClient,
        store: CredentialStore,
        catalog: VehicleCatalog,
        callback_url: str,
        bot_name: str = "GarageBot",
        command_prefix: str = "!",
        rng: Optional[random.Random] = None,
    ) -> None:
        self.bot = bot
        self.client = client
        self.store = store
        self.catalog = catalog
        self.callback_url = callback_url.rstrip("/")
        self.bot_name = bot_name
        self.prefix = command_prefix
        self._rng = rng or random.Random()

    #
    # Reply helpers
    #
    async def _safe_reply(self, ctx: commands.Context, content: Optional[str] = None, **kwargs) -> None:
        try:
            await ctx.reply(content, mention_author=False, **kwargs)
        except discord.HTTPException as exc:
            logger.warning("Failed to reply in %s: %s", getattr(ctx.channel, "id", "unknown"), exc)

    async def _safe_send(self, ctx: commands.Context, content: Optional[str] = None, **kwargs) -> None:
        try:
            await ctx.send(content, **kwargs)
        except discord.HTTPException as exc:
            logger.warning("Failed to send in %s: %s", getattr(ctx.channel, "id", "unknown"), exc)

    async def _notify_user(
        self,
        user_id: int,
        content: Optional[str] = None,
        *,
        embed: Optional[discord.Embed] = None,
    ) -> bool:
        user = self.bot.get_user(user_id)
        if user is None:
            try:
                user = await self.bot.fetch_user(user_id)
            except discord.HTTPException as exc:
                logger.warning("Cannot resolve Discord user %s: %s", user_id, exc)
                return False
        try:
            await user.send(content, embed=embed)
        except discord.HTTPException as exc:
            logger.warning("Failed to DM user %s: %s", user_id, exc)
            return False
        return True

    #
    # Embeds
    #
    def redirect_uri_for(self, user_id: int) -> str:
        return f"{self.callback_url}/{user_id}/"

    def authorize_url_for(self, user_id: int) -> str:
        return self.client.authorize_url(self.redirect_uri_for(user_id))

    def _build_login_link_embed(self, user_id: int) -> discord.Embed:
        embed = discord.Embed(
            title="Link your Wargaming account",
            description=(
                f"[Log in through Wargaming]({self.authorize_url_for(user_id)})\n"
                "After logging in you will be sent back to Discord."
            ),
            color=HELP_EMBED_COLOR,
        )
        embed.set_footer(text=self.bot_name)
        return embed

    def _build_login_embed(self, player: PlayerInfo, expires_at: Optional[int]) -> discord.Embed:
        embed = discord.Embed(
            title="Authorization successful",
            color=LOGIN_EMBED_COLOR,
            timestamp=utc_now(),
        )
        embed.add_field(name="Player", value=player.nickname or "unknown", inline=True)
        embed.add_field(name="Account ID", value=player.account_id, inline=True)
        if player.battles is not None:
            embed.add_field(name="Battles", value=str(player.battles), inline=True)
        if expires_at:
            embed.add_field(name="Valid until", value=f"<t:{expires_at}:f>", inline=False)
        embed.set_footer(text=self.bot_name)
        return embed

    def _build_vehicle_embed(self, vehicle: CatalogVehicle, draw_filter: DrawFilter) -> discord.Embed:
        embed = discord.Embed(title=vehicle.name, color=DRAW_EMBED_COLOR)
        embed.add_field(name="Tier", value=format_tier(vehicle.tier), inline=True)
        embed.add_field(name="Nation", value=nation_label(vehicle.nation), inline=True)
        if vehicle.vehicle_type:
            embed.add_field(
                name="Type",
                value=VEHICLE_TYPE_LABELS.get(vehicle.vehicle_type, vehicle.vehicle_type),
                inline=True,
            )
        if vehicle.image_url:
            embed.set_image(url=vehicle.image_url)
        embed.set_footer(text=f"Filters: {describe_filter(draw_filter)}")
        return embed

    #
    # Login flows
    #
    async def complete_login(
        self,
        user_id: int,
        access_token: str,
        account_id: str,
        *,
        nickname: Optional[str] = None,
        expires_at: Optional[int] = None,
    ) -> bool:
        """Verify forwarded credentials, store them, and tell the user how it went."""
        try:
            player = await self.client.account_info(access_token, account_id)
        except WargamingAPIError as exc:
            logger.warning(
                "Login verification failed for user %s (account=%s, token=%s): %s",
                user_id,
                account_id,
                redact_token(access_token),
                exc,
            )
            await self._notify_user(user_id, UPSTREAM_WARNING)
            return False
        if player is None:
            logger.info("No Wargaming account %s matched the token for user %s", account_id, user_id)
            await self._notify_user(
                user_id,
                ":warning: Login failed: Wargaming did not return a matching account.",
            )
            return False

        self.store.put(
            UserCredential(
                user_id=user_id,
                access_token=access_token,
                account_id=player.account_id,
                nickname=player.nickname or nickname,
                expires_at=expires_at,
            )
        )
        await self._notify_user(user_id, embed=self._build_login_embed(player, expires_at))
        return True

    async def command_start(self, ctx: commands.Context, token: str = "") -> None:
        token = token.strip()
        if token:
            await self._login_from_chat(ctx, token)
            return

        embed = self._build_login_link_embed(ctx.author.id)
        if ctx.guild is None:
            await self._safe_reply(ctx, embed=embed)
            return
        try:
            await ctx.author.send(embed=embed)
        except discord.HTTPException as exc:
            logger.info("DM closed for user %s (%s); posting login link in channel.", ctx.author.id, exc)
            await self._safe_reply(ctx, embed=embed)
            return
        await self._safe_reply(ctx, ":envelope: I sent you a login link in DMs.")

    async def _login_from_chat(self, ctx: commands.Context, token: str) -> None:
        if ctx.guild is not None:
            try:
                await ctx.message.delete()
            except discord.HTTPException:
                logger.debug("Could not delete token message from user %s", ctx.author.id)

        try:
            player = await self.client.account_info(token)
        except WargamingAPIError as exc:
            logger.warning("Token check failed for user %s (token=%s): %s", ctx.author.id, redact_token(token), exc)
            await self._safe_reply(ctx, ":warning: Error while fetching player data.")
            return
        if player is None:
            await self._safe_reply(ctx, ":warning: Error: could not get player data for that token.")
            return

        self.store.put(
            UserCredential(
                user_id=ctx.author.id,
                access_token=token,
                account_id=player.account_id,
                nickname=player.nickname,
            )
        )
        await self._safe_reply(ctx, embed=self._build_login_embed(player, None))

    #
    # Draws
    #
    async def _draw_for(self, user_id: int, draw_filter: DrawFilter) -> DrawReply:
        credential = self.store.get(user_id)
        if credential is None:
            return DrawReply(
                f"You haven't linked a Wargaming account yet. Use `{self.prefix}start` to log in."
            )
        if not self.catalog.is_loaded:
            return DrawReply(CATALOG_LOADING)

        try:
            owned = await self.client.garage_vehicles(credential.account_id, credential.access_token)
        except WargamingAPIError as exc:
            logger.warning("Garage fetch failed for user %s (account=%s): %s", user_id, credential.account_id, exc)
            return DrawReply(UPSTREAM_WARNING)
        if not owned:
            return DrawReply(":warning: No vehicles found in your garage.")

        candidates = eligible_vehicles(owned, self.catalog, draw_filter)
        choice = draw_vehicle(candidates, self._rng)
        if choice is None:
            return DrawReply(f"No vehicles in your garage match {describe_filter(draw_filter)}.")

        if not choice.image_url:
            try:
                detailed = await self.client.vehicle_info(choice.tank_id)
            except WargamingAPIError as exc:
                logger.warning("Vehicle info lookup failed for tank %s: %s", choice.tank_id, exc)
            else:
                if detailed is not None and detailed.image_url:
                    choice = detailed

        logger.info(
            "Drew tank %s (%s) for user %s from %s candidates [%s]",
            choice.tank_id,
            choice.name,
            user_id,
            len(candidates),
            describe_filter(draw_filter),
        )
        return DrawReply(
            f":game_die: Drew **{choice.name}** (tier {format_tier(choice.tier)}, {nation_label(choice.nation)})",
            embed=self._build_vehicle_embed(choice, draw_filter),
        )

    async def command_random_tank(self, ctx: commands.Context, args: str = "") -> None:
        try:
            draw_filter = parse_draw_filter(args.split())
        except DrawFilterError as exc:
            await self._safe_reply(
                ctx,
                f":warning: {exc}\nUsage: `{self.prefix}randomtank [tier] [nation]`",
            )
            return
        reply = await self._draw_for(ctx.author.id, draw_filter)
        await self._safe_reply(ctx, reply.content, embed=reply.embed)

    def _chat_roster(self, ctx: commands.Context) -> List[discord.abc.Snowflake]:
        """Return linked, non-bot members of the invoking channel ordered by id."""
        if ctx.guild is None:
            members = [ctx.author]
        else:
            members = list(getattr(ctx.channel, "members", None) or ctx.guild.members)
        roster: Dict[int, discord.abc.Snowflake] = {}
        for member in members:
            if getattr(member, "bot", False):
                continue
            if member.id in self.store:
                roster.setdefault(member.id, member)
        return [roster[user_id] for user_id in sorted(roster)]

    async def command_random_tank_all(self, ctx: commands.Context) -> None:
        if ctx.guild is None:
            await self._safe_reply(ctx, "This command only works in a server channel.")
            return
        if not self.catalog.is_loaded:
            await self._safe_reply(ctx, CATALOG_LOADING)
            return
        roster = self._chat_roster(ctx)
        if not roster:
            await self._safe_reply(
                ctx,
                f"Nobody in this channel has linked a Wargaming account. Use `{self.prefix}start` first.",
            )
            return

        tier = draw_tier(self._rng)
        draw_filter = DrawFilter(tier=tier)
        mentions = ", ".join(f"<@{member.id}>" for member in roster)
        await self._safe_send(
            ctx,
            f":game_die: Tier **{format_tier(tier)}** for everyone: {mentions}",
            allowed_mentions=discord.AllowedMentions(users=True),
        )
        for member in roster:
            try:
                reply = await self._draw_for(member.id, draw_filter)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Broadcast draw failed for user %s", member.id)
                reply = DrawReply(UPSTREAM_WARNING)
            await self._safe_send(
                ctx,
                f"<@{member.id}> {reply.content}",
                embed=reply.embed,
                allowed_mentions=discord.AllowedMentions(users=True),
            )

    async def command_help(self, ctx: commands.Context) -> None:
        p = self.prefix
        embed = discord.Embed(title=f"{self.bot_name} commands", color=HELP_EMBED_COLOR)
        embed.add_field(name=f"{p}start", value="Link your Wargaming account.", inline=False)
        embed.add_field(
            name=f"{p}randomtank [tier] [nation]",
            value="Draw a random vehicle from your garage. Tier and nation are optional, in any order.",
            inline=False,
        )
        embed.add_field(
            name=f"{p}randomtankall",
            value="Pick one random tier and draw a vehicle for every linked member of this channel.",
            inline=False,
        )
        embed.add_field(name="Nations", value=", ".join(sorted(NATIONS)), inline=False)
        await self._safe_reply(ctx, embed=embed)

    #
    # Registration
    #
    def _register_command(self, command: commands.Command) -> None:
        existing = self.bot.get_command(command.name)
        if existing:
            self.bot.remove_command(existing.name)
        self.bot.add_command(command)

    def register_commands(self) -> None:
        @commands.command(name="help")
        async def garage_help(ctx: commands.Context) -> None:
            await self.command_help(ctx)

        @commands.command(name="start")
        async def garage_start(ctx: commands.Context, token: str = "") -> None:
            await self.command_start(ctx, token)

        @commands.command(name="randomtank", aliases=["rt"])
        async def garage_random_tank(ctx: commands.Context, *, args: str = "") -> None:
            await self.command_random_tank(ctx, args)

        @commands.command(name="randomtankall", aliases=["rtall"])
        @commands.guild_only()
        async def garage_random_tank_all(ctx: commands.Context) -> None:
            await self.command_random_tank_all(ctx)

        self._register_command(garage_help)
        self._register_command(garage_start)
        self._register_command(garage_random_tank)
        self._register_command(garage_random_tank_all)


__all__ = ["DrawReply", "GarageManager"]
