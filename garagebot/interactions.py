"""Adapters for reusing command logic with Discord interactions."""

from __future__ import annotations

from typing import Optional

import discord


class InteractionContextAdapter:
    """Minimal commands.Context-like adapter for slash interactions."""

    def __init__(self, interaction: discord.Interaction, *, ephemeral: bool = False):
        self.interaction = interaction
        self.guild = interaction.guild
        self.channel = interaction.channel
        self.author = interaction.user
        self.bot = interaction.client
        self.ephemeral = ephemeral
        self.message = _InteractionMessageProxy(interaction)
        self.responded = False

    async def reply(self, content: Optional[str] = None, **kwargs) -> None:
        kwargs.pop("mention_author", None)
        ephemeral = kwargs.pop("ephemeral", self.ephemeral)
        payload = {key: value for key, value in kwargs.items() if value is not None}
        if content is not None:
            payload["content"] = content

        if not self.interaction.response.is_done():
            await self.interaction.response.defer(ephemeral=ephemeral, thinking=True)
        await self.interaction.followup.send(ephemeral=ephemeral, **payload)
        self.responded = True

    async def send(self, content: Optional[str] = None, **kwargs) -> None:
        await self.reply(content, **kwargs)

    def __repr__(self) -> str:
        return f"<InteractionContextAdapter guild={getattr(self.guild, 'id', None)} user={getattr(self.author, 'id', None)}>"


class _InteractionMessageProxy:
    """Slash invocations have no user message to delete."""

    def __init__(self, interaction: discord.Interaction):
        self.id = interaction.id
        self.author = interaction.user

    async def delete(self, *_args, **_kwargs) -> None:
        return None
