"""
Execution context handed to custom command features.

Features only talk to :class:`CommandContext`, which keeps them independent
of py-cord and easy to exercise in tests. :class:`DiscordCommandContext`
implements it for a message that invoked a custom command.
"""

from __future__ import annotations

from typing import Protocol

import discord

from warden.util.logger import get_logger

logger = get_logger("command_context")

EMBED_COLOUR = discord.Colour.blurple()


class CommandContext(Protocol):
    async def send_text(self, text: str) -> None: ...

    async def send_embed(self, title: str, description: str) -> None: ...

    async def add_reaction(self, emoji: str) -> None: ...

    async def delete_invocation(self) -> None: ...

    async def toggle_role(self, role_id: int) -> None: ...


class DiscordCommandContext:
    """CommandContext bound to the message that invoked a custom command."""

    def __init__(self, message: discord.Message) -> None:
        self.message = message

    async def send_text(self, text: str) -> None:
        await self.message.channel.send(text)

    async def send_embed(self, title: str, description: str) -> None:
        embed = discord.Embed(title=title, description=description or None, colour=EMBED_COLOUR)
        await self.message.channel.send(embed=embed)

    async def add_reaction(self, emoji: str) -> None:
        await self.message.add_reaction(emoji)

    async def delete_invocation(self) -> None:
        try:
            await self.message.delete()
        except discord.NotFound:
            pass

    async def toggle_role(self, role_id: int) -> None:
        member = self.message.author
        guild = self.message.guild
        if guild is None or not isinstance(member, discord.Member):
            return
        role = guild.get_role(role_id)
        if role is None:
            logger.warning("Role %s does not exist in guild %s", role_id, guild.id)
            return
        if role in member.roles:
            await member.remove_roles(role, reason="Custom command role toggle")
        else:
            await member.add_roles(role, reason="Custom command role toggle")
