"""
Guild Directory: resolves members and performs enforcement actions.

The scheduler only depends on the :class:`GuildDirectory` protocol. Every
method raises :class:`~warden.errors.GuildDirectoryError` on failure; callers
treat that as transient and retry later. :class:`DiscordGuildDirectory` is the
py-cord implementation. Its revoke actions are idempotent: unmuting a member
without the mute role or unbanning a user who is not banned succeeds, since
the target state already holds.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import discord

from warden.errors import GuildDirectoryError
from warden.util.logger import get_logger

logger = get_logger("guild_directory")


class GuildDirectory(Protocol):
    async def resolve_member(self, scope_id: int, subject_id: int) -> Optional[Any]:
        """Return the member, or None if the subject is not in the scope."""
        ...

    async def apply_mute(self, member: Any) -> None: ...

    async def apply_unmute(self, member: Any) -> None: ...

    async def apply_ban(self, scope_id: int, subject_id: int) -> None: ...

    async def apply_unban(self, scope_id: int, subject_id: int) -> None: ...


class DiscordGuildDirectory:
    """GuildDirectory backed by a py-cord client.

    Mutes are enforced with a role looked up by name in each guild, like the
    manual ``/tempmute`` command applies it.
    """

    def __init__(self, bot: discord.Client, mute_role_name: str = "Muted") -> None:
        self.bot = bot
        self.mute_role_name = mute_role_name

    def _get_guild(self, scope_id: int) -> discord.Guild:
        guild = self.bot.get_guild(scope_id)
        if guild is None:
            raise GuildDirectoryError(f"Guild {scope_id} is not available")
        return guild

    def _get_mute_role(self, guild: discord.Guild) -> discord.Role:
        role = discord.utils.get(guild.roles, name=self.mute_role_name)
        if role is None:
            raise GuildDirectoryError(f"Guild {guild.id} has no '{self.mute_role_name}' role")
        return role

    async def resolve_member(self, scope_id: int, subject_id: int) -> Optional[discord.Member]:
        guild = self._get_guild(scope_id)
        member = guild.get_member(subject_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(subject_id)
        except discord.NotFound:
            return None
        except discord.HTTPException as exc:
            raise GuildDirectoryError(f"Could not fetch member {subject_id} in guild {scope_id}: {exc}") from exc

    async def apply_mute(self, member: discord.Member) -> None:
        role = self._get_mute_role(member.guild)
        if role in member.roles:
            return
        try:
            await member.add_roles(role, reason="Sanction applied.")
        except discord.HTTPException as exc:
            raise GuildDirectoryError(f"Could not mute member {member.id}: {exc}") from exc
        logger.debug("Muted member %s in guild %s", member.id, member.guild.id)

    async def apply_unmute(self, member: discord.Member) -> None:
        role = self._get_mute_role(member.guild)
        if role not in member.roles:
            return
        try:
            await member.remove_roles(role, reason="Mute duration expired.")
        except discord.HTTPException as exc:
            raise GuildDirectoryError(f"Could not unmute member {member.id}: {exc}") from exc
        logger.debug("Unmuted member %s in guild %s", member.id, member.guild.id)

    async def apply_ban(self, scope_id: int, subject_id: int) -> None:
        guild = self._get_guild(scope_id)
        try:
            await guild.ban(discord.Object(id=subject_id), reason="Sanction applied.")
        except discord.HTTPException as exc:
            raise GuildDirectoryError(f"Could not ban user {subject_id} in guild {scope_id}: {exc}") from exc

    async def apply_unban(self, scope_id: int, subject_id: int) -> None:
        guild = self._get_guild(scope_id)
        try:
            await guild.unban(discord.Object(id=subject_id), reason="Ban duration expired.")
        except discord.NotFound:
            logger.info("User %s is no longer banned in guild %s", subject_id, scope_id)
        except discord.HTTPException as exc:
            raise GuildDirectoryError(f"Could not unban user {subject_id} in guild {scope_id}: {exc}") from exc
