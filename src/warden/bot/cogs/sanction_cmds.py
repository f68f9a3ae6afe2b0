"""
Sanction cog: temporary mutes and bans issued by moderators.

- /tempmute and /tempban enforce the sanction through the Guild Directory
  and record its expiry; the sanction scheduler lifts it later.
- /unmute and /unban lift a sanction early and forget the record.

Enforcement happens before the record is written, so a failed Discord call
never leaves a sanction the scheduler would try to revoke.
"""

import discord
from discord import Option
from discord.ext import commands

from warden.datatypes.sanction_datatypes import SanctionKind
from warden.directory.guild_directory import GuildDirectory
from warden.errors import GuildDirectoryError
from warden.scheduler.sanction_scheduler import SanctionExpiryScheduler
from warden.util.discord_utils import format_hours, has_permissions, hours_to_seconds
from warden.util.logger import get_logger

logger = get_logger("sanction_cog")


class SanctionCog(commands.Cog):
    """Slash commands that create and lift temporary sanctions."""

    def __init__(self, discord_bot_instance, scheduler: SanctionExpiryScheduler, directory: GuildDirectory):
        self.discord_bot_instance = discord_bot_instance
        self.scheduler = scheduler
        self.directory = directory
        logger.info("Sanction cog loaded")

    async def check_target(self, ctx: discord.ApplicationContext, target: discord.Member, permission: str) -> bool:
        """Shared pre-checks; replies to the moderator and returns False when the action is not allowed."""
        if ctx.guild is None:
            await ctx.send_followup("This command can only be used in a server.")
            return False
        if not has_permissions(ctx, **{permission: True}):
            await ctx.send_followup("You do not have permission to use this command.")
            return False
        if not isinstance(target, discord.Member):
            await ctx.send_followup("The specified user is not a member of this server.")
            return False
        if target.id == ctx.user.id:
            await ctx.send_followup("You cannot perform moderation actions on yourself.")
            return False
        if target.guild_permissions.administrator:
            await ctx.send_followup("You cannot perform moderation actions against administrators.")
            return False
        return True

    @commands.slash_command(name="tempmute", description="Mute a member for the specified number of hours.")
    async def tempmute(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The member to mute.", required=True),  # type: ignore
        hours: Option(float, "Duration of the mute in hours.", min_value=0.01, required=True),  # type: ignore
        reason: Option(str, "Reason for the mute.", default="No reason provided."),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not await self.check_target(ctx, user, "manage_roles"):
            return

        try:
            await self.directory.apply_mute(user)
        except GuildDirectoryError as exc:
            logger.warning("Could not mute %s: %s", user.id, exc)
            await ctx.send_followup(f"❌ Could not mute {user.display_name}: {exc}")
            return

        await self.scheduler.sanction(SanctionKind.MUTE, user.id, ctx.guild.id, hours_to_seconds(hours))
        logger.info("%s muted %s for %s hours: %s", ctx.user.id, user.id, hours, reason)
        await ctx.send_followup(f"✅ Successfully muted {user.display_name} for {format_hours(hours)}.")

    @commands.slash_command(name="unmute", description="Unmute a member.")
    async def unmute(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The member to unmute.", required=True),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not await self.check_target(ctx, user, "manage_roles"):
            return

        try:
            await self.directory.apply_unmute(user)
        except GuildDirectoryError as exc:
            logger.warning("Could not unmute %s: %s", user.id, exc)
            await ctx.send_followup(f"❌ Could not unmute {user.display_name}: {exc}")
            return

        await self.scheduler.lift(SanctionKind.MUTE, user.id, ctx.guild.id)
        await ctx.send_followup(f"✅ Successfully unmuted {user.display_name}.")

    @commands.slash_command(name="tempban", description="Ban a member for the specified number of hours.")
    async def tempban(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.Member, "The member to ban.", required=True),  # type: ignore
        hours: Option(float, "Duration of the ban in hours.", min_value=0.01, required=True),  # type: ignore
        reason: Option(str, "Reason for the ban.", default="No reason provided."),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if not await self.check_target(ctx, user, "ban_members"):
            return

        try:
            await self.directory.apply_ban(ctx.guild.id, user.id)
        except GuildDirectoryError as exc:
            logger.warning("Could not ban %s: %s", user.id, exc)
            await ctx.send_followup(f"❌ Could not ban {user.display_name}: {exc}")
            return

        await self.scheduler.sanction(SanctionKind.BAN, user.id, ctx.guild.id, hours_to_seconds(hours))
        logger.info("%s banned %s for %s hours: %s", ctx.user.id, user.id, hours, reason)
        await ctx.send_followup(f"✅ Successfully banned {user.display_name} for {format_hours(hours)}.")

    @commands.slash_command(name="unban", description="Lift a ban early.")
    async def unban(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "ID of the banned user.", required=True),  # type: ignore
    ) -> None:
        await ctx.defer(ephemeral=True)
        if ctx.guild is None or not has_permissions(ctx, ban_members=True):
            await ctx.send_followup("You do not have permission to use this command.")
            return
        try:
            subject_id = int(user_id.strip())
        except ValueError:
            await ctx.send_followup(f"`{user_id}` is not a valid user ID.")
            return

        try:
            await self.directory.apply_unban(ctx.guild.id, subject_id)
        except GuildDirectoryError as exc:
            logger.warning("Could not unban %s: %s", subject_id, exc)
            await ctx.send_followup(f"❌ Could not unban `{subject_id}`: {exc}")
            return

        await self.scheduler.lift(SanctionKind.BAN, subject_id, ctx.guild.id)
        await ctx.send_followup(f"✅ Successfully unbanned `{subject_id}`.")


def setup(discord_bot_instance, scheduler: SanctionExpiryScheduler, directory: GuildDirectory) -> None:
    """Register the sanction cog."""
    discord_bot_instance.add_cog(SanctionCog(discord_bot_instance, scheduler, directory))
