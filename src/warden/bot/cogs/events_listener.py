"""Event listener Cog for Warden.

Starts the sanction sweeps once the bot is connected and reconciles a
member's mute when they join, so leaving and rejoining does not shed an
active mute.
"""

from typing import Mapping

import discord
from discord.ext import commands

from warden.datatypes.sanction_datatypes import JoinReconciliation, SanctionKind
from warden.scheduler.sanction_scheduler import SanctionExpiryScheduler
from warden.util.logger import get_logger

logger = get_logger("events_listener")


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and member join handlers."""

    def __init__(
        self,
        discord_bot_instance,
        scheduler: SanctionExpiryScheduler,
        sweep_intervals: Mapping[SanctionKind, float],
    ):
        """
        Parameters
        ----------
        discord_bot_instance:
            The Discord bot instance to attach this cog to.
        scheduler:
            Sanction scheduler whose sweeps are started on ready.
        sweep_intervals:
            Seconds between sweeps, per sanction kind.
        """
        self.bot = discord_bot_instance
        self.scheduler = scheduler
        self.sweep_intervals = dict(sweep_intervals)
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """Start one sweep per sanction kind. on_ready can fire again after a reconnect; start() ignores running sweeps."""
        if self.bot.user:
            logger.info(f"Bot connected as {self.bot.user} (ID: {self.bot.user.id})")
        else:
            logger.warning("[EVENTS LISTENER] Bot partially connected, but user information not yet available.")

        for kind, interval in self.sweep_intervals.items():
            if not self.scheduler.is_running(kind):
                self.scheduler.start(kind, interval)

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member):
        """Reapply an outstanding mute, or clear a stale one, for a joining member."""
        try:
            outcome = await self.scheduler.reconcile_on_join(member.id, member.guild.id, SanctionKind.MUTE)
        except Exception:
            logger.exception("[EVENTS LISTENER] Join reconciliation failed for %s", member.id)
            return
        if outcome is JoinReconciliation.REAPPLIED:
            logger.info("[EVENTS LISTENER] %s rejoined guild %s while muted; mute reapplied", member.id, member.guild.id)


def setup(discord_bot_instance, scheduler: SanctionExpiryScheduler, sweep_intervals: Mapping[SanctionKind, float]) -> None:
    """Register the events listener cog."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, scheduler, sweep_intervals))
