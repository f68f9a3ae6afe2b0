"""
Custom commands cog: manage the catalog and run commands from chat.

Management lives under the ``/cc`` slash command group and requires the
Manage Server permission. Responses are ephemeral. Messages starting with the
configured prefix followed by a command name run that command's features.
"""

import discord
from discord import Option
from discord.ext import commands

from warden.custom_commands.catalog import CustomCommandCatalog
from warden.custom_commands.context import DiscordCommandContext
from warden.errors import CatalogError
from warden.util.discord_utils import has_permissions
from warden.util.logger import get_logger

logger = get_logger("custom_command_cog")

EMBED_COLOUR = discord.Colour.blurple()


class CustomCommandCog(commands.Cog):
    """Slash commands editing the custom command catalog, plus the prefix listener."""

    cc = discord.SlashCommandGroup("cc", "Manage custom commands")

    def __init__(self, discord_bot_instance, catalog: CustomCommandCatalog, prefix: str = "!"):
        self.discord_bot_instance = discord_bot_instance
        self.catalog = catalog
        self.prefix = prefix
        logger.info("Custom command cog loaded")

    async def _ensure_manager(self, ctx: discord.ApplicationContext) -> bool:
        if not has_permissions(ctx, manage_guild=True):
            await ctx.respond("You need the Manage Server permission to edit custom commands.", ephemeral=True)
            return False
        return True

    @cc.command(name="create", description="Create an empty custom command")
    async def create(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Name of the new command.", required=True),  # type: ignore
    ) -> None:
        if not await self._ensure_manager(ctx):
            return
        try:
            command = await self.catalog.create(name)
        except CatalogError as exc:
            await ctx.respond(f"❌ {exc}", ephemeral=True)
            return
        await ctx.respond(f"✅ Created custom command `{command.name}`.", ephemeral=True)

    @cc.command(name="delete", description="Delete a custom command")
    async def delete(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Name of the command to delete.", required=True),  # type: ignore
    ) -> None:
        if not await self._ensure_manager(ctx):
            return
        if not await self.catalog.remove(name):
            await ctx.respond(f"❌ The custom command '{name}' was not found.", ephemeral=True)
            return
        await self.catalog.save()
        await ctx.respond(f"✅ Deleted custom command `{name}`.", ephemeral=True)

    @cc.command(name="add-feature", description="Add a feature to a custom command")
    async def add_feature(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Name of the command.", required=True),  # type: ignore
        feature: Option(str, "Feature kind, see /cc features.", required=True),  # type: ignore
        arguments: Option(str, "Arguments for the feature.", default=""),  # type: ignore
    ) -> None:
        if not await self._ensure_manager(ctx):
            return
        try:
            added = await self.catalog.attach_feature(name, feature, arguments)
        except CatalogError as exc:
            await ctx.respond(f"❌ {exc}", ephemeral=True)
            return
        await self.catalog.save()
        await ctx.respond(f"✅ Added `{added.describe()}` to `{name}`.", ephemeral=True)

    @cc.command(name="remove-feature", description="Remove every feature of a kind from a custom command")
    async def remove_feature(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Name of the command.", required=True),  # type: ignore
        feature: Option(str, "Feature kind to remove.", required=True),  # type: ignore
    ) -> None:
        if not await self._ensure_manager(ctx):
            return
        try:
            removed = await self.catalog.detach_feature(name, feature)
        except CatalogError as exc:
            await ctx.respond(f"❌ {exc}", ephemeral=True)
            return
        await self.catalog.save()
        await ctx.respond(f"✅ Removed {removed} `{feature}` feature(s) from `{name}`.", ephemeral=True)

    @cc.command(name="list", description="List every custom command")
    async def list_commands(self, ctx: discord.ApplicationContext) -> None:
        entries = self.catalog.get_all()
        embed = discord.Embed(title="Custom commands", colour=EMBED_COLOUR)
        if not entries:
            embed.description = "No custom commands yet."
        for command in entries[:25]:
            value = "\n".join(feature.describe() for feature in command.features) or "(no features)"
            embed.add_field(name=f"{self.prefix}{command.name}", value=value[:1024], inline=False)
        await ctx.respond(embed=embed, ephemeral=True)

    @cc.command(name="features", description="List the available feature kinds")
    async def list_features(self, ctx: discord.ApplicationContext) -> None:
        embed = discord.Embed(title="Custom command features", colour=EMBED_COLOUR)
        for info in self.catalog.registry.list_infos():
            embed.add_field(name=info.name, value=info.summary, inline=False)
        await ctx.respond(embed=embed, ephemeral=True)

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        """Run a custom command when a message starts with ``<prefix><name>``."""
        if message.author.bot or message.guild is None:
            return
        content = message.content or ""
        if not content.startswith(self.prefix):
            return
        parts = content[len(self.prefix):].split(maxsplit=1)
        if not parts:
            return
        if await self.catalog.execute(parts[0], DiscordCommandContext(message)):
            logger.debug("Ran custom command '%s' for %s", parts[0], message.author.id)


def setup(discord_bot_instance, catalog: CustomCommandCatalog, prefix: str = "!") -> None:
    """Register the custom command cog."""
    discord_bot_instance.add_cog(CustomCommandCog(discord_bot_instance, catalog, prefix))
