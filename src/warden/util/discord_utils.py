"""
Small py-cord helpers shared by the cogs.
"""

from __future__ import annotations

import discord

SECONDS_PER_HOUR = 3600


def has_permissions(application_context: discord.ApplicationContext, **required_permissions) -> bool:
    """
    Check if the command issuer has all specified permissions in the guild.

    Args:
        application_context (discord.ApplicationContext): The command context.
        **required_permissions: Permission flags mapped to the value each must have.

    Returns:
        bool: True if every flag matches its requested value, False otherwise.
    """
    if not isinstance(application_context.author, discord.Member):
        return False
    permissions = application_context.author.guild_permissions
    return all(
        getattr(permissions, permission_name, False) == value
        for permission_name, value in required_permissions.items()
    )


def hours_to_seconds(hours: float) -> int:
    return int(round(hours * SECONDS_PER_HOUR))


def format_hours(hours: float) -> str:
    return f"{hours:g} hour" + ("" if hours == 1 else "s")
