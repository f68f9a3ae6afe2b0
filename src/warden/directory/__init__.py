"""
Guild Directory collaborator.

- **guild_directory.py**: the GuildDirectory protocol consumed by the
  sanction scheduler and its py-cord implementation, DiscordGuildDirectory.
"""
