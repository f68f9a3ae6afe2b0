"""
Warden - Discord moderation bot with timed sanctions and custom commands

Core Components:

- **Sanction Scheduler**: Periodically sweeps outstanding mutes and bans,
  lifts the expired ones through the Guild Directory and reapplies an active
  mute when a member rejoins
- **Sanction Storage**: SQLite-backed stores (aiosqlite) keyed by subject and
  guild, with integer unix second expiries
- **Custom Commands**: A persisted catalog of named commands assembled from
  registered feature kinds (message, embed, react, delete, role)
- **Cogs**: py-cord slash commands for moderators and the prefix listener that
  runs custom commands

Usage:
    from warden.main import main
    main()  # Starts the bot
"""
