"""
py-cord wiring for Warden.

- **cogs/sanction_cmds.py**: /tempmute, /unmute, /tempban, /unban.
- **cogs/custom_command_cmds.py**: the /cc group and the prefix listener that
  runs custom commands.
- **cogs/events_listener.py**: starts the sanction sweeps on ready and
  reconciles mutes on member join.
"""
