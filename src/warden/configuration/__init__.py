"""
Configuration management for Warden.

- **app_configuration.py**: File-locked YAML configuration loader. Provides
  per-kind sanction sweep intervals, the revocation worker pool size, the mute
  role name, the custom command document path and prefix, and the database
  path. Falls back to defaults on missing or malformed config files.
"""
