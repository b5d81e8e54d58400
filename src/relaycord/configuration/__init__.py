"""
Configuration management for Relaycord.

- **app_configuration.py**: File-locked YAML configuration loader for global
  settings. Provides the database location, global chat display defaults,
  relay content limits, proxy indicator text and webhook names. Falls back to
  built-in defaults on missing or malformed config files.
"""
