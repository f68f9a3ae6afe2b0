"""
User-authored custom commands.

- **features.py**: the Feature base class and the built-in kinds (message,
  embed, react, delete, role).
- **registry.py**: FeatureRegistry, the name-indexed catalog of kinds, and
  the self-describing ``{"kind": ..., ...fields}`` feature codec.
- **catalog.py**: CustomCommandCatalog, the persisted set of named commands
  with their ordered features.
- **context.py**: the CommandContext features run against, and its py-cord
  implementation.
"""
