"""
Exception hierarchy shared by the sanction and custom command subsystems.

Catalog validation errors derive from :class:`CatalogError`; their message is
safe to show to the privileged caller as-is. :class:`GuildDirectoryError` is
an operator-facing transient failure and is never surfaced to end users.
"""

from __future__ import annotations


class WardenError(Exception):
    """Base class for every error raised by Warden."""


class GuildDirectoryError(WardenError):
    """A Guild Directory call failed (network error, missing subject, wrong state)."""


class CatalogError(WardenError):
    """A custom command catalog request was rejected before any mutation."""


class DuplicateCommandError(CatalogError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A custom command named '{name}' already exists.")
        self.name = name


class CommandNotFoundError(CatalogError):
    def __init__(self, name: str) -> None:
        super().__init__(f"The custom command '{name}' was not found.")
        self.name = name


class InvalidCommandNameError(CatalogError):
    def __init__(self, name: str) -> None:
        super().__init__(f"'{name}' is not a valid custom command name.")
        self.name = name


class UnknownFeatureKindError(CatalogError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"The feature '{kind}' was not found.")
        self.kind = kind


class FeatureArgumentError(CatalogError):
    """Raised when a feature's argument text or persisted fields cannot be parsed."""

    def __init__(self, kind: str, detail: str) -> None:
        super().__init__(f"Invalid arguments for feature '{kind}': {detail}")
        self.kind = kind
        self.detail = detail


class CatalogCorruptedError(WardenError):
    """The persisted catalog document exists but cannot be parsed.

    Fatal at startup: the catalog must never run from a partially parsed state.
    """
