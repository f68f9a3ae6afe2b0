"""
Persisted catalog of custom commands.

The catalog owns every :class:`CustomCommand` and keeps the whole collection
in one JSON document::

    [
      {"name": "rules", "features": [{"kind": "message", "text": "..."}]}
    ]

Mutations are serialised by a single lock and validated before anything is
changed, so a rejected request never leaves a half-applied command behind.
Only :meth:`CustomCommandCatalog.create` flushes on its own; after
``remove``/``attach_feature``/``detach_feature`` the caller decides when to
call :meth:`CustomCommandCatalog.save`.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple, Union

from warden.custom_commands.context import CommandContext
from warden.custom_commands.features import Feature
from warden.custom_commands.registry import FeatureRegistry
from warden.errors import (
    CatalogCorruptedError,
    CatalogError,
    CommandNotFoundError,
    DuplicateCommandError,
    InvalidCommandNameError,
)
from warden.util.logger import get_logger

logger = get_logger("custom_command_catalog")


class DocumentStore(Protocol):
    def exists(self) -> bool: ...

    async def read(self) -> Any: ...

    async def write(self, document: Any) -> None: ...


@dataclass
class CustomCommand:
    """A named command and the ordered features it runs."""

    name: str
    features: List[Feature] = field(default_factory=list)

    def matches(self, name: str) -> bool:
        return self.name.casefold() == name.strip().casefold()

    def copy(self) -> "CustomCommand":
        return CustomCommand(name=self.name, features=list(self.features))


class CustomCommandCatalog:
    """
    In-memory custom commands backed by a document store.

    Args:
        store: Where the catalog document is read from and written to.
        registry: Feature kinds available to commands; also the feature codec.
    """

    def __init__(self, store: DocumentStore, registry: FeatureRegistry) -> None:
        self.store = store
        self.registry = registry
        self._commands: List[CustomCommand] = []
        self._lock = asyncio.Lock()
        self._loaded = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_all(self) -> Tuple[CustomCommand, ...]:
        """Snapshot of every command, in creation order."""
        return tuple(command.copy() for command in self._commands)

    def find_by_name(self, name: str) -> Optional[CustomCommand]:
        """Case-insensitive lookup; returns a snapshot copy or None."""
        command = self._find(name)
        return command.copy() if command is not None else None

    def _find(self, name: str) -> Optional[CustomCommand]:
        return next((command for command in self._commands if command.matches(name)), None)

    def _require(self, command: Union[str, CustomCommand]) -> CustomCommand:
        name = command.name if isinstance(command, CustomCommand) else command
        found = self._find(name)
        if found is None:
            raise CommandNotFoundError(name)
        return found

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, name: str) -> CustomCommand:
        """
        Create an empty command and persist the catalog.

        Raises:
            InvalidCommandNameError: ``name`` is empty or contains whitespace.
            DuplicateCommandError: A command with that name exists (any case).
        """
        name = name.strip()
        if not name or any(char.isspace() for char in name):
            raise InvalidCommandNameError(name)

        async with self._lock:
            if self._find(name) is not None:
                raise DuplicateCommandError(name)
            command = CustomCommand(name=name)
            updated = self._commands + [command]
            await self.store.write(self._to_document(updated))
            self._commands = updated

        logger.info("[CATALOG] Created custom command '%s'", name)
        return command.copy()

    async def remove(self, name: str) -> int:
        """Remove every command named ``name`` (any case). Returns how many were removed."""
        async with self._lock:
            remaining = [command for command in self._commands if not command.matches(name)]
            removed = len(self._commands) - len(remaining)
            self._commands = remaining

        if removed:
            logger.info("[CATALOG] Removed custom command '%s'", name)
        return removed

    async def attach_feature(self, command: Union[str, CustomCommand], kind: str, args_text: str) -> Feature:
        """
        Build a feature of ``kind`` from ``args_text`` and append it to ``command``.

        Raises:
            CommandNotFoundError: The command does not exist.
            UnknownFeatureKindError: ``kind`` is not registered.
            FeatureArgumentError: ``args_text`` does not parse for ``kind``.
        """
        async with self._lock:
            target = self._require(command)
            feature = self.registry.create(kind, args_text)
            target.features.append(feature)

        logger.info("[CATALOG] Added feature '%s' to '%s'", feature.kind, target.name)
        return feature

    async def detach_feature(self, command: Union[str, CustomCommand], kind: str) -> int:
        """Remove every feature of ``kind`` (any case) from ``command``. Returns how many were removed."""
        async with self._lock:
            target = self._require(command)
            wanted = kind.strip().casefold()
            kept = [feature for feature in target.features if feature.kind.casefold() != wanted]
            removed = len(target.features) - len(kept)
            target.features[:] = kept

        if removed:
            logger.info("[CATALOG] Removed %d '%s' feature(s) from '%s'", removed, kind, target.name)
        return removed

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save(self) -> None:
        """Write the whole catalog to the document store."""
        async with self._lock:
            await self.store.write(self._to_document(self._commands))

    async def load(self) -> None:
        """
        Replace the in-memory catalog with the stored document.

        A missing document seeds an empty catalog and writes it back. A
        document that cannot be parsed raises :class:`CatalogCorruptedError`
        and leaves the in-memory catalog untouched.
        """
        async with self._lock:
            if not self.store.exists():
                logger.info("[CATALOG] No custom command document found; creating an empty one")
                await self.store.write(self._to_document([]))
                self._commands = []
                self._loaded = True
                return

            try:
                raw = await self.store.read()
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                raise CatalogCorruptedError(f"Custom command document is not valid JSON: {exc}") from exc

            self._commands = self._from_document(raw)
            self._loaded = True

        logger.info("[CATALOG] Loaded %d custom command(s)", len(self._commands))

    @property
    def loaded(self) -> bool:
        return self._loaded

    def _to_document(self, commands: List[CustomCommand]) -> List[Dict[str, Any]]:
        return [
            {
                "name": command.name,
                "features": [self.registry.serialize(feature) for feature in command.features],
            }
            for command in commands
        ]

    def _from_document(self, raw: Any) -> List[CustomCommand]:
        if not isinstance(raw, list):
            raise CatalogCorruptedError("Custom command document must be a list of commands")

        commands: List[CustomCommand] = []
        seen: set[str] = set()
        for index, entry in enumerate(raw):
            if not isinstance(entry, dict):
                raise CatalogCorruptedError(f"Command #{index} is not an object")
            name = entry.get("name")
            if not isinstance(name, str) or not name.strip():
                raise CatalogCorruptedError(f"Command #{index} has no name")
            if name.casefold() in seen:
                raise CatalogCorruptedError(f"Command '{name}' appears more than once")
            seen.add(name.casefold())

            raw_features = entry.get("features", [])
            if not isinstance(raw_features, list):
                raise CatalogCorruptedError(f"Features of command '{name}' must be a list")
            try:
                features = [self.registry.deserialize(item) for item in raw_features]
            except CatalogError as exc:
                raise CatalogCorruptedError(f"Command '{name}' has an invalid feature: {exc}") from exc
            commands.append(CustomCommand(name=name, features=features))
        return commands

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, name: str, context: CommandContext) -> bool:
        """
        Run the features of command ``name`` in order.

        Returns False if no such command exists. A feature that fails is
        logged and the remaining features still run.
        """
        command = self.find_by_name(name)
        if command is None:
            return False

        for feature in command.features:
            try:
                await feature.execute(context)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("[CATALOG] Feature '%s' of command '%s' failed", feature.kind, command.name)
        return True
