"""
Feature kinds that custom commands are assembled from.

Each kind is a dataclass with a ``kind`` tag and a ``summary``. Instances are
built from the raw argument text a moderator typed (``from_arguments``) or
from the fields persisted in the catalog document (``from_fields``). Field
values are validated in ``__post_init__`` so both paths reject bad input the
same way, with :class:`~warden.errors.FeatureArgumentError`. Instances are
frozen, so command snapshots can share them with the live catalog.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Mapping, Tuple

from warden.custom_commands.context import CommandContext
from warden.errors import FeatureArgumentError

EMBED_SEPARATOR = "|"
MAX_MESSAGE_LENGTH = 2000


class Feature:
    """Base class for every feature kind."""

    kind: ClassVar[str]
    summary: ClassVar[str]

    @classmethod
    def from_arguments(cls, args_text: str) -> "Feature":
        """Parse the raw argument text of ``/cc add-feature``."""
        raise NotImplementedError

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> "Feature":
        """Rebuild a feature from its persisted fields (the ``kind`` tag already removed)."""
        expected = {f.name for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
        unknown = set(fields) - expected
        if unknown:
            raise FeatureArgumentError(cls.kind, f"unexpected fields {sorted(unknown)}")
        try:
            return cls(**fields)
        except TypeError as exc:
            raise FeatureArgumentError(cls.kind, str(exc)) from exc

    def to_fields(self) -> Dict[str, Any]:
        """Return the kind-specific fields, without the ``kind`` tag."""
        return dataclasses.asdict(self)  # type: ignore[call-overload]

    async def execute(self, context: CommandContext) -> None:
        raise NotImplementedError

    def describe(self) -> str:
        """Short human readable rendering used in command listings."""
        fields = ", ".join(f"{name}={value!r}" for name, value in self.to_fields().items())
        return f"{self.kind}({fields})"


def _require_text(kind: str, name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise FeatureArgumentError(kind, f"'{name}' must be non-empty text")


@dataclass(frozen=True)
class MessageFeature(Feature):
    kind: ClassVar[str] = "message"
    summary: ClassVar[str] = "Replies with the given text."

    text: str

    def __post_init__(self) -> None:
        _require_text(self.kind, "text", self.text)
        if len(self.text) > MAX_MESSAGE_LENGTH:
            raise FeatureArgumentError(self.kind, f"text is longer than {MAX_MESSAGE_LENGTH} characters")

    @classmethod
    def from_arguments(cls, args_text: str) -> "MessageFeature":
        return cls(text=args_text.strip())

    async def execute(self, context: CommandContext) -> None:
        await context.send_text(self.text)


@dataclass(frozen=True)
class EmbedFeature(Feature):
    kind: ClassVar[str] = "embed"
    summary: ClassVar[str] = "Replies with an embed. Arguments: Title | Description"

    title: str
    description: str = ""

    def __post_init__(self) -> None:
        _require_text(self.kind, "title", self.title)
        if not isinstance(self.description, str):
            raise FeatureArgumentError(self.kind, "'description' must be text")

    @classmethod
    def from_arguments(cls, args_text: str) -> "EmbedFeature":
        title, _, description = args_text.partition(EMBED_SEPARATOR)
        return cls(title=title.strip(), description=description.strip())

    async def execute(self, context: CommandContext) -> None:
        await context.send_embed(self.title, self.description)


@dataclass(frozen=True)
class ReactFeature(Feature):
    kind: ClassVar[str] = "react"
    summary: ClassVar[str] = "Reacts to the invoking message with the given emoji, separated by spaces."

    emojis: Tuple[str, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.emojis, (list, tuple)) or not self.emojis:
            raise FeatureArgumentError(self.kind, "at least one emoji is required")
        for emoji in self.emojis:
            _require_text(self.kind, "emojis", emoji)
        object.__setattr__(self, "emojis", tuple(self.emojis))

    @classmethod
    def from_arguments(cls, args_text: str) -> "ReactFeature":
        return cls(emojis=tuple(args_text.split()))

    def to_fields(self) -> Dict[str, Any]:
        return {"emojis": list(self.emojis)}

    async def execute(self, context: CommandContext) -> None:
        for emoji in self.emojis:
            await context.add_reaction(emoji)


@dataclass(frozen=True)
class DeleteFeature(Feature):
    kind: ClassVar[str] = "delete"
    summary: ClassVar[str] = "Deletes the message that invoked the command."

    @classmethod
    def from_arguments(cls, args_text: str) -> "DeleteFeature":
        if args_text.strip():
            raise FeatureArgumentError(cls.kind, "this feature takes no arguments")
        return cls()

    async def execute(self, context: CommandContext) -> None:
        await context.delete_invocation()


@dataclass(frozen=True)
class RoleFeature(Feature):
    kind: ClassVar[str] = "role"
    summary: ClassVar[str] = "Gives the invoking member a role, or takes it away if they already have it. Arguments: role ID"

    role_id: int

    def __post_init__(self) -> None:
        if isinstance(self.role_id, bool) or not isinstance(self.role_id, int) or self.role_id <= 0:
            raise FeatureArgumentError(self.kind, "'role_id' must be a positive integer")

    @classmethod
    def from_arguments(cls, args_text: str) -> "RoleFeature":
        raw = args_text.strip().removeprefix("<@&").removesuffix(">")
        try:
            role_id = int(raw)
        except ValueError:
            raise FeatureArgumentError(cls.kind, f"'{args_text.strip()}' is not a role ID") from None
        return cls(role_id=role_id)

    async def execute(self, context: CommandContext) -> None:
        await context.toggle_role(self.role_id)


BUILTIN_FEATURES = (MessageFeature, EmbedFeature, ReactFeature, DeleteFeature, RoleFeature)
