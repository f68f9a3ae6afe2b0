"""
Name-indexed registry of feature kinds and the catalog's feature codec.

Kinds are registered explicitly at startup (see :func:`build_default_registry`).
Every serialized feature carries its kind under the ``"kind"`` key next to its
own fields, so a command's heterogeneous feature list can be read back without
any outside hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Type

from warden.custom_commands.features import BUILTIN_FEATURES, Feature
from warden.errors import FeatureArgumentError, UnknownFeatureKindError

KIND_FIELD = "kind"


@dataclass(frozen=True, slots=True)
class FeatureInfo:
    """Name and summary of a registered feature kind, for help output."""

    name: str
    summary: str


class FeatureRegistry:
    """Case-insensitive catalog of available feature kinds, in registration order."""

    def __init__(self) -> None:
        self._kinds: Dict[str, Type[Feature]] = {}

    def register(self, feature_cls: Type[Feature]) -> Type[Feature]:
        """Register a feature kind. Returns the class so it can be used as a decorator."""
        name = getattr(feature_cls, "kind", "")
        if not isinstance(name, str) or not name.strip():
            raise ValueError(f"{feature_cls.__name__} does not declare a feature kind")
        key = name.casefold()
        if key in self._kinds:
            raise ValueError(f"Feature kind '{name}' is already registered")
        self._kinds[key] = feature_cls
        return feature_cls

    def resolve(self, name: str) -> Optional[Type[Feature]]:
        """Return the feature class registered as ``name`` (any case), or None."""
        return self._kinds.get(name.strip().casefold())

    def list_infos(self) -> List[FeatureInfo]:
        return [FeatureInfo(name=cls.kind, summary=cls.summary) for cls in self._kinds.values()]

    def create(self, name: str, args_text: str) -> Feature:
        """
        Build a feature of kind ``name`` from raw argument text.

        Raises:
            UnknownFeatureKindError: No kind is registered under ``name``.
            FeatureArgumentError: The arguments do not parse for that kind.
        """
        feature_cls = self.resolve(name)
        if feature_cls is None:
            raise UnknownFeatureKindError(name)
        return feature_cls.from_arguments(args_text or "")

    # ------------------------------------------------------------------
    # Codec
    # ------------------------------------------------------------------

    def serialize(self, feature: Feature) -> Dict[str, Any]:
        feature_cls = self.resolve(feature.kind)
        if feature_cls is not type(feature):
            raise UnknownFeatureKindError(feature.kind)
        return {KIND_FIELD: feature_cls.kind, **feature.to_fields()}

    def deserialize(self, data: Mapping[str, Any]) -> Feature:
        """
        Rebuild a feature from its serialized form.

        Raises:
            UnknownFeatureKindError: The kind tag is not registered.
            FeatureArgumentError: The tag is missing or the fields are invalid.
        """
        if not isinstance(data, Mapping):
            raise FeatureArgumentError("?", "a feature must be an object")
        kind = data.get(KIND_FIELD)
        if not isinstance(kind, str):
            raise FeatureArgumentError("?", f"missing '{KIND_FIELD}' tag")
        feature_cls = self.resolve(kind)
        if feature_cls is None:
            raise UnknownFeatureKindError(kind)
        fields = {name: value for name, value in data.items() if name != KIND_FIELD}
        return feature_cls.from_fields(fields)


def build_default_registry() -> FeatureRegistry:
    """Return a registry holding every built-in feature kind."""
    registry = FeatureRegistry()
    for feature_cls in BUILTIN_FEATURES:
        registry.register(feature_cls)
    return registry
