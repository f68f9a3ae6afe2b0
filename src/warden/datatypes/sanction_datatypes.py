"""
Sanction kinds, keys and records.

A sanction is keyed by ``(subject_id, scope_id)``: the sanctioned user and the
guild it applies in. The key is persisted as the composite string
``"<subject_id>,<scope_id>"`` and the expiry as integer unix seconds (UTC), so
comparisons need no parsing or timezone conversion.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum


class SanctionKind(Enum):
    """Enumeration of time-bounded sanctions tracked until expiry."""

    MUTE = "mute"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value


class JoinReconciliation(Enum):
    """Outcome of reconciling a subject's sanction state when they join a guild."""

    REAPPLIED = "reapplied"
    LIFTED = "lifted"
    UNRESOLVED = "unresolved"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class SanctionKey:
    """Unique identity of a sanction: a subject within a scope."""

    subject_id: int
    scope_id: int

    def to_storage(self) -> str:
        """Return the composite ``"<subject_id>,<scope_id>"`` storage key."""
        return f"{self.subject_id},{self.scope_id}"

    @classmethod
    def from_storage(cls, raw: str) -> "SanctionKey":
        """
        Parse a composite storage key.

        Raises:
            ValueError: If ``raw`` is not two comma separated integers.
        """
        parts = raw.split(",")
        if len(parts) != 2:
            raise ValueError(f"Malformed sanction key: {raw!r}")
        return cls(subject_id=int(parts[0].strip()), scope_id=int(parts[1].strip()))

    def __str__(self) -> str:
        return self.to_storage()


@dataclass(frozen=True, slots=True)
class SanctionRecord:
    """A single outstanding sanction.

    Attributes:
        kind: Which sanction this is.
        key: Subject and scope the sanction applies to.
        expires_at: Absolute expiry as unix seconds (UTC).
    """

    kind: SanctionKind
    key: SanctionKey
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at


def unix_now() -> int:
    """Current wall-clock time as integer unix seconds."""
    return int(time.time())
