"""Conflict resolution policies for bidirectional sync.

Provides one resolver per ``ConflictPolicy``:

- ``NewerWinsResolver``: The side with the later modification time wins.
- ``LargerWinsResolver``: The side with the larger size wins.
- ``SourceWinsResolver``: Always copies source over target.
- ``TargetWinsResolver``: Always copies target over source.

``newer`` and ``larger`` leave ties unresolved: neither side is touched
and the conflict is reported as requiring manual resolution.

The ``create_resolver()`` factory maps policy values to resolver instances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from treevault.core.models import FileStat
from treevault.sync.models import ConflictPolicy, CopySide, ResolutionOutcome

logger = logging.getLogger(__name__)

MANUAL_RESOLUTION = "manual resolution required"


@dataclass(frozen=True)
class ConflictCandidate:
    """Both sides of a path whose contents differ."""

    path: str
    source: FileStat
    target: FileStat


@dataclass(frozen=True)
class Resolution:
    """What a resolver decided for one conflict.

    Attributes:
        outcome: Whether a winner was chosen.
        winner: The side to copy from, ``None`` when unresolved.
        description: Human-readable action for the report.
    """

    outcome: ResolutionOutcome
    winner: CopySide | None
    description: str

    @classmethod
    def copy_from(cls, side: CopySide, reason: str) -> Resolution:
        other = CopySide.TARGET if side == CopySide.SOURCE else CopySide.SOURCE
        return cls(
            outcome=ResolutionOutcome.RESOLVED,
            winner=side,
            description=f"copied {side.value} to {other.value} ({reason})",
        )

    @classmethod
    def unresolved(cls, reason: str) -> Resolution:
        return cls(
            outcome=ResolutionOutcome.UNRESOLVED,
            winner=None,
            description=f"{MANUAL_RESOLUTION} ({reason})",
        )


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    policy: ConflictPolicy

    def resolve(self, conflict: ConflictCandidate) -> Resolution:
        """Decide which side of *conflict* wins."""
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Comparison policies
# ---------------------------------------------------------------------------


class NewerWinsResolver:
    """The side modified most recently wins; equal mtimes stay unresolved."""

    policy = ConflictPolicy.NEWER

    def resolve(self, conflict: ConflictCandidate) -> Resolution:
        if conflict.source.mtime > conflict.target.mtime:
            return Resolution.copy_from(CopySide.SOURCE, "source is newer")
        if conflict.target.mtime > conflict.source.mtime:
            return Resolution.copy_from(CopySide.TARGET, "target is newer")
        logger.info(
            "Conflict on %s left unresolved: identical modification times",
            conflict.path,
        )
        return Resolution.unresolved("identical modification times")


class LargerWinsResolver:
    """The larger file wins; equal sizes stay unresolved."""

    policy = ConflictPolicy.LARGER

    def resolve(self, conflict: ConflictCandidate) -> Resolution:
        if conflict.source.size > conflict.target.size:
            return Resolution.copy_from(CopySide.SOURCE, "source is larger")
        if conflict.target.size > conflict.source.size:
            return Resolution.copy_from(CopySide.TARGET, "target is larger")
        logger.info(
            "Conflict on %s left unresolved: identical sizes", conflict.path
        )
        return Resolution.unresolved("identical sizes")


# ---------------------------------------------------------------------------
# Nominated-side policies
# ---------------------------------------------------------------------------


class SourceWinsResolver:
    """Always copy source over target."""

    policy = ConflictPolicy.SOURCE

    def resolve(self, conflict: ConflictCandidate) -> Resolution:
        return Resolution.copy_from(CopySide.SOURCE, "source policy")


class TargetWinsResolver:
    """Always copy target over source."""

    policy = ConflictPolicy.TARGET

    def resolve(self, conflict: ConflictCandidate) -> Resolution:
        return Resolution.copy_from(CopySide.TARGET, "target policy")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[ConflictPolicy, type] = {
    ConflictPolicy.NEWER: NewerWinsResolver,
    ConflictPolicy.LARGER: LargerWinsResolver,
    ConflictPolicy.SOURCE: SourceWinsResolver,
    ConflictPolicy.TARGET: TargetWinsResolver,
}


def create_resolver(policy: ConflictPolicy | str) -> ConflictResolver:
    """Create a resolver instance for the given policy.

    Args:
        policy: A ``ConflictPolicy`` or its string value
            (``"newer"``, ``"larger"``, ``"source"``, ``"target"``).

    Returns:
        A resolver instance satisfying the ``ConflictResolver`` protocol.

    Raises:
        ValueError: If *policy* is not a recognised policy.
    """
    try:
        key = ConflictPolicy(policy)
    except ValueError:
        valid = ", ".join(p.value for p in ConflictPolicy)
        raise ValueError(
            f"Unknown conflict policy: {policy!r}. Valid policies: {valid}"
        ) from None
    return _STRATEGY_MAP[key]()
