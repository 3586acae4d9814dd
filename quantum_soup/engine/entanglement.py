"""Entanglement groups and collapse propagation.

Groups are keyed by generated UUIDs and hold system-linked containers.
Containers override ``==`` with probabilistic semantics, so the graph uses
each container's ``reference_id`` as node identity instead.
"""

from __future__ import annotations

import logging
import sys
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, Protocol, TextIO

from ..core.errors import InvalidConfigurationError

if TYPE_CHECKING:
    from .amplitude_store import QuantumSystem

logger = logging.getLogger(__name__)

UNNAMED_GROUP = "Unnamed Group"


class QuantumReference(Protocol):
    """What the manager needs from a graph node."""
    reference_id: uuid.UUID

    @property
    def system(self) -> QuantumSystem | None: ...

    @property
    def qubit_indices(self) -> tuple[int, ...]: ...

    def notify_wavefunction_collapsed(self, collapse_id: uuid.UUID): ...


@dataclass(frozen=True)
class EntanglementGroupVersion:
    """One entry in a group's membership history."""
    group_id: uuid.UUID
    timestamp: datetime
    members: tuple[uuid.UUID, ...]
    reason: str


@dataclass
class EntanglementStats:
    """Diagnostics snapshot. Purely informational."""
    group_count: int
    unique_references: int
    total_links: int
    circular_references: int

    @property
    def circular_fraction(self) -> float:
        """Share of containers that sit in more than one group."""
        if self.unique_references == 0:
            return 0.0
        return self.circular_references / self.unique_references

    @property
    def chaos_ratio(self) -> float:
        """(membership links - unique containers) / unique containers."""
        if self.unique_references == 0:
            return 0.0
        return (self.total_links - self.unique_references) / self.unique_references

    def report(self) -> str:
        return "\n".join([
            "Entanglement diagnostics",
            f"  groups:              {self.group_count}",
            f"  unique references:   {self.unique_references}",
            f"  membership links:    {self.total_links}",
            f"  circular references: {self.circular_references} "
            f"({self.circular_fraction:.1%})",
            f"  chaos ratio:         {self.chaos_ratio:.3f}",
        ])


class EntanglementManager:
    """Tracks group membership for one amplitude store."""

    def __init__(self, system: QuantumSystem | None = None):
        self._system = system
        self._groups: dict[uuid.UUID, list[QuantumReference]] = {}
        self._labels: dict[uuid.UUID, str] = {}
        self._ref_groups: dict[uuid.UUID, list[uuid.UUID]] = {}
        self._history: dict[uuid.UUID, list[EntanglementGroupVersion]] = {}

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def link(self, label: str | None, *refs: QuantumReference) -> uuid.UUID:
        """Create a new group holding ``refs``.

        Every reference must be bound to the same store (and to this
        manager's store, when it has one). Listing a reference twice is
        allowed; it is recorded once.
        """
        if not refs:
            raise InvalidConfigurationError(
                "Cannot create an entanglement group with no members")
        systems = {id(r.system) for r in refs}
        if any(r.system is None for r in refs):
            raise InvalidConfigurationError(
                "Only system-linked containers can be entangled")
        if len(systems) != 1:
            raise InvalidConfigurationError(
                "All entangled containers must reference the same QuantumSystem")
        if self._system is not None and refs[0].system is not self._system:
            raise InvalidConfigurationError(
                "Containers belong to a different QuantumSystem than this manager")

        members: list[QuantumReference] = []
        seen: set[uuid.UUID] = set()
        for r in refs:
            if r.reference_id not in seen:
                seen.add(r.reference_id)
                members.append(r)

        group_id = uuid.uuid4()
        self._groups[group_id] = members
        self._labels[group_id] = label or UNNAMED_GROUP
        for r in members:
            self._ref_groups.setdefault(r.reference_id, []).append(group_id)
        self._history[group_id] = [EntanglementGroupVersion(
            group_id=group_id,
            timestamp=datetime.now(timezone.utc),
            members=tuple(r.reference_id for r in members),
            reason="Initial link",
        )]
        logger.debug("Linked %d references into group %s (%s)",
                     len(members), group_id, self._labels[group_id])
        return group_id

    def remove_references(self, reference_ids: Iterable[uuid.UUID]) -> int:
        """Drop the given references from every group they belong to.

        Groups left without members are dissolved. History is kept. Returns
        the number of dissolved groups.
        """
        doomed = set(reference_ids)
        touched: set[uuid.UUID] = set()
        for rid in doomed:
            touched.update(self._ref_groups.pop(rid, ()))

        dissolved = 0
        now = datetime.now(timezone.utc)
        for gid in touched:
            members = [r for r in self._groups[gid] if r.reference_id not in doomed]
            if members:
                self._groups[gid] = members
                reason = "Removed stale references"
            else:
                del self._groups[gid]
                del self._labels[gid]
                dissolved += 1
                reason = "Dissolved"
            self._history[gid].append(EntanglementGroupVersion(
                group_id=gid,
                timestamp=now,
                members=tuple(r.reference_id for r in members),
                reason=reason,
            ))
        if touched:
            logger.debug("Removed %d references from %d groups (%d dissolved)",
                         len(doomed), len(touched), dissolved)
        return dissolved

    @property
    def group_ids(self) -> tuple[uuid.UUID, ...]:
        return tuple(self._groups)

    def get_group(self, group_id: uuid.UUID) -> tuple[QuantumReference, ...]:
        return tuple(self._groups.get(group_id, ()))

    def get_group_label(self, group_id: uuid.UUID) -> str:
        return self._labels.get(group_id, UNNAMED_GROUP)

    def groups_for_reference(self, ref: QuantumReference) -> tuple[uuid.UUID, ...]:
        return tuple(self._ref_groups.get(ref.reference_id, ()))

    def is_entangled(self, ref: QuantumReference) -> bool:
        return bool(self._ref_groups.get(ref.reference_id))

    def history(self, group_id: uuid.UUID) -> tuple[EntanglementGroupVersion, ...]:
        return tuple(self._history.get(group_id, ()))

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------

    def propagate_collapse(self, group_id: uuid.UUID, collapse_id: uuid.UUID,
                           visited_groups: set[uuid.UUID] | None = None,
                           visited_refs: set[uuid.UUID] | None = None,
                           ) -> list[QuantumReference]:
        """Notify every container reachable from ``group_id`` exactly once.

        Depth-first over groups: each unvisited member is notified, then every
        other group it belongs to is expanded. Pass the same visited sets
        across calls to share the exactly-once guarantee within one collapse
        event. Returns the references notified by this call.
        """
        visited_groups = set() if visited_groups is None else visited_groups
        visited_refs = set() if visited_refs is None else visited_refs
        notified: list[QuantumReference] = []

        stack = [group_id]
        while stack:
            gid = stack.pop()
            if gid in visited_groups:
                continue
            visited_groups.add(gid)
            for ref in self._groups.get(gid, ()):
                rid = ref.reference_id
                if rid in visited_refs:
                    continue
                visited_refs.add(rid)
                ref.notify_wavefunction_collapsed(collapse_id)
                notified.append(ref)
                for other in reversed(self._ref_groups.get(rid, ())):
                    if other not in visited_groups:
                        stack.append(other)

        logger.debug("Collapse %s reached %d references from group %s",
                     collapse_id, len(notified), group_id)
        return notified

    def propagate_from(self, refs: Iterable[QuantumReference],
                       collapse_id: uuid.UUID,
                       visited_refs: set[uuid.UUID] | None = None,
                       ) -> list[QuantumReference]:
        """Expand every group of each already-notified reference in ``refs``."""
        visited_groups: set[uuid.UUID] = set()
        visited_refs = set() if visited_refs is None else visited_refs
        notified: list[QuantumReference] = []
        for ref in refs:
            visited_refs.add(ref.reference_id)
            for gid in self._ref_groups.get(ref.reference_id, ()):
                notified.extend(self.propagate_collapse(
                    gid, collapse_id, visited_groups, visited_refs))
        return notified

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def stats(self) -> EntanglementStats:
        links = sum(len(members) for members in self._groups.values())
        unique = len(self._ref_groups)
        circular = sum(1 for groups in self._ref_groups.values() if len(groups) > 1)
        return EntanglementStats(
            group_count=len(self._groups),
            unique_references=unique,
            total_links=links,
            circular_references=circular,
        )

    def print_stats(self, stream: TextIO | None = None) -> EntanglementStats:
        stats = self.stats()
        print(stats.report(), file=stream or sys.stdout)
        return stats
