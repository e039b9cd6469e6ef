"""
Hierarchy expander — depth-first expansion of nested security groups.

Each visited group yields exactly one ReportRow. Only security groups have
their nested member and owner groups followed; every other kind is reported
as a leaf. Groups reachable through several branches are expanded once per
branch and reported once per branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from ..directory.client import DirectoryClient, DirectoryError
from .classification import classify
from ..models import DirectoryObject, GroupNode, MembershipType, ReportRow

logger = logging.getLogger("entra_group_inventory.inventory.expander")


class CyclePolicy(str, Enum):
    """What to do when a group shows up again on its own ancestry path."""
    ANCESTORS = "ancestors"   # stop at a group already on the current branch
    NONE = "none"             # no guard; a cycle recurses until RecursionError


@dataclass
class TraversalStats:
    groups_expanded: int = 0
    groups_skipped: int = 0
    cycles_cut: int = 0

    def to_dict(self) -> dict:
        return {
            "groups_expanded": self.groups_expanded,
            "groups_skipped": self.groups_skipped,
            "cycles_cut": self.cycles_cut,
        }


class HierarchyExpander:
    """
    Expands one group into its flat list of report rows.

    Calls into the directory are awaited strictly one after another:
    resolve, classify, list members, list owners, then member subtrees
    before owner subtrees.
    """

    def __init__(
        self,
        directory: DirectoryClient,
        cycle_policy: CyclePolicy = CyclePolicy.ANCESTORS,
    ):
        self.directory = directory
        self.cycle_policy = CyclePolicy(cycle_policy)
        self.stats = TraversalStats()

    async def expand(
        self,
        group_id: str,
        level: int = 1,
        parent_id: str = "",
    ) -> list[ReportRow]:
        """
        Expand a group and everything reachable from it.

        Returns [group row] + member subtrees + owner subtrees. An unresolvable
        group returns an empty list.
        """
        return await self._expand(
            group_id, level, parent_id, MembershipType.NONE, ancestors=(),
        )

    async def _expand(
        self,
        group_id: str,
        level: int,
        parent_id: str,
        membership_type: MembershipType,
        ancestors: tuple[str, ...],
    ) -> list[ReportRow]:
        if self.cycle_policy is CyclePolicy.ANCESTORS and group_id in ancestors:
            self.stats.cycles_cut += 1
            logger.warning(
                f"Cycle detected: group {group_id} is already on the path "
                f"{' -> '.join(ancestors)}; not expanding it again"
            )
            return []

        try:
            node, members, owners = await self._fetch(group_id)
        except DirectoryError as e:
            self.stats.groups_skipped += 1
            logger.warning(f"Skipping group {group_id} (level {level}): {e}")
            return []

        self.stats.groups_expanded += 1
        row = ReportRow(
            level=level,
            group_id=node.id,
            group_name=node.display_name,
            group_type=node.kind,
            parent_id=parent_id,
            members=_principal_names(members),
            owners=_principal_names(owners),
            membership_type=membership_type,
        )
        rows = [row]

        if not node.kind.is_expandable:
            logger.debug(f"Group {node.id} is a {node.kind.value}; reported as leaf")
            return rows

        path = ancestors + (node.id,)
        for role, entries in (
            (MembershipType.MEMBER, members),
            (MembershipType.OWNER, owners),
        ):
            for child in entries:
                if not child.is_group:
                    continue
                rows.extend(
                    await self._expand(child.id, level + 1, node.id, role, path)
                )
        return rows

    async def _fetch(
        self, group_id: str,
    ) -> tuple[GroupNode, list[DirectoryObject], list[DirectoryObject]]:
        identity = await self.directory.resolve_group(group_id)
        flags = await self.directory.resolve_group_type_flags(group_id)
        node = GroupNode(
            id=identity.id,
            display_name=identity.display_name,
            kind=classify(flags),
        )
        members = await self.directory.list_members(group_id)
        owners = await self.directory.list_owners(group_id)
        logger.debug(
            f"Resolved {node.display_name} ({node.id}) as {node.kind.value}: "
            f"{len(members)} members, {len(owners)} owners"
        )
        return node, members, owners


def _principal_names(entries: list[DirectoryObject]) -> tuple[str, ...]:
    """UPNs of the user entries, in listing order. A user without a UPN is listed by id."""
    return tuple(e.principal_name or e.id for e in entries if e.is_user)
