"""Shared fixtures: an in-memory directory for expander and driver tests."""

from typing import Optional

import pytest

from entra_group_inventory.directory.client import (
    DirectoryClient,
    DirectoryAccessError,
    GroupNotFoundError,
)
from entra_group_inventory.models import (
    DirectoryObject,
    GroupNode,
    GroupTypeFlags,
    ObjectType,
)

SECURITY = GroupTypeFlags(security_enabled=True)
MAIL_SECURITY = GroupTypeFlags(security_enabled=True, mail_enabled=True)
DISTRIBUTION = GroupTypeFlags(mail_enabled=True)
M365 = GroupTypeFlags(is_unified=True)


class FakeDirectory(DirectoryClient):
    """Directory backed by dicts. Records every call in order."""

    def __init__(self):
        self.groups: dict[str, dict] = {}
        self.denied: set[str] = set()
        self.broken: set[str] = set()
        self.calls: list[tuple[str, str]] = []

    def add_group(
        self,
        group_id: str,
        flags: GroupTypeFlags = SECURITY,
        name: Optional[str] = None,
        users: tuple = (),
        owners: tuple = (),
        groups: tuple = (),
        owner_groups: tuple = (),
    ) -> None:
        members = [DirectoryObject(u, ObjectType.USER, u) for u in users]
        members += [DirectoryObject(g, ObjectType.GROUP) for g in groups]
        owner_list = [DirectoryObject(u, ObjectType.USER, u) for u in owners]
        owner_list += [DirectoryObject(g, ObjectType.GROUP) for g in owner_groups]
        self.groups[group_id] = {
            "name": name or group_id,
            "flags": flags,
            "members": members,
            "owners": owner_list,
        }

    def _lookup(self, call: str, group_id: str) -> dict:
        self.calls.append((call, group_id))
        if group_id in self.broken:
            raise RuntimeError(f"directory exploded on {group_id}")
        if group_id in self.denied:
            raise DirectoryAccessError(f"Access denied to group {group_id}", group_id)
        if group_id not in self.groups:
            raise GroupNotFoundError(f"Group {group_id} not found", group_id)
        return self.groups[group_id]

    async def resolve_group(self, group_id: str) -> GroupNode:
        group = self._lookup("resolve_group", group_id)
        return GroupNode(id=group_id, display_name=group["name"])

    async def resolve_group_type_flags(self, group_id: str) -> GroupTypeFlags:
        return self._lookup("resolve_group_type_flags", group_id)["flags"]

    async def list_members(self, group_id: str) -> list[DirectoryObject]:
        return list(self._lookup("list_members", group_id)["members"])

    async def list_owners(self, group_id: str) -> list[DirectoryObject]:
        return list(self._lookup("list_owners", group_id)["owners"])


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()
