"""
Directory client — group lookup, membership and ownership listing.

The hierarchy expander depends only on the DirectoryClient contract.
GraphDirectoryClient implements it over Microsoft Graph.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx

from ..graph.client import GraphClient, GraphAPIError
from ..models import DirectoryObject, GroupNode, GroupTypeFlags, ObjectType

logger = logging.getLogger("entra_group_inventory.directory")

GROUP_SELECT = "id,displayName,groupTypes,mailEnabled,securityEnabled"
OBJECT_SELECT = "id,displayName,userPrincipalName"

ODATA_TYPES = {
    "#microsoft.graph.user": ObjectType.USER,
    "#microsoft.graph.group": ObjectType.GROUP,
}

UNIFIED_GROUP_TYPE = "unified"


class DirectoryError(Exception):
    """Raised when the directory cannot answer a lookup."""
    def __init__(self, message: str, group_id: str = ""):
        self.group_id = group_id
        super().__init__(message)


class GroupNotFoundError(DirectoryError):
    """Raised when a group id does not exist in the directory."""
    pass


class DirectoryAccessError(DirectoryError):
    """Raised when the caller lacks permission to read a group."""
    pass


class DirectoryClient(ABC):
    """Read-only view of the directory's group graph."""

    @abstractmethod
    async def resolve_group(self, group_id: str) -> GroupNode:
        """Return identity and display name for a group."""
        raise NotImplementedError

    @abstractmethod
    async def resolve_group_type_flags(self, group_id: str) -> GroupTypeFlags:
        """Return the flags used to classify a group."""
        raise NotImplementedError

    @abstractmethod
    async def list_members(self, group_id: str) -> list[DirectoryObject]:
        """Direct members, in directory order."""
        raise NotImplementedError

    @abstractmethod
    async def list_owners(self, group_id: str) -> list[DirectoryObject]:
        """Direct owners, in directory order."""
        raise NotImplementedError


class GraphDirectoryClient(DirectoryClient):
    """DirectoryClient backed by the Microsoft Graph v1.0 groups API."""

    def __init__(self, graph: GraphClient):
        self.graph = graph

    async def resolve_group(self, group_id: str) -> GroupNode:
        group = await self._get_group(group_id)
        return GroupNode(
            id=group.get("id", group_id),
            display_name=group.get("displayName") or "",
        )

    async def resolve_group_type_flags(self, group_id: str) -> GroupTypeFlags:
        group = await self._get_group(group_id)
        return flags_from_graph(group)

    async def list_members(self, group_id: str) -> list[DirectoryObject]:
        return await self._list_objects(group_id, "members")

    async def list_owners(self, group_id: str) -> list[DirectoryObject]:
        return await self._list_objects(group_id, "owners")

    async def _get_group(self, group_id: str) -> dict:
        endpoint = f"groups/{quote(group_id, safe='')}"
        try:
            data = await self.graph.get(endpoint, params={"$select": GROUP_SELECT})
        except GraphAPIError as e:
            raise DirectoryError(str(e), group_id) from e
        except httpx.HTTPError as e:
            raise DirectoryError(f"Request for group {group_id} failed: {e}", group_id) from e

        if data.get("_not_found"):
            raise GroupNotFoundError(f"Group {group_id} not found", group_id)
        if data.get("_forbidden"):
            raise DirectoryAccessError(
                f"Access denied to group {group_id}: {data.get('_error_message', 'Forbidden')}",
                group_id,
            )
        return data

    async def _list_objects(self, group_id: str, relation: str) -> list[DirectoryObject]:
        endpoint = f"groups/{quote(group_id, safe='')}/{relation}"
        try:
            items = await self.graph.get_all_pages(
                endpoint, params={"$select": OBJECT_SELECT},
            )
        except GraphAPIError as e:
            if e.status_code == 404:
                raise GroupNotFoundError(f"Group {group_id} not found", group_id) from e
            if e.status_code == 403:
                raise DirectoryAccessError(
                    f"Access denied to {relation} of group {group_id}", group_id
                ) from e
            raise DirectoryError(str(e), group_id) from e
        except httpx.HTTPError as e:
            raise DirectoryError(
                f"Listing {relation} of group {group_id} failed: {e}", group_id
            ) from e

        logger.debug(f"Group {group_id}: {len(items)} {relation} listed")
        return [_to_directory_object(item) for item in items]


def _to_directory_object(item: dict) -> DirectoryObject:
    object_type = ODATA_TYPES.get(item.get("@odata.type", ""), ObjectType.OTHER)
    return DirectoryObject(
        id=item.get("id", ""),
        object_type=object_type,
        principal_name=item.get("userPrincipalName"),
    )


def flags_from_graph(group: dict) -> GroupTypeFlags:
    """Extract classification flags from a Graph group resource."""
    group_types = group.get("groupTypes") or []
    return GroupTypeFlags(
        security_enabled=bool(group.get("securityEnabled")),
        mail_enabled=bool(group.get("mailEnabled")),
        is_unified=any(str(t).lower() == UNIFIED_GROUP_TYPE for t in group_types),
    )
