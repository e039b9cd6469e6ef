"""
Inventory data models — groups, directory objects and report rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class GroupKind(str, Enum):
    """Closed classification of a directory group."""
    SECURITY = "Security Group"
    MAIL_ENABLED_SECURITY = "Mail-enabled Security Group"
    DISTRIBUTION_LIST = "Distribution List"
    M365 = "Microsoft 365 Group"
    MAIL_ENABLED_M365 = "Mail-enabled Microsoft 365 Group"
    UNKNOWN = "Unknown"

    @property
    def is_expandable(self) -> bool:
        """Only security groups have their nested groups followed."""
        return self in (GroupKind.SECURITY, GroupKind.MAIL_ENABLED_SECURITY)


class ObjectType(str, Enum):
    USER = "User"
    GROUP = "Group"
    OTHER = "Other"


class MembershipType(str, Enum):
    """How a nested group was reached from its parent."""
    NONE = ""
    MEMBER = "Member"
    OWNER = "Owner"


@dataclass(frozen=True)
class GroupTypeFlags:
    """Raw attributes that drive classification."""
    security_enabled: bool = False
    mail_enabled: bool = False
    is_unified: bool = False


@dataclass(frozen=True)
class GroupNode:
    id: str
    display_name: str
    kind: GroupKind = GroupKind.UNKNOWN


@dataclass(frozen=True)
class DirectoryObject:
    """One entry from a member or owner listing."""
    id: str
    object_type: ObjectType
    principal_name: Optional[str] = None

    @property
    def is_user(self) -> bool:
        return self.object_type is ObjectType.USER

    @property
    def is_group(self) -> bool:
        return self.object_type is ObjectType.GROUP


# Output columns, in the order downstream audit tooling expects
REPORT_COLUMNS = [
    "Level", "MembersCount", "GroupGUID", "ParentGUID", "Owners",
    "GroupName", "GroupType", "Members", "OwnersCount", "MembershipType",
]

UPN_SEPARATOR = ";"


@dataclass(frozen=True)
class ReportRow:
    """
    One visited group in the flat hierarchy report.

    Rows are immutable. The membership type is fixed when the row is built;
    a seed row carries MembershipType.NONE and an empty parent id.
    """
    level: int
    group_id: str
    group_name: str
    group_type: GroupKind
    parent_id: str = ""
    members: tuple[str, ...] = field(default_factory=tuple)
    owners: tuple[str, ...] = field(default_factory=tuple)
    membership_type: MembershipType = MembershipType.NONE

    def __post_init__(self):
        if self.level < 1:
            raise ValueError(f"Report row level must be >= 1, got {self.level}")
        if self.level == 1 and (self.parent_id or self.membership_type is not MembershipType.NONE):
            raise ValueError("Seed rows carry no parent and no membership type")
        if self.level > 1 and (not self.parent_id or self.membership_type is MembershipType.NONE):
            raise ValueError("Nested rows need a parent id and a membership type")

    @property
    def members_count(self) -> int:
        return len(self.members)

    @property
    def owners_count(self) -> int:
        return len(self.owners)

    @property
    def is_seed(self) -> bool:
        return self.level == 1

    def to_record(self) -> dict:
        """Flatten to the report's column layout."""
        return {
            "Level": self.level,
            "MembersCount": self.members_count,
            "GroupGUID": self.group_id,
            "ParentGUID": self.parent_id,
            "Owners": UPN_SEPARATOR.join(self.owners),
            "GroupName": self.group_name,
            "GroupType": self.group_type.value,
            "Members": UPN_SEPARATOR.join(self.members),
            "OwnersCount": self.owners_count,
            "MembershipType": self.membership_type.value,
        }

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "group_id": self.group_id,
            "parent_id": self.parent_id,
            "group_name": self.group_name,
            "group_type": self.group_type.value,
            "members": list(self.members),
            "owners": list(self.owners),
            "members_count": self.members_count,
            "owners_count": self.owners_count,
            "membership_type": self.membership_type.value,
        }
