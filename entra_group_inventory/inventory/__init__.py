"""Inventory package — classification, hierarchy expansion and the run driver."""

from ..models import (
    GroupKind,
    GroupNode,
    GroupTypeFlags,
    DirectoryObject,
    ObjectType,
    MembershipType,
    ReportRow,
    REPORT_COLUMNS,
)
from .classification import classify
from .expander import HierarchyExpander, CyclePolicy, TraversalStats
from .driver import run_inventory, InventoryResult

__all__ = [
    "GroupKind",
    "GroupNode",
    "GroupTypeFlags",
    "DirectoryObject",
    "ObjectType",
    "MembershipType",
    "ReportRow",
    "REPORT_COLUMNS",
    "classify",
    "HierarchyExpander",
    "CyclePolicy",
    "TraversalStats",
    "run_inventory",
    "InventoryResult",
]
