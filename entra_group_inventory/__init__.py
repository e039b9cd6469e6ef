"""
Entra Group Hierarchy Inventory
===============================
Walks nested Microsoft Entra ID groups from a list of seed groups and writes
a flat report of every group visited, its direct user members and owners,
its depth and how it was reached.

This tool is read-only. It never modifies the directory.
"""

__version__ = "1.0.0"
__mode__ = "READ-ONLY"
