"""
Run driver — expands every seed group and concatenates the rows in seed order.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Iterable

from .expander import HierarchyExpander
from ..models import ReportRow

logger = logging.getLogger("entra_group_inventory.inventory")


@dataclass
class InventoryResult:
    """Rows from one run plus the seeds that contributed nothing."""
    seeds: list[str] = field(default_factory=list)
    rows: list[ReportRow] = field(default_factory=list)
    empty_seeds: list[str] = field(default_factory=list)
    failed_seeds: dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def seed_rows(self) -> int:
        return sum(1 for r in self.rows if r.is_seed)

    def to_dict(self) -> dict:
        return {
            "seeds": self.seeds,
            "row_count": len(self.rows),
            "seed_rows": self.seed_rows,
            "empty_seeds": self.empty_seeds,
            "failed_seeds": self.failed_seeds,
            "duration_seconds": self.duration_seconds,
        }


async def run_inventory(
    expander: HierarchyExpander,
    seeds: Iterable[str],
) -> InventoryResult:
    """
    Expand each seed at level 1 with no parent.

    A seed that yields no rows, or whose expansion raises, is logged and
    skipped; the run always continues with the next seed.
    """
    result = InventoryResult()
    started = time.time()

    for seed in seeds:
        result.seeds.append(seed)
        try:
            rows = await expander.expand(seed, level=1, parent_id="")
        except Exception as e:
            result.failed_seeds[seed] = f"{type(e).__name__}: {e}"
            logger.warning(f"Seed {seed} failed: {type(e).__name__}: {e}")
            continue

        if not rows:
            result.empty_seeds.append(seed)
            logger.warning(f"Seed {seed} produced no rows; skipping")
            continue

        logger.info(f"Seed {seed}: {len(rows)} rows")
        result.rows.extend(rows)

    result.duration_seconds = round(time.time() - started, 2)
    return result
