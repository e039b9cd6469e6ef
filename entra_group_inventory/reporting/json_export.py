"""
JSON exporter — Full run output: rows, seed outcomes and traversal stats.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .. import __version__


def export_json(
    result: Any,
    output_path: Path,
    run_id: str,
    stats: Optional[dict] = None,
    safety: Optional[dict] = None,
) -> Path:
    """
    Write the inventory result to a JSON file.

    Returns:
        Path to the created JSON file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "metadata": {
            "tool": "Entra Group Hierarchy Inventory",
            "version": __version__,
            "run_id": run_id,
            "generated_utc": datetime.now(timezone.utc).isoformat(),
            "mode": "READ-ONLY",
        },
        "summary": result.to_dict(),
        "traversal": stats or {},
        "safety": safety or {},
        "rows": [r.to_dict() for r in result.rows],
    }

    with open(output_path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, default=str, ensure_ascii=False)

    return output_path
