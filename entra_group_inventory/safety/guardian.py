"""
Safety Guardian — Keeps the inventory strictly read-only.
Every outbound request is checked before it reaches the directory.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

logger = logging.getLogger("entra_group_inventory.safety")

READ_METHODS = {"GET", "HEAD", "OPTIONS"}

# Group endpoints the inventory is allowed to read
ALLOWED_PATH_PATTERNS = [
    re.compile(r"/groups/[^/?]+(\?|$)"),
    re.compile(r"/groups/[^/?]+/members(\?|$|/)"),
    re.compile(r"/groups/[^/?]+/owners(\?|$|/)"),
]

# Navigation actions that must never be followed, even through a nextLink
BLOCKED_URL_PATTERNS = [
    re.compile(r"/\$ref", re.IGNORECASE),
    re.compile(r"/addFavorite$", re.IGNORECASE),
    re.compile(r"/removeFavorite$", re.IGNORECASE),
    re.compile(r"/renew$", re.IGNORECASE),
    re.compile(r"/restore$", re.IGNORECASE),
    re.compile(r"/validateProperties$", re.IGNORECASE),
]


class SafetyViolation(Exception):
    """Raised when a non-read request is attempted."""
    pass


class SafetyGuardian:
    """
    Validates outbound HTTP requests against the read-only allow-list.
    Keeps a count of checks and a record of every rejected request.
    """

    def __init__(self):
        self.violations: list[dict] = []
        self.checks_performed: int = 0
        self.started_at: str = datetime.now(timezone.utc).isoformat()

    def validate_request(self, method: str, url: str) -> bool:
        """
        Return True when the request is a permitted read.
        Raise SafetyViolation otherwise.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper not in READ_METHODS:
            self._record_violation(method_upper, url, "Write HTTP method blocked")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Write method blocked: {method_upper} {url}"
            )

        for pattern in BLOCKED_URL_PATTERNS:
            if pattern.search(url):
                self._record_violation(method_upper, url, "Blocked action URL")
                raise SafetyViolation(
                    f"SAFETY VIOLATION: Action URL detected: {method_upper} {url}"
                )

        if not any(p.search(url) for p in ALLOWED_PATH_PATTERNS):
            self._record_violation(method_upper, url, "Endpoint outside group inventory scope")
            raise SafetyViolation(
                f"SAFETY VIOLATION: Endpoint not allowed: {method_upper} {url}"
            )

        return True

    def _record_violation(self, method: str, url: str, reason: str):
        self.violations.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
            "reason": reason,
        })
        logger.critical(f"SAFETY VIOLATION: {reason} — {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the safety audit record for the run."""
        return {
            "mode": "READ-ONLY",
            "started_at": self.started_at,
            "checks_performed": self.checks_performed,
            "violations_detected": len(self.violations),
            "violations": self.violations,
            "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
        }
